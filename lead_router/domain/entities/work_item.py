"""WorkItem entity — an inbound lead waiting to be routed to a worker."""

from dataclasses import dataclass, field
from datetime import datetime

from lead_router.domain.value_objects.affinity import normalize_affinity


@dataclass
class WorkItem:
    id: int | None
    phone: str
    name: str | None = None
    city: str | None = None
    affinity_key: str | None = None
    lead_source: str | None = None
    metadata: dict = field(default_factory=dict)
    received_at: datetime | None = None
    created_at: datetime | None = None
    assigned_worker_id: int | None = None
    assigned_at: datetime | None = None

    @property
    def routing_key(self) -> str | None:
        return normalize_affinity(self.affinity_key)

    def is_assigned(self) -> bool:
        return self.assigned_worker_id is not None

    def mark_assigned(self, worker_id: int, at: datetime) -> None:
        if self.is_assigned():
            raise ValueError(
                f"Work item {self.id} is already assigned to worker {self.assigned_worker_id}"
            )
        self.assigned_worker_id = worker_id
        self.assigned_at = at
