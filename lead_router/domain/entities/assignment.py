"""AssignmentRecord entity — append-only audit entry for one routing decision."""

from dataclasses import dataclass
from datetime import datetime

from lead_router.domain.value_objects.enums import ReasonCode


@dataclass(frozen=True)
class AssignmentRecord:
    id: int | None
    work_item_id: int
    worker_id: int
    reason_code: ReasonCode
    created_at: datetime

    def is_overflow(self) -> bool:
        return self.reason_code == ReasonCode.CAPACITY_OVERFLOW_FALLBACK
