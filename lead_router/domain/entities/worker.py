"""Worker entity — a capacity-bounded caller who receives work items."""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone

from lead_router.domain.value_objects.affinity import normalize_affinity, normalize_tags

# Sorts before every real assignment timestamp.
NEVER_ASSIGNED = datetime.min.replace(tzinfo=timezone.utc)


@dataclass
class Worker:
    id: int | None
    name: str
    capacity_per_day: int
    assigned_count_today: int = 0
    last_reset_date: date | None = None
    last_assigned_at: datetime | None = None
    affinity_tags: frozenset[str] = field(default_factory=frozenset)
    role: str | None = None
    languages: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.capacity_per_day < 1:
            raise ValueError("capacity_per_day must be a positive integer")
        if self.assigned_count_today < 0:
            raise ValueError("assigned_count_today cannot be negative")
        self.affinity_tags = normalize_tags(self.affinity_tags)

    @property
    def fairness_timestamp(self) -> datetime:
        return self.last_assigned_at or NEVER_ASSIGNED

    def has_affinity(self, key: str) -> bool:
        return normalize_affinity(key) in self.affinity_tags

    def has_capacity(self) -> bool:
        return self.assigned_count_today < self.capacity_per_day

    def is_over_capacity(self) -> bool:
        return self.assigned_count_today > self.capacity_per_day

    def needs_reset(self, today: date) -> bool:
        return self.last_reset_date is None or self.last_reset_date < today

    def reset_counter(self, today: date) -> None:
        self.assigned_count_today = 0
        self.last_reset_date = today

    def record_assignment(self, now: datetime) -> None:
        """Count one more assignment and stamp the fairness timestamp.

        The stamp only moves forward; an older ``now`` keeps the stored value.
        """
        self.assigned_count_today += 1
        if self.last_assigned_at is None or now > self.last_assigned_at:
            self.last_assigned_at = now
