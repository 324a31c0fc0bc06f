"""Port interface for the append-only assignment audit log."""

from abc import ABC, abstractmethod

from lead_router.domain.entities.assignment import AssignmentRecord


class AssignmentRecordRepository(ABC):
    @abstractmethod
    async def append(self, record: AssignmentRecord) -> AssignmentRecord:
        """Persist a new record and return it with its id set."""
        ...

    @abstractmethod
    async def get_by_work_item(self, work_item_id: int) -> AssignmentRecord | None:
        ...

    @abstractmethod
    async def get_all(self, limit: int | None = None) -> list[AssignmentRecord]:
        """Most recent first."""
        ...
