"""Port interface for work item persistence."""

from abc import ABC, abstractmethod
from datetime import datetime

from lead_router.domain.entities.work_item import WorkItem


class WorkItemRepository(ABC):
    @abstractmethod
    async def save(self, item: WorkItem) -> WorkItem:
        ...

    @abstractmethod
    async def get_by_id(self, work_item_id: int) -> WorkItem | None:
        ...

    @abstractmethod
    async def get_for_update(self, work_item_id: int) -> WorkItem | None:
        """Load the work item and lock its row until the transaction ends."""
        ...

    @abstractmethod
    async def mark_assigned(self, work_item_id: int, worker_id: int, at: datetime) -> None:
        """Stamp the assignment. Only an unassigned item may be stamped."""
        ...

    @abstractmethod
    async def find_recent_by_phone(self, phone: str, since: datetime) -> WorkItem | None:
        ...

    @abstractmethod
    async def get_unassigned(self) -> list[WorkItem]:
        ...
