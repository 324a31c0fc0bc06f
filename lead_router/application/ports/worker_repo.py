"""Port interface for the worker registry."""

from abc import ABC, abstractmethod
from datetime import date, datetime

from lead_router.domain.entities.worker import Worker


class WorkerRepository(ABC):
    @abstractmethod
    async def load_all_for_update(self) -> list[Worker]:
        """Return every worker ordered by id, each row locked until the transaction ends.

        Must block (not skip, not fail fast) while another transaction holds a row.
        """
        ...

    @abstractmethod
    async def apply_reset(self, worker_ids: list[int], today: date) -> None:
        """Zero counters of the given workers whose last reset predates *today*."""
        ...

    @abstractmethod
    async def commit_assignment(self, worker_id: int, new_count: int, now: datetime) -> None:
        ...

    @abstractmethod
    async def save(self, worker: Worker) -> Worker:
        ...

    @abstractmethod
    async def get_by_id(self, worker_id: int) -> Worker | None:
        ...

    @abstractmethod
    async def get_all(self) -> list[Worker]:
        ...

    @abstractmethod
    async def update_config(self, worker: Worker) -> Worker | None:
        """Update name, role, languages, capacity and affinity tags. Counters are untouched."""
        ...

    @abstractmethod
    async def delete(self, worker_id: int) -> bool:
        ...
