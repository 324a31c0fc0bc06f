"""Port interface for one atomic, isolated unit of work.

Usage::

    async with uow_factory() as uow:
        workers = await uow.workers.load_all_for_update()
        ...
        await uow.commit()

Leaving the block without ``commit()`` rolls everything back and releases
every lock taken inside it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from lead_router.application.ports.assignment_repo import AssignmentRecordRepository
from lead_router.application.ports.work_item_repo import WorkItemRepository
from lead_router.application.ports.worker_repo import WorkerRepository


class UnitOfWork(ABC):
    workers: WorkerRepository
    work_items: WorkItemRepository
    assignments: AssignmentRecordRepository

    async def __aenter__(self) -> UnitOfWork:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.rollback()

    @abstractmethod
    async def commit(self) -> None:
        ...

    @abstractmethod
    async def rollback(self) -> None:
        """Discard uncommitted changes. A no-op after a successful commit."""
        ...
