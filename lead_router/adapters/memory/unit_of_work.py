"""In-memory unit of work — serializing locks instead of database row locks.

One ``asyncio.Lock`` guards the whole worker registry (the equivalent of
locking every worker row) and one lock per work item guards its row. Locks
are acquired with a blocking wait, in the same order as the SQL adapter:
work item first, then the registry. Writes are staged on copies and only
reach the shared store on ``commit()``.

Backs the test suite and embedded, single-process use without PostgreSQL.
"""

from __future__ import annotations

import asyncio
import copy
import itertools
from collections import defaultdict
from dataclasses import replace
from datetime import date, datetime

from lead_router.application.ports.assignment_repo import AssignmentRecordRepository
from lead_router.application.ports.unit_of_work import UnitOfWork
from lead_router.application.ports.work_item_repo import WorkItemRepository
from lead_router.application.ports.worker_repo import WorkerRepository
from lead_router.domain.entities.assignment import AssignmentRecord
from lead_router.domain.entities.work_item import WorkItem
from lead_router.domain.entities.worker import Worker
from lead_router.domain.errors import (
    LockTimeout,
    PersistenceFailure,
    TransactionConflict,
    WorkerInUse,
)


class InMemoryStore:
    """Committed state shared by every InMemoryUnitOfWork built on it."""

    def __init__(self, lock_timeout: float | None = None):
        self.workers: dict[int, Worker] = {}
        self.work_items: dict[int, WorkItem] = {}
        self.assignments: list[AssignmentRecord] = []
        self.lock_timeout = lock_timeout
        self.registry_lock = asyncio.Lock()
        self.item_locks: dict[int, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._sequences = defaultdict(lambda: itertools.count(1))

    def next_id(self, table: str) -> int:
        return next(self._sequences[table])

    def add_worker(self, worker: Worker) -> Worker:
        """Seed helper: commit a worker directly, bypassing any unit of work."""
        if worker.id is None:
            worker.id = self.next_id("workers")
        self.workers[worker.id] = copy.deepcopy(worker)
        return worker

    def add_work_item(self, item: WorkItem) -> WorkItem:
        if item.id is None:
            item.id = self.next_id("work_items")
        self.work_items[item.id] = copy.deepcopy(item)
        return item


class InMemoryUnitOfWork(UnitOfWork):
    def __init__(self, store: InMemoryStore):
        self.store = store
        self.workers = InMemoryWorkerRepository(self)
        self.work_items = InMemoryWorkItemRepository(self)
        self.assignments = InMemoryAssignmentRecordRepository(self)
        self._clear()

    def _clear(self) -> None:
        self.staged_workers: dict[int, Worker] = {}
        self.deleted_workers: set[int] = set()
        self.staged_items: dict[int, WorkItem] = {}
        self.new_records: list[AssignmentRecord] = []
        self._held: list[asyncio.Lock] = []

    async def acquire(self, lock: asyncio.Lock) -> None:
        if lock in self._held:
            return
        try:
            await asyncio.wait_for(lock.acquire(), timeout=self.store.lock_timeout)
        except asyncio.TimeoutError:
            raise LockTimeout("Timed out waiting for a row lock") from None
        self._held.append(lock)

    def _release(self) -> None:
        for lock in reversed(self._held):
            lock.release()

    async def commit(self) -> None:
        store = self.store
        committed_ids = {r.work_item_id for r in store.assignments}
        for record in self.new_records:
            if record.work_item_id in committed_ids:
                self.rollback_now()
                raise TransactionConflict(
                    f"Work item {record.work_item_id} already has an assignment record"
                )
        for worker_id in self.deleted_workers:
            store.workers.pop(worker_id, None)
        store.workers.update(self.staged_workers)
        store.work_items.update(self.staged_items)
        store.assignments.extend(self.new_records)
        self._release()
        self._clear()

    async def rollback(self) -> None:
        self.rollback_now()

    def rollback_now(self) -> None:
        self._release()
        self._clear()

    def peek_worker(self, worker_id: int) -> Worker | None:
        if worker_id in self.deleted_workers:
            return None
        return self.staged_workers.get(worker_id) or self.store.workers.get(worker_id)

    def worker(self, worker_id: int) -> Worker | None:
        """Staged copy of a worker for writing, staged from the store on first touch."""
        if worker_id in self.deleted_workers:
            return None
        if worker_id not in self.staged_workers:
            committed = self.store.workers.get(worker_id)
            if committed is None:
                return None
            self.staged_workers[worker_id] = copy.deepcopy(committed)
        return self.staged_workers[worker_id]

    def peek_work_item(self, work_item_id: int) -> WorkItem | None:
        return self.staged_items.get(work_item_id) or self.store.work_items.get(work_item_id)

    def work_item(self, work_item_id: int) -> WorkItem | None:
        if work_item_id not in self.staged_items:
            committed = self.store.work_items.get(work_item_id)
            if committed is None:
                return None
            self.staged_items[work_item_id] = copy.deepcopy(committed)
        return self.staged_items[work_item_id]


class InMemoryWorkerRepository(WorkerRepository):
    def __init__(self, uow: InMemoryUnitOfWork):
        self._uow = uow

    async def load_all_for_update(self) -> list[Worker]:
        await self._uow.acquire(self._uow.store.registry_lock)
        # Yield once so contending tasks really interleave here
        await asyncio.sleep(0)
        return self._snapshot()

    async def apply_reset(self, worker_ids: list[int], today: date) -> None:
        for worker_id in worker_ids:
            worker = self._uow.worker(worker_id)
            if worker is not None and worker.needs_reset(today):
                worker.reset_counter(today)

    async def commit_assignment(self, worker_id: int, new_count: int, now: datetime) -> None:
        worker = self._uow.worker(worker_id)
        if worker is None:
            raise PersistenceFailure(f"Worker {worker_id} vanished during assignment")
        worker.assigned_count_today = new_count
        worker.last_assigned_at = now

    async def save(self, worker: Worker) -> Worker:
        if worker.id is None:
            worker.id = self._uow.store.next_id("workers")
        self._uow.staged_workers[worker.id] = copy.deepcopy(worker)
        return worker

    async def get_by_id(self, worker_id: int) -> Worker | None:
        worker = self._uow.peek_worker(worker_id)
        return copy.deepcopy(worker) if worker else None

    async def get_all(self) -> list[Worker]:
        return self._snapshot()

    def _snapshot(self) -> list[Worker]:
        ids = sorted(
            (set(self._uow.store.workers) | set(self._uow.staged_workers))
            - self._uow.deleted_workers
        )
        return [copy.deepcopy(self._uow.peek_worker(wid)) for wid in ids]

    async def update_config(self, worker: Worker) -> Worker | None:
        await self._uow.acquire(self._uow.store.registry_lock)
        current = self._uow.worker(worker.id)
        if current is None:
            return None
        current.name = worker.name
        current.role = worker.role
        current.languages = list(worker.languages)
        current.capacity_per_day = worker.capacity_per_day
        current.affinity_tags = worker.affinity_tags
        return copy.deepcopy(current)

    async def delete(self, worker_id: int) -> bool:
        await self._uow.acquire(self._uow.store.registry_lock)
        if self._uow.peek_worker(worker_id) is None:
            return False
        if any(r.worker_id == worker_id for r in self._uow.store.assignments):
            raise WorkerInUse(f"Worker {worker_id} has assignment history")
        self._uow.staged_workers.pop(worker_id, None)
        self._uow.deleted_workers.add(worker_id)
        return True


class InMemoryWorkItemRepository(WorkItemRepository):
    def __init__(self, uow: InMemoryUnitOfWork):
        self._uow = uow

    async def save(self, item: WorkItem) -> WorkItem:
        if item.id is None:
            item.id = self._uow.store.next_id("work_items")
        self._uow.staged_items[item.id] = copy.deepcopy(item)
        return item

    async def get_by_id(self, work_item_id: int) -> WorkItem | None:
        item = self._uow.peek_work_item(work_item_id)
        return copy.deepcopy(item) if item else None

    async def get_for_update(self, work_item_id: int) -> WorkItem | None:
        if work_item_id not in self._uow.store.work_items and work_item_id not in self._uow.staged_items:
            return None
        await self._uow.acquire(self._uow.store.item_locks[work_item_id])
        await asyncio.sleep(0)
        # Read after the lock: a concurrent commit may have assigned it
        return await self.get_by_id(work_item_id)

    async def mark_assigned(self, work_item_id: int, worker_id: int, at: datetime) -> None:
        item = self._uow.work_item(work_item_id)
        if item is None:
            raise PersistenceFailure(f"Work item {work_item_id} vanished during assignment")
        if item.is_assigned():
            raise TransactionConflict(f"Work item {work_item_id} was assigned concurrently")
        item.assigned_worker_id = worker_id
        item.assigned_at = at

    async def find_recent_by_phone(self, phone: str, since: datetime) -> WorkItem | None:
        items = {**self._uow.store.work_items, **self._uow.staged_items}
        matches = [
            i for i in items.values()
            if i.phone == phone and i.created_at is not None and i.created_at > since
        ]
        if not matches:
            return None
        return copy.deepcopy(max(matches, key=lambda i: i.created_at))

    async def get_unassigned(self) -> list[WorkItem]:
        items = {**self._uow.store.work_items, **self._uow.staged_items}
        return [copy.deepcopy(items[k]) for k in sorted(items) if not items[k].is_assigned()]


class InMemoryAssignmentRecordRepository(AssignmentRecordRepository):
    def __init__(self, uow: InMemoryUnitOfWork):
        self._uow = uow

    async def append(self, record: AssignmentRecord) -> AssignmentRecord:
        saved = replace(record, id=self._uow.store.next_id("assignment_records"))
        self._uow.new_records.append(saved)
        return saved

    async def get_by_work_item(self, work_item_id: int) -> AssignmentRecord | None:
        for record in [*self._uow.store.assignments, *self._uow.new_records]:
            if record.work_item_id == work_item_id:
                return record
        return None

    async def get_all(self, limit: int | None = None) -> list[AssignmentRecord]:
        records = sorted(
            [*self._uow.store.assignments, *self._uow.new_records],
            key=lambda r: r.id,
            reverse=True,
        )
        return records[:limit] if limit is not None else records
