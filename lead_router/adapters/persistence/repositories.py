"""SQLAlchemy repository implementations."""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Select, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from lead_router.adapters.persistence.models import (
    AssignmentRecordModel,
    WorkerModel,
    WorkItemModel,
)
from lead_router.application.ports.assignment_repo import AssignmentRecordRepository
from lead_router.application.ports.work_item_repo import WorkItemRepository
from lead_router.application.ports.worker_repo import WorkerRepository
from lead_router.domain.entities.assignment import AssignmentRecord
from lead_router.domain.entities.work_item import WorkItem
from lead_router.domain.entities.worker import Worker
from lead_router.domain.errors import TransactionConflict, WorkerInUse
from lead_router.domain.value_objects.enums import ReasonCode

# ─── Mappers ─────────────────────────────────────────────────────────


def worker_to_domain(m: WorkerModel) -> Worker:
    return Worker(
        id=m.id,
        name=m.name,
        capacity_per_day=m.capacity_per_day,
        assigned_count_today=m.assigned_count_today,
        last_reset_date=m.last_reset_date,
        last_assigned_at=m.last_assigned_at,
        affinity_tags=frozenset(m.affinity_tags or ()),
        role=m.role,
        languages=list(m.languages or ()),
    )


def work_item_to_domain(m: WorkItemModel) -> WorkItem:
    return WorkItem(
        id=m.id,
        phone=m.phone,
        name=m.name,
        city=m.city,
        affinity_key=m.affinity_key,
        lead_source=m.lead_source,
        metadata=dict(m.extra or {}),
        received_at=m.received_at,
        created_at=m.created_at,
        assigned_worker_id=m.assigned_worker_id,
        assigned_at=m.assigned_at,
    )


def assignment_to_domain(m: AssignmentRecordModel) -> AssignmentRecord:
    return AssignmentRecord(
        id=m.id,
        work_item_id=m.work_item_id,
        worker_id=m.worker_id,
        reason_code=ReasonCode(m.reason_code),
        created_at=m.created_at,
    )


# ─── Locking statements ─────────────────────────────────────────────


def locked_registry_query() -> Select:
    """Every worker row, id order, plain FOR UPDATE (waits; no SKIP LOCKED / NOWAIT)."""
    return select(WorkerModel).order_by(WorkerModel.id).with_for_update()


def locked_work_item_query(work_item_id: int) -> Select:
    return select(WorkItemModel).where(WorkItemModel.id == work_item_id).with_for_update()


def locked_worker_query(worker_id: int) -> Select:
    return select(WorkerModel.id).where(WorkerModel.id == worker_id).with_for_update()


# ─── Repositories ────────────────────────────────────────────────────


class SqlWorkerRepository(WorkerRepository):
    def __init__(self, session: AsyncSession):
        self._s = session

    async def load_all_for_update(self) -> list[Worker]:
        result = await self._s.execute(locked_registry_query())
        return [worker_to_domain(m) for m in result.scalars()]

    async def apply_reset(self, worker_ids: list[int], today: date) -> None:
        if not worker_ids:
            return
        await self._s.execute(
            update(WorkerModel)
            .where(WorkerModel.id.in_(worker_ids), WorkerModel.last_reset_date < today)
            .values(assigned_count_today=0, last_reset_date=today)
        )
        await self._s.flush()

    async def commit_assignment(self, worker_id: int, new_count: int, now: datetime) -> None:
        await self._s.execute(
            update(WorkerModel)
            .where(WorkerModel.id == worker_id)
            .values(assigned_count_today=new_count, last_assigned_at=now)
        )
        await self._s.flush()

    async def save(self, worker: Worker) -> Worker:
        m = WorkerModel(
            name=worker.name,
            role=worker.role,
            languages=list(worker.languages),
            capacity_per_day=worker.capacity_per_day,
            assigned_count_today=worker.assigned_count_today,
            affinity_tags=sorted(worker.affinity_tags),
            last_assigned_at=worker.last_assigned_at,
        )
        if worker.last_reset_date is not None:
            m.last_reset_date = worker.last_reset_date
        self._s.add(m)
        await self._s.flush()
        await self._s.refresh(m)
        worker.id = m.id
        worker.last_reset_date = m.last_reset_date
        return worker

    async def get_by_id(self, worker_id: int) -> Worker | None:
        m = await self._s.get(WorkerModel, worker_id)
        return worker_to_domain(m) if m else None

    async def get_all(self) -> list[Worker]:
        result = await self._s.execute(select(WorkerModel).order_by(WorkerModel.id))
        return [worker_to_domain(m) for m in result.scalars()]

    async def update_config(self, worker: Worker) -> Worker | None:
        # The UPDATE row lock waits behind any in-flight assignment
        result = await self._s.execute(
            update(WorkerModel)
            .where(WorkerModel.id == worker.id)
            .values(
                name=worker.name,
                role=worker.role,
                languages=list(worker.languages),
                capacity_per_day=worker.capacity_per_day,
                affinity_tags=sorted(worker.affinity_tags),
            )
            .returning(WorkerModel)
        )
        m = result.scalar_one_or_none()
        await self._s.flush()
        return worker_to_domain(m) if m else None

    async def delete(self, worker_id: int) -> bool:
        # Wait out any in-flight assignment so its audit record is visible below
        locked = await self._s.execute(locked_worker_query(worker_id))
        if locked.scalar_one_or_none() is None:
            return False
        referenced = await self._s.scalar(
            select(func.count())
            .select_from(AssignmentRecordModel)
            .where(AssignmentRecordModel.worker_id == worker_id)
        )
        if referenced:
            raise WorkerInUse(f"Worker {worker_id} has assignment history")
        result = await self._s.execute(delete(WorkerModel).where(WorkerModel.id == worker_id))
        await self._s.flush()
        return result.rowcount > 0


class SqlWorkItemRepository(WorkItemRepository):
    def __init__(self, session: AsyncSession):
        self._s = session

    async def save(self, item: WorkItem) -> WorkItem:
        m = WorkItemModel(
            phone=item.phone,
            name=item.name,
            city=item.city,
            affinity_key=item.affinity_key,
            lead_source=item.lead_source,
            extra=dict(item.metadata),
        )
        if item.received_at is not None:
            m.received_at = item.received_at
        if item.created_at is not None:
            m.created_at = item.created_at
        self._s.add(m)
        await self._s.flush()
        await self._s.refresh(m)
        item.id = m.id
        item.received_at = m.received_at
        item.created_at = m.created_at
        return item

    async def get_by_id(self, work_item_id: int) -> WorkItem | None:
        m = await self._s.get(WorkItemModel, work_item_id)
        return work_item_to_domain(m) if m else None

    async def get_for_update(self, work_item_id: int) -> WorkItem | None:
        result = await self._s.execute(locked_work_item_query(work_item_id))
        m = result.scalar_one_or_none()
        return work_item_to_domain(m) if m else None

    async def mark_assigned(self, work_item_id: int, worker_id: int, at: datetime) -> None:
        result = await self._s.execute(
            update(WorkItemModel)
            .where(
                WorkItemModel.id == work_item_id,
                WorkItemModel.assigned_worker_id.is_(None),
            )
            .values(assigned_worker_id=worker_id, assigned_at=at)
        )
        if result.rowcount != 1:
            raise TransactionConflict(f"Work item {work_item_id} was assigned concurrently")
        await self._s.flush()

    async def find_recent_by_phone(self, phone: str, since: datetime) -> WorkItem | None:
        result = await self._s.execute(
            select(WorkItemModel)
            .where(WorkItemModel.phone == phone, WorkItemModel.created_at > since)
            .order_by(WorkItemModel.created_at.desc())
            .limit(1)
        )
        m = result.scalar_one_or_none()
        return work_item_to_domain(m) if m else None

    async def get_unassigned(self) -> list[WorkItem]:
        result = await self._s.execute(
            select(WorkItemModel)
            .where(WorkItemModel.assigned_worker_id.is_(None))
            .order_by(WorkItemModel.id)
        )
        return [work_item_to_domain(m) for m in result.scalars()]


class SqlAssignmentRecordRepository(AssignmentRecordRepository):
    def __init__(self, session: AsyncSession):
        self._s = session

    async def append(self, record: AssignmentRecord) -> AssignmentRecord:
        m = AssignmentRecordModel(
            work_item_id=record.work_item_id,
            worker_id=record.worker_id,
            reason_code=record.reason_code.value,
            created_at=record.created_at,
        )
        self._s.add(m)
        await self._s.flush()
        return assignment_to_domain(m)

    async def get_by_work_item(self, work_item_id: int) -> AssignmentRecord | None:
        result = await self._s.execute(
            select(AssignmentRecordModel).where(
                AssignmentRecordModel.work_item_id == work_item_id
            )
        )
        m = result.scalar_one_or_none()
        return assignment_to_domain(m) if m else None

    async def get_all(self, limit: int | None = None) -> list[AssignmentRecord]:
        stmt = select(AssignmentRecordModel).order_by(AssignmentRecordModel.id.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self._s.execute(stmt)
        return [assignment_to_domain(m) for m in result.scalars()]
