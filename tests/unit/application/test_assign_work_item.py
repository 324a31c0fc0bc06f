"""Tests for AssignWorkItemUseCase against the in-memory unit of work."""

from __future__ import annotations

import asyncio
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from lead_router.adapters.memory.unit_of_work import (
    InMemoryStore,
    InMemoryUnitOfWork,
    InMemoryWorkItemRepository,
)
from lead_router.application.use_cases.assign_work_item import (
    AssignPendingUseCase,
    AssignWorkItemUseCase,
)
from lead_router.domain.entities.work_item import WorkItem
from lead_router.domain.entities.worker import Worker
from lead_router.domain.errors import PersistenceFailure
from lead_router.domain.value_objects.enums import ErrorKind, ReasonCode

TODAY = date(2026, 2, 25)

# ─── Helpers ────────────────────────────────────────────────────────


def _worker(store: InMemoryStore, name: str, cap: int = 60, count: int = 0,
            tags=(), last=None, reset: date | None = TODAY) -> Worker:
    return store.add_worker(Worker(
        id=None, name=name, capacity_per_day=cap, assigned_count_today=count,
        affinity_tags=frozenset(tags), last_assigned_at=last, last_reset_date=reset,
    ))


def _item(store: InMemoryStore, state: str | None = None) -> WorkItem:
    return store.add_work_item(WorkItem(id=None, phone="9876543210", affinity_key=state))


def _use_case(store: InMemoryStore, clock, **kwargs) -> AssignWorkItemUseCase:
    return AssignWorkItemUseCase(lambda: InMemoryUnitOfWork(store), clock=clock, **kwargs)


class FailingWorkItems(InMemoryWorkItemRepository):
    async def mark_assigned(self, work_item_id, worker_id, at):
        raise PersistenceFailure("disk full")


# ─── Routing outcomes ───────────────────────────────────────────────


@pytest.mark.asyncio
async def test_concrete_scenario(store, clock):
    a = _worker(store, "A", cap=10, count=5, tags={"Maharashtra"})
    b = _worker(store, "B", cap=60)
    _worker(store, "C", cap=60, count=2, last=datetime(2026, 2, 25, 12, 0, tzinfo=timezone.utc))
    d = _worker(store, "D", cap=2, count=2, tags={"Karnataka"},
                last=datetime(2026, 2, 25, 8, 0, tzinfo=timezone.utc))
    uc = _use_case(store, clock)

    r1 = await uc.execute(_item(store, "Maharashtra").id)
    r2 = await uc.execute(_item(store, "Goa").id)
    r3 = await uc.execute(_item(store, "Karnataka").id)

    assert (r1.worker_id, r1.reason) == (a.id, ReasonCode.AFFINITY_ROUND_ROBIN)
    assert (r2.worker_id, r2.reason) == (b.id, ReasonCode.GLOBAL_ROUND_ROBIN)
    assert (r3.worker_id, r3.reason) == (d.id, ReasonCode.CAPACITY_OVERFLOW_FALLBACK)
    assert r3.over_capacity is True
    assert store.workers[d.id].assigned_count_today == 3
    assert store.workers[a.id].assigned_count_today == 6
    assert len(store.assignments) == 3


@pytest.mark.asyncio
async def test_success_updates_worker_item_and_audit_together(store, clock):
    w = _worker(store, "A")
    item = _item(store)

    result = await _use_case(store, clock).execute(item.id)

    assert result.success
    assert result.worker_name == "A"
    saved_worker = store.workers[w.id]
    saved_item = store.work_items[item.id]
    assert saved_worker.assigned_count_today == 1
    assert saved_worker.last_assigned_at == result.assigned_at
    assert saved_item.assigned_worker_id == w.id
    assert saved_item.assigned_at == result.assigned_at
    [record] = store.assignments
    assert (record.work_item_id, record.worker_id) == (item.id, w.id)
    assert record.created_at == result.assigned_at


@pytest.mark.asyncio
async def test_affinity_key_override(store, clock):
    _worker(store, "A")
    goa = _worker(store, "B", tags={"Goa"})
    item = _item(store, "Kerala")

    result = await _use_case(store, clock).execute(item.id, affinity_key="goa")

    assert result.worker_id == goa.id
    assert result.reason == ReasonCode.AFFINITY_ROUND_ROBIN


@pytest.mark.asyncio
async def test_sequential_round_robin(store, clock):
    ids = [_worker(store, name).id for name in ("A", "B", "C")]
    uc = _use_case(store, clock)

    chosen = [(await uc.execute(_item(store).id)).worker_id for _ in range(6)]

    assert chosen == ids + ids


@pytest.mark.asyncio
async def test_registry_changes_apply_to_the_next_assignment(store, clock, uow_factory):
    a = _worker(store, "A", cap=5, tags={"Goa"})
    _worker(store, "B", cap=5)
    uc = _use_case(store, clock)

    first = await uc.execute(_item(store, "Goa").id)
    assert first.worker_id == a.id
    assert first.reason == ReasonCode.AFFINITY_ROUND_ROBIN

    async with uow_factory() as uow:
        await uow.workers.update_config(Worker(
            id=a.id, name="A", capacity_per_day=1, affinity_tags=frozenset({"Kerala"}),
        ))
        c = await uow.workers.save(Worker(
            id=None, name="C", capacity_per_day=5,
            affinity_tags=frozenset({"goa"}), last_reset_date=TODAY,
        ))
        await uow.commit()

    # A no longer carries the Goa tag; the new worker C is the only match
    second = await uc.execute(_item(store, "Goa").id)
    assert second.worker_id == c.id
    assert second.reason == ReasonCode.AFFINITY_ROUND_ROBIN

    # A's lowered capacity is already used up by the first assignment
    third = await uc.execute(_item(store, "kerala").id)
    assert third.worker_id == a.id
    assert third.reason == ReasonCode.CAPACITY_OVERFLOW_FALLBACK
    assert third.over_capacity is True
    assert store.workers[a.id].assigned_count_today == 2


# ─── Single-shot and idempotence ────────────────────────────────────


@pytest.mark.asyncio
async def test_second_assign_is_a_no_op(store, clock):
    w = _worker(store, "A")
    item = _item(store)
    uc = _use_case(store, clock)

    first = await uc.execute(item.id)
    second = await uc.execute(item.id)

    assert first.success and not first.already_assigned
    assert second.success and second.already_assigned
    assert second.worker_id == w.id
    assert second.reason == first.reason
    assert second.assigned_at == first.assigned_at
    assert len(store.assignments) == 1
    assert store.workers[w.id].assigned_count_today == 1


@pytest.mark.asyncio
async def test_concurrent_assigns_of_same_item_produce_one_record(store, clock):
    _worker(store, "A")
    _worker(store, "B")
    item = _item(store)
    uc = _use_case(store, clock)

    results = await asyncio.gather(*(uc.execute(item.id) for _ in range(5)))

    assert all(r.success for r in results)
    assert sum(1 for r in results if not r.already_assigned) == 1
    assert len({r.worker_id for r in results}) == 1
    assert len(store.assignments) == 1
    assert sum(w.assigned_count_today for w in store.workers.values()) == 1


# ─── Concurrency and capacity ───────────────────────────────────────


@pytest.mark.asyncio
async def test_concurrent_assignments_never_double_consume_a_slot(store, clock):
    _worker(store, "A", cap=3)
    _worker(store, "B", cap=3)
    items = [_item(store) for _ in range(10)]
    uc = _use_case(store, clock)

    results = await asyncio.gather(*(uc.execute(i.id) for i in items))

    assert all(r.success for r in results)
    assert len(store.assignments) == 10
    in_capacity = [r for r in store.assignments if not r.is_overflow()]
    assert len(in_capacity) == 6
    for worker in store.workers.values():
        assert sum(1 for r in in_capacity if r.worker_id == worker.id) == 3
    # Overflow balances by count
    assert sorted(w.assigned_count_today for w in store.workers.values()) == [5, 5]
    assert all(store.work_items[i.id].is_assigned() for i in items)


@pytest.mark.asyncio
async def test_concurrent_assignments_are_fair(store, clock):
    for name in ("A", "B", "C", "D"):
        _worker(store, name)
    items = [_item(store) for _ in range(12)]

    await asyncio.gather(*(_use_case(store, clock).execute(i.id) for i in items))

    assert [w.assigned_count_today for w in store.workers.values()] == [3, 3, 3, 3]


# ─── Failures roll back ─────────────────────────────────────────────


@pytest.mark.asyncio
async def test_failure_after_worker_update_rolls_everything_back(store, clock):
    w = _worker(store, "A", count=4)
    item = _item(store)

    def failing_uow():
        uow = InMemoryUnitOfWork(store)
        uow.work_items = FailingWorkItems(uow)
        return uow

    result = await AssignWorkItemUseCase(failing_uow, clock=clock).execute(item.id)

    assert not result.success
    assert result.error_kind == ErrorKind.PERSISTENCE_FAILURE
    assert not result.retryable
    assert store.workers[w.id].assigned_count_today == 4
    assert store.workers[w.id].last_assigned_at is None
    assert not store.work_items[item.id].is_assigned()
    assert store.assignments == []
    # Locks were released by the rollback
    assert not store.registry_lock.locked()
    assert (await _use_case(store, clock).execute(item.id)).success


@pytest.mark.asyncio
async def test_lock_wait_timeout_is_retryable_and_leaves_no_state(clock):
    store = InMemoryStore(lock_timeout=0.05)
    w = _worker(store, "A")
    item = _item(store)
    uc = _use_case(store, clock)

    await store.registry_lock.acquire()
    try:
        result = await uc.execute(item.id)
    finally:
        store.registry_lock.release()

    assert not result.success
    assert result.error_kind == ErrorKind.LOCK_TIMEOUT
    assert result.retryable
    assert store.workers[w.id].assigned_count_today == 0
    assert not store.work_items[item.id].is_assigned()

    retry = await uc.execute(item.id)
    assert retry.success and retry.worker_id == w.id


@pytest.mark.asyncio
async def test_missing_work_item(store, clock):
    _worker(store, "A")
    result = await _use_case(store, clock).execute(999)
    assert not result.success
    assert result.error_kind == ErrorKind.WORK_ITEM_NOT_FOUND


@pytest.mark.asyncio
async def test_empty_registry_leaves_item_unassigned(store, clock):
    item = _item(store, "Goa")
    result = await _use_case(store, clock).execute(item.id)
    assert not result.success
    assert result.error_kind == ErrorKind.NO_WORKERS_AVAILABLE
    assert not store.work_items[item.id].is_assigned()
    assert store.assignments == []


# ─── Daily reset ────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_new_day_resets_whole_registry_before_selection(store, clock):
    yesterday = date(2026, 2, 24)
    full = _worker(store, "A", cap=10, count=10, reset=yesterday)
    other = _worker(store, "B", cap=10, count=5, reset=yesterday,
                    last=datetime(2026, 2, 24, 18, 0, tzinfo=timezone.utc))
    item = _item(store)

    result = await _use_case(store, clock).execute(item.id)

    # A was at capacity yesterday but is fresh today and never assigned
    assert result.worker_id == full.id
    assert result.reason == ReasonCode.GLOBAL_ROUND_ROBIN
    assert store.workers[full.id].assigned_count_today == 1
    assert store.workers[other.id].assigned_count_today == 0
    assert store.workers[other.id].last_reset_date == TODAY


@pytest.mark.asyncio
async def test_reset_uses_quota_timezone(store, clock):
    # 20:00 UTC on the 25th is already the 26th in India
    clock.now = datetime(2026, 2, 25, 20, 0, tzinfo=timezone.utc)
    w = _worker(store, "A", cap=5, count=5)
    item = _item(store)

    result = await _use_case(store, clock, quota_timezone=ZoneInfo("Asia/Kolkata")).execute(item.id)

    assert result.reason == ReasonCode.GLOBAL_ROUND_ROBIN
    assert store.workers[w.id].assigned_count_today == 1
    assert store.workers[w.id].last_reset_date == date(2026, 2, 26)


# ─── Pending sweep ──────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_assign_pending_routes_every_unassigned_item(store, clock, uow_factory):
    _worker(store, "A")
    items = [_item(store) for _ in range(3)]
    uc = _use_case(store, clock)
    await uc.execute(items[0].id)

    results = await AssignPendingUseCase(uc, uow_factory).execute()

    assert [r.work_item_id for r in results] == [items[1].id, items[2].id]
    assert all(r.success for r in results)
    assert len(store.assignments) == 3
