"""Tests for domain entities."""

from datetime import date, datetime, timezone

import pytest

from lead_router.domain.entities.assignment import AssignmentRecord
from lead_router.domain.entities.work_item import WorkItem
from lead_router.domain.entities.worker import NEVER_ASSIGNED, Worker
from lead_router.domain.value_objects.affinity import normalize_affinity, normalize_tags
from lead_router.domain.value_objects.enums import ReasonCode

T0 = datetime(2026, 2, 25, 10, 0, tzinfo=timezone.utc)


def test_worker_tags_are_normalized():
    w = Worker(id=1, name="A", capacity_per_day=5, affinity_tags={" Tamil  Nadu", "GOA", ""})
    assert w.affinity_tags == frozenset({"tamil nadu", "goa"})
    assert w.has_affinity("goa ")


def test_worker_rejects_non_positive_capacity():
    with pytest.raises(ValueError):
        Worker(id=1, name="A", capacity_per_day=0)


def test_worker_rejects_negative_count():
    with pytest.raises(ValueError):
        Worker(id=1, name="A", capacity_per_day=1, assigned_count_today=-1)


def test_never_assigned_sorts_first():
    w = Worker(id=1, name="A", capacity_per_day=5)
    assert w.fairness_timestamp == NEVER_ASSIGNED
    assert NEVER_ASSIGNED < T0


def test_capacity_flags():
    w = Worker(id=1, name="A", capacity_per_day=2, assigned_count_today=1)
    assert w.has_capacity()
    w.record_assignment(T0)
    assert not w.has_capacity()
    assert not w.is_over_capacity()
    w.record_assignment(T0)
    assert w.is_over_capacity()
    assert w.assigned_count_today == 3


def test_record_assignment_never_moves_stamp_backwards():
    w = Worker(id=1, name="A", capacity_per_day=5, last_assigned_at=T0)
    w.record_assignment(datetime(2026, 2, 25, 9, 0, tzinfo=timezone.utc))
    assert w.last_assigned_at == T0
    assert w.assigned_count_today == 1


def test_needs_reset():
    w = Worker(id=1, name="A", capacity_per_day=5, last_reset_date=date(2026, 2, 24))
    assert w.needs_reset(date(2026, 2, 25))
    assert not w.needs_reset(date(2026, 2, 24))
    assert Worker(id=2, name="B", capacity_per_day=5).needs_reset(date(2026, 2, 25))


def test_work_item_assigned_once():
    item = WorkItem(id=1, phone="9876543210", affinity_key="Goa")
    assert not item.is_assigned()
    item.mark_assigned(7, T0)
    assert item.assigned_worker_id == 7
    with pytest.raises(ValueError, match="already assigned"):
        item.mark_assigned(8, T0)
    assert item.assigned_worker_id == 7


def test_work_item_routing_key():
    assert WorkItem(id=1, phone="1", affinity_key=" Tamil Nadu ").routing_key == "tamil nadu"
    assert WorkItem(id=1, phone="1").routing_key is None


def test_assignment_record_overflow_flag():
    rec = AssignmentRecord(
        id=1, work_item_id=1, worker_id=1,
        reason_code=ReasonCode.CAPACITY_OVERFLOW_FALLBACK, created_at=T0,
    )
    assert rec.is_overflow()
    with pytest.raises(AttributeError):
        rec.worker_id = 2


def test_normalize_affinity():
    assert normalize_affinity("  Uttar   Pradesh ") == "uttar pradesh"
    assert normalize_affinity("   ") is None
    assert normalize_affinity(None) is None
    assert normalize_tags(None) == frozenset()
