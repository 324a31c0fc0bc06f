"""Tests for the lazy daily quota reset."""

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from lead_router.domain.entities.worker import Worker
from lead_router.domain.policies.quota_reset import local_today, reset_stale_counters


def _w(wid: int, count: int, last_reset: date | None) -> Worker:
    return Worker(
        id=wid, name=f"W{wid}", capacity_per_day=10,
        assigned_count_today=count, last_reset_date=last_reset,
    )


def test_stale_counters_are_zeroed():
    today = date(2026, 2, 26)
    workers = [_w(1, 7, date(2026, 2, 25)), _w(2, 3, today), _w(3, 4, None)]

    reset = reset_stale_counters(workers, today)

    assert reset == [1, 3]
    assert [w.assigned_count_today for w in workers] == [0, 3, 0]
    assert all(w.last_reset_date == today for w in workers)


def test_reset_is_idempotent():
    today = date(2026, 2, 26)
    workers = [_w(1, 7, date(2026, 2, 20))]
    reset_stale_counters(workers, today)
    workers[0].assigned_count_today = 2
    assert reset_stale_counters(workers, today) == []
    assert workers[0].assigned_count_today == 2


def test_local_today_uses_quota_timezone():
    now = datetime(2026, 2, 25, 20, 0, tzinfo=timezone.utc)
    assert local_today(now, timezone.utc) == date(2026, 2, 25)
    # 20:00 UTC is 01:30 next day in India
    assert local_today(now, ZoneInfo("Asia/Kolkata")) == date(2026, 2, 26)
