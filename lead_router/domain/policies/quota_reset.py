"""QuotaResetPolicy — lazy daily normalization of worker counters."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime, tzinfo

from lead_router.domain.entities.worker import Worker


def local_today(now: datetime, tz: tzinfo) -> date:
    """Calendar date of *now* in the quota time zone."""
    return now.astimezone(tz).date()


def reset_stale_counters(workers: Iterable[Worker], today: date) -> list[int]:
    """Zero the daily counter of every worker last reset before *today*.

    Mutates the given workers in place so the selector sees post-reset
    counters, and returns the ids that were reset so the registry can
    persist the same change.
    """
    reset_ids = []
    for worker in workers:
        if worker.needs_reset(today):
            worker.reset_counter(today)
            reset_ids.append(worker.id)
    return reset_ids
