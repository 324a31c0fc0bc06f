"""CandidateSelectionPolicy — tiered, deterministic worker selection."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from lead_router.domain.entities.worker import Worker
from lead_router.domain.errors import NoWorkersAvailable
from lead_router.domain.value_objects.affinity import normalize_affinity
from lead_router.domain.value_objects.enums import ReasonCode


@dataclass(frozen=True)
class Selection:
    """Result of the candidate selection policy."""

    worker: Worker
    reason: ReasonCode
    pool_size: int

    @property
    def is_overflow(self) -> bool:
        return self.reason == ReasonCode.CAPACITY_OVERFLOW_FALLBACK


def _round_robin_key(worker: Worker):
    # Never assigned first, then oldest stamp, then lowest id
    return (worker.fairness_timestamp, worker.id)


def _overflow_key(worker: Worker):
    return (worker.assigned_count_today, worker.fairness_timestamp, worker.id)


def affinity_pool(affinity_key: str | None, workers: Sequence[Worker]) -> list[Worker]:
    """Workers tagged with *affinity_key* (case-insensitive). Empty if no key."""
    key = normalize_affinity(affinity_key)
    if key is None:
        return []
    return [w for w in workers if w.has_affinity(key)]


def select_candidate(
    affinity_key: str | None,
    workers: Sequence[Worker],
    spill_to_global: bool = False,
) -> Selection:
    """Pick the worker for a work item from a fully-loaded registry snapshot.

    Tiers, first non-empty wins:

    1. Affinity pool under capacity → oldest ``last_assigned_at`` (never
       assigned first). Reason ``affinity_round_robin``.
    2. No affinity key or no tagged workers → whole registry under capacity,
       same ordering. Reason ``global_round_robin``.
    3. Nobody in the candidate pool under capacity → least loaded today in
       that pool, ties by ``last_assigned_at`` then id. Reason
       ``capacity_overflow_fallback``.

    A non-empty affinity pool that is entirely at capacity overflows within
    itself, unless *spill_to_global* is set, in which case the global tier is
    tried before overflowing.

    Args:
        affinity_key: region of the work item, may be None or blank.
        workers: every worker in the registry, counters already reset.
        spill_to_global: let an exhausted affinity pool fall through to tier 2.

    Returns:
        Selection with the chosen worker and reason.

    Raises:
        NoWorkersAvailable: if the registry is empty.
    """
    if not workers:
        raise NoWorkersAvailable("No workers registered for assignment")

    pool = affinity_pool(affinity_key, workers)
    if pool:
        eligible = [w for w in pool if w.has_capacity()]
        if eligible:
            chosen = min(eligible, key=_round_robin_key)
            return Selection(chosen, ReasonCode.AFFINITY_ROUND_ROBIN, len(eligible))
        if not spill_to_global:
            chosen = min(pool, key=_overflow_key)
            return Selection(chosen, ReasonCode.CAPACITY_OVERFLOW_FALLBACK, len(pool))

    eligible = [w for w in workers if w.has_capacity()]
    if eligible:
        chosen = min(eligible, key=_round_robin_key)
        return Selection(chosen, ReasonCode.GLOBAL_ROUND_ROBIN, len(eligible))

    overflow_pool = pool or list(workers)
    chosen = min(overflow_pool, key=_overflow_key)
    return Selection(chosen, ReasonCode.CAPACITY_OVERFLOW_FALLBACK, len(overflow_pool))
