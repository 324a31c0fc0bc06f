"""AssignWorkItemUseCase — atomic reset → select → commit for one work item."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo

from lead_router.application.ports.unit_of_work import UnitOfWork
from lead_router.domain.entities.assignment import AssignmentRecord
from lead_router.domain.errors import (
    AssignmentError,
    LockTimeout,
    NoWorkersAvailable,
    TransactionConflict,
    WorkItemNotFound,
)
from lead_router.domain.policies.candidate_selection import select_candidate
from lead_router.domain.policies.quota_reset import local_today, reset_stale_counters
from lead_router.domain.value_objects.enums import ErrorKind, ReasonCode

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class AssignmentResult:
    """Outcome of one assignment attempt."""

    work_item_id: int
    success: bool
    worker_id: int | None = None
    worker_name: str | None = None
    reason: ReasonCode | None = None
    assigned_at: datetime | None = None
    over_capacity: bool = False
    already_assigned: bool = False
    error_kind: ErrorKind | None = None
    error: str | None = None

    @classmethod
    def failure(cls, work_item_id: int, exc: AssignmentError) -> AssignmentResult:
        return cls(
            work_item_id=work_item_id,
            success=False,
            error_kind=exc.kind,
            error=str(exc),
        )

    @property
    def retryable(self) -> bool:
        return self.error_kind in (ErrorKind.LOCK_TIMEOUT, ErrorKind.TRANSACTION_CONFLICT)

    def to_dict(self) -> dict:
        return {
            "work_item_id": self.work_item_id,
            "success": self.success,
            "worker_id": self.worker_id,
            "worker_name": self.worker_name,
            "reason": self.reason.value if self.reason else None,
            "assigned_at": self.assigned_at.isoformat() if self.assigned_at else None,
            "over_capacity": self.over_capacity,
            "already_assigned": self.already_assigned,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "error": self.error,
            "retryable": self.retryable,
        }


class AssignWorkItemUseCase:
    """Routes one work item to a worker inside a single unit of work.

    Sequence, all in one transaction:
    1. Lock the work item; an already-assigned item is a no-op.
    2. Compute ``now`` and ``today`` once.
    3. Lock the whole registry and reset stale daily counters.
    4. Run the tiered candidate selection.
    5. Bump the worker, stamp the work item, append the audit record.
    6. Commit. Any failure before the commit rolls all of it back.
    """

    def __init__(
        self,
        uow_factory: Callable[[], UnitOfWork],
        clock: Callable[[], datetime] = utc_now,
        quota_timezone: tzinfo = timezone.utc,
        spill_to_global: bool = False,
    ):
        self._uow_factory = uow_factory
        self._clock = clock
        self._tz = quota_timezone
        self._spill_to_global = spill_to_global

    async def execute(
        self, work_item_id: int, affinity_key: str | None = None
    ) -> AssignmentResult:
        """Assign *work_item_id*; *affinity_key* overrides the item's own region."""
        try:
            async with self._uow_factory() as uow:
                return await self._assign(uow, work_item_id, affinity_key)
        except NoWorkersAvailable as e:
            logger.warning("Work item %s left unassigned: %s", work_item_id, e)
            return AssignmentResult.failure(work_item_id, e)
        except WorkItemNotFound as e:
            logger.warning("Work item %s: %s", work_item_id, e)
            return AssignmentResult.failure(work_item_id, e)
        except (LockTimeout, TransactionConflict) as e:
            logger.warning(
                "Work item %s: transient %s, rolled back (caller may retry)",
                work_item_id, e.kind.value,
            )
            return AssignmentResult.failure(work_item_id, e)
        except AssignmentError as e:
            logger.exception("Work item %s: assignment failed and was rolled back", work_item_id)
            return AssignmentResult.failure(work_item_id, e)

    async def _assign(
        self, uow: UnitOfWork, work_item_id: int, affinity_key: str | None
    ) -> AssignmentResult:
        item = await uow.work_items.get_for_update(work_item_id)
        if item is None:
            raise WorkItemNotFound(f"Work item {work_item_id} does not exist")

        if item.is_assigned():
            return await self._existing_assignment(uow, item.id, item.assigned_worker_id, item.assigned_at)

        now = self._clock()
        today = local_today(now, self._tz)

        # Reset runs over the full registry, not only the candidates
        workers = await uow.workers.load_all_for_update()
        reset_ids = reset_stale_counters(workers, today)
        if reset_ids:
            await uow.workers.apply_reset(reset_ids, today)
            logger.info("Reset daily counters for %d worker(s) on %s", len(reset_ids), today)

        key = affinity_key if affinity_key is not None else item.routing_key
        selection = select_candidate(key, workers, spill_to_global=self._spill_to_global)
        chosen = selection.worker

        chosen.record_assignment(now)
        await uow.workers.commit_assignment(
            chosen.id, chosen.assigned_count_today, chosen.last_assigned_at
        )
        item.mark_assigned(chosen.id, now)
        await uow.work_items.mark_assigned(item.id, chosen.id, now)
        await uow.assignments.append(
            AssignmentRecord(
                id=None,
                work_item_id=item.id,
                worker_id=chosen.id,
                reason_code=selection.reason,
                created_at=now,
            )
        )
        await uow.commit()

        if selection.is_overflow:
            logger.warning(
                "Work item %s → worker %s over capacity (%d/%d, region=%r)",
                item.id, chosen.name, chosen.assigned_count_today,
                chosen.capacity_per_day, key,
            )
        else:
            logger.info(
                "Work item %s → worker %s (%s, %d/%d today)",
                item.id, chosen.name, selection.reason.value,
                chosen.assigned_count_today, chosen.capacity_per_day,
            )

        return AssignmentResult(
            work_item_id=item.id,
            success=True,
            worker_id=chosen.id,
            worker_name=chosen.name,
            reason=selection.reason,
            assigned_at=now,
            over_capacity=chosen.is_over_capacity(),
        )

    async def _existing_assignment(
        self,
        uow: UnitOfWork,
        work_item_id: int,
        worker_id: int,
        assigned_at: datetime | None,
    ) -> AssignmentResult:
        record = await uow.assignments.get_by_work_item(work_item_id)
        worker = await uow.workers.get_by_id(worker_id)
        logger.info("Work item %s already assigned to worker %s, nothing to do", work_item_id, worker_id)
        return AssignmentResult(
            work_item_id=work_item_id,
            success=True,
            worker_id=worker_id,
            worker_name=worker.name if worker else None,
            reason=record.reason_code if record else None,
            assigned_at=assigned_at,
            already_assigned=True,
        )


class AssignPendingUseCase:
    """Assign every work item still waiting for a worker, one transaction each."""

    def __init__(
        self,
        assign_work_item: AssignWorkItemUseCase,
        uow_factory: Callable[[], UnitOfWork],
    ):
        self._assign = assign_work_item
        self._uow_factory = uow_factory

    async def execute(self) -> list[AssignmentResult]:
        async with self._uow_factory() as uow:
            pending = [item.id for item in await uow.work_items.get_unassigned()]
        logger.info("Assigning %d pending work item(s)", len(pending))

        results = []
        for work_item_id in pending:
            results.append(await self._assign.execute(work_item_id))

        successful = sum(1 for r in results if r.success)
        logger.info("Pending assignment complete: %d/%d assigned", successful, len(results))
        return results

