"""IngestWorkItemUseCase — persist an inbound lead, then route it."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from lead_router.application.ports.unit_of_work import UnitOfWork
from lead_router.application.use_cases.assign_work_item import (
    AssignmentResult,
    AssignWorkItemUseCase,
    utc_now,
)
from lead_router.domain.entities.work_item import WorkItem

logger = logging.getLogger(__name__)


@dataclass
class IngestResult:
    work_item: WorkItem
    duplicate: bool = False
    assignment: AssignmentResult | None = None


class IngestWorkItemUseCase:
    """Durably stores a work item in its own transaction, then asks for an assignment.

    The insert is committed before the assignment runs, so a failed or
    impossible assignment never loses the work item: it stays visible as
    unassigned. A phone number already ingested inside the duplicate window
    returns the existing item instead of creating a new one.
    """

    def __init__(
        self,
        uow_factory: Callable[[], UnitOfWork],
        assign_work_item: AssignWorkItemUseCase,
        duplicate_window: timedelta = timedelta(hours=24),
        clock: Callable[[], datetime] = utc_now,
    ):
        self._uow_factory = uow_factory
        self._assign = assign_work_item
        self._duplicate_window = duplicate_window
        self._clock = clock

    async def execute(self, item: WorkItem) -> IngestResult:
        phone = (item.phone or "").strip()
        if not phone:
            raise ValueError("Missing required field: phone")
        item.phone = phone

        now = self._clock()
        async with self._uow_factory() as uow:
            if self._duplicate_window:
                existing = await uow.work_items.find_recent_by_phone(
                    phone, since=now - self._duplicate_window
                )
                if existing is not None:
                    logger.info(
                        "Duplicate lead for phone %s within %s, returning work item %s",
                        phone, self._duplicate_window, existing.id,
                    )
                    return IngestResult(work_item=existing, duplicate=True)

            if item.received_at is None:
                item.received_at = now
            if item.created_at is None:
                item.created_at = now
            await uow.work_items.save(item)
            await uow.commit()

        logger.info("Ingested work item %s (region=%r, source=%r)", item.id, item.affinity_key, item.lead_source)

        assignment = await self._assign.execute(item.id)
        if assignment.success:
            item.assigned_worker_id = assignment.worker_id
            item.assigned_at = assignment.assigned_at

        return IngestResult(work_item=item, assignment=assignment)
