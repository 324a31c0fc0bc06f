"""FastAPI dependency injection — wires adapters into use cases."""

from __future__ import annotations

from datetime import timedelta

from lead_router.adapters.persistence.unit_of_work import SqlUnitOfWork
from lead_router.application.ports.unit_of_work import UnitOfWork
from lead_router.application.use_cases.assign_work_item import (
    AssignPendingUseCase,
    AssignWorkItemUseCase,
)
from lead_router.application.use_cases.ingest_work_item import IngestWorkItemUseCase
from lead_router.config import settings


def get_uow() -> UnitOfWork:
    return SqlUnitOfWork()


def get_assign_uc() -> AssignWorkItemUseCase:
    return AssignWorkItemUseCase(
        uow_factory=SqlUnitOfWork,
        quota_timezone=settings.quota_tz,
        spill_to_global=settings.affinity_spill_to_global,
    )


def get_assign_pending_uc() -> AssignPendingUseCase:
    return AssignPendingUseCase(get_assign_uc(), uow_factory=SqlUnitOfWork)


def get_ingest_uc() -> IngestWorkItemUseCase:
    return IngestWorkItemUseCase(
        uow_factory=SqlUnitOfWork,
        assign_work_item=get_assign_uc(),
        duplicate_window=timedelta(hours=settings.duplicate_window_hours),
    )
