"""Analytics endpoints — dashboard summary, worker load, audit trail."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from lead_router.adapters.persistence.database import get_session
from lead_router.adapters.persistence.models import (
    AssignmentRecordModel,
    WorkerModel,
    WorkItemModel,
)
from lead_router.adapters.persistence.repositories import worker_to_domain
from lead_router.application.ports.unit_of_work import UnitOfWork
from lead_router.domain.value_objects.enums import ReasonCode
from lead_router.infrastructure.api.dependencies import get_uow
from lead_router.infrastructure.api.routes_workers import serialize_worker

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("/summary")
async def analytics_summary(session: AsyncSession = Depends(get_session)):
    """Aggregate stats for the dashboard."""
    total_items = (
        await session.execute(select(func.count(WorkItemModel.id)))
    ).scalar() or 0

    unassigned = (
        await session.execute(
            select(func.count(WorkItemModel.id)).where(
                WorkItemModel.assigned_worker_id.is_(None)
            )
        )
    ).scalar() or 0

    reason_rows = (
        await session.execute(
            select(
                AssignmentRecordModel.reason_code,
                func.count(AssignmentRecordModel.id),
            ).group_by(AssignmentRecordModel.reason_code)
        )
    ).all()
    by_reason = {code.value: 0 for code in ReasonCode}
    by_reason.update({row[0]: row[1] for row in reason_rows})

    source_rows = (
        await session.execute(
            select(WorkItemModel.lead_source, func.count(WorkItemModel.id)).group_by(
                WorkItemModel.lead_source
            )
        )
    ).all()
    by_source = {row[0] or "unknown": row[1] for row in source_rows}

    total_workers = (
        await session.execute(select(func.count(WorkerModel.id)))
    ).scalar() or 0

    return {
        "total_work_items": total_items,
        "assigned": total_items - unassigned,
        "unassigned": unassigned,
        "total_workers": total_workers,
        "by_reason": by_reason,
        "by_source": by_source,
        "overflow_count": by_reason[ReasonCode.CAPACITY_OVERFLOW_FALLBACK.value],
    }


@router.get("/workers")
async def worker_load(session: AsyncSession = Depends(get_session)):
    """Current effective load per worker, busiest first."""
    result = await session.execute(select(WorkerModel).order_by(WorkerModel.id))
    workers = [serialize_worker(worker_to_domain(m)) for m in result.scalars()]
    workers.sort(key=lambda w: w["assigned_count_today"], reverse=True)

    return {
        "total_workers": len(workers),
        "over_capacity": sum(1 for w in workers if w["over_capacity"]),
        "workers": workers,
    }


@router.get("/assignments")
async def recent_assignments(
    limit: int = Query(default=50, ge=1, le=500),
    uow: UnitOfWork = Depends(get_uow),
):
    """Most recent audit records with worker names."""
    async with uow:
        records = await uow.assignments.get_all(limit=limit)
        names = {w.id: w.name for w in await uow.workers.get_all()}

    return {
        "total": len(records),
        "assignments": [
            {
                "id": r.id,
                "work_item_id": r.work_item_id,
                "worker_id": r.worker_id,
                "worker_name": names.get(r.worker_id),
                "reason_code": r.reason_code.value,
                "created_at": r.created_at.isoformat() if r.created_at else None,
            }
            for r in records
        ],
    }
