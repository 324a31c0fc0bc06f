"""Work item endpoints — list, detail, caller-driven (re)assignment."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from lead_router.adapters.persistence.database import get_session
from lead_router.adapters.persistence.models import WorkItemModel
from lead_router.application.use_cases.assign_work_item import (
    AssignmentResult,
    AssignPendingUseCase,
    AssignWorkItemUseCase,
)
from lead_router.domain.errors import AssignmentError
from lead_router.domain.value_objects.enums import ErrorKind
from lead_router.infrastructure.api.dependencies import get_assign_pending_uc, get_assign_uc

router = APIRouter(prefix="/work-items", tags=["work-items"])


def _status_for(result: AssignmentResult) -> int:
    if result.success or result.error_kind == ErrorKind.NO_WORKERS_AVAILABLE:
        return 200
    if result.error_kind == ErrorKind.WORK_ITEM_NOT_FOUND:
        return 404
    if result.retryable:
        return 409
    return 500


@router.get("")
async def list_work_items(
    unassigned: bool | None = None,
    limit: int | None = None,
    session: AsyncSession = Depends(get_session),
):
    """List work items, newest first, with the assigned worker and reason."""
    stmt = (
        select(WorkItemModel)
        .options(
            joinedload(WorkItemModel.assigned_worker),
            joinedload(WorkItemModel.assignment_record),
        )
        .order_by(WorkItemModel.created_at.desc(), WorkItemModel.id.desc())
    )
    if unassigned is True:
        stmt = stmt.where(WorkItemModel.assigned_worker_id.is_(None))
    elif unassigned is False:
        stmt = stmt.where(WorkItemModel.assigned_worker_id.is_not(None))
    if limit is not None:
        stmt = stmt.limit(limit)

    items = (await session.execute(stmt)).unique().scalars().all()
    return {
        "total": len(items),
        "work_items": [_serialize(i) for i in items],
    }


@router.get("/{work_item_id}")
async def get_work_item(work_item_id: int, session: AsyncSession = Depends(get_session)):
    result = await session.execute(
        select(WorkItemModel)
        .options(
            joinedload(WorkItemModel.assigned_worker),
            joinedload(WorkItemModel.assignment_record),
        )
        .where(WorkItemModel.id == work_item_id)
    )
    item = result.unique().scalar_one_or_none()
    if not item:
        raise HTTPException(status_code=404, detail="Work item not found")
    return _serialize(item)


@router.post("/assign-pending")
async def assign_pending(pending_uc: AssignPendingUseCase = Depends(get_assign_pending_uc)):
    """Assign every work item still waiting for a worker."""
    try:
        results = await pending_uc.execute()
    except AssignmentError as e:
        raise HTTPException(status_code=409 if e.retryable else 500, detail=str(e))
    successful = [r for r in results if r.success]
    return {
        "status": "ok",
        "total_processed": len(results),
        "successful": len(successful),
        "failed": len(results) - len(successful),
        "results": [r.to_dict() for r in results],
    }


@router.post("/{work_item_id}/assign")
async def assign_work_item(
    work_item_id: int,
    affinity_key: str | None = None,
    assign_uc: AssignWorkItemUseCase = Depends(get_assign_uc),
):
    """Assign one work item. Safe to retry: an assigned item is returned unchanged."""
    result = await assign_uc.execute(work_item_id, affinity_key=affinity_key)
    return JSONResponse(status_code=_status_for(result), content=result.to_dict())


def _serialize(i: WorkItemModel) -> dict:
    data = {
        "id": i.id,
        "phone": i.phone,
        "name": i.name,
        "city": i.city,
        "state": i.affinity_key,
        "lead_source": i.lead_source,
        "metadata": i.extra,
        "timestamp": i.received_at.isoformat() if i.received_at else None,
        "created_at": i.created_at.isoformat() if i.created_at else None,
        "assigned_at": i.assigned_at.isoformat() if i.assigned_at else None,
        "unassigned": i.assigned_worker_id is None,
        "assigned_worker": None,
        "reason_code": None,
    }
    if i.assigned_worker:
        data["assigned_worker"] = {"id": i.assigned_worker.id, "name": i.assigned_worker.name}
    if i.assignment_record:
        data["reason_code"] = i.assignment_record.reason_code
    return data
