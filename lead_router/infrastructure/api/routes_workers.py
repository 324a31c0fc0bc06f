"""Worker registry administration — CRUD over routing-eligible callers."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, Field

from lead_router.application.ports.unit_of_work import UnitOfWork
from lead_router.application.use_cases.assign_work_item import utc_now
from lead_router.config import settings
from lead_router.domain.entities.worker import Worker
from lead_router.domain.errors import WorkerInUse
from lead_router.domain.policies.quota_reset import local_today
from lead_router.infrastructure.api.dependencies import get_uow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workers", tags=["workers"])


class WorkerPayload(BaseModel):
    name: str = Field(min_length=1)
    role: str | None = None
    languages: list[str] = Field(default_factory=list)
    capacity_per_day: int = Field(default_factory=lambda: settings.default_daily_capacity, gt=0)
    affinity_tags: list[str] = Field(default_factory=list)

    def to_worker(self, worker_id: int | None = None) -> Worker:
        return Worker(
            id=worker_id,
            name=self.name.strip(),
            role=self.role,
            languages=[lang.strip() for lang in self.languages if lang.strip()],
            capacity_per_day=self.capacity_per_day,
            affinity_tags=frozenset(self.affinity_tags),
        )


def serialize_worker(w: Worker) -> dict:
    """Worker as displayed; a counter from an earlier day reads as zero."""
    today = local_today(utc_now(), settings.quota_tz)
    count = 0 if w.needs_reset(today) else w.assigned_count_today
    return {
        "id": w.id,
        "name": w.name,
        "role": w.role,
        "languages": w.languages,
        "capacity_per_day": w.capacity_per_day,
        "assigned_count_today": count,
        "remaining_today": max(w.capacity_per_day - count, 0),
        "over_capacity": count > w.capacity_per_day,
        "affinity_tags": sorted(w.affinity_tags),
        "last_reset_date": w.last_reset_date.isoformat() if w.last_reset_date else None,
        "last_assigned_at": w.last_assigned_at.isoformat() if w.last_assigned_at else None,
    }


@router.get("")
async def list_workers(uow: UnitOfWork = Depends(get_uow)):
    async with uow:
        workers = await uow.workers.get_all()
    return {"total": len(workers), "workers": [serialize_worker(w) for w in workers]}


@router.post("", status_code=201)
async def create_worker(payload: WorkerPayload, uow: UnitOfWork = Depends(get_uow)):
    async with uow:
        worker = await uow.workers.save(payload.to_worker())
        await uow.commit()
    logger.info("Registered worker %s (%s)", worker.id, worker.name)
    return serialize_worker(worker)


@router.get("/{worker_id}")
async def get_worker(worker_id: int, uow: UnitOfWork = Depends(get_uow)):
    async with uow:
        worker = await uow.workers.get_by_id(worker_id)
    if not worker:
        raise HTTPException(status_code=404, detail="Worker not found")
    return serialize_worker(worker)


@router.put("/{worker_id}")
async def update_worker(
    worker_id: int, payload: WorkerPayload, uow: UnitOfWork = Depends(get_uow)
):
    """Replace name, role, languages, capacity and tags. Counters are kept."""
    async with uow:
        worker = await uow.workers.update_config(payload.to_worker(worker_id))
        if not worker:
            raise HTTPException(status_code=404, detail="Worker not found")
        await uow.commit()
    return serialize_worker(worker)


@router.delete("/{worker_id}", status_code=204)
async def delete_worker(worker_id: int, uow: UnitOfWork = Depends(get_uow)):
    async with uow:
        try:
            deleted = await uow.workers.delete(worker_id)
        except WorkerInUse as e:
            raise HTTPException(status_code=409, detail=str(e))
        if not deleted:
            raise HTTPException(status_code=404, detail="Worker not found")
        await uow.commit()
    logger.info("Deleted worker %s", worker_id)
    return Response(status_code=204)
