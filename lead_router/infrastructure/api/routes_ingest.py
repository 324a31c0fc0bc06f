"""Ingestion endpoint — persist an inbound lead, then route it."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from lead_router.application.use_cases.ingest_work_item import IngestWorkItemUseCase
from lead_router.domain.entities.work_item import WorkItem
from lead_router.domain.errors import AssignmentError
from lead_router.infrastructure.api.dependencies import get_ingest_uc

logger = logging.getLogger(__name__)

router = APIRouter(tags=["ingest"])


class IngestPayload(BaseModel):
    """Lead as posted by upstream automation (form, ad webhook, manual test)."""

    # Optional here so a missing phone answers 400 like a blank one
    phone: str | None = None
    name: str | None = None
    timestamp: datetime | None = None
    lead_source: str | None = None
    city: str | None = None
    state: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    def to_work_item(self) -> WorkItem:
        return WorkItem(
            id=None,
            phone=self.phone or "",
            name=self.name,
            city=self.city,
            affinity_key=self.state,
            lead_source=self.lead_source,
            metadata=dict(self.metadata),
            received_at=self.timestamp,
        )


def serialize_work_item(item: WorkItem) -> dict:
    return {
        "id": item.id,
        "phone": item.phone,
        "name": item.name,
        "city": item.city,
        "state": item.affinity_key,
        "lead_source": item.lead_source,
        "metadata": item.metadata,
        "timestamp": item.received_at.isoformat() if item.received_at else None,
        "created_at": item.created_at.isoformat() if item.created_at else None,
        "assigned_worker_id": item.assigned_worker_id,
        "assigned_at": item.assigned_at.isoformat() if item.assigned_at else None,
        "unassigned": not item.is_assigned(),
    }


@router.post("/ingest")
async def ingest(
    payload: IngestPayload,
    ingest_uc: IngestWorkItemUseCase = Depends(get_ingest_uc),
):
    """Store a lead durably and assign it to a worker.

    The lead is committed before assignment runs. If no worker exists it is
    reported as persisted but unassigned; a transient assignment failure can
    be retried with ``POST /work-items/{id}/assign``.
    """
    try:
        result = await ingest_uc.execute(payload.to_work_item())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except AssignmentError as e:
        logger.exception("Failed to persist inbound lead")
        raise HTTPException(status_code=409 if e.retryable else 500, detail=str(e))

    assignment = result.assignment
    if assignment is not None and not assignment.success:
        logger.warning(
            "Ingested work item %s without assignment: %s",
            result.work_item.id, assignment.error_kind.value,
        )

    return {
        "success": True,
        "duplicate": result.duplicate,
        "work_item": serialize_work_item(result.work_item),
        "assignment": assignment.to_dict() if assignment else None,
    }
