"""Approval request routes: create, list, read, decide, batch decide, notes."""

import logging

from fastapi import APIRouter, Depends, Query, Request

from agencyflow.dependencies import CurrentActor, DBSession, Fanout, Gate
from agencyflow.models.approval import (
    ApprovalCreate,
    ApprovalDecisionBody,
    ApprovalFilter,
    ApprovalNoteCreate,
    ApprovalNoteOut,
    ApprovalRequestOut,
    ApprovalSort,
    BatchDecisionBody,
    BatchResultOut,
)
from agencyflow.models.common import Page
from agencyflow.models.enums import (
    ApprovalKind,
    ApprovalPriority,
    ApprovalSortField,
    ApprovalStatus,
    SortOrder,
)
from agencyflow.services.approval_lifecycle import ApprovalLifecycle
from agencyflow.services.batch import BatchDecisionProcessor, batch_concurrency_for

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Approvals"])


def approval_filter(
    status: ApprovalStatus | None = None,
    kind: ApprovalKind | None = None,
    project_id: str | None = None,
    priority: ApprovalPriority | None = None,
    requested_by: str | None = None,
    requested_to: str | None = None,
) -> ApprovalFilter:
    return ApprovalFilter(
        status=status,
        kind=kind,
        project_id=project_id,
        priority=priority,
        requested_by=requested_by,
        requested_to=requested_to,
    )


@router.post("/approvals", status_code=201, response_model=ApprovalRequestOut)
async def create_approval(
    body: ApprovalCreate, db: DBSession, actor: CurrentActor, gate: Gate, fanout: Fanout
):
    lifecycle = ApprovalLifecycle(db, gate, fanout)
    return await lifecycle.create(
        actor,
        kind=body.kind,
        title=body.title,
        requested_to=body.requested_to,
        project_id=body.project_id,
        description=body.description,
        attachments=body.attachments,
        priority=body.priority,
    )


@router.get("/approvals", response_model=Page[ApprovalRequestOut])
async def list_approvals(
    db: DBSession,
    actor: CurrentActor,
    gate: Gate,
    filters: ApprovalFilter = Depends(approval_filter),
    sort: ApprovalSortField = ApprovalSortField.CREATED_AT,
    order: SortOrder = SortOrder.DESC,
    page: int = Query(1, ge=1),
    page_size: int | None = Query(None, ge=1),
):
    lifecycle = ApprovalLifecycle(db, gate)
    return await lifecycle.list_requests(
        actor, filters, ApprovalSort(field=sort, order=order), page=page, page_size=page_size
    )


@router.get("/approvals/pending/count")
async def pending_approval_count(db: DBSession, actor: CurrentActor, gate: Gate) -> dict:
    count = await ApprovalLifecycle(db, gate).pending_count(actor)
    return {"count": count}


@router.post("/approvals/batch-decide", response_model=BatchResultOut)
async def batch_decide(
    body: BatchDecisionBody, request: Request, actor: CurrentActor, gate: Gate, fanout: Fanout
):
    processor = BatchDecisionProcessor(
        request.app.state.db_session_factory,
        max_concurrency=batch_concurrency_for(request.app.state.db_engine),
        gate=gate,
        fanout=fanout,
    )
    result = await processor.apply_batch(body.approval_ids, actor, body.outcome, body.notes)
    return result.to_dict()


@router.get("/approvals/{approval_id}", response_model=ApprovalRequestOut)
async def get_approval(approval_id: str, db: DBSession, actor: CurrentActor, gate: Gate):
    return await ApprovalLifecycle(db, gate).get(approval_id, actor)


@router.post("/approvals/{approval_id}/decide", response_model=ApprovalRequestOut)
async def decide_approval(
    approval_id: str,
    body: ApprovalDecisionBody,
    db: DBSession,
    actor: CurrentActor,
    gate: Gate,
    fanout: Fanout,
):
    lifecycle = ApprovalLifecycle(db, gate, fanout)
    return await lifecycle.decide(approval_id, actor, body.outcome, body.notes)


@router.post("/approvals/{approval_id}/notes", status_code=201, response_model=ApprovalNoteOut)
async def add_approval_note(
    approval_id: str, body: ApprovalNoteCreate, db: DBSession, actor: CurrentActor, gate: Gate
):
    return await ApprovalLifecycle(db, gate).add_note(approval_id, actor, body.content)


@router.get("/approvals/{approval_id}/notes", response_model=list[ApprovalNoteOut])
async def list_approval_notes(approval_id: str, db: DBSession, actor: CurrentActor, gate: Gate):
    return await ApprovalLifecycle(db, gate).list_notes(approval_id, actor)
