"""Stage transition routes."""

from fastapi import APIRouter

from agencyflow.dependencies import CurrentActor, DBSession, Fanout, Gate
from agencyflow.models.stage_transition import StageTransitionCreate, StageTransitionOut
from agencyflow.services.approval_lifecycle import ApprovalLifecycle

router = APIRouter(tags=["Stage Transitions"])


@router.post(
    "/projects/{project_id}/stage-transitions",
    status_code=201,
    response_model=StageTransitionOut,
)
async def request_stage_transition(
    project_id: str,
    body: StageTransitionCreate,
    db: DBSession,
    actor: CurrentActor,
    gate: Gate,
    fanout: Fanout,
):
    coordinator = ApprovalLifecycle(db, gate, fanout).coordinator
    return await coordinator.request_advance(
        project_id,
        body.target_stage,
        actor,
        requested_to=body.requested_to,
        description=body.description,
        priority=body.priority,
    )


@router.get("/projects/{project_id}/stage-transitions", response_model=list[StageTransitionOut])
async def list_stage_transitions(project_id: str, db: DBSession, actor: CurrentActor, gate: Gate):
    return await ApprovalLifecycle(db, gate).coordinator.list_for_project(project_id, actor)


@router.get("/stage-transitions/{transition_id}", response_model=StageTransitionOut)
async def get_stage_transition(transition_id: str, db: DBSession, actor: CurrentActor, gate: Gate):
    return await ApprovalLifecycle(db, gate).coordinator.get(transition_id, actor)
