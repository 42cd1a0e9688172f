"""Project setup routes."""

from fastapi import APIRouter

from agencyflow.dependencies import CurrentActor, DBSession, Gate
from agencyflow.models.project import (
    ProjectCreate,
    ProjectMemberCreate,
    ProjectMemberOut,
    ProjectOut,
    ReviewerUpdate,
)
from agencyflow.services.projects import ProjectService

router = APIRouter(tags=["Projects"])


@router.post("/projects", status_code=201, response_model=ProjectOut)
async def create_project(body: ProjectCreate, db: DBSession, actor: CurrentActor, gate: Gate):
    return await ProjectService(db, gate).create(actor, body)


@router.get("/projects/{project_id}", response_model=ProjectOut)
async def get_project(project_id: str, db: DBSession, actor: CurrentActor, gate: Gate):
    return await ProjectService(db, gate).get(project_id, actor)


@router.post("/projects/{project_id}/members", status_code=201, response_model=ProjectMemberOut)
async def add_project_member(
    project_id: str, body: ProjectMemberCreate, db: DBSession, actor: CurrentActor, gate: Gate
):
    return await ProjectService(db, gate).add_member(project_id, actor, body)


@router.put("/projects/{project_id}/reviewer", response_model=ProjectOut)
async def set_project_reviewer(
    project_id: str, body: ReviewerUpdate, db: DBSession, actor: CurrentActor, gate: Gate
):
    return await ProjectService(db, gate).set_reviewer(project_id, actor, body.reviewer_id)
