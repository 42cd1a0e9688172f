"""Project setup needed by the approval workflow: creation, members, reviewer."""

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from agencyflow.db.models.project import ProjectMemberRow, ProjectRow
from agencyflow.errors.exceptions import ConflictError, ForbiddenError, NotFoundError
from agencyflow.models.actor import Actor
from agencyflow.models.enums import ProjectStage, ProjectStatus, Role
from agencyflow.models.project import ProjectCreate, ProjectMemberCreate
from agencyflow.repositories.project_repo import ProjectMemberRepository, ProjectRepository
from agencyflow.services.authorization import AuthorizationGate
from agencyflow.services.id_generator import generate_id
from agencyflow.services.stage_transitions import STAGE_PROGRESS

logger = logging.getLogger(__name__)


class ProjectService:
    def __init__(self, session: AsyncSession, gate: AuthorizationGate | None = None):
        self.session = session
        self.gate = gate or AuthorizationGate()
        self.projects = ProjectRepository(session)
        self.members = ProjectMemberRepository(session)

    async def create(self, actor: Actor, body: ProjectCreate) -> ProjectRow:
        if not (self.gate.is_admin(actor) or actor.has_role(Role.PROJECT_MANAGER)):
            raise ForbiddenError("Only project managers and admins may create projects")
        project = await self.projects.create(
            project_id=generate_id("proj_"),
            name=body.name,
            description=body.description,
            manager_id=body.manager_id or actor.id,
            client_id=body.client_id,
            reviewer_id=body.reviewer_id,
            current_phase=ProjectStage.DESIGN,
            status=ProjectStatus.ACTIVE,
            progress=STAGE_PROGRESS[ProjectStage.DESIGN],
        )
        await self.session.commit()
        logger.info("Project %s created by %s", project.project_id, actor.id)
        return project

    async def get(self, project_id: str, actor: Actor) -> ProjectRow:
        project = await self._get(project_id)
        if not self.gate.is_admin(actor):
            scope = await self.projects.load_scope(project_id)
            if not scope.involves(actor.id):
                raise ForbiddenError(f"Not allowed to view project '{project_id}'")
        return project

    async def add_member(self, project_id: str, actor: Actor, body: ProjectMemberCreate) -> ProjectMemberRow:
        project = await self._get(project_id)
        self._ensure_manages(actor, project)
        if await self.members.get_member(project_id, body.user_id) is not None:
            raise ConflictError(f"User '{body.user_id}' is already a member of '{project_id}'")
        try:
            member = await self.members.create(
                project_id=project_id,
                user_id=body.user_id,
                role=body.role,
                notify_phase_changes=body.notify_phase_changes,
            )
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            raise ConflictError(f"User '{body.user_id}' is already a member of '{project_id}'") from exc
        return member

    async def set_reviewer(self, project_id: str, actor: Actor, reviewer_id: str) -> ProjectRow:
        project = await self._get(project_id)
        self._ensure_manages(actor, project)
        await self.projects.update(project, reviewer_id=reviewer_id)
        await self.session.commit()
        return project

    async def _get(self, project_id: str) -> ProjectRow:
        project = await self.projects.get(project_id)
        if project is None:
            raise NotFoundError("Project", project_id)
        return project

    def _ensure_manages(self, actor: Actor, project: ProjectRow) -> None:
        if actor.id != project.manager_id and not self.gate.is_admin(actor):
            raise ForbiddenError("Only the project manager or an admin may change project setup")
