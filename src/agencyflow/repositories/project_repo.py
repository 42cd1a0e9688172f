"""Project and membership repositories."""

from dataclasses import dataclass

from sqlalchemy import select, update

from agencyflow.db.base import utcnow
from agencyflow.db.models.project import ProjectMemberRow, ProjectRow
from agencyflow.repositories.base import BaseRepository


@dataclass(frozen=True)
class ProjectScope:
    """The people attached to a project, as seen by AuthorizationGate."""

    project_id: str
    manager_id: str
    client_id: str | None
    member_ids: frozenset[str]

    def involves(self, user_id: str) -> bool:
        return user_id in self.member_ids or user_id in (self.manager_id, self.client_id)


class ProjectRepository(BaseRepository):
    model = ProjectRow

    async def get(self, project_id: str) -> ProjectRow | None:
        return await self.find_one(project_id=project_id)

    async def load_scope(self, project_id: str) -> ProjectScope | None:
        project = await self.get(project_id)
        if project is None:
            return None
        stmt = select(ProjectMemberRow.user_id).where(ProjectMemberRow.project_id == project_id)
        member_ids = (await self.session.execute(stmt)).scalars().all()
        return ProjectScope(
            project_id=project.project_id,
            manager_id=project.manager_id,
            client_id=project.client_id,
            member_ids=frozenset(member_ids),
        )

    async def move_phase(
        self,
        project_id: str,
        *,
        from_phase: str,
        to_phase: str,
        status: str,
        progress: int,
    ) -> bool:
        """Compare-and-swap ``current_phase``; False if the project is no longer on ``from_phase``."""
        stmt = (
            update(ProjectRow)
            .where(ProjectRow.project_id == project_id, ProjectRow.current_phase == from_phase)
            .values(current_phase=to_phase, status=status, progress=progress, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1


class ProjectMemberRepository(BaseRepository):
    model = ProjectMemberRow

    async def get_member(self, project_id: str, user_id: str) -> ProjectMemberRow | None:
        stmt = select(ProjectMemberRow).where(
            ProjectMemberRow.project_id == project_id,
            ProjectMemberRow.user_id == user_id,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_by_project(self, project_id: str) -> list[ProjectMemberRow]:
        return await self.find_all(project_id=project_id)

    async def list_phase_subscribers(self, project_id: str) -> list[str]:
        stmt = select(ProjectMemberRow.user_id).where(
            ProjectMemberRow.project_id == project_id,
            ProjectMemberRow.notify_phase_changes.is_(True),
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
