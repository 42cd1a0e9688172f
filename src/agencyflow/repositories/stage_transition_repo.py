"""Stage transition repository."""

from datetime import datetime

from sqlalchemy import select, update

from agencyflow.db.models.stage_transition import StageTransitionRow
from agencyflow.models.enums import ApprovalStatus
from agencyflow.repositories.base import BaseRepository


class StageTransitionRepository(BaseRepository):
    model = StageTransitionRow

    async def get(self, transition_id: str) -> StageTransitionRow | None:
        return await self.find_one(transition_id=transition_id)

    async def get_by_approval(self, approval_id: str) -> StageTransitionRow | None:
        return await self.find_one(approval_id=approval_id)

    async def get_pending_for_project(self, project_id: str) -> StageTransitionRow | None:
        stmt = select(StageTransitionRow).where(
            StageTransitionRow.project_id == project_id,
            StageTransitionRow.status == ApprovalStatus.PENDING,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_by_project(self, project_id: str) -> list[StageTransitionRow]:
        stmt = (
            select(StageTransitionRow)
            .where(StageTransitionRow.project_id == project_id)
            .order_by(StageTransitionRow.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def mark_decided(
        self,
        transition_id: str,
        *,
        status: ApprovalStatus,
        decided_at: datetime,
        approved_by: str | None = None,
    ) -> bool:
        """Compare-and-swap the transition out of pending."""
        stmt = (
            update(StageTransitionRow)
            .where(
                StageTransitionRow.transition_id == transition_id,
                StageTransitionRow.status == ApprovalStatus.PENDING,
            )
            .values(status=status, approved_by=approved_by, decided_at=decided_at, updated_at=decided_at)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1
