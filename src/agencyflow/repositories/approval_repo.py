"""Approval request and note repositories."""

from datetime import datetime

from sqlalchemy import case, func, or_, select, update

from agencyflow.db.models.approval import ApprovalNoteRow, ApprovalRequestRow
from agencyflow.db.models.project import ProjectMemberRow, ProjectRow
from agencyflow.models.approval import ApprovalFilter, ApprovalSort
from agencyflow.models.enums import ApprovalSortField, ApprovalStatus, SortOrder
from agencyflow.repositories.base import BaseRepository

_PRIORITY_RANK = {"low": 0, "medium": 1, "high": 2}


class ApprovalRequestRepository(BaseRepository):
    model = ApprovalRequestRow

    async def get(self, approval_id: str) -> ApprovalRequestRow | None:
        return await self.find_one(approval_id=approval_id)

    async def current_status(self, approval_id: str) -> str | None:
        """Read the stored status, bypassing any stale row in the identity map."""
        stmt = select(ApprovalRequestRow.status).where(ApprovalRequestRow.approval_id == approval_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def mark_decided(
        self,
        approval_id: str,
        *,
        status: ApprovalStatus,
        decided_by: str,
        decided_at: datetime,
        decision_notes: str | None = None,
        rejection_reason: str | None = None,
    ) -> bool:
        """Compare-and-swap the request out of pending.

        Returns False when the row was not pending at write time, which means
        a concurrent caller already decided it.
        """
        stmt = (
            update(ApprovalRequestRow)
            .where(
                ApprovalRequestRow.approval_id == approval_id,
                ApprovalRequestRow.status == ApprovalStatus.PENDING,
            )
            .values(
                status=status,
                decided_by=decided_by,
                decided_at=decided_at,
                decision_notes=decision_notes,
                rejection_reason=rejection_reason,
                updated_at=decided_at,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def list_filtered(
        self,
        filters: ApprovalFilter,
        sort: ApprovalSort,
        offset: int,
        limit: int,
        visible_to: str | None = None,
    ) -> tuple[list[ApprovalRequestRow], int]:
        """List requests matching every given filter, with the total count.

        ``visible_to`` restricts the result to requests the user takes part
        in: as requester, as decider, or as member/manager/client of the
        owning project.
        """
        conditions = []
        for field in ("status", "kind", "project_id", "priority", "requested_by", "requested_to"):
            value = getattr(filters, field)
            if value is not None:
                conditions.append(getattr(ApprovalRequestRow, field) == value)

        if visible_to is not None:
            member_projects = select(ProjectMemberRow.project_id).where(
                ProjectMemberRow.user_id == visible_to
            )
            owned_projects = select(ProjectRow.project_id).where(
                or_(ProjectRow.manager_id == visible_to, ProjectRow.client_id == visible_to)
            )
            conditions.append(
                or_(
                    ApprovalRequestRow.requested_by == visible_to,
                    ApprovalRequestRow.requested_to == visible_to,
                    ApprovalRequestRow.project_id.in_(member_projects),
                    ApprovalRequestRow.project_id.in_(owned_projects),
                )
            )

        count_stmt = select(func.count()).select_from(ApprovalRequestRow).where(*conditions)
        total = (await self.session.execute(count_stmt)).scalar_one()

        if sort.field == ApprovalSortField.PRIORITY:
            sort_column = case(_PRIORITY_RANK, value=ApprovalRequestRow.priority, else_=1)
        else:
            sort_column = getattr(ApprovalRequestRow, sort.field.value)
        ordering = sort_column.asc() if sort.order == SortOrder.ASC else sort_column.desc()

        stmt = (
            select(ApprovalRequestRow)
            .where(*conditions)
            .order_by(ordering, ApprovalRequestRow.approval_id)
            .offset(offset)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), total

    async def count_pending_for(self, user_id: str) -> int:
        stmt = select(func.count()).select_from(ApprovalRequestRow).where(
            ApprovalRequestRow.requested_to == user_id,
            ApprovalRequestRow.status == ApprovalStatus.PENDING,
        )
        return (await self.session.execute(stmt)).scalar_one()


class ApprovalNoteRepository(BaseRepository):
    model = ApprovalNoteRow

    async def list_by_approval(self, approval_id: str) -> list[ApprovalNoteRow]:
        stmt = (
            select(ApprovalNoteRow)
            .where(ApprovalNoteRow.approval_id == approval_id)
            .order_by(ApprovalNoteRow.created_at.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
