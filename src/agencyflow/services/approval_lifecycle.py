"""Approval request lifecycle.

A request is created pending and leaves pending exactly once, through
``ApprovalLifecycle.decide``. ``next_status`` is the only place that maps a
(status, outcome) pair to a new status; every edge it does not list is a
conflict. The storage write is a compare-and-swap on ``status`` so two
concurrent deciders cannot both win.
"""

import logging
from collections.abc import Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from agencyflow.config import settings
from agencyflow.db.base import utcnow
from agencyflow.db.models.approval import ApprovalNoteRow, ApprovalRequestRow
from agencyflow.errors.exceptions import (
    AlreadyDecidedError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from agencyflow.models.actor import Actor
from agencyflow.models.approval import (
    ApprovalFilter,
    ApprovalRequestOut,
    ApprovalSort,
    Attachment,
)
from agencyflow.models.common import Page
from agencyflow.models.enums import (
    ApprovalKind,
    ApprovalPriority,
    ApprovalStatus,
    AuditAction,
    DecisionOutcome,
    EntityType,
)
from agencyflow.repositories.approval_repo import ApprovalNoteRepository, ApprovalRequestRepository
from agencyflow.repositories.audit_repo import AuditLogRepository
from agencyflow.repositories.project_repo import ProjectRepository, ProjectScope
from agencyflow.services.authorization import AuthorizationGate
from agencyflow.services.id_generator import generate_id
from agencyflow.services.notifications import NotificationFanout
from agencyflow.services.stage_transitions import StageTransitionCoordinator

logger = logging.getLogger(__name__)

TRANSITIONS: dict[tuple[ApprovalStatus, DecisionOutcome], ApprovalStatus] = {
    (ApprovalStatus.PENDING, DecisionOutcome.APPROVE): ApprovalStatus.APPROVED,
    (ApprovalStatus.PENDING, DecisionOutcome.REJECT): ApprovalStatus.REJECTED,
}


def next_status(approval_id: str, current: ApprovalStatus, outcome: DecisionOutcome) -> ApprovalStatus:
    """Return the status ``outcome`` leads to, or raise AlreadyDecidedError."""
    try:
        return TRANSITIONS[(ApprovalStatus(current), DecisionOutcome(outcome))]
    except KeyError:
        raise AlreadyDecidedError(approval_id, str(current)) from None


class ApprovalLifecycle:
    """Creates, decides and reads approval requests on one session.

    ``decide`` owns its unit of work: the status change, its audit entry and,
    for stage transitions, the project phase change are committed together
    before any notification goes out.
    """

    def __init__(
        self,
        session: AsyncSession,
        gate: AuthorizationGate | None = None,
        fanout: NotificationFanout | None = None,
    ):
        self.session = session
        self.gate = gate or AuthorizationGate()
        self.fanout = fanout or NotificationFanout()
        self.approvals = ApprovalRequestRepository(session)
        self.notes = ApprovalNoteRepository(session)
        self.projects = ProjectRepository(session)
        self.audit = AuditLogRepository(session)
        self.coordinator = StageTransitionCoordinator(self)

    async def create(
        self,
        actor: Actor,
        kind: ApprovalKind,
        title: str,
        requested_to: str | None,
        project_id: str | None = None,
        description: str | None = None,
        attachments: Sequence[Attachment | dict] = (),
        priority: ApprovalPriority = ApprovalPriority.MEDIUM,
    ) -> ApprovalRequestRow:
        kind = ApprovalKind(kind)
        check_parties(actor.id, requested_to)
        if kind == ApprovalKind.STAGE_TRANSITION:
            raise ValidationError(
                "Stage transition approvals are opened by requesting a stage advance on the project"
            )
        scope = await self._load_scope(project_id)
        self.gate.ensure_can_create(actor, kind, scope)

        try:
            approval = await self.open_request(
                actor=actor,
                kind=kind,
                title=title,
                requested_to=requested_to,
                project_id=project_id,
                description=description,
                attachments=attachments,
                priority=priority,
            )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info("Approval %s (%s) requested by %s from %s", approval.approval_id, kind, actor.id, requested_to)
        await self.fanout.request_created(self.session, approval)
        return approval

    async def open_request(
        self,
        *,
        actor: Actor,
        kind: ApprovalKind,
        title: str,
        requested_to: str | None,
        project_id: str | None,
        description: str | None = None,
        attachments: Sequence[Attachment | dict] = (),
        priority: ApprovalPriority = ApprovalPriority.MEDIUM,
    ) -> ApprovalRequestRow:
        """Validate and stage a pending request plus its audit entry, without committing."""
        check_parties(actor.id, requested_to)
        approval = await self.approvals.create(
            approval_id=generate_id("appr_"),
            kind=ApprovalKind(kind),
            title=title,
            description=description,
            project_id=project_id,
            requested_by=actor.id,
            requested_to=requested_to,
            status=ApprovalStatus.PENDING,
            priority=ApprovalPriority(priority),
            attachments=[_attachment_dict(a) for a in attachments],
        )
        await self.audit.append(
            actor.id,
            AuditAction.APPROVAL_CREATED,
            EntityType.APPROVAL_REQUEST,
            approval.approval_id,
            {"kind": approval.kind, "project_id": project_id, "requested_to": requested_to},
        )
        return approval

    async def decide(
        self,
        approval_id: str,
        actor: Actor,
        outcome: DecisionOutcome,
        notes: str | None = None,
    ) -> ApprovalRequestRow:
        outcome = DecisionOutcome(outcome)
        approval = await self.approvals.get(approval_id)
        if approval is None:
            raise NotFoundError("Approval request", approval_id)
        self.gate.ensure_can_decide(actor, approval)
        new_status = next_status(approval_id, approval.status, outcome)
        text = (notes or "").strip()
        if outcome == DecisionOutcome.REJECT and not text:
            raise ValidationError("A reason is required to reject a request")

        transition = None
        try:
            won = await self.approvals.mark_decided(
                approval_id,
                status=new_status,
                decided_by=actor.id,
                decided_at=utcnow(),
                decision_notes=text if outcome == DecisionOutcome.APPROVE else None,
                rejection_reason=text if outcome == DecisionOutcome.REJECT else None,
            )
            if not won:
                raise AlreadyDecidedError(approval_id, await self.approvals.current_status(approval_id))
            await self.session.refresh(approval)
            await self.audit.append(
                actor.id,
                AuditAction.APPROVAL_APPROVED if outcome == DecisionOutcome.APPROVE else AuditAction.APPROVAL_REJECTED,
                EntityType.APPROVAL_REQUEST,
                approval_id,
                {"outcome": outcome, "notes": text, "kind": approval.kind},
            )
            if approval.kind == ApprovalKind.STAGE_TRANSITION:
                transition = await self.coordinator.apply_decision(approval, actor)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info("Approval %s %s by %s", approval_id, new_status, actor.id)
        await self.fanout.decision_made(self.session, approval, transition)
        return approval

    async def get(self, approval_id: str, actor: Actor) -> ApprovalRequestRow:
        approval = await self.approvals.get(approval_id)
        if approval is None:
            raise NotFoundError("Approval request", approval_id)
        scope = await self.projects.load_scope(approval.project_id) if approval.project_id else None
        self.gate.ensure_can_view(actor, approval, scope)
        return approval

    async def list_requests(
        self,
        actor: Actor,
        filters: ApprovalFilter | None = None,
        sort: ApprovalSort | None = None,
        page: int = 1,
        page_size: int | None = None,
    ) -> Page[ApprovalRequestOut]:
        page = max(page, 1)
        page_size = min(max(page_size or settings.default_page_size, 1), settings.max_page_size)
        rows, total = await self.approvals.list_filtered(
            filters or ApprovalFilter(),
            sort or ApprovalSort(),
            offset=(page - 1) * page_size,
            limit=page_size,
            visible_to=None if self.gate.is_admin(actor) else actor.id,
        )
        return Page[ApprovalRequestOut](
            items=[ApprovalRequestOut.model_validate(r) for r in rows],
            total=total,
            page=page,
            page_size=page_size,
        )

    async def pending_count(self, actor: Actor) -> int:
        return await self.approvals.count_pending_for(actor.id)

    async def add_note(self, approval_id: str, actor: Actor, content: str) -> ApprovalNoteRow:
        """Append a supplementary note; the request's status and decision fields are untouched."""
        approval = await self.approvals.get(approval_id)
        if approval is None:
            raise NotFoundError("Approval request", approval_id)
        if actor.id not in (approval.requested_by, approval.requested_to) and not self.gate.is_admin(actor):
            raise ForbiddenError("Only the requester or the reviewer may add notes")
        content = content.strip()
        if not content:
            raise ValidationError("Note content must not be empty")
        try:
            note = await self.notes.create(
                note_id=generate_id("anote_"),
                approval_id=approval_id,
                author_id=actor.id,
                content=content,
            )
            await self.audit.append(
                actor.id,
                AuditAction.APPROVAL_NOTE_ADDED,
                EntityType.APPROVAL_REQUEST,
                approval_id,
                {"note_id": note.note_id},
            )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        return note

    async def list_notes(self, approval_id: str, actor: Actor) -> list[ApprovalNoteRow]:
        await self.get(approval_id, actor)
        return await self.notes.list_by_approval(approval_id)

    async def _load_scope(self, project_id: str | None) -> ProjectScope | None:
        if project_id is None:
            return None
        scope = await self.projects.load_scope(project_id)
        if scope is None:
            raise NotFoundError("Project", project_id)
        return scope


def check_parties(requested_by: str, requested_to: str | None) -> None:
    if not requested_to:
        raise ValidationError("A reviewer (requested_to) is required")
    if requested_to == requested_by:
        raise ValidationError(
            "Self-approval is not allowed: the reviewer must differ from the requester",
            details={"requested_by": requested_by, "requested_to": requested_to},
        )


def _attachment_dict(attachment: Attachment | dict) -> dict:
    if isinstance(attachment, Attachment):
        return attachment.model_dump()
    return Attachment.model_validate(attachment).model_dump()
