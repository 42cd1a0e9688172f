"""Project stage transitions gated by an approval request.

A transition row is created together with its stage_transition approval and
stays pending until that approval is decided. Approval moves the project to
the target stage in the same transaction as the decision; rejection leaves
the project where it is.
"""

import logging
from typing import TYPE_CHECKING

from sqlalchemy.exc import IntegrityError

from agencyflow.db.models.approval import ApprovalRequestRow
from agencyflow.db.models.project import ProjectRow
from agencyflow.db.models.stage_transition import StageTransitionRow
from agencyflow.errors.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from agencyflow.models.actor import Actor
from agencyflow.models.enums import (
    ApprovalKind,
    ApprovalPriority,
    ApprovalStatus,
    AuditAction,
    EntityType,
    ProjectStage,
    ProjectStatus,
    TransitionDirection,
)
from agencyflow.repositories.project_repo import ProjectRepository
from agencyflow.repositories.stage_transition_repo import StageTransitionRepository
from agencyflow.services.id_generator import generate_id

if TYPE_CHECKING:
    from agencyflow.services.approval_lifecycle import ApprovalLifecycle

logger = logging.getLogger(__name__)

STAGE_ORDER: tuple[ProjectStage, ...] = (
    ProjectStage.DESIGN,
    ProjectStage.DEVELOPMENT,
    ProjectStage.TESTING,
    ProjectStage.COMPLETED,
)

STAGE_PROGRESS: dict[ProjectStage, int] = {
    ProjectStage.DESIGN: 0,
    ProjectStage.DEVELOPMENT: 25,
    ProjectStage.TESTING: 60,
    ProjectStage.COMPLETED: 100,
}


def classify_move(current: str, target: str) -> TransitionDirection:
    """Advance or rollback for an adjacent stage; anything else is a ValidationError."""
    try:
        i = STAGE_ORDER.index(ProjectStage(current))
        j = STAGE_ORDER.index(ProjectStage(target))
    except ValueError:
        raise ValidationError(f"Unknown stage '{target}'") from None
    if j == i + 1:
        return TransitionDirection.ADVANCE
    if j == i - 1:
        return TransitionDirection.ROLLBACK
    allowed = [STAGE_ORDER[k].value for k in (i - 1, i + 1) if 0 <= k < len(STAGE_ORDER)]
    raise ValidationError(
        f"Cannot move from '{current}' to '{target}'",
        details={"current_stage": str(current), "target_stage": str(target), "allowed": allowed},
    )


def status_for_stage(stage: str) -> ProjectStatus:
    return ProjectStatus.COMPLETED if stage == ProjectStage.COMPLETED else ProjectStatus.ACTIVE


class StageTransitionCoordinator:
    """Opens stage transition requests and applies their decisions.

    Shares the lifecycle's session, gate and audit log so that a decision
    and the phase change it causes land in one transaction.
    """

    def __init__(self, lifecycle: "ApprovalLifecycle"):
        self.lifecycle = lifecycle
        self.session = lifecycle.session
        self.projects = ProjectRepository(lifecycle.session)
        self.transitions = StageTransitionRepository(lifecycle.session)

    async def request_advance(
        self,
        project_id: str,
        target_stage: ProjectStage,
        actor: Actor,
        requested_to: str | None = None,
        description: str | None = None,
        priority: ApprovalPriority = ApprovalPriority.MEDIUM,
    ) -> StageTransitionRow:
        project = await self.projects.get(project_id)
        if project is None:
            raise NotFoundError("Project", project_id)
        scope = await self.projects.load_scope(project_id)
        self.lifecycle.gate.ensure_can_create(actor, ApprovalKind.STAGE_TRANSITION, scope)

        pending = await self.transitions.get_pending_for_project(project_id)
        if pending is not None:
            raise ConflictError(
                "Project already has a pending stage transition",
                details={"transition_id": pending.transition_id, "to_stage": pending.to_stage},
            )
        from_stage = project.current_phase
        direction = classify_move(from_stage, target_stage)
        reviewer = requested_to or project.reviewer_id
        if not reviewer:
            raise ValidationError("No reviewer: pass requested_to or designate a project reviewer")

        target = ProjectStage(target_stage)
        try:
            approval = await self.lifecycle.open_request(
                actor=actor,
                kind=ApprovalKind.STAGE_TRANSITION,
                title=f"Move {project.name} from {from_stage} to {target}",
                requested_to=reviewer,
                project_id=project_id,
                description=description,
                priority=priority,
            )
            transition = await self.transitions.create(
                transition_id=generate_id("stx_"),
                project_id=project_id,
                approval_id=approval.approval_id,
                from_stage=from_stage,
                to_stage=target,
                direction=direction,
                requested_by=actor.id,
                status=ApprovalStatus.PENDING,
            )
            await self.lifecycle.audit.append(
                actor.id,
                AuditAction.STAGE_TRANSITION_REQUESTED,
                EntityType.STAGE_TRANSITION,
                transition.transition_id,
                {
                    "project_id": project_id,
                    "approval_id": approval.approval_id,
                    "from_stage": from_stage,
                    "to_stage": target,
                    "direction": direction,
                },
            )
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            raise ConflictError("Project already has a pending stage transition") from exc
        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            "Stage transition %s requested for %s: %s -> %s (%s)",
            transition.transition_id, project_id, from_stage, target, direction,
        )
        await self.lifecycle.fanout.request_created(self.session, approval)
        return transition

    async def apply_decision(self, approval: ApprovalRequestRow, actor: Actor) -> StageTransitionRow | None:
        """Apply a decided stage_transition approval inside the caller's transaction.

        Raises ConflictError if the transition or the project moved underneath
        us; the caller rolls the whole decision back.
        """
        transition = await self.transitions.get_by_approval(approval.approval_id)
        if transition is None:
            logger.warning("Approval %s has no stage transition record", approval.approval_id)
            return None

        approved = approval.status == ApprovalStatus.APPROVED
        won = await self.transitions.mark_decided(
            transition.transition_id,
            status=ApprovalStatus.APPROVED if approved else ApprovalStatus.REJECTED,
            decided_at=approval.decided_at,
            approved_by=actor.id if approved else None,
        )
        if not won:
            raise ConflictError(
                "Stage transition is no longer pending",
                details={"transition_id": transition.transition_id},
            )

        if approved:
            to_stage = ProjectStage(transition.to_stage)
            moved = await self.projects.move_phase(
                transition.project_id,
                from_phase=transition.from_stage,
                to_phase=to_stage,
                status=status_for_stage(to_stage),
                progress=STAGE_PROGRESS[to_stage],
            )
            if not moved:
                raise ConflictError(
                    f"Project is no longer on stage '{transition.from_stage}'",
                    details={"project_id": transition.project_id, "transition_id": transition.transition_id},
                )
            await self.lifecycle.audit.append(
                actor.id,
                AuditAction.PROJECT_PHASE_CHANGED,
                EntityType.PROJECT,
                transition.project_id,
                {
                    "from_stage": transition.from_stage,
                    "to_stage": to_stage,
                    "transition_id": transition.transition_id,
                },
            )
            project = await self.session.get(ProjectRow, transition.project_id)
            if project is not None:
                await self.session.refresh(project)

        await self.lifecycle.audit.append(
            actor.id,
            AuditAction.STAGE_TRANSITION_APPROVED if approved else AuditAction.STAGE_TRANSITION_REJECTED,
            EntityType.STAGE_TRANSITION,
            transition.transition_id,
            {"approval_id": approval.approval_id, "project_id": transition.project_id},
        )
        await self.session.refresh(transition)
        return transition

    async def list_for_project(self, project_id: str, actor: Actor) -> list[StageTransitionRow]:
        await self._ensure_project_visible(project_id, actor)
        return await self.transitions.list_by_project(project_id)

    async def get(self, transition_id: str, actor: Actor) -> StageTransitionRow:
        transition = await self.transitions.get(transition_id)
        if transition is None:
            raise NotFoundError("Stage transition", transition_id)
        await self._ensure_project_visible(transition.project_id, actor)
        return transition

    async def _ensure_project_visible(self, project_id: str, actor: Actor) -> None:
        scope = await self.projects.load_scope(project_id)
        if scope is None:
            raise NotFoundError("Project", project_id)
        if not (self.lifecycle.gate.is_admin(actor) or scope.involves(actor.id)):
            raise ForbiddenError(f"Not allowed to view project '{project_id}'")
