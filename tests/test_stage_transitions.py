"""Stage transitions: adjacency rules, one pending per project, atomic phase change."""

import pytest

from agencyflow.db.models.project import ProjectRow
from agencyflow.errors.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from agencyflow.models.enums import (
    ApprovalKind,
    ApprovalStatus,
    DecisionOutcome,
    ProjectStage,
    TransitionDirection,
)
from agencyflow.repositories.audit_repo import AuditLogRepository
from agencyflow.repositories.notification_repo import NotificationRepository
from agencyflow.services.approval_lifecycle import ApprovalLifecycle
from agencyflow.services.notifications import PROJECT_STAGE_CHANGED
from agencyflow.services.stage_transitions import STAGE_PROGRESS, classify_move

from conftest import ADMIN, CLIENT, DESIGNER, DEVELOPER, LEAD, OUTSIDER, PM


@pytest.mark.parametrize(
    "current, target, direction",
    [
        ("design", "development", TransitionDirection.ADVANCE),
        ("development", "testing", TransitionDirection.ADVANCE),
        ("testing", "completed", TransitionDirection.ADVANCE),
        ("testing", "development", TransitionDirection.ROLLBACK),
        ("completed", "testing", TransitionDirection.ROLLBACK),
    ],
)
def test_classify_adjacent_moves(current, target, direction):
    assert classify_move(current, target) == direction


@pytest.mark.parametrize(
    "current, target",
    [("design", "testing"), ("design", "completed"), ("testing", "testing"), ("completed", "design")],
)
def test_classify_rejects_jumps(current, target):
    with pytest.raises(ValidationError):
        classify_move(current, target)


async def _move_to(db_session, project, stage: str):
    project.current_phase = stage
    await db_session.commit()


@pytest.mark.asyncio
async def test_request_advance(db_session, project):
    lifecycle = ApprovalLifecycle(db_session)
    transition = await lifecycle.coordinator.request_advance(
        project.project_id, ProjectStage.DEVELOPMENT, PM
    )

    assert transition.status == ApprovalStatus.PENDING
    assert transition.from_stage == "design"
    assert transition.to_stage == "development"
    assert transition.direction == TransitionDirection.ADVANCE

    approval = await lifecycle.approvals.get(transition.approval_id)
    assert approval.kind == ApprovalKind.STAGE_TRANSITION
    assert approval.requested_to == CLIENT.id
    assert approval.project_id == project.project_id

    entries = await AuditLogRepository(db_session).list_for_entity("stage_transition", transition.transition_id)
    assert [e.action for e in entries] == ["stage_transition.requested"]


@pytest.mark.asyncio
async def test_request_advance_second_pending_conflicts(db_session, project):
    coordinator = ApprovalLifecycle(db_session).coordinator
    await coordinator.request_advance(project.project_id, ProjectStage.DEVELOPMENT, PM)

    with pytest.raises(ConflictError):
        await coordinator.request_advance(project.project_id, ProjectStage.DEVELOPMENT, PM)


@pytest.mark.asyncio
async def test_request_advance_rejects_jump(db_session, project):
    coordinator = ApprovalLifecycle(db_session).coordinator
    with pytest.raises(ValidationError):
        await coordinator.request_advance(project.project_id, ProjectStage.TESTING, PM)


@pytest.mark.asyncio
async def test_request_advance_needs_reviewer(db_session, project):
    project.reviewer_id = None
    await db_session.commit()
    coordinator = ApprovalLifecycle(db_session).coordinator

    with pytest.raises(ValidationError):
        await coordinator.request_advance(project.project_id, ProjectStage.DEVELOPMENT, PM)

    transition = await coordinator.request_advance(
        project.project_id, ProjectStage.DEVELOPMENT, PM, requested_to=LEAD.id
    )
    approval = await coordinator.lifecycle.approvals.get(transition.approval_id)
    assert approval.requested_to == LEAD.id


@pytest.mark.asyncio
async def test_request_advance_role_and_project_checks(db_session, project):
    coordinator = ApprovalLifecycle(db_session).coordinator
    with pytest.raises(ForbiddenError):
        await coordinator.request_advance(project.project_id, ProjectStage.DEVELOPMENT, DESIGNER)
    with pytest.raises(NotFoundError):
        await coordinator.request_advance("proj_missing", ProjectStage.DEVELOPMENT, PM)

    # An admin outside the project may still request
    transition = await coordinator.request_advance(project.project_id, ProjectStage.DEVELOPMENT, ADMIN)
    assert transition.requested_by == ADMIN.id


@pytest.mark.asyncio
async def test_approval_moves_project(db_session, project):
    lifecycle = ApprovalLifecycle(db_session)
    transition = await lifecycle.coordinator.request_advance(
        project.project_id, ProjectStage.DEVELOPMENT, PM
    )

    await lifecycle.decide(transition.approval_id, CLIENT, DecisionOutcome.APPROVE, "Go ahead")

    moved = await db_session.get(ProjectRow, project.project_id)
    assert moved.current_phase == "development"
    assert moved.progress == STAGE_PROGRESS[ProjectStage.DEVELOPMENT]
    assert moved.status == "active"

    decided = await lifecycle.coordinator.get(transition.transition_id, PM)
    assert decided.status == ApprovalStatus.APPROVED
    assert decided.approved_by == CLIENT.id
    assert decided.decided_at is not None

    project_trail = await AuditLogRepository(db_session).list_for_entity("project", project.project_id)
    assert [e.action for e in project_trail] == ["project.phase_changed"]
    assert project_trail[0].extra_data["to_stage"] == "development"


@pytest.mark.asyncio
async def test_rejection_leaves_project_in_place(db_session, project):
    lifecycle = ApprovalLifecycle(db_session)
    transition = await lifecycle.coordinator.request_advance(
        project.project_id, ProjectStage.DEVELOPMENT, PM
    )

    await lifecycle.decide(transition.approval_id, CLIENT, DecisionOutcome.REJECT, "Designs not signed off")

    unchanged = await db_session.get(ProjectRow, project.project_id)
    assert unchanged.current_phase == "design"
    rejected = await lifecycle.coordinator.get(transition.transition_id, PM)
    assert rejected.status == ApprovalStatus.REJECTED
    assert rejected.approved_by is None

    # A new request is allowed once the previous one is decided
    again = await lifecycle.coordinator.request_advance(project.project_id, ProjectStage.DEVELOPMENT, PM)
    assert again.transition_id != transition.transition_id


@pytest.mark.asyncio
async def test_completion_and_rollback_update_status(db_session, project):
    await _move_to(db_session, project, "testing")
    lifecycle = ApprovalLifecycle(db_session)

    forward = await lifecycle.coordinator.request_advance(project.project_id, ProjectStage.COMPLETED, PM)
    await lifecycle.decide(forward.approval_id, CLIENT, DecisionOutcome.APPROVE)
    done = await db_session.get(ProjectRow, project.project_id)
    assert (done.current_phase, done.status, done.progress) == ("completed", "completed", 100)

    back = await lifecycle.coordinator.request_advance(project.project_id, ProjectStage.TESTING, PM)
    assert back.direction == TransitionDirection.ROLLBACK
    await lifecycle.decide(back.approval_id, CLIENT, DecisionOutcome.APPROVE)
    reopened = await db_session.get(ProjectRow, project.project_id)
    assert (reopened.current_phase, reopened.status, reopened.progress) == ("testing", "active", 60)


@pytest.mark.asyncio
async def test_phase_moved_underneath_rolls_back_decision(db_session, project):
    lifecycle = ApprovalLifecycle(db_session)
    transition = await lifecycle.coordinator.request_advance(
        project.project_id, ProjectStage.DEVELOPMENT, PM
    )
    await _move_to(db_session, project, "testing")
    # The failed decision rolls the session back and expires loaded rows
    approval_id, transition_id, project_id = transition.approval_id, transition.transition_id, project.project_id

    with pytest.raises(ConflictError):
        await lifecycle.decide(approval_id, CLIENT, DecisionOutcome.APPROVE)

    assert await lifecycle.approvals.current_status(approval_id) == ApprovalStatus.PENDING
    pending = await lifecycle.coordinator.transitions.get_pending_for_project(project_id)
    assert pending.transition_id == transition_id
    current = await db_session.get(ProjectRow, project_id)
    assert current.current_phase == "testing"


@pytest.mark.asyncio
async def test_stage_decision_notifies_subscribers(db_session, project):
    lifecycle = ApprovalLifecycle(db_session)
    transition = await lifecycle.coordinator.request_advance(
        project.project_id, ProjectStage.DEVELOPMENT, PM
    )
    await lifecycle.decide(transition.approval_id, CLIENT, DecisionOutcome.APPROVE)

    notifications = NotificationRepository(db_session)
    for user in (PM, DESIGNER, DEVELOPER):
        inbox = await notifications.list_for_recipient(user.id)
        assert [n.event_type for n in inbox] == [PROJECT_STAGE_CHANGED], user.id
    # Opted out of phase-change notifications
    assert await notifications.list_for_recipient(LEAD.id) == []


@pytest.mark.asyncio
async def test_transition_history_visibility(db_session, project):
    coordinator = ApprovalLifecycle(db_session).coordinator
    await coordinator.request_advance(project.project_id, ProjectStage.DEVELOPMENT, PM)

    history = await coordinator.list_for_project(project.project_id, DEVELOPER)
    assert len(history) == 1
    with pytest.raises(ForbiddenError):
        await coordinator.list_for_project(project.project_id, OUTSIDER)
    with pytest.raises(NotFoundError):
        await coordinator.get("stx_missing", PM)


@pytest.mark.asyncio
async def test_unique_index_backs_up_pending_check(db_session, project, monkeypatch):
    coordinator = ApprovalLifecycle(db_session).coordinator
    first = await coordinator.request_advance(project.project_id, ProjectStage.DEVELOPMENT, PM)
    project_id, first_id = project.project_id, first.transition_id

    async def no_pending(project_id):
        return None

    # Simulate a concurrent request that passed the pre-check at the same time
    monkeypatch.setattr(coordinator.transitions, "get_pending_for_project", no_pending)
    with pytest.raises(ConflictError):
        await coordinator.request_advance(project_id, ProjectStage.DEVELOPMENT, PM)

    history = await coordinator.transitions.list_by_project(project_id)
    assert [t.transition_id for t in history] == [first_id]
