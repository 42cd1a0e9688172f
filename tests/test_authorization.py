"""AuthorizationGate create/decide/view predicates."""

import pytest

from agencyflow.db.models.approval import ApprovalRequestRow
from agencyflow.errors.exceptions import ForbiddenError
from agencyflow.models.actor import Actor
from agencyflow.models.enums import ApprovalKind
from agencyflow.repositories.project_repo import ProjectScope
from agencyflow.services.authorization import AuthorizationGate

from conftest import ADMIN, CLIENT, DESIGNER, DEVELOPER, LEAD, OUTSIDER, PM

SCOPE = ProjectScope(
    project_id="proj_1",
    manager_id=PM.id,
    client_id=CLIENT.id,
    member_ids=frozenset({DESIGNER.id, DEVELOPER.id, LEAD.id}),
)


def _request(**overrides) -> ApprovalRequestRow:
    fields = dict(
        approval_id="appr_1",
        kind="design",
        title="Homepage mockups",
        project_id="proj_1",
        requested_by=DESIGNER.id,
        requested_to=CLIENT.id,
        status="pending",
        priority="medium",
    )
    fields.update(overrides)
    return ApprovalRequestRow(**fields)


@pytest.fixture
def gate():
    return AuthorizationGate(admin_roles=["admin"])


@pytest.mark.parametrize(
    "actor, kind, allowed",
    [
        (PM, ApprovalKind.STAGE_TRANSITION, True),
        (ADMIN, ApprovalKind.STAGE_TRANSITION, True),
        (DESIGNER, ApprovalKind.STAGE_TRANSITION, False),
        (LEAD, ApprovalKind.STAGE_TRANSITION, False),
        (DESIGNER, ApprovalKind.DESIGN, True),
        (LEAD, ApprovalKind.DESIGN, True),
        (DEVELOPER, ApprovalKind.DESIGN, False),
        (DEVELOPER, ApprovalKind.DELIVERABLE, True),
        (CLIENT, ApprovalKind.DELIVERABLE, False),
        (CLIENT, ApprovalKind.GENERIC, True),
    ],
)
def test_can_create_by_role(gate, actor, kind, allowed):
    assert gate.can_create(actor, kind, SCOPE) is allowed


def test_can_create_requires_project_membership(gate):
    assert gate.can_create(OUTSIDER, ApprovalKind.DELIVERABLE, SCOPE) is False
    assert gate.can_create(OUTSIDER, ApprovalKind.DELIVERABLE, None) is True


def test_admin_bypasses_membership(gate):
    stranger_admin = Actor("u_other_admin", "admin")
    assert gate.can_create(stranger_admin, ApprovalKind.STAGE_TRANSITION, SCOPE) is True


def test_unknown_role_cannot_create(gate):
    assert gate.can_create(Actor("u_bot", "robot"), ApprovalKind.GENERIC, None) is False


def test_only_designated_reviewer_or_admin_decides(gate):
    request = _request()
    assert gate.can_decide(CLIENT, request) is True
    assert gate.can_decide(ADMIN, request) is True
    assert gate.can_decide(DESIGNER, request) is False
    assert gate.can_decide(PM, request) is False


def test_can_view(gate):
    request = _request()
    assert gate.can_view(DESIGNER, request) is True
    assert gate.can_view(CLIENT, request) is True
    assert gate.can_view(DEVELOPER, request) is False
    assert gate.can_view(DEVELOPER, request, SCOPE) is True
    assert gate.can_view(OUTSIDER, request, SCOPE) is False
    assert gate.can_view(ADMIN, request) is True


def test_ensure_helpers_raise_forbidden(gate):
    with pytest.raises(ForbiddenError):
        gate.ensure_can_decide(DESIGNER, _request())
    with pytest.raises(ForbiddenError):
        gate.ensure_can_view(OUTSIDER, _request(), SCOPE)
    with pytest.raises(ForbiddenError) as exc_info:
        gate.ensure_can_create(CLIENT, ApprovalKind.DESIGN, SCOPE)
    assert exc_info.value.status_code == 403


def test_custom_admin_roles():
    gate = AuthorizationGate(admin_roles=["admin", "project_manager"])
    assert gate.can_decide(PM, _request()) is True
