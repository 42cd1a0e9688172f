"""Role and relationship predicates for approvals and stage transitions.

AuthorizationGate holds the create/decide/view predicates, computed from the
actor's role and its relationship to the request and the owning project.
It trusts the Actor it is given; verifying credentials is the identity
provider's job.
"""

from collections.abc import Iterable

from agencyflow.config import settings
from agencyflow.db.models.approval import ApprovalRequestRow
from agencyflow.errors.exceptions import ForbiddenError
from agencyflow.models.actor import Actor
from agencyflow.models.enums import ApprovalKind, Role
from agencyflow.repositories.project_repo import ProjectScope

_INTERNAL_ROLES = frozenset(
    {
        Role.ADMIN,
        Role.PROJECT_MANAGER,
        Role.TEAM_LEAD,
        Role.DESIGNER,
        Role.DEVELOPER,
        Role.TESTER,
    }
)

ALLOWED_REQUESTERS: dict[ApprovalKind, frozenset[str]] = {
    ApprovalKind.STAGE_TRANSITION: frozenset({Role.PROJECT_MANAGER, Role.ADMIN}),
    ApprovalKind.DESIGN: frozenset({Role.DESIGNER, Role.TEAM_LEAD, Role.PROJECT_MANAGER, Role.ADMIN}),
    ApprovalKind.DELIVERABLE: _INTERNAL_ROLES,
    ApprovalKind.GENERIC: _INTERNAL_ROLES | {Role.CLIENT},
}


class AuthorizationGate:
    def __init__(self, admin_roles: Iterable[str] | None = None):
        self.admin_roles = frozenset(admin_roles if admin_roles is not None else settings.admin_roles)

    def is_admin(self, actor: Actor) -> bool:
        return actor.role in self.admin_roles

    def can_create(self, actor: Actor, kind: ApprovalKind, project: ProjectScope | None) -> bool:
        if actor.role not in ALLOWED_REQUESTERS.get(ApprovalKind(kind), frozenset()):
            return False
        if project is None or self.is_admin(actor):
            return True
        return project.involves(actor.id)

    def can_decide(self, actor: Actor, request: ApprovalRequestRow) -> bool:
        return actor.id == request.requested_to or self.is_admin(actor)

    def can_view(
        self, actor: Actor, request: ApprovalRequestRow, project: ProjectScope | None = None
    ) -> bool:
        if self.is_admin(actor):
            return True
        if actor.id in (request.requested_by, request.requested_to):
            return True
        return project is not None and project.involves(actor.id)

    def ensure_can_create(self, actor: Actor, kind: ApprovalKind, project: ProjectScope | None) -> None:
        if not self.can_create(actor, kind, project):
            raise ForbiddenError(f"Role '{actor.role}' may not request a {ApprovalKind(kind).value} approval here")

    def ensure_can_decide(self, actor: Actor, request: ApprovalRequestRow) -> None:
        if not self.can_decide(actor, request):
            raise ForbiddenError(f"Only the designated reviewer may decide approval '{request.approval_id}'")

    def ensure_can_view(
        self, actor: Actor, request: ApprovalRequestRow, project: ProjectScope | None = None
    ) -> None:
        if not self.can_view(actor, request, project):
            raise ForbiddenError(f"Not allowed to view approval '{request.approval_id}'")
