"""SQLAlchemy ORM models - import all to register with Base.metadata."""

from agencyflow.db.models.project import ProjectMemberRow, ProjectRow
from agencyflow.db.models.approval import ApprovalNoteRow, ApprovalRequestRow
from agencyflow.db.models.stage_transition import StageTransitionRow
from agencyflow.db.models.audit import AuditLogRow
from agencyflow.db.models.notification import NotificationRow

__all__ = [
    "ProjectRow",
    "ProjectMemberRow",
    "ApprovalRequestRow",
    "ApprovalNoteRow",
    "StageTransitionRow",
    "AuditLogRow",
    "NotificationRow",
]
