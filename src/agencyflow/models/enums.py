"""String enums for the approval workflow."""

from enum import StrEnum


class ApprovalKind(StrEnum):
    DESIGN = "design"
    DELIVERABLE = "deliverable"
    STAGE_TRANSITION = "stage_transition"
    GENERIC = "generic"


class ApprovalStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ApprovalPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class DecisionOutcome(StrEnum):
    APPROVE = "approve"
    REJECT = "reject"


class ProjectStage(StrEnum):
    DESIGN = "design"
    DEVELOPMENT = "development"
    TESTING = "testing"
    COMPLETED = "completed"


class ProjectStatus(StrEnum):
    ACTIVE = "active"
    COMPLETED = "completed"


class TransitionDirection(StrEnum):
    ADVANCE = "advance"
    ROLLBACK = "rollback"


class Role(StrEnum):
    ADMIN = "admin"
    PROJECT_MANAGER = "project_manager"
    TEAM_LEAD = "team_lead"
    DESIGNER = "designer"
    DEVELOPER = "developer"
    TESTER = "tester"
    CLIENT = "client"


class EntityType(StrEnum):
    APPROVAL_REQUEST = "approval_request"
    STAGE_TRANSITION = "stage_transition"
    PROJECT = "project"


class AuditAction(StrEnum):
    APPROVAL_CREATED = "approval.created"
    APPROVAL_APPROVED = "approval.approved"
    APPROVAL_REJECTED = "approval.rejected"
    APPROVAL_NOTE_ADDED = "approval.note_added"
    BATCH_ITEM_SUCCEEDED = "batch.item_succeeded"
    BATCH_ITEM_FAILED = "batch.item_failed"
    STAGE_TRANSITION_REQUESTED = "stage_transition.requested"
    STAGE_TRANSITION_APPROVED = "stage_transition.approved"
    STAGE_TRANSITION_REJECTED = "stage_transition.rejected"
    PROJECT_PHASE_CHANGED = "project.phase_changed"


class ApprovalSortField(StrEnum):
    CREATED_AT = "created_at"
    UPDATED_AT = "updated_at"
    PRIORITY = "priority"


class SortOrder(StrEnum):
    ASC = "asc"
    DESC = "desc"
