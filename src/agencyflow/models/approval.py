"""Pydantic models for approval requests, decisions and batch results."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from agencyflow.models.enums import (
    ApprovalKind,
    ApprovalPriority,
    ApprovalSortField,
    ApprovalStatus,
    DecisionOutcome,
    SortOrder,
)


class Attachment(BaseModel):
    """Reference to a file held by the attachment store; opaque to the workflow."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, max_length=300)
    kind: str = Field(..., min_length=1, max_length=100)
    url: str = Field(..., min_length=1, max_length=2000)
    size: int = Field(..., ge=0)


class ApprovalCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    kind: ApprovalKind
    title: str = Field(..., min_length=1, max_length=300)
    description: str | None = None
    project_id: str | None = None
    requested_to: str | None = None
    attachments: list[Attachment] = Field(default_factory=list)
    priority: ApprovalPriority = ApprovalPriority.MEDIUM


class ApprovalDecisionBody(BaseModel):
    model_config = ConfigDict(extra="forbid")

    outcome: DecisionOutcome
    # Decision notes on approve, rejection reason on reject
    notes: str | None = Field(None, max_length=10000)


class BatchDecisionBody(BaseModel):
    model_config = ConfigDict(extra="forbid")

    approval_ids: list[str]
    outcome: DecisionOutcome
    notes: str | None = Field(None, max_length=10000)


class ApprovalNoteCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    content: str = Field(..., min_length=1, max_length=10000)


class ApprovalRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    approval_id: str
    kind: ApprovalKind
    title: str
    description: str | None = None
    project_id: str | None = None
    requested_by: str
    requested_to: str
    status: ApprovalStatus
    priority: ApprovalPriority
    attachments: list[Attachment] = Field(default_factory=list)
    decision_notes: str | None = None
    rejection_reason: str | None = None
    decided_by: str | None = None
    decided_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ApprovalNoteOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    note_id: str
    approval_id: str
    author_id: str
    content: str
    created_at: datetime | None = None


class ApprovalFilter(BaseModel):
    """AND-combined listing filter; a field left as None places no constraint."""

    status: ApprovalStatus | None = None
    kind: ApprovalKind | None = None
    project_id: str | None = None
    priority: ApprovalPriority | None = None
    requested_by: str | None = None
    requested_to: str | None = None


class ApprovalSort(BaseModel):
    field: ApprovalSortField = ApprovalSortField.CREATED_AT
    order: SortOrder = SortOrder.DESC


class BatchItemFailureOut(BaseModel):
    approval_id: str
    error_kind: str
    message: str


class BatchResultOut(BaseModel):
    batch_id: str
    succeeded: list[str]
    failed: list[BatchItemFailureOut]
    total: int
    summary: str
