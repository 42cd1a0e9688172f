"""Pydantic models for stage transitions."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from agencyflow.models.enums import ApprovalPriority, ApprovalStatus, ProjectStage, TransitionDirection


class StageTransitionCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    target_stage: ProjectStage
    requested_to: str | None = None
    description: str | None = Field(None, max_length=10000)
    priority: ApprovalPriority = ApprovalPriority.MEDIUM


class StageTransitionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    transition_id: str
    project_id: str
    approval_id: str
    from_stage: ProjectStage
    to_stage: ProjectStage
    direction: TransitionDirection
    requested_by: str
    approved_by: str | None = None
    status: ApprovalStatus
    decided_at: datetime | None = None
    created_at: datetime | None = None
