"""Pydantic models for projects and membership."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from agencyflow.models.enums import ProjectStage, ProjectStatus


class ProjectCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    manager_id: str | None = None
    client_id: str | None = None
    reviewer_id: str | None = None


class ProjectMemberCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    user_id: str = Field(..., min_length=1)
    role: str | None = None
    notify_phase_changes: bool = True


class ReviewerUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    reviewer_id: str = Field(..., min_length=1)


class ProjectOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    project_id: str
    name: str
    description: str | None = None
    manager_id: str
    client_id: str | None = None
    reviewer_id: str | None = None
    current_phase: ProjectStage
    status: ProjectStatus
    progress: int
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ProjectMemberOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    project_id: str
    user_id: str
    role: str | None = None
    notify_phase_changes: bool
