"""Project and project membership tables."""

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from agencyflow.db.base import Base, TimestampMixin


class ProjectRow(Base, TimestampMixin):
    __tablename__ = "projects"

    project_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    manager_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    client_id: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)
    # Designated stage-gate reviewer (internal lead or the client)
    reviewer_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    # Only StageTransitionCoordinator writes the next three columns
    current_phase: Mapped[str] = mapped_column(String(50), nullable=False, default="design")
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="active")
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class ProjectMemberRow(Base, TimestampMixin):
    __tablename__ = "project_members"
    __table_args__ = (UniqueConstraint("project_id", "user_id", name="uq_project_members_user"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("projects.project_id"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    role: Mapped[str | None] = mapped_column(String(50), nullable=True)
    notify_phase_changes: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
