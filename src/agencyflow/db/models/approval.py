"""Approval request and supplementary note tables."""

from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from agencyflow.db.base import Base, TimestampMixin


class ApprovalRequestRow(Base, TimestampMixin):
    __tablename__ = "approval_requests"

    approval_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    kind: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    project_id: Mapped[str | None] = mapped_column(
        String(128), ForeignKey("projects.project_id"), nullable=True, index=True
    )
    requested_by: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    requested_to: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending", index=True)
    priority: Mapped[str] = mapped_column(String(20), nullable=False, default="medium")
    attachments: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    # Written once, together with status, by ApprovalRequestRepository.mark_decided
    decision_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    decided_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    decided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class ApprovalNoteRow(Base, TimestampMixin):
    __tablename__ = "approval_notes"

    note_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    approval_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("approval_requests.approval_id"), nullable=False, index=True
    )
    author_id: Mapped[str] = mapped_column(String(128), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
