"""Pydantic models for notifications and audit entries."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict


class NotificationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    notification_id: str
    recipient_id: str
    sender_id: str | None = None
    project_id: str | None = None
    event_type: str
    title: str
    body: str
    related_entity_type: str | None = None
    related_entity_id: str | None = None
    is_read: bool
    link: str | None = None
    created_at: datetime | None = None


class AuditLogEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    entry_id: str
    user_id: str
    action: str
    entity_type: str
    entity_id: str
    timestamp: datetime
    extra_data: dict[str, Any] | None = None
