"""Notification read model."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from jobboard.core.domain_types import NotificationType


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    title: str
    message: str
    type: NotificationType
    read: bool
    created_at: datetime
