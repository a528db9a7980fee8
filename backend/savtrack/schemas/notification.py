import uuid
from datetime import datetime

from pydantic import BaseModel


class UnifiedNotificationResponse(BaseModel):
    id: str
    type: str
    title: str
    message: str
    icon: str
    created_at: datetime
    read: bool
    case_id: uuid.UUID | None
    part_id: uuid.UUID | None
    notification_type: str | None
    unread_count: int

    model_config = {"from_attributes": True}


class NotificationFeedResponse(BaseModel):
    items: list[UnifiedNotificationResponse]
    total_unread_count: int
    notification_unread_count: int
    sav_unread_count: int

    model_config = {"from_attributes": True}


class MessageResponse(BaseModel):
    message: str
