"""Notification Pydantic schemas."""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel


class NotificationOut(BaseModel):
    id: int
    type: str
    title: str
    message: str
    data: Optional[dict[str, Any]] = None
    link: Optional[str] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class NotificationInbox(BaseModel):
    unread_count: int
    notifications: List[NotificationOut]
