from __future__ import annotations

from typing import Any, Dict, List
from pydantic import BaseModel, Field


class NotificationOut(BaseModel):
    id: str
    user_id: str
    event_kind: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    is_read: bool = False
    created_at: str


class NotificationsListOut(BaseModel):
    items: List[NotificationOut]
    unread: int = 0
