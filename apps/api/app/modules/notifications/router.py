from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from app.core.auth import Actor, get_actor

from .schemas import NotificationOut, NotificationsListOut
from .service import list_notifications, mark_read

router = APIRouter(tags=["notifications"])


@router.get("/notifications", response_model=NotificationsListOut)
def api_list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    actor: Actor = Depends(get_actor),
) -> NotificationsListOut:
    return NotificationsListOut(**list_notifications(actor, unread_only=unread_only, limit=limit))


@router.post("/notifications/{notification_id}/read", response_model=NotificationOut)
def api_mark_read(notification_id: str, actor: Actor = Depends(get_actor)) -> NotificationOut:
    return mark_read(actor, notification_id)
