from __future__ import annotations

import json
import sqlite3
from typing import Any, Dict, Iterable, Optional

from app.core.auth import Actor
from app.core.db import read_connection, write_transaction
from app.core.errors import NotFoundError
from app.core.logs import emit

from .notifiers.registry import get_notifier, is_notifications_enabled

EVENT_POST_UNHIDDEN = "post_unhidden"


def notify_best_effort(
    user_ids: Iterable[str],
    event_kind: str,
    payload: Dict[str, Any],
    request_id: Optional[str] = None,
) -> int:
    """
    Deliver one event to each user; returns how many deliveries succeeded.

    Must be called after the triggering write has committed. A failed
    delivery is logged and skipped; it never propagates.
    """
    if not is_notifications_enabled():
        return 0

    notifier = get_notifier()
    delivered = 0
    for uid in sorted(set(user_ids)):
        try:
            notifier.notify(user_id=uid, event_kind=event_kind, payload=payload, request_id=request_id)
            delivered += 1
        except Exception as e:
            emit(
                "warn",
                "notify.failed",
                str(e),
                request_id,
                __name__,
                notifier=getattr(notifier, "name", type(notifier).__name__),
                user_id=uid,
                event_kind=event_kind,
            )
    return delivered


def _row_to_notification(row: sqlite3.Row) -> Dict[str, Any]:
    d = dict(row)
    d["payload"] = json.loads(d.pop("payload_json") or "{}")
    d["is_read"] = bool(d.get("is_read"))
    return d


def list_notifications(actor: Actor, unread_only: bool = False, limit: int = 50) -> Dict[str, Any]:
    limit = max(1, min(int(limit), 200))
    with read_connection() as conn:
        where = "WHERE user_id=?"
        if unread_only:
            where += " AND is_read=0"
        rows = conn.execute(
            f"SELECT * FROM notifications {where} ORDER BY created_at DESC, id DESC LIMIT ?;",
            (actor.user_id, limit),
        ).fetchall()
        unread = conn.execute(
            "SELECT COUNT(1) AS n FROM notifications WHERE user_id=? AND is_read=0;",
            (actor.user_id,),
        ).fetchone()
        return {"items": [_row_to_notification(r) for r in rows], "unread": int(unread["n"])}


def mark_read(actor: Actor, notification_id: str) -> Dict[str, Any]:
    with write_transaction(__name__) as conn:
        row = conn.execute(
            "SELECT * FROM notifications WHERE id=? AND user_id=?;",
            (notification_id, actor.user_id),
        ).fetchone()
        if not row:
            raise NotFoundError("notification not found")
        conn.execute("UPDATE notifications SET is_read=1 WHERE id=?;", (notification_id,))
        row = conn.execute("SELECT * FROM notifications WHERE id=?;", (notification_id,)).fetchone()
        return _row_to_notification(row)
