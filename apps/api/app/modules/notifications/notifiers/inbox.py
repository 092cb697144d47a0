from __future__ import annotations

import json
from typing import Any, Dict, Optional

from app.core.db import new_ulid, now_iso, write_transaction


class InboxNotifier:
    """In-app inbox: one row in `notifications` per delivery, in its own transaction."""
    name = "inbox"

    def notify(self, *, user_id: str, event_kind: str, payload: Dict[str, Any], request_id: Optional[str]) -> None:
        with write_transaction(__name__) as conn:
            conn.execute(
                "INSERT INTO notifications (id, user_id, event_kind, payload_json, is_read, created_at) VALUES (?,?,?,?,0,?);",
                (new_ulid(), user_id, event_kind, json.dumps(payload, ensure_ascii=False), now_iso()),
            )
