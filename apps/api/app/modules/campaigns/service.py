from __future__ import annotations

import sqlite3
from typing import Any, Dict, Optional

from app.core.auth import Actor
from app.core.db import new_ulid, now_iso, read_connection, write_transaction
from app.core.errors import AuthorizationError, InvalidStateError, NotFoundError
from app.core.logs import emit

ROLE_GM = "gm"
ROLE_PLAYER = "player"


# --- lookups (shared by the other modules, always inside a caller's connection) ---
def get_campaign_row(conn: sqlite3.Connection, campaign_id: str) -> sqlite3.Row:
    row = conn.execute("SELECT * FROM campaigns WHERE id=?;", (campaign_id,)).fetchone()
    if not row:
        raise NotFoundError("campaign not found")
    return row


def role_of(conn: sqlite3.Connection, campaign_id: str, user_id: str) -> Optional[str]:
    row = conn.execute(
        "SELECT role FROM campaign_members WHERE campaign_id=? AND user_id=?;",
        (campaign_id, user_id),
    ).fetchone()
    return str(row["role"]) if row else None


def require_member(conn: sqlite3.Connection, campaign_id: str, user_id: str) -> str:
    role = role_of(conn, campaign_id, user_id)
    if role is None:
        raise AuthorizationError("user is not a member of this campaign", code="not_member")
    return role


def require_gm(conn: sqlite3.Connection, campaign_id: str, user_id: str, action: str = "perform this action") -> None:
    role = require_member(conn, campaign_id, user_id)
    if role != ROLE_GM:
        raise AuthorizationError(f"only the GM can {action}", code="not_gm")


def _row_to_campaign(row: sqlite3.Row) -> Dict[str, Any]:
    return dict(row)


def _row_to_member(row: sqlite3.Row) -> Dict[str, Any]:
    d = dict(row)
    d.pop("id", None)
    return d


# -------------------------
# Campaigns
# -------------------------
def create_campaign(actor: Actor, title: str) -> Dict[str, Any]:
    now = now_iso()
    cid = new_ulid()
    with write_transaction(__name__) as conn:
        conn.execute(
            "INSERT INTO campaigns (id, title, current_phase, created_by, created_at, updated_at) VALUES (?,?,?,?,?,?);",
            (cid, title, "gm_phase", actor.user_id, now, now),
        )
        conn.execute(
            "INSERT INTO campaign_members (id, campaign_id, user_id, role, created_at) VALUES (?,?,?,?,?);",
            (new_ulid(), cid, actor.user_id, ROLE_GM, now),
        )
        row = get_campaign_row(conn, cid)
    emit("info", "campaign.created", f"campaign {cid} created", actor.request_id, __name__, campaign_id=cid)
    return _row_to_campaign(row)


def get_campaign(actor: Actor, campaign_id: str) -> Dict[str, Any]:
    with read_connection() as conn:
        row = get_campaign_row(conn, campaign_id)
        my_role = require_member(conn, campaign_id, actor.user_id)
        members = conn.execute(
            "SELECT * FROM campaign_members WHERE campaign_id=? ORDER BY created_at ASC, user_id ASC;",
            (campaign_id,),
        ).fetchall()
        return {
            "campaign": _row_to_campaign(row),
            "members": [_row_to_member(m) for m in members],
            "my_role": my_role,
        }


def add_member(actor: Actor, campaign_id: str, user_id: str, role: str = ROLE_PLAYER) -> Dict[str, Any]:
    with write_transaction(__name__) as conn:
        get_campaign_row(conn, campaign_id)
        require_gm(conn, campaign_id, actor.user_id, "add members")
        if role_of(conn, campaign_id, user_id) is not None:
            raise InvalidStateError("user is already a member of this campaign", code="already_member")
        conn.execute(
            "INSERT INTO campaign_members (id, campaign_id, user_id, role, created_at) VALUES (?,?,?,?,?);",
            (new_ulid(), campaign_id, user_id, role, now_iso()),
        )
        row = conn.execute(
            "SELECT * FROM campaign_members WHERE campaign_id=? AND user_id=?;",
            (campaign_id, user_id),
        ).fetchone()
    return _row_to_member(row)
