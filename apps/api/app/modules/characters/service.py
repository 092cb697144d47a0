from __future__ import annotations

import sqlite3
from typing import Any, Dict, Iterable, List, Optional

from app.core.auth import Actor
from app.core.db import new_ulid, now_iso, read_connection, write_transaction
from app.core.errors import InvalidStateError, NotFoundError, ValidationError
from app.core.logs import emit
from app.modules.campaigns.service import get_campaign_row, require_gm, require_member, role_of
from app.modules.scenes import roster

from .models import Character

CHARACTER_TYPES = ("pc", "npc")


# --- db helpers ---
def load_character(conn: sqlite3.Connection, character_id: str) -> Character:
    row = conn.execute("SELECT * FROM characters WHERE id=?;", (character_id,)).fetchone()
    if not row:
        raise NotFoundError("character not found")
    d = dict(row)
    d["is_archived"] = bool(d.get("is_archived"))
    return Character(**d)


def _character_out(conn: sqlite3.Connection, c: Character) -> Dict[str, Any]:
    d = c.model_dump()
    d["scene_id"] = roster.scene_of(conn, c.id)
    return d


def owners_of(conn: sqlite3.Connection, character_ids: Iterable[str]) -> Dict[str, Optional[str]]:
    ids = sorted(set(character_ids))
    if not ids:
        return {}
    rows = conn.execute(
        f"SELECT id, owner_user_id FROM characters WHERE id IN ({','.join(['?'] * len(ids))});",
        ids,
    ).fetchall()
    return {str(r["id"]): (str(r["owner_user_id"]) if r["owner_user_id"] else None) for r in rows}


def _require_assignable(conn: sqlite3.Connection, campaign_id: str, owner_user_id: Optional[str]) -> None:
    if owner_user_id is None:
        return
    if role_of(conn, campaign_id, owner_user_id) is None:
        raise ValidationError("owner must be a member of the campaign", code="owner_not_member")


# -------------------------
# Characters
# -------------------------
def create_character(
    actor: Actor,
    campaign_id: str,
    display_name: str,
    character_type: str = "pc",
    owner_user_id: Optional[str] = None,
) -> Dict[str, Any]:
    if character_type not in CHARACTER_TYPES:
        raise ValidationError("invalid character_type")

    with write_transaction(__name__) as conn:
        get_campaign_row(conn, campaign_id)
        require_gm(conn, campaign_id, actor.user_id, "create characters")
        _require_assignable(conn, campaign_id, owner_user_id)

        now = now_iso()
        cid = new_ulid()
        conn.execute(
            """
            INSERT INTO characters (id, campaign_id, display_name, character_type, owner_user_id, is_archived, created_at, updated_at)
            VALUES (?,?,?,?,?,0,?,?);
            """,
            (cid, campaign_id, display_name, character_type, owner_user_id, now, now),
        )
        return _character_out(conn, load_character(conn, cid))


def list_characters(actor: Actor, campaign_id: str, include_archived: bool = False) -> List[Dict[str, Any]]:
    with read_connection() as conn:
        get_campaign_row(conn, campaign_id)
        require_member(conn, campaign_id, actor.user_id)
        where = "WHERE campaign_id=?"
        if not include_archived:
            where += " AND is_archived=0"
        rows = conn.execute(
            f"SELECT id FROM characters {where} ORDER BY display_name ASC, id ASC;",
            (campaign_id,),
        ).fetchall()
        return [_character_out(conn, load_character(conn, r["id"])) for r in rows]


def assign_character(actor: Actor, character_id: str, owner_user_id: Optional[str]) -> Dict[str, Any]:
    """
    Reassign (or orphan) a character.

    Witness lists name characters, not users, so the new owner inherits
    everything the character has ever witnessed.
    """
    with write_transaction(__name__) as conn:
        c = load_character(conn, character_id)
        require_gm(conn, c.campaign_id, actor.user_id, "assign characters")
        _require_assignable(conn, c.campaign_id, owner_user_id)

        conn.execute(
            "UPDATE characters SET owner_user_id=?, updated_at=? WHERE id=?;",
            (owner_user_id, now_iso(), character_id),
        )
        out = _character_out(conn, load_character(conn, character_id))

    emit(
        "info",
        "character.reassigned",
        f"character {character_id} reassigned",
        actor.request_id,
        __name__,
        character_id=character_id,
        from_user_id=c.owner_user_id,
        to_user_id=owner_user_id,
    )
    return out


def archive_character(actor: Actor, character_id: str) -> Dict[str, Any]:
    with write_transaction(__name__) as conn:
        c = load_character(conn, character_id)
        require_gm(conn, c.campaign_id, actor.user_id, "archive characters")

        left_scene = roster.scene_of(conn, character_id)
        if left_scene is not None:
            roster.remove_from_scene(conn, character_id, left_scene)
        conn.execute(
            "UPDATE characters SET is_archived=1, updated_at=? WHERE id=?;",
            (now_iso(), character_id),
        )
        out = _character_out(conn, load_character(conn, character_id))

    emit(
        "info",
        "character.archived",
        f"character {character_id} archived",
        actor.request_id,
        __name__,
        character_id=character_id,
        left_scene_id=left_scene,
    )
    return out


def unarchive_character(actor: Actor, character_id: str) -> Dict[str, Any]:
    """Bring an archived character back. It rejoins no roster; the GM places it again."""
    with write_transaction(__name__) as conn:
        c = load_character(conn, character_id)
        require_gm(conn, c.campaign_id, actor.user_id, "unarchive characters")
        if not c.is_archived:
            raise InvalidStateError("character is not archived", code="character_not_archived")
        conn.execute(
            "UPDATE characters SET is_archived=0, updated_at=? WHERE id=?;",
            (now_iso(), character_id),
        )
        out = _character_out(conn, load_character(conn, character_id))

    emit("info", "character.unarchived", f"character {character_id} unarchived", actor.request_id, __name__,
         character_id=character_id)
    return out
