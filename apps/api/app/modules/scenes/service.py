from __future__ import annotations

import sqlite3
from typing import Any, Dict, List

from app.core.auth import Actor
from app.core.db import new_ulid, now_iso, read_connection, write_transaction
from app.core.errors import InvalidStateError, NotFoundError
from app.core.logs import emit
from app.modules.campaigns.phase import require_admin_phase
from app.modules.campaigns.service import get_campaign_row, require_gm, require_member
from app.modules.visibility import policy
from app.modules.visibility.viewer import resolve_viewer

from . import roster
from .models import Scene


# --- db helpers ---
def load_scene(conn: sqlite3.Connection, scene_id: str) -> Scene:
    row = conn.execute("SELECT * FROM scenes WHERE id=?;", (scene_id,)).fetchone()
    if not row:
        raise NotFoundError("scene not found")
    return _row_to_scene(row)


def _row_to_scene(row: sqlite3.Row) -> Scene:
    d = dict(row)
    d["is_archived"] = bool(d.get("is_archived"))
    return Scene(**d)


def _roster_out(scene_id: str, characters) -> Dict[str, Any]:
    return {"scene_id": scene_id, "characters": sorted(characters)}


# -------------------------
# Scenes
# -------------------------
def create_scene(actor: Actor, campaign_id: str, title: str, description: str | None = None) -> Dict[str, Any]:
    with write_transaction(__name__) as conn:
        get_campaign_row(conn, campaign_id)
        require_gm(conn, campaign_id, actor.user_id, "create scenes")
        now = now_iso()
        sid = new_ulid()
        conn.execute(
            "INSERT INTO scenes (id, campaign_id, title, description, is_archived, created_at, updated_at) VALUES (?,?,?,?,0,?,?);",
            (sid, campaign_id, title, description, now, now),
        )
        return load_scene(conn, sid).model_dump()


def get_scene(actor: Actor, scene_id: str) -> Dict[str, Any]:
    with read_connection() as conn:
        scene = load_scene(conn, scene_id)
        require_member(conn, scene.campaign_id, actor.user_id)
        return {"scene": scene.model_dump(), "roster": sorted(roster.current_roster(conn, scene_id))}


def set_scene_archived(actor: Actor, scene_id: str, archived: bool = True) -> Dict[str, Any]:
    with write_transaction(__name__) as conn:
        scene = load_scene(conn, scene_id)
        require_gm(conn, scene.campaign_id, actor.user_id, "archive scenes")
        conn.execute(
            "UPDATE scenes SET is_archived=?, updated_at=? WHERE id=?;",
            (1 if archived else 0, now_iso(), scene_id),
        )
        return load_scene(conn, scene_id).model_dump()


def list_visible_scenes(actor: Actor, campaign_id: str, include_archived: bool = False) -> List[Dict[str, Any]]:
    with read_connection() as conn:
        get_campaign_row(conn, campaign_id)
        viewer = resolve_viewer(conn, campaign_id, actor)
        where = "s.campaign_id = :campaign_id"
        if not include_archived:
            where += " AND s.is_archived = 0"
        rows = policy.select_scenes(conn, viewer, where, {"campaign_id": campaign_id})
        return [_row_to_scene(r).model_dump() for r in rows]


# -------------------------
# Roster (GM, administrative phase)
# -------------------------
def get_roster(actor: Actor, scene_id: str) -> Dict[str, Any]:
    with read_connection() as conn:
        scene = load_scene(conn, scene_id)
        require_member(conn, scene.campaign_id, actor.user_id)
        return _roster_out(scene_id, roster.current_roster(conn, scene_id))


def add_character(actor: Actor, scene_id: str, character_id: str) -> Dict[str, Any]:
    with write_transaction(__name__) as conn:
        scene = load_scene(conn, scene_id)
        require_gm(conn, scene.campaign_id, actor.user_id, "move characters")
        require_admin_phase(conn, scene.campaign_id)
        if scene.is_archived:
            raise InvalidStateError("scene is archived", code="scene_archived")

        ch = conn.execute(
            "SELECT campaign_id, is_archived FROM characters WHERE id=?;",
            (character_id,),
        ).fetchone()
        if ch is None or ch["campaign_id"] != scene.campaign_id:
            raise NotFoundError("character not found")
        if int(ch["is_archived"]):
            raise InvalidStateError("character is archived", code="character_archived")

        current = roster.add_to_scene(conn, character_id, scene_id)

    emit("info", "roster.added", f"{character_id} -> {scene_id}", actor.request_id, __name__,
         scene_id=scene_id, character_id=character_id)
    return _roster_out(scene_id, current)


def remove_character(actor: Actor, scene_id: str, character_id: str) -> Dict[str, Any]:
    with write_transaction(__name__) as conn:
        scene = load_scene(conn, scene_id)
        require_gm(conn, scene.campaign_id, actor.user_id, "move characters")
        require_admin_phase(conn, scene.campaign_id)
        current = roster.remove_from_scene(conn, character_id, scene_id)

    emit("info", "roster.removed", f"{character_id} <- {scene_id}", actor.request_id, __name__,
         scene_id=scene_id, character_id=character_id)
    return _roster_out(scene_id, current)
