"""
Roster / scene-membership tracker.

The only writer of `scene_roster`. Every function takes the caller's
connection so the roster read or write lands in the caller's IMMEDIATE
transaction (see app.core.db.write_transaction). Reads return frozensets:
snapshots, never live views.

Removing a character from a roster never touches any post's witnesses.
"""
from __future__ import annotations

import sqlite3
from typing import FrozenSet, Optional

from app.core.db import now_iso
from app.core.errors import InvalidStateError


def current_roster(conn: sqlite3.Connection, scene_id: str) -> FrozenSet[str]:
    rows = conn.execute("SELECT character_id FROM scene_roster WHERE scene_id=?;", (scene_id,)).fetchall()
    return frozenset(str(r["character_id"]) for r in rows)


def scene_of(conn: sqlite3.Connection, character_id: str) -> Optional[str]:
    row = conn.execute("SELECT scene_id FROM scene_roster WHERE character_id=?;", (character_id,)).fetchone()
    return str(row["scene_id"]) if row else None


def is_present(conn: sqlite3.Connection, character_id: str, scene_id: str) -> bool:
    return scene_of(conn, character_id) == scene_id


def add_to_scene(conn: sqlite3.Connection, character_id: str, scene_id: str) -> FrozenSet[str]:
    """Idempotent for the target scene; fails if the character sits in another scene."""
    where = scene_of(conn, character_id)
    if where == scene_id:
        return current_roster(conn, scene_id)
    if where is not None:
        raise InvalidStateError(
            "character is already present in another scene",
            code="character_in_other_scene",
            details={"character_id": character_id, "scene_id": where},
        )
    conn.execute(
        "INSERT INTO scene_roster (character_id, scene_id, added_at) VALUES (?,?,?);",
        (character_id, scene_id, now_iso()),
    )
    return current_roster(conn, scene_id)


def remove_from_scene(conn: sqlite3.Connection, character_id: str, scene_id: str) -> FrozenSet[str]:
    conn.execute("DELETE FROM scene_roster WHERE character_id=? AND scene_id=?;", (character_id, scene_id))
    return current_roster(conn, scene_id)
