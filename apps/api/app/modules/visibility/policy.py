"""
Storage-level read policy.

SQLite has no row-level security, so the policy is a SQL boolean expression
that every post/roll read in the service layer is filtered through. Roll reads
re-derive the post expression through the posts join; there is no separate
roll rule.

The application predicate (`predicate.py`) is the second implementation of the
same rule. Reads can cross-check the two (VISIBILITY_CROSSCHECK, default on);
a disagreement raises ConsistencyViolation.
"""
from __future__ import annotations

import os
import sqlite3
from typing import Any, Dict, List, Optional

from app.core.errors import ConsistencyViolation
from app.core.logs import emit

from .viewer import Viewer


def post_clause(alias: str = "p") -> str:
    return (
        "(:viewer_is_gm = 1"
        f" OR ({alias}.is_draft = 1 AND {alias}.user_id = :viewer_user_id)"
        " OR (:viewer_character_id IS NOT NULL AND EXISTS ("
        f"SELECT 1 FROM json_each({alias}.witnesses_json) AS w WHERE w.value = :viewer_character_id)))"
    )


def roll_clause(alias: str = "r") -> str:
    return (
        "(:viewer_is_gm = 1 OR EXISTS ("
        f"SELECT 1 FROM posts AS rp WHERE rp.id = {alias}.post_id AND {post_clause('rp')}))"
    )


def scene_clause(alias: str = "s") -> str:
    # a scene shows up for a character present in it now or one that witnessed any post there
    return (
        "(:viewer_is_gm = 1"
        " OR (:viewer_character_id IS NOT NULL AND EXISTS ("
        f"SELECT 1 FROM scene_roster AS sr WHERE sr.scene_id = {alias}.id AND sr.character_id = :viewer_character_id))"
        " OR EXISTS ("
        f"SELECT 1 FROM posts AS sp WHERE sp.scene_id = {alias}.id AND sp.is_draft = 0 AND {post_clause('sp')}))"
    )


def policy_params(viewer: Viewer) -> Dict[str, Any]:
    return {
        "viewer_is_gm": 1 if viewer.is_gm else 0,
        "viewer_user_id": viewer.user_id,
        "viewer_character_id": viewer.character_id,
    }


def select_posts(
    conn: sqlite3.Connection,
    viewer: Viewer,
    where: str,
    params: Optional[Dict[str, Any]] = None,
    *,
    order_by: str = "p.seq ASC, p.created_at ASC",
    limit: Optional[int] = None,
) -> List[sqlite3.Row]:
    args = dict(params or {})
    args.update(policy_params(viewer))
    sql = f"SELECT p.* FROM posts AS p WHERE ({where}) AND {post_clause('p')} ORDER BY {order_by}"
    if limit is not None:
        sql += " LIMIT :limit"
        args["limit"] = int(limit)
    return conn.execute(sql + ";", args).fetchall()


def select_rolls(
    conn: sqlite3.Connection,
    viewer: Viewer,
    where: str,
    params: Optional[Dict[str, Any]] = None,
    *,
    order_by: str = "r.created_at ASC, r.id ASC",
) -> List[sqlite3.Row]:
    args = dict(params or {})
    args.update(policy_params(viewer))
    sql = f"SELECT r.* FROM rolls AS r WHERE ({where}) AND {roll_clause('r')} ORDER BY {order_by};"
    return conn.execute(sql, args).fetchall()


def select_scenes(
    conn: sqlite3.Connection,
    viewer: Viewer,
    where: str,
    params: Optional[Dict[str, Any]] = None,
) -> List[sqlite3.Row]:
    args = dict(params or {})
    args.update(policy_params(viewer))
    sql = f"SELECT s.* FROM scenes AS s WHERE ({where}) AND {scene_clause('s')} ORDER BY s.created_at DESC, s.id DESC;"
    return conn.execute(sql, args).fetchall()


def storage_allows_post(conn: sqlite3.Connection, post_id: str, viewer: Viewer) -> bool:
    args = policy_params(viewer)
    args["post_id"] = post_id
    row = conn.execute(
        f"SELECT EXISTS(SELECT 1 FROM posts AS p WHERE p.id = :post_id AND {post_clause('p')}) AS ok;",
        args,
    ).fetchone()
    return bool(row["ok"])


def storage_allows_roll(conn: sqlite3.Connection, roll_id: str, viewer: Viewer) -> bool:
    args = policy_params(viewer)
    args["roll_id"] = roll_id
    row = conn.execute(
        f"SELECT EXISTS(SELECT 1 FROM rolls AS r WHERE r.id = :roll_id AND {roll_clause('r')}) AS ok;",
        args,
    ).fetchone()
    return bool(row["ok"])


def crosscheck_enabled() -> bool:
    v = os.environ.get("VISIBILITY_CROSSCHECK")
    if v is None:
        return True
    return v.strip().lower() not in ("0", "false", "no", "off", "")


def assert_agreement(
    kind: str,
    subject_id: str,
    viewer: Viewer,
    app_result: bool,
    storage_result: bool,
    request_id: Optional[str] = None,
) -> None:
    if app_result == storage_result:
        return
    emit(
        "error",
        "visibility.consistency_violation",
        f"{kind} visibility disagreement",
        request_id,
        __name__,
        subject_kind=kind,
        subject_id=subject_id,
        viewer_user_id=viewer.user_id,
        viewer_role=viewer.role,
        viewer_character_id=viewer.character_id,
        app_result=app_result,
        storage_result=storage_result,
    )
    raise ConsistencyViolation(
        f"{kind} visibility check disagreed between application and storage",
        details={"subject_id": subject_id, "app": app_result, "storage": storage_result},
    )
