from __future__ import annotations

import json
import sqlite3
from typing import Any, Dict, List, Optional

from app.core.auth import Actor
from app.core.db import new_ulid, now_iso, read_connection, write_transaction
from app.core.errors import AuthorizationError, InvalidStateError, NotFoundError, ValidationError
from app.core.logs import emit
from app.modules.campaigns.service import ROLE_GM, require_gm, require_member
from app.modules.posts.models import Post
from app.modules.posts.service import load_post
from app.modules.scenes.service import load_scene
from app.modules.visibility import policy
from app.modules.visibility.predicate import is_roll_visible
from app.modules.visibility.viewer import Viewer, resolve_viewer

from .models import Roll

DICE_SIDES = {"d4": 4, "d6": 6, "d8": 8, "d10": 10, "d12": 12, "d20": 20, "d100": 100}
MIN_MODIFIER, MAX_MODIFIER = -100, 100
MAX_DICE_COUNT = 100

STATUS_PENDING = "pending"
STATUS_COMPLETED = "completed"
STATUS_INVALIDATED = "invalidated"
ROLL_STATUSES = (STATUS_PENDING, STATUS_COMPLETED, STATUS_INVALIDATED)


# --- db helpers ---
def load_roll(conn: sqlite3.Connection, roll_id: str) -> Roll:
    row = conn.execute("SELECT * FROM rolls WHERE id=?;", (roll_id,)).fetchone()
    if not row:
        raise NotFoundError("roll not found")
    return Roll(**dict(row))


def _roll_out(r: Roll) -> Dict[str, Any]:
    d = r.model_dump()
    raw = d.pop("result_json", None)
    d["results"] = json.loads(raw) if raw else None
    return d


def _post_of(conn: sqlite3.Connection, r: Roll) -> Optional[Post]:
    if r.post_id is None:
        return None
    try:
        return load_post(conn, r.post_id)
    except NotFoundError:
        return None


def validate_roll_request(intention: str, modifier: int, dice_type: str, dice_count: int) -> None:
    if not (intention or "").strip():
        raise ValidationError("intention is required", code="invalid_intention")
    if not MIN_MODIFIER <= modifier <= MAX_MODIFIER:
        raise ValidationError("modifier must be between -100 and +100", code="invalid_modifier")
    if not 1 <= dice_count <= MAX_DICE_COUNT:
        raise ValidationError("dice count must be between 1 and 100", code="invalid_dice_count")
    if dice_type not in DICE_SIDES:
        raise ValidationError(f"unsupported dice type {dice_type!r}", code="invalid_dice_type")


def _require_pending(r: Roll) -> None:
    if r.status != STATUS_PENDING:
        raise InvalidStateError("roll is already resolved", code="roll_already_resolved")


# -------------------------
# Writes
# -------------------------
def create_roll(
    actor: Actor,
    post_id: str,
    *,
    intention: str,
    modifier: int = 0,
    dice_type: str = "d20",
    dice_count: int = 1,
    character_id: Optional[str] = None,
) -> Dict[str, Any]:
    validate_roll_request(intention, modifier, dice_type, dice_count)

    with write_transaction(__name__) as conn:
        p = load_post(conn, post_id)
        scene = load_scene(conn, p.scene_id)
        role = require_member(conn, scene.campaign_id, actor.user_id)
        if role != ROLE_GM and p.user_id != actor.user_id:
            raise AuthorizationError("only the post author or the GM can request a roll", code="not_post_owner")
        if p.is_draft:
            raise InvalidStateError("rolls attach to submitted posts only", code="post_is_draft")

        cid = character_id or p.character_id
        if role != ROLE_GM and cid != p.character_id:
            raise AuthorizationError("rolls can only be requested for the post's character", code="character_not_owned")
        if cid is None:
            raise ValidationError("a roll needs a character", code="character_required")
        ch = conn.execute("SELECT campaign_id FROM characters WHERE id=?;", (cid,)).fetchone()
        if ch is None or ch["campaign_id"] != scene.campaign_id:
            raise NotFoundError("character not found")

        now = now_iso()
        rid = new_ulid()
        conn.execute(
            """
            INSERT INTO rolls (
              id, post_id, scene_id, character_id, requested_by, intention, modifier,
              dice_type, dice_count, result_json, total, status, created_at, updated_at
            ) VALUES (?,?,?,?,?,?,?,?,?,NULL,NULL,?,?,?);
            """,
            (rid, post_id, scene.id, cid, actor.user_id, intention.strip(), modifier, dice_type, dice_count,
             STATUS_PENDING, now, now),
        )
        out = _roll_out(load_roll(conn, rid))

    emit("info", "roll.created", f"roll {rid} requested", actor.request_id, __name__,
         roll_id=rid, post_id=post_id, dice=f"{dice_count}{dice_type}", modifier=modifier)
    return out


def record_result(actor: Actor, roll_id: str, results: List[int]) -> Dict[str, Any]:
    """Store dice results computed elsewhere; total = sum(results) + modifier."""
    with write_transaction(__name__) as conn:
        r = load_roll(conn, roll_id)
        scene = load_scene(conn, r.scene_id)
        require_gm(conn, scene.campaign_id, actor.user_id, "record roll results")
        _require_pending(r)

        sides = DICE_SIDES[r.dice_type]
        if len(results) != r.dice_count:
            raise ValidationError(f"expected {r.dice_count} results", code="invalid_results")
        if any(not 1 <= int(v) <= sides for v in results):
            raise ValidationError(f"results must be between 1 and {sides}", code="invalid_results")

        total = sum(int(v) for v in results) + r.modifier
        conn.execute(
            "UPDATE rolls SET result_json=?, total=?, status=?, updated_at=? WHERE id=? AND status=?;",
            (json.dumps([int(v) for v in results]), total, STATUS_COMPLETED, now_iso(), roll_id, STATUS_PENDING),
        )
        out = _roll_out(load_roll(conn, roll_id))

    emit("info", "roll.completed", f"roll {roll_id} completed", actor.request_id, __name__,
         roll_id=roll_id, total=total)
    return out


def invalidate_roll(actor: Actor, roll_id: str) -> Dict[str, Any]:
    with write_transaction(__name__) as conn:
        r = load_roll(conn, roll_id)
        scene = load_scene(conn, r.scene_id)
        require_gm(conn, scene.campaign_id, actor.user_id, "invalidate rolls")
        _require_pending(r)
        conn.execute(
            "UPDATE rolls SET status=?, updated_at=? WHERE id=?;",
            (STATUS_INVALIDATED, now_iso(), roll_id),
        )
        out = _roll_out(load_roll(conn, roll_id))

    emit("info", "roll.invalidated", f"roll {roll_id} invalidated", actor.request_id, __name__, roll_id=roll_id)
    return out


# -------------------------
# Reads (visibility inherited from the post)
# -------------------------
def _checked_visible(conn: sqlite3.Connection, r: Roll, viewer: Viewer, request_id: Optional[str]) -> bool:
    app_result = is_roll_visible(_post_of(conn, r), viewer)
    if policy.crosscheck_enabled():
        policy.assert_agreement(
            "roll", r.id, viewer, app_result, policy.storage_allows_roll(conn, r.id, viewer), request_id
        )
    return app_result


def get_roll(actor: Actor, roll_id: str) -> Dict[str, Any]:
    with read_connection() as conn:
        r = load_roll(conn, roll_id)
        scene = load_scene(conn, r.scene_id)
        viewer = resolve_viewer(conn, scene.campaign_id, actor)
        if not _checked_visible(conn, r, viewer, actor.request_id):
            raise NotFoundError("roll not found")
        return _roll_out(r)


def list_scene_rolls(actor: Actor, scene_id: str, status: Optional[str] = None) -> List[Dict[str, Any]]:
    if status is not None and status not in ROLL_STATUSES:
        raise ValidationError(f"unknown roll status {status!r}", code="invalid_status")

    with read_connection() as conn:
        scene = load_scene(conn, scene_id)
        viewer = resolve_viewer(conn, scene.campaign_id, actor)
        where = "r.scene_id = :scene_id"
        params: Dict[str, Any] = {"scene_id": scene_id}
        if status is not None:
            where += " AND r.status = :status"
            params["status"] = status

        rolls = [Roll(**dict(row)) for row in policy.select_rolls(conn, viewer, where, params)]
        for r in rolls:
            _checked_visible(conn, r, viewer, actor.request_id)
        return [_roll_out(r) for r in rolls]
