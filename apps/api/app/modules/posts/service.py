from __future__ import annotations

import json
import sqlite3
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Sequence

from app.core.auth import Actor
from app.core.db import new_ulid, now_iso, read_connection, write_transaction
from app.core.errors import AuthorizationError, InvalidStateError, NotFoundError, ValidationError
from app.core.logs import emit
from app.modules.campaigns.phase import require_posting_phase
from app.modules.campaigns.service import ROLE_GM, require_gm, require_member
from app.modules.characters.service import owners_of
from app.modules.notifications.service import EVENT_POST_UNHIDDEN, notify_best_effort
from app.modules.scenes import roster
from app.modules.scenes.models import Scene
from app.modules.scenes.service import load_scene
from app.modules.visibility import policy
from app.modules.visibility.capture import capture, encode_witnesses
from app.modules.visibility.predicate import is_visible
from app.modules.visibility.viewer import Viewer, resolve_viewer

from .models import Post

DEFAULT_PAGE_SIZE = 100
MAX_PAGE_SIZE = 500


# --- db helpers ---
def _row_to_post(row: sqlite3.Row) -> Post:
    d = dict(row)
    d["is_hidden"] = bool(d.get("is_hidden"))
    d["is_draft"] = bool(d.get("is_draft"))
    return Post(**d)


def load_post(conn: sqlite3.Connection, post_id: str) -> Post:
    row = conn.execute("SELECT * FROM posts WHERE id=?;", (post_id,)).fetchone()
    if not row:
        raise NotFoundError("post not found")
    return _row_to_post(row)


def _post_out(p: Post) -> Dict[str, Any]:
    d = p.model_dump()
    d["blocks"] = json.loads(d.pop("blocks_json") or "[]")
    d.pop("witnesses_json", None)
    d["witnesses"] = sorted(p.witness_set)
    return d


def _next_seq(conn: sqlite3.Connection, scene_id: str) -> int:
    row = conn.execute("SELECT COALESCE(MAX(seq), 0) AS m FROM posts WHERE scene_id=?;", (scene_id,)).fetchone()
    return int(row["m"]) + 1


def _require_author(conn: sqlite3.Connection, scene: Scene, user_id: str, role: str, character_id: Optional[str]) -> None:
    """Who may author a post in `scene` as `character_id` (None = narrator)."""
    is_gm = role == ROLE_GM
    if character_id is None:
        if not is_gm:
            raise AuthorizationError("only the GM can post as narrator", code="not_gm")
        return

    ch = conn.execute(
        "SELECT campaign_id, character_type, owner_user_id, is_archived FROM characters WHERE id=?;",
        (character_id,),
    ).fetchone()
    if ch is None or ch["campaign_id"] != scene.campaign_id:
        raise NotFoundError("character not found")
    if int(ch["is_archived"]):
        raise InvalidStateError("character is archived", code="character_archived")
    if not is_gm:
        if ch["character_type"] == "npc" or ch["owner_user_id"] != user_id:
            raise AuthorizationError("character is not assigned to you", code="character_not_owned")

    if not roster.is_present(conn, character_id, scene.id):
        raise ValidationError("character is not present in this scene", code="character_not_in_scene")


def _require_open_scene(scene: Scene) -> None:
    if scene.is_archived:
        raise InvalidStateError("scene is archived", code="scene_archived")


def _require_content(blocks: Sequence[Dict[str, Any]], ooc_text: Optional[str]) -> None:
    if not blocks and not (ooc_text or "").strip():
        raise ValidationError("post needs at least one block or OOC text", code="empty_post")


# -------------------------
# Authoring
# -------------------------
def create_post(
    actor: Actor,
    scene_id: str,
    *,
    character_id: Optional[str] = None,
    blocks: Optional[List[Dict[str, Any]]] = None,
    ooc_text: Optional[str] = None,
    hidden: bool = False,
    submit: bool = True,
) -> Dict[str, Any]:
    """
    Create a post, either submitted now or kept as a draft.

    Submission captures witnesses from the roster read inside this write
    transaction. Drafts carry no witnesses; capture happens in submit_post.
    """
    blocks = list(blocks or [])
    _require_content(blocks, ooc_text)

    with write_transaction(__name__) as conn:
        scene = load_scene(conn, scene_id)
        role = require_member(conn, scene.campaign_id, actor.user_id)
        _require_open_scene(scene)
        require_posting_phase(conn, scene.campaign_id, role)
        _require_author(conn, scene, actor.user_id, role, character_id)

        witnesses: FrozenSet[str] = frozenset()
        seq: Optional[int] = None
        is_hidden = hidden
        if submit:
            witnesses = capture(roster.current_roster(conn, scene_id), character_id, hidden)
            seq = _next_seq(conn, scene_id)
            # an unhidden post into an empty roster has no audience yet: it is stored hidden
            is_hidden = not witnesses

        now = now_iso()
        pid = new_ulid()
        conn.execute(
            """
            INSERT INTO posts (
              id, scene_id, character_id, user_id, seq, blocks_json, ooc_text,
              witnesses_json, is_hidden, is_draft, created_at, updated_at
            ) VALUES (?,?,?,?,?,?,?,?,?,?,?,?);
            """,
            (
                pid,
                scene_id,
                character_id,
                actor.user_id,
                seq,
                json.dumps(blocks, ensure_ascii=False),
                ooc_text,
                encode_witnesses(witnesses),
                1 if is_hidden else 0,
                0 if submit else 1,
                now,
                now,
            ),
        )
        p = load_post(conn, pid)

    emit(
        "info",
        "post.created",
        f"post {pid} created",
        actor.request_id,
        __name__,
        post_id=pid,
        scene_id=scene_id,
        character_id=character_id,
        draft=not submit,
        hidden=p.is_hidden,
        witness_count=len(witnesses),
    )
    return _post_out(p)


def submit_post(actor: Actor, post_id: str, hidden: Optional[bool] = None) -> Dict[str, Any]:
    with write_transaction(__name__) as conn:
        p = load_post(conn, post_id)
        if p.user_id != actor.user_id:
            raise AuthorizationError("only the author can submit this draft", code="not_post_owner")
        if not p.is_draft:
            raise InvalidStateError("post is already submitted", code="post_not_draft")

        scene = load_scene(conn, p.scene_id)
        role = require_member(conn, scene.campaign_id, actor.user_id)
        _require_open_scene(scene)
        require_posting_phase(conn, scene.campaign_id, role)
        _require_author(conn, scene, actor.user_id, role, p.character_id)

        hidden_requested = p.is_hidden if hidden is None else hidden
        witnesses = capture(roster.current_roster(conn, scene.id), p.character_id, hidden_requested)
        seq = _next_seq(conn, scene.id)
        conn.execute(
            """
            UPDATE posts
            SET is_draft=0, is_hidden=?, witnesses_json=?, seq=?, updated_at=?
            WHERE id=? AND is_draft=1;
            """,
            (0 if witnesses else 1, encode_witnesses(witnesses), seq, now_iso(), post_id),
        )
        p = load_post(conn, post_id)

    emit(
        "info",
        "post.submitted",
        f"post {post_id} submitted",
        actor.request_id,
        __name__,
        post_id=post_id,
        scene_id=p.scene_id,
        seq=p.seq,
        hidden=p.is_hidden,
        witness_count=len(witnesses),
    )
    return _post_out(p)


# -------------------------
# Edit / delete
# -------------------------
def _require_editable(conn: sqlite3.Connection, p: Post, scene: Scene, user_id: str, action: str) -> bool:
    """GM may touch any post; an author only a draft or the scene's latest submitted post. Returns is_gm."""
    role = require_member(conn, scene.campaign_id, user_id)
    if role == ROLE_GM:
        return True
    if p.user_id != user_id:
        raise AuthorizationError(f"only the author or the GM can {action} this post", code="not_post_owner")
    if not p.is_draft:
        row = conn.execute("SELECT MAX(seq) AS m FROM posts WHERE scene_id=? AND is_draft=0;", (scene.id,)).fetchone()
        if row["m"] != p.seq:
            raise InvalidStateError("only the most recent post can be changed", code="not_most_recent_post")
    return False


def update_post(
    actor: Actor,
    post_id: str,
    *,
    blocks: Optional[List[Dict[str, Any]]] = None,
    ooc_text: Optional[str] = None,
) -> Dict[str, Any]:
    """Rewrite a post's content. Witnesses, scene, author and seq are not editable."""
    with write_transaction(__name__) as conn:
        p = load_post(conn, post_id)
        scene = load_scene(conn, p.scene_id)
        is_gm = _require_editable(conn, p, scene, actor.user_id, "edit")

        new_blocks = list(blocks) if blocks is not None else json.loads(p.blocks_json or "[]")
        new_ooc = ooc_text if ooc_text is not None else p.ooc_text
        _require_content(new_blocks, new_ooc)

        conn.execute(
            "UPDATE posts SET blocks_json=?, ooc_text=?, updated_at=? WHERE id=?;",
            (json.dumps(new_blocks, ensure_ascii=False), new_ooc, now_iso(), post_id),
        )
        p = load_post(conn, post_id)

    emit("info", "post.updated", f"post {post_id} edited", actor.request_id, __name__,
         post_id=post_id, scene_id=p.scene_id, edited_by_gm=is_gm and p.user_id != actor.user_id)
    return _post_out(p)


def delete_post(actor: Actor, post_id: str) -> Dict[str, Any]:
    """Remove a post; its rolls stay behind with no post and become GM-only."""
    with write_transaction(__name__) as conn:
        p = load_post(conn, post_id)
        scene = load_scene(conn, p.scene_id)
        _require_editable(conn, p, scene, actor.user_id, "delete")
        orphaned = conn.execute("SELECT COUNT(1) AS n FROM rolls WHERE post_id=?;", (post_id,)).fetchone()["n"]
        conn.execute("DELETE FROM posts WHERE id=?;", (post_id,))

    emit("info", "post.deleted", f"post {post_id} deleted", actor.request_id, __name__,
         post_id=post_id, scene_id=p.scene_id, orphaned_rolls=int(orphaned))
    return {"id": post_id, "scene_id": p.scene_id, "deleted": True}


# -------------------------
# Reads (always for an explicit viewer)
# -------------------------
def _crosscheck_one(conn: sqlite3.Connection, p: Post, viewer: Viewer, request_id: Optional[str]) -> bool:
    app_result = is_visible(p, viewer)
    if policy.crosscheck_enabled():
        policy.assert_agreement(
            "post", p.id, viewer, app_result, policy.storage_allows_post(conn, p.id, viewer), request_id
        )
    return app_result


def _crosscheck_page(
    conn: sqlite3.Connection,
    viewer: Viewer,
    where: str,
    params: Dict[str, Any],
    returned: Iterable[Post],
    limit: Optional[int],
    request_id: Optional[str],
) -> None:
    """Recompute the page with the application predicate over the unfiltered rows."""
    rows = conn.execute(
        f"SELECT p.* FROM posts AS p WHERE ({where}) ORDER BY p.seq ASC, p.created_at ASC;", params
    ).fetchall()
    expected = [p.id for p in (_row_to_post(r) for r in rows) if is_visible(p, viewer)]
    if limit is not None:
        expected = expected[:limit]
    got = [p.id for p in returned]
    if expected == got:
        return
    for pid in set(expected) ^ set(got):
        policy.assert_agreement("post", pid, viewer, pid in expected, pid in got, request_id)
    # same members, different order
    policy.assert_agreement("post_page", ",".join(got), viewer, True, False, request_id)


def get_post(actor: Actor, post_id: str) -> Dict[str, Any]:
    with read_connection() as conn:
        p = load_post(conn, post_id)
        scene = load_scene(conn, p.scene_id)
        viewer = resolve_viewer(conn, scene.campaign_id, actor)
        if not _crosscheck_one(conn, p, viewer, actor.request_id):
            # existence of an unseen post is not disclosed
            raise NotFoundError("post not found")
        return _post_out(p)


def list_scene_posts(
    actor: Actor,
    scene_id: str,
    after_seq: Optional[int] = None,
    limit: int = DEFAULT_PAGE_SIZE,
) -> Dict[str, Any]:
    limit = max(1, min(int(limit), MAX_PAGE_SIZE))
    with read_connection() as conn:
        scene = load_scene(conn, scene_id)
        viewer = resolve_viewer(conn, scene.campaign_id, actor)

        where = "p.scene_id = :scene_id AND p.is_draft = 0"
        params: Dict[str, Any] = {"scene_id": scene_id}
        if after_seq is not None:
            where += " AND p.seq > :after_seq"
            params["after_seq"] = int(after_seq)

        posts = [_row_to_post(r) for r in policy.select_posts(conn, viewer, where, params, limit=limit)]
        if policy.crosscheck_enabled():
            _crosscheck_page(conn, viewer, where, params, posts, limit, actor.request_id)

        next_after = posts[-1].seq if len(posts) == limit else None
        return {"items": [_post_out(p) for p in posts], "next_after_seq": next_after}


def list_my_drafts(actor: Actor, scene_id: str) -> List[Dict[str, Any]]:
    with read_connection() as conn:
        scene = load_scene(conn, scene_id)
        viewer = resolve_viewer(conn, scene.campaign_id, actor)
        rows = policy.select_posts(
            conn,
            viewer,
            "p.scene_id = :scene_id AND p.is_draft = 1 AND p.user_id = :author",
            {"scene_id": scene_id, "author": actor.user_id},
            order_by="p.created_at ASC, p.id ASC",
        )
        return [_post_out(_row_to_post(r)) for r in rows]


def list_hidden_posts(actor: Actor, scene_id: str) -> List[Dict[str, Any]]:
    with read_connection() as conn:
        scene = load_scene(conn, scene_id)
        require_gm(conn, scene.campaign_id, actor.user_id, "list hidden posts")
        rows = policy.select_posts(
            conn,
            Viewer.gm(actor.user_id),
            "p.scene_id = :scene_id AND p.is_draft = 0 AND p.is_hidden = 1",
            {"scene_id": scene_id},
        )
        return [_post_out(_row_to_post(r)) for r in rows]


# -------------------------
# Unhide (GM only, empty -> non-empty, once)
# -------------------------
def _select_unhide_witnesses(present: FrozenSet[str], selected: Optional[List[str]]) -> FrozenSet[str]:
    if selected is None:
        if not present:
            raise ValidationError("no characters are present in the scene to reveal the post to", code="no_witnesses_selected")
        return present

    chosen = frozenset(str(c) for c in selected)
    if not chosen:
        raise ValidationError("select at least one witness", code="no_witnesses_selected")
    absent = chosen - present
    if absent:
        raise ValidationError(
            "witnesses must be present in the scene",
            code="witness_not_present",
            details={"character_ids": sorted(absent)},
        )
    return chosen


def unhide_post(actor: Actor, post_id: str, witnesses: Optional[List[str]] = None) -> Dict[str, Any]:
    with write_transaction(__name__) as conn:
        p = load_post(conn, post_id)
        scene = load_scene(conn, p.scene_id)
        require_gm(conn, scene.campaign_id, actor.user_id, "unhide posts")
        if p.is_draft:
            raise InvalidStateError("drafts cannot be unhidden", code="post_is_draft")
        if p.witness_set:
            raise InvalidStateError("post is not hidden", code="post_not_hidden")

        new_witnesses = _select_unhide_witnesses(roster.current_roster(conn, scene.id), witnesses)
        cur = conn.execute(
            """
            UPDATE posts
            SET witnesses_json=?, is_hidden=0, updated_at=?
            WHERE id=? AND is_draft=0 AND is_hidden=1 AND json_array_length(witnesses_json)=0;
            """,
            (encode_witnesses(new_witnesses), now_iso(), post_id),
        )
        if cur.rowcount != 1:
            raise InvalidStateError("post is not hidden", code="post_not_hidden")

        owners = owners_of(conn, new_witnesses)
        p = load_post(conn, post_id)

    emit(
        "info",
        "post.unhidden",
        f"post {post_id} unhidden",
        actor.request_id,
        __name__,
        post_id=post_id,
        scene_id=scene.id,
        witnesses=sorted(new_witnesses),
    )

    recipients = [uid for uid in owners.values() if uid]
    notify_best_effort(
        recipients,
        EVENT_POST_UNHIDDEN,
        {"post_id": post_id, "scene_id": scene.id, "campaign_id": scene.campaign_id},
        actor.request_id,
    )
    return _post_out(p)
