"""
Randomized agreement between the application predicate and the SQL policy,
and witness monotonicity under random operation sequences.
"""
from __future__ import annotations

import random
from typing import Dict, FrozenSet, List

import pytest

from app.core.db import connect, new_ulid, now_iso, read_connection
from app.core.errors import DomainError
from app.modules.posts.service import load_post, unhide_post
from app.modules.scenes import roster
from app.modules.scenes.service import add_character, remove_character
from app.modules.visibility import policy
from app.modules.visibility.capture import encode_witnesses
from app.modules.visibility.predicate import is_roll_visible, is_visible
from app.modules.visibility.viewer import Viewer

USERS = ["u1", "u2", "u3"]


def _seed_rows(world, rng: random.Random, n_posts: int = 40, n_rolls: int = 20):
    s = world.scene()
    chars = [world.character(f"C{i}") for i in range(5)]
    conn = connect()
    try:
        post_ids: List[str] = []
        seq = 0
        for _ in range(n_posts):
            draft = rng.random() < 0.2
            witnesses: FrozenSet[str] = frozenset()
            if not draft and rng.random() < 0.75:
                witnesses = frozenset(rng.sample(chars, rng.randint(1, len(chars))))
            if not draft:
                seq += 1
            pid = new_ulid()
            now = now_iso()
            conn.execute(
                """
                INSERT INTO posts (id, scene_id, character_id, user_id, seq, blocks_json, ooc_text,
                                   witnesses_json, is_hidden, is_draft, created_at, updated_at)
                VALUES (?,?,?,?,?,'[]',NULL,?,?,?,?,?);
                """,
                (
                    pid, s, rng.choice(chars + [None]), rng.choice(USERS + [world.gm.user_id]),
                    None if draft else seq, encode_witnesses(witnesses),
                    1 if (not draft and not witnesses) else 0, 1 if draft else 0, now, now,
                ),
            )
            post_ids.append(pid)

        roll_ids: List[str] = []
        for _ in range(n_rolls):
            rid = new_ulid()
            now = now_iso()
            conn.execute(
                """
                INSERT INTO rolls (id, post_id, scene_id, character_id, requested_by, intention, modifier,
                                   dice_type, dice_count, status, created_at, updated_at)
                VALUES (?,?,?,?,?,'check',0,'d20',1,'pending',?,?);
                """,
                (rid, rng.choice(post_ids + [None]), s, rng.choice(chars), rng.choice(USERS), now, now),
            )
            roll_ids.append(rid)
        conn.commit()
    finally:
        conn.close()

    viewers = [Viewer.gm(world.gm.user_id)]
    for u in USERS:
        viewers.append(Viewer.as_character(u, None))
        viewers.extend(Viewer.as_character(u, c) for c in chars)
    return s, post_ids, roll_ids, viewers


@pytest.mark.parametrize("seed", [1, 7, 42, 1337])
def test_predicate_and_policy_agree_on_posts(world, seed):
    rng = random.Random(seed)
    s, post_ids, _, viewers = _seed_rows(world, rng)

    with read_connection() as conn:
        posts = [load_post(conn, pid) for pid in post_ids]
        for _ in range(300):
            post = rng.choice(posts)
            viewer = rng.choice(viewers)
            assert is_visible(post, viewer) == policy.storage_allows_post(conn, post.id, viewer), (post, viewer)

        for viewer in viewers:
            via_sql = {r["id"] for r in policy.select_posts(conn, viewer, "p.scene_id = :s", {"s": s})}
            via_app = {p.id for p in posts if is_visible(p, viewer)}
            assert via_sql == via_app


@pytest.mark.parametrize("seed", [3, 99])
def test_predicate_and_policy_agree_on_rolls(world, seed):
    rng = random.Random(seed)
    s, _, roll_ids, viewers = _seed_rows(world, rng)

    with read_connection() as conn:
        for rid in roll_ids:
            post_id = conn.execute("SELECT post_id FROM rolls WHERE id=?;", (rid,)).fetchone()["post_id"]
            post = load_post(conn, post_id) if post_id else None
            for viewer in viewers:
                assert is_roll_visible(post, viewer) == policy.storage_allows_roll(conn, rid, viewer)


def _snapshot() -> Dict[str, FrozenSet[str]]:
    with read_connection() as conn:
        rows = conn.execute("SELECT id FROM posts WHERE is_draft=0;").fetchall()
        return {r["id"]: load_post(conn, r["id"]).witness_set for r in rows}


def _roster(scene_id: str) -> FrozenSet[str]:
    with read_connection() as conn:
        return roster.current_roster(conn, scene_id)


@pytest.mark.parametrize("seed", [5, 11, 2024])
def test_witnesses_only_ever_grow_from_empty_once(world, seed):
    rng = random.Random(seed)
    scenes = [world.scene("North"), world.scene("South")]
    chars = [world.character(f"C{i}") for i in range(4)]
    unhidden: set = set()
    before = _snapshot()

    for _ in range(60):
        op = rng.choice(["add", "remove", "post", "hidden", "unhide"])
        s = rng.choice(scenes)
        try:
            if op == "add":
                add_character(world.gm, s, rng.choice(chars))
            elif op == "remove":
                remove_character(world.gm, s, rng.choice(chars))
            elif op in ("post", "hidden"):
                present = _roster(s)
                post = world.narrate(s, hidden=(op == "hidden"))
                expected = frozenset() if op == "hidden" else present
                assert frozenset(post["witnesses"]) == expected
            elif op == "unhide" and before:
                pid = rng.choice(sorted(before))
                with read_connection() as conn:
                    home = load_post(conn, pid).scene_id
                present = sorted(_roster(home))
                pick = rng.sample(present, rng.randint(0, len(present))) if rng.random() < 0.5 else None
                unhide_post(world.gm, pid, pick)
                unhidden.add(pid)
        except DomainError as e:
            # rejected by a service rule, never by a storage guard
            assert e.code != "storage_constraint"

        after = _snapshot()
        for pid, old in before.items():
            new = after[pid]
            if old:
                assert new == old
            elif new:
                assert pid in unhidden
        before = after
