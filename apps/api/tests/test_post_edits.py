from __future__ import annotations

import pytest

from app.core.errors import AuthorizationError, InvalidStateError, NotFoundError, ValidationError
from app.modules.posts.service import delete_post, get_post, list_scene_posts, update_post
from app.modules.rolls.service import create_roll, get_roll, list_scene_rolls

NEW_TEXT = [{"type": "action", "content": "The torches gutter and die.", "order": 0}]


def test_edit_changes_content_but_never_witnesses(world):
    s = world.scene()
    alice = world.character("Alice", owner=world.player("u1"))
    bob_owner = world.player("u2")
    bob = world.character("Bob", owner=bob_owner)
    world.place(alice, s)
    post = world.narrate(s, "The torches gutter.")
    world.place(bob, s)

    out = update_post(world.gm, post["id"], blocks=NEW_TEXT, ooc_text="typo fix")
    assert out["blocks"][0]["content"] == "The torches gutter and die."
    assert out["ooc_text"] == "typo fix"
    assert out["witnesses"] == [alice]
    assert out["seq"] == post["seq"]
    assert out["user_id"] == post["user_id"]
    assert world.visible_ids(bob_owner, s, bob) == []


def test_edit_keeps_hidden_posts_hidden(world):
    s = world.scene()
    alice = world.character("Alice")
    world.place(alice, s)
    post = world.narrate(s, hidden=True)
    out = update_post(world.gm, post["id"], blocks=NEW_TEXT)
    assert out["is_hidden"] is True
    assert out["witnesses"] == []


def test_edit_leaves_omitted_fields_alone(world):
    s = world.scene()
    world.place(world.character("Alice"), s)
    post = world.narrate(s, "Keep me.")
    out = update_post(world.gm, post["id"], ooc_text="brb")
    assert out["blocks"][0]["content"] == "Keep me."
    assert out["ooc_text"] == "brb"


def test_edit_cannot_empty_a_post(world):
    s = world.scene()
    world.place(world.character("Alice"), s)
    post = world.narrate(s)
    with pytest.raises(ValidationError):
        update_post(world.gm, post["id"], blocks=[], ooc_text="  ")


def test_author_edits_only_their_latest_post(world):
    s = world.scene()
    u = world.player("u1")
    alice = world.character("Alice", owner=u)
    world.place(alice, s)
    mine = world.post_as(u, alice, s)

    assert update_post(u, mine["id"], blocks=NEW_TEXT)["witnesses"] == [alice]

    world.narrate(s, "The GM answers.")
    with pytest.raises(InvalidStateError) as ei:
        update_post(u, mine["id"], blocks=NEW_TEXT)
    assert ei.value.code == "not_most_recent_post"
    with pytest.raises(InvalidStateError) as ei:
        delete_post(u, mine["id"])
    assert ei.value.code == "not_most_recent_post"

    # the GM is not bound to the latest post
    assert update_post(world.gm, mine["id"], ooc_text="gm note")["ooc_text"] == "gm note"


def test_other_players_cannot_edit_or_delete(world):
    s = world.scene()
    u, v = world.player("u1"), world.player("v1")
    alice = world.character("Alice", owner=u)
    world.place(alice, s)
    mine = world.post_as(u, alice, s)

    with pytest.raises(AuthorizationError) as ei:
        update_post(v, mine["id"], blocks=NEW_TEXT)
    assert ei.value.code == "not_post_owner"
    with pytest.raises(AuthorizationError) as ei:
        delete_post(v, mine["id"])
    assert ei.value.code == "not_post_owner"


def test_author_deletes_their_latest_post(world):
    s = world.scene()
    u = world.player("u1")
    alice = world.character("Alice", owner=u)
    world.place(alice, s)
    first = world.narrate(s, "Before.")
    mine = world.post_as(u, alice, s)

    assert delete_post(u, mine["id"]) == {"id": mine["id"], "scene_id": s, "deleted": True}
    assert world.visible_ids(u, s, alice) == [first["id"]]
    with pytest.raises(NotFoundError):
        get_post(world.gm, mine["id"])


def test_gm_deletes_any_post(world):
    s = world.scene()
    world.place(world.character("Alice"), s)
    a = world.narrate(s, "One.")
    b = world.narrate(s, "Two.")
    delete_post(world.gm, a["id"])
    assert [p["id"] for p in list_scene_posts(world.gm, s)["items"]] == [b["id"]]


def test_deleted_post_rolls_become_gm_only(world):
    s = world.scene()
    u = world.player("u1")
    alice = world.character("Alice", owner=u)
    world.place(alice, s)
    post = world.narrate(s, "The lock clicks.")
    roll = create_roll(world.gm, post["id"], intention="Pick the lock", character_id=alice)
    assert get_roll(world.acting(u, alice), roll["id"])["id"] == roll["id"]

    delete_post(world.gm, post["id"])

    with pytest.raises(NotFoundError):
        get_roll(world.acting(u, alice), roll["id"])
    assert list_scene_rolls(world.acting(u, alice), s) == []
    kept = get_roll(world.gm, roll["id"])
    assert kept["post_id"] is None
    assert [r["id"] for r in list_scene_rolls(world.gm, s)] == [roll["id"]]


def test_edit_over_http_rejects_witness_fields(client):
    gm = {"X-User-Id": "gm"}
    cid = client.post("/campaigns", json={"title": "Ashfall"}, headers=gm).json()["id"]
    alice = client.post(f"/campaigns/{cid}/characters", json={"display_name": "Alice"}, headers=gm).json()["id"]
    sid = client.post(f"/campaigns/{cid}/scenes", json={"title": "Ridge"}, headers=gm).json()["id"]
    client.put(f"/scenes/{sid}/roster/{alice}", headers=gm)
    post = client.post(
        f"/scenes/{sid}/posts", json={"blocks": [{"type": "action", "content": "Smoke."}]}, headers=gm
    ).json()

    r = client.patch(f"/posts/{post['id']}", json={"witnesses": []}, headers=gm)
    assert r.status_code == 422

    r = client.patch(f"/posts/{post['id']}", json={"blocks": [{"type": "dialog", "content": "Fire!"}]}, headers=gm)
    assert r.status_code == 200
    assert r.json()["witnesses"] == [alice]
    assert r.json()["blocks"][0]["content"] == "Fire!"

    r = client.delete(f"/posts/{post['id']}", headers=gm)
    assert r.status_code == 200
    assert r.json()["deleted"] is True
    assert client.get(f"/posts/{post['id']}", headers=gm).status_code == 404
