from __future__ import annotations


def H(user, character=None):
    h = {"X-User-Id": user}
    if character:
        h["X-Character-Id"] = character
    return h


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "ok"
    assert body["db"]["status"] == "ok"
    assert "X-Request-Id" in r.headers


def test_missing_user_is_401_envelope(client):
    r = client.get("/notifications", headers={"X-Request-Id": "RID-1"})
    assert r.status_code == 401
    body = r.json()
    assert body["error"] == "unauthorized"
    assert body["request_id"] == "RID-1"
    assert r.headers["X-Request-Id"] == "RID-1"


def test_hidden_post_flow_over_http(client):
    c = client.post("/campaigns", json={"title": "Ashfall"}, headers=H("gm")).json()
    cid = c["id"]
    assert c["current_phase"] == "gm_phase"
    client.post(f"/campaigns/{cid}/members", json={"user_id": "u1"}, headers=H("gm"))
    client.post(f"/campaigns/{cid}/members", json={"user_id": "u2"}, headers=H("gm"))

    alice = client.post(f"/campaigns/{cid}/characters", json={"display_name": "Alice", "owner_user_id": "u1"},
                        headers=H("gm")).json()["id"]
    bob = client.post(f"/campaigns/{cid}/characters", json={"display_name": "Bob", "owner_user_id": "u2"},
                      headers=H("gm")).json()["id"]
    sid = client.post(f"/campaigns/{cid}/scenes", json={"title": "Ridge"}, headers=H("gm")).json()["id"]
    for ch in (alice, bob):
        r = client.put(f"/scenes/{sid}/roster/{ch}", headers=H("gm"))
        assert r.status_code == 200

    r = client.post(
        f"/scenes/{sid}/posts",
        json={"blocks": [{"type": "action", "content": "Smoke on the ridge."}], "hidden": True},
        headers=H("gm"),
    )
    assert r.status_code == 200
    post = r.json()
    assert post["witnesses"] == [] and post["is_hidden"] is True

    assert client.get(f"/posts/{post['id']}", headers=H("u1", alice)).status_code == 404

    r = client.post(f"/posts/{post['id']}/unhide", json={"witnesses": [alice]}, headers=H("u1", alice))
    assert r.status_code == 403
    assert r.json()["error"] == "not_gm"

    r = client.post(f"/posts/{post['id']}/unhide", json={"witnesses": [alice]}, headers=H("gm"))
    assert r.status_code == 200
    assert r.json()["witnesses"] == [alice]

    r = client.post(f"/posts/{post['id']}/unhide", json={}, headers=H("gm"))
    assert r.status_code == 409
    assert r.json()["error"] == "post_not_hidden"

    feed = client.get(f"/scenes/{sid}/posts", headers=H("u1", alice)).json()
    assert [p["id"] for p in feed["items"]] == [post["id"]]
    assert client.get(f"/scenes/{sid}/posts", headers=H("u2", bob)).json()["items"] == []
    assert client.get(f"/scenes/{sid}/posts", headers=H("u1")).json()["items"] == []

    inbox = client.get("/notifications", headers=H("u1")).json()
    assert inbox["unread"] == 1

    scenes = client.get(f"/campaigns/{cid}/scenes", headers=H("u2", bob)).json()["items"]
    assert [s["id"] for s in scenes] == [sid]


def test_roster_conflict_over_http(client):
    cid = client.post("/campaigns", json={"title": "Ashfall"}, headers=H("gm")).json()["id"]
    dave = client.post(f"/campaigns/{cid}/characters", json={"display_name": "Dave"}, headers=H("gm")).json()["id"]
    s1 = client.post(f"/campaigns/{cid}/scenes", json={"title": "S1"}, headers=H("gm")).json()["id"]
    s2 = client.post(f"/campaigns/{cid}/scenes", json={"title": "S2"}, headers=H("gm")).json()["id"]
    assert client.put(f"/scenes/{s1}/roster/{dave}", headers=H("gm")).status_code == 200

    r = client.put(f"/scenes/{s2}/roster/{dave}", headers=H("gm"))
    assert r.status_code == 409
    body = r.json()
    assert body["error"] == "character_in_other_scene"
    assert body["details"]["scene_id"] == s1
    assert client.get(f"/scenes/{s1}/roster", headers=H("gm")).json()["characters"] == [dave]


def test_scene_list_is_scoped_to_the_viewer(client):
    cid = client.post("/campaigns", json={"title": "Ashfall"}, headers=H("gm")).json()["id"]
    client.post(f"/campaigns/{cid}/members", json={"user_id": "u1"}, headers=H("gm"))
    alice = client.post(f"/campaigns/{cid}/characters", json={"display_name": "Alice", "owner_user_id": "u1"},
                        headers=H("gm")).json()["id"]
    here = client.post(f"/campaigns/{cid}/scenes", json={"title": "Here"}, headers=H("gm")).json()["id"]
    client.post(f"/campaigns/{cid}/scenes", json={"title": "Secret"}, headers=H("gm"))
    client.put(f"/scenes/{here}/roster/{alice}", headers=H("gm"))

    mine = client.get(f"/campaigns/{cid}/scenes", headers=H("u1", alice)).json()["items"]
    assert [s["id"] for s in mine] == [here]
    assert len(client.get(f"/campaigns/{cid}/scenes", headers=H("gm")).json()["items"]) == 2
    assert client.get(f"/campaigns/{cid}/scenes", headers=H("u1")).json()["items"] == []


def test_auto_migrate_runs_on_startup(tmp_path, monkeypatch):
    import sqlite3

    from fastapi.testclient import TestClient
    from app.main import app

    db_file = tmp_path / "fresh.db"
    monkeypatch.setenv("DATABASE_URL", "sqlite:///" + db_file.as_posix())
    monkeypatch.setenv("AUTO_MIGRATE", "1")

    with TestClient(app) as c:
        r = c.post("/campaigns", json={"title": "Ashfall"}, headers=H("gm"))
        assert r.status_code == 200

    conn = sqlite3.connect(db_file)
    try:
        tables = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table';")}
    finally:
        conn.close()
    assert {"campaigns", "posts", "scene_roster", "rolls"} <= tables


def test_auto_migrate_is_off_by_default(monkeypatch):
    from app.main import auto_migrate

    monkeypatch.delenv("AUTO_MIGRATE", raising=False)
    assert auto_migrate() is False
