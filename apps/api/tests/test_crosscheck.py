from __future__ import annotations

import pytest

from app.core.errors import ConsistencyViolation, NotFoundError
from app.modules.posts import service as posts_service
from app.modules.posts.service import get_post, list_scene_posts


@pytest.fixture()
def post(world):
    s = world.scene()
    alice = world.character("Alice")
    world.place(alice, s)
    return world, s, world.narrate(s)


def test_disagreement_is_a_loud_failure(post, monkeypatch, capsys):
    world, _, p = post
    monkeypatch.setattr(posts_service, "is_visible", lambda _post, _viewer: False)
    with pytest.raises(ConsistencyViolation):
        get_post(world.gm, p["id"])
    assert "visibility.consistency_violation" in capsys.readouterr().out


def test_list_disagreement_is_detected(post, monkeypatch):
    world, s, _ = post
    monkeypatch.setattr(posts_service, "is_visible", lambda _post, _viewer: False)
    with pytest.raises(ConsistencyViolation) as ei:
        list_scene_posts(world.gm, s)
    assert ei.value.code == "consistency_violation"


def test_crosscheck_can_be_disabled(post, monkeypatch):
    world, _, p = post
    monkeypatch.setenv("VISIBILITY_CROSSCHECK", "0")
    monkeypatch.setattr(posts_service, "is_visible", lambda _post, _viewer: False)
    with pytest.raises(NotFoundError):
        get_post(world.gm, p["id"])
