from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

import pytest

from app.core.auth import Actor
from app.core.migrate import upgrade_head
from app.modules.campaigns.phase import GM_PHASE, PC_PHASE, current_phase, transition_phase
from app.modules.campaigns.service import add_member, create_campaign
from app.modules.characters.service import create_character
from app.modules.notifications.notifiers.registry import set_notifier
from app.modules.posts.service import create_post, list_scene_posts
from app.modules.scenes.service import add_character, create_scene, remove_character
from app.core.db import read_connection


@pytest.fixture()
def db(tmp_path, monkeypatch):
    url = "sqlite:///" + (tmp_path / "test.db").as_posix()
    monkeypatch.setenv("DATABASE_URL", url)
    monkeypatch.setenv("VISIBILITY_CROSSCHECK", "1")
    monkeypatch.delenv("NOTIFICATIONS_ENABLED", raising=False)
    upgrade_head()
    yield url


class RecordingNotifier:
    name = "recording"

    def __init__(self) -> None:
        self.sent: List[Tuple[str, str, Dict[str, Any]]] = []
        self.fail_for: set = set()

    def notify(self, *, user_id: str, event_kind: str, payload: Dict[str, Any], request_id: Optional[str]) -> None:
        if user_id in self.fail_for:
            raise RuntimeError(f"delivery to {user_id} failed")
        self.sent.append((user_id, event_kind, payload))

    @property
    def recipients(self) -> List[str]:
        return sorted(u for u, _, _ in self.sent)


@pytest.fixture()
def notifier():
    rec = RecordingNotifier()
    set_notifier(rec)
    yield rec
    set_notifier(None)


class World:
    """A campaign with a GM, built through the services."""

    def __init__(self) -> None:
        self.gm = Actor(user_id="gm-user")
        self.campaign_id = create_campaign(self.gm, "The Sunken Keep")["id"]

    def player(self, user_id: str) -> Actor:
        add_member(self.gm, self.campaign_id, user_id)
        return Actor(user_id=user_id)

    def character(self, name: str, owner: Optional[Actor] = None, kind: str = "pc") -> str:
        owner_id = owner.user_id if owner else None
        return create_character(self.gm, self.campaign_id, name, kind, owner_id)["id"]

    def scene(self, title: str = "Gatehouse") -> str:
        return create_scene(self.gm, self.campaign_id, title)["id"]

    def phase(self) -> str:
        with read_connection() as conn:
            return current_phase(conn, self.campaign_id)

    def to_phase(self, phase: str) -> None:
        if self.phase() != phase:
            transition_phase(self.gm, self.campaign_id, phase)

    def place(self, character_id: str, scene_id: str) -> None:
        self.to_phase(GM_PHASE)
        add_character(self.gm, scene_id, character_id)

    def remove(self, character_id: str, scene_id: str) -> None:
        self.to_phase(GM_PHASE)
        remove_character(self.gm, scene_id, character_id)

    def open_posting(self) -> None:
        self.to_phase(PC_PHASE)

    def narrate(self, scene_id: str, text: str = "The torches gutter.", hidden: bool = False) -> Dict[str, Any]:
        return create_post(
            self.gm,
            scene_id,
            blocks=[{"type": "action", "content": text, "order": 0}],
            hidden=hidden,
        )

    def post_as(self, actor: Actor, character_id: str, scene_id: str, **kw: Any) -> Dict[str, Any]:
        self.open_posting()
        return create_post(
            actor,
            scene_id,
            character_id=character_id,
            blocks=[{"type": "dialog", "content": "Who goes there?", "order": 0}],
            **kw,
        )

    @staticmethod
    def acting(actor: Actor, character_id: Optional[str]) -> Actor:
        return Actor(user_id=actor.user_id, character_id=character_id)

    def visible_ids(self, actor: Actor, scene_id: str, character_id: Optional[str] = None) -> List[str]:
        who = self.acting(actor, character_id) if character_id else actor
        return [p["id"] for p in list_scene_posts(who, scene_id)["items"]]


@pytest.fixture()
def world(db) -> World:
    return World()


@pytest.fixture()
def client(db):
    from fastapi.testclient import TestClient
    from app.main import app

    with TestClient(app) as c:
        yield c
