from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import Optional

from app.core.auth import Actor
from app.core.errors import AuthorizationError, InvalidStateError
from app.modules.campaigns.service import ROLE_GM, ROLE_PLAYER, role_of


@dataclass(frozen=True)
class Viewer:
    """
    The principal a read is evaluated for.

    Visibility belongs to characters, not users: a player viewer carries exactly
    one selected character (or none, in which case no witnessed post is
    visible). The GM viewer is campaign-scoped and sees everything.
    """

    user_id: str
    role: str
    character_id: Optional[str] = None

    @property
    def is_gm(self) -> bool:
        return self.role == ROLE_GM

    @classmethod
    def gm(cls, user_id: str) -> "Viewer":
        return cls(user_id=user_id, role=ROLE_GM)

    @classmethod
    def as_character(cls, user_id: str, character_id: Optional[str]) -> "Viewer":
        return cls(user_id=user_id, role=ROLE_PLAYER, character_id=character_id)


def resolve_viewer(conn: sqlite3.Connection, campaign_id: str, actor: Actor) -> Viewer:
    role = role_of(conn, campaign_id, actor.user_id)
    if role is None:
        raise AuthorizationError("user is not a member of this campaign", code="not_member")
    if role == ROLE_GM:
        return Viewer.gm(actor.user_id)

    if not actor.character_id:
        return Viewer.as_character(actor.user_id, None)

    row = conn.execute(
        "SELECT campaign_id, owner_user_id, is_archived FROM characters WHERE id=?;",
        (actor.character_id,),
    ).fetchone()
    if row is None or row["campaign_id"] != campaign_id or row["owner_user_id"] != actor.user_id:
        raise AuthorizationError("selected character is not assigned to you", code="character_not_owned")
    if int(row["is_archived"]):
        # archival blocks selecting the character; it does not revoke what it witnessed
        raise InvalidStateError("selected character is archived", code="character_archived")
    return Viewer.as_character(actor.user_id, actor.character_id)
