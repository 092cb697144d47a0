from __future__ import annotations

from typing import Optional
from sqlmodel import SQLModel, Field


# character_type: pc|npc; owner_user_id NULL = unassigned
# archival never removes the id from any post's witness list
class Character(SQLModel, table=True):
    __tablename__ = "characters"

    id: str = Field(primary_key=True)
    campaign_id: str = Field(index=True)
    display_name: str
    character_type: str = Field(default="pc")
    owner_user_id: Optional[str] = Field(default=None)
    is_archived: bool = Field(default=False)

    created_at: str
    updated_at: str
