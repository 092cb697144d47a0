from __future__ import annotations

from typing import List, Literal, Optional
from pydantic import BaseModel, Field

CharacterType = Literal["pc", "npc"]


class CharacterCreateIn(BaseModel):
    display_name: str = Field(min_length=1, max_length=100)
    character_type: CharacterType = "pc"
    owner_user_id: Optional[str] = None


class CharacterAssignIn(BaseModel):
    # null orphans the character
    owner_user_id: Optional[str] = None


class CharacterOut(BaseModel):
    id: str
    campaign_id: str
    display_name: str
    character_type: CharacterType
    owner_user_id: Optional[str] = None
    is_archived: bool = False
    scene_id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class CharactersListOut(BaseModel):
    items: List[CharacterOut]
