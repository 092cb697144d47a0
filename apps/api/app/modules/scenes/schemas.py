from __future__ import annotations

from typing import List, Optional
from pydantic import BaseModel, Field


class SceneCreateIn(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None


class SceneArchiveIn(BaseModel):
    archived: bool = True


class SceneOut(BaseModel):
    id: str
    campaign_id: str
    title: str
    description: Optional[str] = None
    is_archived: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class RosterOut(BaseModel):
    scene_id: str
    characters: List[str] = Field(default_factory=list)


class SceneDetailOut(BaseModel):
    scene: SceneOut
    roster: List[str] = Field(default_factory=list)


class ScenesListOut(BaseModel):
    items: List[SceneOut]
