from __future__ import annotations

from typing import List, Optional
from pydantic import BaseModel, Field


class RollCreateIn(BaseModel):
    character_id: Optional[str] = None  # defaults to the post's character
    intention: str
    modifier: int = 0
    dice_type: str = "d20"
    dice_count: int = 1


class RollResultIn(BaseModel):
    results: List[int]


class RollOut(BaseModel):
    id: str
    post_id: Optional[str] = None
    scene_id: str
    character_id: str
    requested_by: Optional[str] = None
    intention: str
    modifier: int = 0
    dice_type: str
    dice_count: int = 1
    results: Optional[List[int]] = None
    total: Optional[int] = None
    status: str
    created_at: str
    updated_at: str


class RollsListOut(BaseModel):
    items: List[RollOut] = Field(default_factory=list)
