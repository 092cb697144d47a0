from __future__ import annotations

from typing import Optional
from sqlmodel import SQLModel, Field


class Roll(SQLModel, table=True):
    __tablename__ = "rolls"

    id: str = Field(primary_key=True)
    # NULL once the post is gone; such rolls are GM-only
    post_id: Optional[str] = Field(default=None, index=True)
    scene_id: str = Field(index=True)
    character_id: str
    requested_by: Optional[str] = Field(default=None)

    intention: str
    modifier: int = Field(default=0)
    dice_type: str
    dice_count: int = Field(default=1)

    result_json: Optional[str] = Field(default=None)
    total: Optional[int] = Field(default=None)
    status: str = Field(default="pending")  # pending|completed|invalidated

    created_at: str
    updated_at: str
