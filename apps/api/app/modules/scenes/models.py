from __future__ import annotations

from typing import Optional
from sqlmodel import SQLModel, Field


class Scene(SQLModel, table=True):
    __tablename__ = "scenes"

    id: str = Field(primary_key=True)
    campaign_id: str = Field(index=True)
    title: str
    description: Optional[str] = Field(default=None)
    # archival leaves posts and their witnesses untouched
    is_archived: bool = Field(default=False)

    created_at: str
    updated_at: str
