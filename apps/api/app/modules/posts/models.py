from __future__ import annotations

from typing import FrozenSet, Optional
from sqlmodel import SQLModel, Field

from app.modules.visibility.capture import decode_witnesses


class Post(SQLModel, table=True):
    __tablename__ = "posts"

    id: str = Field(primary_key=True)
    scene_id: str = Field(index=True)
    # NULL = narrator
    character_id: Optional[str] = Field(default=None)
    user_id: str = Field(index=True)
    seq: Optional[int] = Field(default=None)

    blocks_json: str = Field(default="[]")
    ooc_text: Optional[str] = Field(default=None)

    # canonical JSON array of character ids; see visibility.capture
    witnesses_json: str = Field(default="[]")
    is_hidden: bool = Field(default=False)
    is_draft: bool = Field(default=True)

    created_at: str
    updated_at: str

    @property
    def witness_set(self) -> FrozenSet[str]:
        return decode_witnesses(self.witnesses_json)
