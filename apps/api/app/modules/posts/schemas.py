from __future__ import annotations

from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field


class PostBlock(BaseModel):
    type: Literal["action", "dialog"]
    content: str = Field(min_length=1)
    order: int = 0


class PostCreateIn(BaseModel):
    character_id: Optional[str] = None  # omitted = narrator (GM only)
    blocks: List[PostBlock] = Field(default_factory=list)
    ooc_text: Optional[str] = None
    hidden: bool = False
    submit: bool = True  # False keeps it as a draft; witnesses are captured on submit


class PostSubmitIn(BaseModel):
    hidden: Optional[bool] = None  # None keeps the choice made at creation


class UnhideIn(BaseModel):
    # None = everyone present now; a list must be a non-empty subset of the roster
    witnesses: Optional[List[str]] = None


class PostOut(BaseModel):
    id: str
    scene_id: str
    character_id: Optional[str] = None
    user_id: str
    seq: Optional[int] = None
    blocks: List[PostBlock] = Field(default_factory=list)
    ooc_text: Optional[str] = None
    witnesses: List[str] = Field(default_factory=list)
    is_hidden: bool = False
    is_draft: bool = False
    created_at: str
    updated_at: str


class PostsListOut(BaseModel):
    items: List[PostOut]
    next_after_seq: Optional[int] = None


class PostUpdateIn(BaseModel):
    # content only; witnesses, scene, author and seq are not part of an edit
    model_config = ConfigDict(extra="forbid")

    blocks: Optional[List[PostBlock]] = None
    ooc_text: Optional[str] = None


class PostDeletedOut(BaseModel):
    id: str
    scene_id: str
    deleted: bool = True
