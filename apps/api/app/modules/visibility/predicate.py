"""
Application-level visibility predicate.

Must agree with the SQL in `policy.py` on every (post, viewer) pair.
"""
from __future__ import annotations

from typing import Any, Optional

from .viewer import Viewer


def is_visible(post: Any, viewer: Viewer) -> bool:
    if viewer.is_gm:
        return True
    if post.is_draft and post.user_id == viewer.user_id:
        return True
    if viewer.character_id is None:
        return False
    return viewer.character_id in post.witness_set


def is_roll_visible(post: Optional[Any], viewer: Viewer) -> bool:
    """A roll is visible iff its post is; a roll with no post is GM-only."""
    if viewer.is_gm:
        return True
    if post is None:
        return False
    return is_visible(post, viewer)
