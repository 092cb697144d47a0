"""
Witness capture and the canonical on-disk witness encoding.
"""
from __future__ import annotations

import json
from typing import FrozenSet, Iterable, Optional


def capture(roster: Iterable[str], author_character_id: Optional[str], hidden_requested: bool) -> FrozenSet[str]:
    """
    Witness set for a post being created now.

    `roster` must be the scene's roster snapshot read in the same transaction
    as the insert. Hidden posts start with no witnesses regardless of who is
    present. The author's character is not added here: it is a witness only
    because it is in the roster (presence is checked by the caller).
    """
    _ = author_character_id
    if hidden_requested:
        return frozenset()
    return frozenset(roster)


def encode_witnesses(witnesses: Iterable[str]) -> str:
    # sorted + unique so equal sets have equal text (the storage guard compares text)
    return json.dumps(sorted(set(witnesses)))


def decode_witnesses(raw: Optional[str]) -> FrozenSet[str]:
    if not raw:
        return frozenset()
    return frozenset(str(x) for x in json.loads(raw))
