"""
Request identity.

Authentication happens upstream; requests arrive with the resolved user in
X-User-Id and the session's selected character (if any) in X-Character-Id.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException, Request


@dataclass(frozen=True)
class Actor:
    user_id: str
    character_id: Optional[str] = None
    request_id: Optional[str] = None


def get_actor(request: Request) -> Actor:
    uid = (request.headers.get("X-User-Id") or "").strip()
    if not uid:
        raise HTTPException(status_code=401, detail={"error": "unauthorized", "message": "missing X-User-Id"})
    cid = (request.headers.get("X-Character-Id") or "").strip() or None
    rid = getattr(getattr(request, "state", None), "request_id", None)
    return Actor(user_id=uid, character_id=cid, request_id=rid)
