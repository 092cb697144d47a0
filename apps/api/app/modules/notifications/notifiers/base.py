from __future__ import annotations

from typing import Any, Dict, Optional, Protocol


class Notifier(Protocol):
    """
    Fire-and-forget delivery of one event to one user.

    Callers treat any exception as a failed delivery; nothing is retried.
    """
    name: str

    def notify(self, *, user_id: str, event_kind: str, payload: Dict[str, Any], request_id: Optional[str]) -> None:
        ...
