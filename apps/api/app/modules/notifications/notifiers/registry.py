from __future__ import annotations

import os
from typing import Optional

from .base import Notifier
from .inbox import InboxNotifier

_override: Optional[Notifier] = None


def is_notifications_enabled(*, default: bool = True) -> bool:
    """
    Feature flag:
      NOTIFICATIONS_ENABLED=0 -> off
      NOTIFICATIONS_ENABLED=1 -> on
    Default is ON.
    """
    v = os.environ.get("NOTIFICATIONS_ENABLED")
    if v is None:
        return default
    v = v.strip().lower()
    return v not in ("0", "false", "no", "")


def set_notifier(notifier: Optional[Notifier]) -> None:
    """Swap the active notifier (None restores the inbox)."""
    global _override
    _override = notifier


def get_notifier() -> Notifier:
    if _override is not None:
        return _override
    return InboxNotifier()
