"""
Campaign phase state machine.

gm_phase is the administrative phase (rosters may change, players may not
post); pc_phase is open posting (rosters frozen).
"""
from __future__ import annotations

import sqlite3
from typing import Any, Dict

from app.core.auth import Actor
from app.core.db import now_iso, read_connection, write_transaction
from app.core.errors import InvalidStateError
from app.core.logs import emit

from .service import ROLE_GM, get_campaign_row, require_gm, require_member

GM_PHASE = "gm_phase"
PC_PHASE = "pc_phase"
PHASES = (GM_PHASE, PC_PHASE)


def current_phase(conn: sqlite3.Connection, campaign_id: str) -> str:
    return str(get_campaign_row(conn, campaign_id)["current_phase"])


def is_admin_phase(conn: sqlite3.Connection, campaign_id: str) -> bool:
    return current_phase(conn, campaign_id) == GM_PHASE


def require_admin_phase(conn: sqlite3.Connection, campaign_id: str) -> None:
    if not is_admin_phase(conn, campaign_id):
        raise InvalidStateError("characters can only be moved during GM Phase", code="not_gm_phase")


def require_posting_phase(conn: sqlite3.Connection, campaign_id: str, role: str) -> None:
    if role == ROLE_GM:
        return
    if current_phase(conn, campaign_id) != PC_PHASE:
        raise InvalidStateError("players can only post during PC Phase", code="not_pc_phase")


def pending_roll_count(conn: sqlite3.Connection, campaign_id: str) -> int:
    row = conn.execute(
        """
        SELECT COUNT(1) AS n
        FROM rolls r
        JOIN scenes s ON s.id = r.scene_id
        WHERE s.campaign_id=? AND r.status='pending';
        """,
        (campaign_id,),
    ).fetchone()
    return int(row["n"] if row else 0)


def has_pending_rolls(conn: sqlite3.Connection, campaign_id: str) -> bool:
    return pending_roll_count(conn, campaign_id) > 0


def _phase_out(conn: sqlite3.Connection, campaign_id: str) -> Dict[str, Any]:
    phase = current_phase(conn, campaign_id)
    return {
        "campaign_id": campaign_id,
        "current_phase": phase,
        "is_admin_phase": phase == GM_PHASE,
        "pending_rolls": pending_roll_count(conn, campaign_id),
    }


def get_phase(actor: Actor, campaign_id: str) -> Dict[str, Any]:
    with read_connection() as conn:
        get_campaign_row(conn, campaign_id)
        require_member(conn, campaign_id, actor.user_id)
        return _phase_out(conn, campaign_id)


def transition_phase(actor: Actor, campaign_id: str, to_phase: str) -> Dict[str, Any]:
    if to_phase not in PHASES:
        raise InvalidStateError(f"unknown phase {to_phase!r}", code="invalid_phase")

    with write_transaction(__name__) as conn:
        from_phase = current_phase(conn, campaign_id)
        require_gm(conn, campaign_id, actor.user_id, "change the phase")
        if from_phase == to_phase:
            raise InvalidStateError("campaign is already in this phase", code="already_in_phase")
        if from_phase == PC_PHASE and has_pending_rolls(conn, campaign_id):
            raise InvalidStateError("cannot transition: there are pending rolls to resolve", code="pending_rolls")

        conn.execute(
            "UPDATE campaigns SET current_phase=?, updated_at=? WHERE id=?;",
            (to_phase, now_iso(), campaign_id),
        )
        out = _phase_out(conn, campaign_id)

    emit(
        "info",
        "phase.transition",
        f"{from_phase} -> {to_phase}",
        actor.request_id,
        __name__,
        campaign_id=campaign_id,
        from_phase=from_phase,
        to_phase=to_phase,
    )
    return out
