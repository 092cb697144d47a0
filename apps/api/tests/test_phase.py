from __future__ import annotations

import pytest

from app.core.errors import AuthorizationError, InvalidStateError
from app.modules.campaigns.phase import GM_PHASE, PC_PHASE, get_phase, transition_phase


def test_campaign_starts_in_gm_phase(world):
    out = get_phase(world.gm, world.campaign_id)
    assert out["current_phase"] == GM_PHASE
    assert out["is_admin_phase"] is True
    assert out["pending_rolls"] == 0


def test_gm_toggles_phases(world):
    assert transition_phase(world.gm, world.campaign_id, PC_PHASE)["is_admin_phase"] is False
    assert transition_phase(world.gm, world.campaign_id, GM_PHASE)["is_admin_phase"] is True


def test_no_op_transition_is_rejected(world):
    with pytest.raises(InvalidStateError) as ei:
        transition_phase(world.gm, world.campaign_id, GM_PHASE)
    assert ei.value.code == "already_in_phase"


def test_players_cannot_change_phase(world):
    u = world.player("u1")
    with pytest.raises(AuthorizationError) as ei:
        transition_phase(u, world.campaign_id, PC_PHASE)
    assert ei.value.code == "not_gm"
