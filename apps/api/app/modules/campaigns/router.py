from __future__ import annotations

from fastapi import APIRouter, Depends

from app.core.auth import Actor, get_actor

from .phase import get_phase, transition_phase
from .schemas import (
    CampaignCreateIn,
    CampaignDetailOut,
    CampaignOut,
    MemberAddIn,
    MemberOut,
    PhaseOut,
    PhaseTransitionIn,
)
from .service import add_member, create_campaign, get_campaign

router = APIRouter(tags=["campaigns"])


@router.post("/campaigns", response_model=CampaignOut)
def api_create_campaign(body: CampaignCreateIn, actor: Actor = Depends(get_actor)) -> CampaignOut:
    return create_campaign(actor, title=body.title)


@router.get("/campaigns/{campaign_id}", response_model=CampaignDetailOut)
def api_get_campaign(campaign_id: str, actor: Actor = Depends(get_actor)) -> CampaignDetailOut:
    return CampaignDetailOut(**get_campaign(actor, campaign_id))


@router.post("/campaigns/{campaign_id}/members", response_model=MemberOut)
def api_add_member(campaign_id: str, body: MemberAddIn, actor: Actor = Depends(get_actor)) -> MemberOut:
    return add_member(actor, campaign_id, user_id=body.user_id, role=body.role)


@router.get("/campaigns/{campaign_id}/phase", response_model=PhaseOut)
def api_get_phase(campaign_id: str, actor: Actor = Depends(get_actor)) -> PhaseOut:
    return get_phase(actor, campaign_id)


@router.post("/campaigns/{campaign_id}/phase", response_model=PhaseOut)
def api_transition_phase(campaign_id: str, body: PhaseTransitionIn, actor: Actor = Depends(get_actor)) -> PhaseOut:
    return transition_phase(actor, campaign_id, body.phase)
