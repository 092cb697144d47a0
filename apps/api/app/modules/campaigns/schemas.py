from __future__ import annotations

from typing import List, Literal, Optional
from pydantic import BaseModel, Field

Phase = Literal["gm_phase", "pc_phase"]
MemberRole = Literal["gm", "player"]


class CampaignCreateIn(BaseModel):
    title: str = Field(min_length=1, max_length=255)


class CampaignOut(BaseModel):
    id: str
    title: str
    current_phase: Phase
    created_by: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class MemberAddIn(BaseModel):
    user_id: str = Field(min_length=1)
    role: MemberRole = "player"


class MemberOut(BaseModel):
    campaign_id: str
    user_id: str
    role: MemberRole
    created_at: Optional[str] = None


class CampaignDetailOut(BaseModel):
    campaign: CampaignOut
    members: List[MemberOut] = Field(default_factory=list)
    my_role: MemberRole


class PhaseTransitionIn(BaseModel):
    phase: Phase


class PhaseOut(BaseModel):
    campaign_id: str
    current_phase: Phase
    is_admin_phase: bool
    pending_rolls: int = 0
