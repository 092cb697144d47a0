from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.core.auth import Actor, get_actor

from .schemas import RollCreateIn, RollOut, RollResultIn, RollsListOut
from .service import create_roll, get_roll, invalidate_roll, list_scene_rolls, record_result

router = APIRouter(tags=["rolls"])


@router.post("/posts/{post_id}/rolls", response_model=RollOut)
def api_create_roll(post_id: str, body: RollCreateIn, actor: Actor = Depends(get_actor)) -> RollOut:
    return create_roll(
        actor,
        post_id,
        intention=body.intention,
        modifier=body.modifier,
        dice_type=body.dice_type,
        dice_count=body.dice_count,
        character_id=body.character_id,
    )


@router.get("/scenes/{scene_id}/rolls", response_model=RollsListOut)
def api_list_rolls(
    scene_id: str,
    status: Optional[str] = Query(None),
    actor: Actor = Depends(get_actor),
) -> RollsListOut:
    return RollsListOut(items=list_scene_rolls(actor, scene_id, status=status))


@router.get("/rolls/{roll_id}", response_model=RollOut)
def api_get_roll(roll_id: str, actor: Actor = Depends(get_actor)) -> RollOut:
    return get_roll(actor, roll_id)


@router.post("/rolls/{roll_id}/result", response_model=RollOut)
def api_record_result(roll_id: str, body: RollResultIn, actor: Actor = Depends(get_actor)) -> RollOut:
    return record_result(actor, roll_id, body.results)


@router.post("/rolls/{roll_id}/invalidate", response_model=RollOut)
def api_invalidate_roll(roll_id: str, actor: Actor = Depends(get_actor)) -> RollOut:
    return invalidate_roll(actor, roll_id)
