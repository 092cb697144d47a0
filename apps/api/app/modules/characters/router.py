from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from app.core.auth import Actor, get_actor

from .schemas import CharacterAssignIn, CharacterCreateIn, CharacterOut, CharactersListOut
from .service import archive_character, assign_character, create_character, list_characters, unarchive_character

router = APIRouter(tags=["characters"])


@router.get("/campaigns/{campaign_id}/characters", response_model=CharactersListOut)
def api_list_characters(
    campaign_id: str,
    include_archived: bool = Query(False),
    actor: Actor = Depends(get_actor),
) -> CharactersListOut:
    items = list_characters(actor, campaign_id, include_archived=include_archived)
    return CharactersListOut(items=items)


@router.post("/campaigns/{campaign_id}/characters", response_model=CharacterOut)
def api_create_character(campaign_id: str, body: CharacterCreateIn, actor: Actor = Depends(get_actor)) -> CharacterOut:
    return create_character(
        actor,
        campaign_id,
        display_name=body.display_name,
        character_type=body.character_type,
        owner_user_id=body.owner_user_id,
    )


@router.put("/characters/{character_id}/owner", response_model=CharacterOut)
def api_assign_character(character_id: str, body: CharacterAssignIn, actor: Actor = Depends(get_actor)) -> CharacterOut:
    return assign_character(actor, character_id, body.owner_user_id)


@router.post("/characters/{character_id}/archive", response_model=CharacterOut)
def api_archive_character(character_id: str, actor: Actor = Depends(get_actor)) -> CharacterOut:
    return archive_character(actor, character_id)


@router.post("/characters/{character_id}/unarchive", response_model=CharacterOut)
def api_unarchive_character(character_id: str, actor: Actor = Depends(get_actor)) -> CharacterOut:
    return unarchive_character(actor, character_id)
