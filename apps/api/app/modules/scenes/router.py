from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from app.core.auth import Actor, get_actor

from .schemas import RosterOut, SceneArchiveIn, SceneCreateIn, SceneDetailOut, SceneOut, ScenesListOut
from .service import (
    add_character,
    create_scene,
    get_roster,
    get_scene,
    list_visible_scenes,
    remove_character,
    set_scene_archived,
)

router = APIRouter(tags=["scenes"])


@router.get("/campaigns/{campaign_id}/scenes", response_model=ScenesListOut)
def api_list_scenes(
    campaign_id: str,
    include_archived: bool = Query(False),
    actor: Actor = Depends(get_actor),
) -> ScenesListOut:
    return ScenesListOut(items=list_visible_scenes(actor, campaign_id, include_archived=include_archived))


@router.post("/campaigns/{campaign_id}/scenes", response_model=SceneOut)
def api_create_scene(campaign_id: str, body: SceneCreateIn, actor: Actor = Depends(get_actor)) -> SceneOut:
    return create_scene(actor, campaign_id, title=body.title, description=body.description)


@router.get("/scenes/{scene_id}", response_model=SceneDetailOut)
def api_get_scene(scene_id: str, actor: Actor = Depends(get_actor)) -> SceneDetailOut:
    return SceneDetailOut(**get_scene(actor, scene_id))


@router.post("/scenes/{scene_id}/archive", response_model=SceneOut)
def api_archive_scene(scene_id: str, body: SceneArchiveIn, actor: Actor = Depends(get_actor)) -> SceneOut:
    return set_scene_archived(actor, scene_id, archived=body.archived)


@router.get("/scenes/{scene_id}/roster", response_model=RosterOut)
def api_get_roster(scene_id: str, actor: Actor = Depends(get_actor)) -> RosterOut:
    return get_roster(actor, scene_id)


@router.put("/scenes/{scene_id}/roster/{character_id}", response_model=RosterOut)
def api_add_to_roster(scene_id: str, character_id: str, actor: Actor = Depends(get_actor)) -> RosterOut:
    return add_character(actor, scene_id, character_id)


@router.delete("/scenes/{scene_id}/roster/{character_id}", response_model=RosterOut)
def api_remove_from_roster(scene_id: str, character_id: str, actor: Actor = Depends(get_actor)) -> RosterOut:
    return remove_character(actor, scene_id, character_id)
