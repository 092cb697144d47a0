from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from app.core.auth import Actor, get_actor

from .schemas import PostCreateIn, PostDeletedOut, PostOut, PostsListOut, PostSubmitIn, PostUpdateIn, UnhideIn
from .service import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    create_post,
    delete_post,
    get_post,
    list_hidden_posts,
    list_my_drafts,
    list_scene_posts,
    submit_post,
    unhide_post,
    update_post,
)

router = APIRouter(tags=["posts"])


@router.post("/scenes/{scene_id}/posts", response_model=PostOut)
def api_create_post(scene_id: str, body: PostCreateIn, actor: Actor = Depends(get_actor)) -> PostOut:
    return create_post(
        actor,
        scene_id,
        character_id=body.character_id,
        blocks=[b.model_dump() for b in body.blocks],
        ooc_text=body.ooc_text,
        hidden=body.hidden,
        submit=body.submit,
    )


@router.get("/scenes/{scene_id}/posts", response_model=PostsListOut)
def api_list_posts(
    scene_id: str,
    after_seq: Optional[int] = Query(None, ge=0),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    actor: Actor = Depends(get_actor),
) -> PostsListOut:
    return PostsListOut(**list_scene_posts(actor, scene_id, after_seq=after_seq, limit=limit))


@router.get("/scenes/{scene_id}/posts/hidden", response_model=List[PostOut])
def api_list_hidden_posts(scene_id: str, actor: Actor = Depends(get_actor)) -> List[PostOut]:
    return list_hidden_posts(actor, scene_id)


@router.get("/scenes/{scene_id}/drafts", response_model=List[PostOut])
def api_list_drafts(scene_id: str, actor: Actor = Depends(get_actor)) -> List[PostOut]:
    return list_my_drafts(actor, scene_id)


@router.get("/posts/{post_id}", response_model=PostOut)
def api_get_post(post_id: str, actor: Actor = Depends(get_actor)) -> PostOut:
    return get_post(actor, post_id)


@router.post("/posts/{post_id}/submit", response_model=PostOut)
def api_submit_post(post_id: str, body: PostSubmitIn, actor: Actor = Depends(get_actor)) -> PostOut:
    return submit_post(actor, post_id, hidden=body.hidden)


@router.post("/posts/{post_id}/unhide", response_model=PostOut)
def api_unhide_post(post_id: str, body: UnhideIn, actor: Actor = Depends(get_actor)) -> PostOut:
    return unhide_post(actor, post_id, witnesses=body.witnesses)


@router.patch("/posts/{post_id}", response_model=PostOut)
def api_update_post(post_id: str, body: PostUpdateIn, actor: Actor = Depends(get_actor)) -> PostOut:
    blocks = [b.model_dump() for b in body.blocks] if body.blocks is not None else None
    return update_post(actor, post_id, blocks=blocks, ooc_text=body.ooc_text)


@router.delete("/posts/{post_id}", response_model=PostDeletedOut)
def api_delete_post(post_id: str, actor: Actor = Depends(get_actor)) -> PostDeletedOut:
    return delete_post(actor, post_id)
