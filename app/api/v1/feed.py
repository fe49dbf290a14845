from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.api.deps import get_current_user_id, ok
from app.core.db import get_db
from app.services import feed as feed_service

router = APIRouter(prefix="/feed", tags=["feed"])


class FeedStatsIn(BaseModel):
    steps: int | None = None
    calories_burned: float | None = None
    water_intake: int | None = None


class FeedPostIn(BaseModel):
    content: str | None = None
    tags: list | None = None
    mood: str | None = None
    visibility: str | None = None
    stats: FeedStatsIn | None = None


class CommentIn(BaseModel):
    text: str | None = None


@router.get("")
def list_posts(
    limit: int | None = None,
    cursor: int | None = None,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return ok(feed_service.list_posts(db, user_id, limit, cursor))


@router.post("")
def create_post(
    payload: FeedPostIn,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    post = feed_service.create_post(db, user_id, payload.model_dump())
    return ok(post, "Post created")


@router.post("/{post_id}/like")
def toggle_like(
    post_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return ok(feed_service.toggle_like(db, post_id, user_id))


@router.get("/{post_id}/comments")
def list_comments(
    post_id: int,
    limit: int | None = None,
    cursor: int | None = None,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return ok(feed_service.list_comments(db, user_id, post_id, limit, cursor))


@router.post("/{post_id}/comments")
def add_comment(
    post_id: int,
    payload: CommentIn,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    comment = feed_service.add_comment(db, post_id, user_id, payload.text)
    return ok(comment, "Comment added")
