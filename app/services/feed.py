"""
Social feed: posts, likes and comments.

A post is visible to a caller when it is public, or when it is friends-only
and written by the caller or one of the caller's friends. Counter columns on
FeedPost move in the same transaction as the like/comment rows they count.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, case, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import Conflict, NotFound, ValidationError
from app.models.feed import FeedComment, FeedPost, FeedPostLike
from app.services.users import list_friend_uids, user_summaries

logger = logging.getLogger(__name__)

VISIBILITIES = ("public", "friends")
MAX_TAGS = 6
DEFAULT_LIMIT = 10
MAX_LIMIT = 50
_STAT_FIELDS = ("steps", "calories_burned", "water_intake")


def clamp_limit(limit: Optional[int]) -> int:
    return min(max(limit or DEFAULT_LIMIT, 1), MAX_LIMIT)


def _visible_filter(db: Session, user_id: str):
    allowed = [user_id] + list_friend_uids(db, user_id)
    return or_(
        FeedPost.visibility == "public",
        and_(FeedPost.visibility == "friends", FeedPost.user_id.in_(allowed)),
    )


def get_accessible_post(db: Session, post_id: int, user_id: str) -> FeedPost:
    post = (
        db.query(FeedPost)
        .filter(FeedPost.id == post_id)
        .filter(_visible_filter(db, user_id))
        .one_or_none()
    )
    if post is None:
        raise NotFound("Post not found")
    return post


def _after_cursor(db: Session, query, model, cursor: Optional[int]):
    # rows strictly after the cursor row in (created_at desc, id desc) order
    if cursor is None:
        return query
    anchor = db.query(model).filter(model.id == cursor).one_or_none()
    if anchor is None:
        raise ValidationError("Invalid cursor")
    return query.filter(
        or_(
            model.created_at < anchor.created_at,
            and_(model.created_at == anchor.created_at, model.id < anchor.id),
        )
    )


def normalize_post(data: Dict[str, Any]) -> Dict[str, Any]:
    content = (data.get("content") or "").strip()
    if not content:
        raise ValidationError("content is required")

    tags = [t.strip() for t in data.get("tags") or [] if isinstance(t, str) and t.strip()]
    visibility = data.get("visibility") or "public"
    if visibility not in VISIBILITIES:
        raise ValidationError("visibility must be 'public' or 'friends'")

    stats = data.get("stats") or None
    if stats:
        stats = {k: stats[k] for k in _STAT_FIELDS if stats.get(k) is not None} or None

    return {
        "content": content,
        "tags": tags[:MAX_TAGS],
        "mood": data.get("mood") or None,
        "visibility": visibility,
        "stats": stats,
    }


def _serialize_post(post: FeedPost, author: Dict[str, Any], has_liked: bool) -> Dict[str, Any]:
    return {
        "id": post.id,
        "user_id": post.user_id,
        "content": post.content,
        "tags": post.tags or [],
        "mood": post.mood,
        "visibility": post.visibility,
        "stats": post.stats,
        "likes_count": post.likes_count,
        "comments_count": post.comments_count,
        "created_at": post.created_at,
        "user": author,
        "has_liked": has_liked,
    }


def create_post(db: Session, user_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    post = FeedPost(user_id=user_id, likes_count=0, comments_count=0, **normalize_post(data))
    db.add(post)
    db.commit()
    db.refresh(post)
    logger.info("Feed post created: id=%s visibility=%s", post.id, post.visibility)
    return _serialize_post(post, user_summaries(db, [user_id])[user_id], False)


def list_posts(
    db: Session,
    user_id: str,
    limit: Optional[int] = None,
    cursor: Optional[int] = None,
) -> Dict[str, Any]:
    limit = clamp_limit(limit)
    query = db.query(FeedPost).filter(_visible_filter(db, user_id))
    query = _after_cursor(db, query, FeedPost, cursor)
    posts = query.order_by(FeedPost.created_at.desc(), FeedPost.id.desc()).limit(limit).all()

    liked = set()
    if posts:
        rows = (
            db.query(FeedPostLike.post_id)
            .filter(FeedPostLike.user_id == user_id)
            .filter(FeedPostLike.post_id.in_([p.id for p in posts]))
            .all()
        )
        liked = {r[0] for r in rows}
    authors = user_summaries(db, [p.user_id for p in posts])

    return {
        "posts": [_serialize_post(p, authors[p.user_id], p.id in liked) for p in posts],
        "next_cursor": posts[-1].id if posts else None,
    }


def _bump(db: Session, post_id: int, column, delta: int) -> None:
    db.query(FeedPost).filter(FeedPost.id == post_id).update(
        {column: case((column + delta < 0, 0), else_=column + delta)},
        synchronize_session=False,
    )


def toggle_like(db: Session, post_id: int, user_id: str) -> Dict[str, Any]:
    """Like or unlike; returns the new liked flag and the post's like count."""
    post = get_accessible_post(db, post_id, user_id)

    existing = (
        db.query(FeedPostLike)
        .filter(FeedPostLike.post_id == post.id)
        .filter(FeedPostLike.user_id == user_id)
        .one_or_none()
    )

    if existing is not None:
        db.delete(existing)
        _bump(db, post.id, FeedPost.likes_count, -1)
        liked = False
    else:
        try:
            with db.begin_nested():
                db.add(FeedPostLike(post_id=post.id, user_id=user_id))
        except IntegrityError:
            db.rollback()
            raise Conflict("Like was toggled concurrently, try again")
        _bump(db, post.id, FeedPost.likes_count, 1)
        liked = True

    db.commit()
    db.refresh(post)
    return {"liked": liked, "likes_count": post.likes_count}


def add_comment(db: Session, post_id: int, user_id: str, text: Optional[str]) -> Dict[str, Any]:
    text = (text or "").strip()
    if not text:
        raise ValidationError("text is required")

    post = get_accessible_post(db, post_id, user_id)
    comment = FeedComment(post_id=post.id, user_id=user_id, text=text)
    db.add(comment)
    _bump(db, post.id, FeedPost.comments_count, 1)

    db.commit()
    db.refresh(comment)
    return _serialize_comment(comment, user_summaries(db, [user_id])[user_id])


def _serialize_comment(comment: FeedComment, author: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": comment.id,
        "post_id": comment.post_id,
        "user_id": comment.user_id,
        "text": comment.text,
        "created_at": comment.created_at,
        "user": author,
    }


def list_comments(
    db: Session,
    user_id: str,
    post_id: int,
    limit: Optional[int] = None,
    cursor: Optional[int] = None,
) -> Dict[str, Any]:
    post = get_accessible_post(db, post_id, user_id)

    query = db.query(FeedComment).filter(FeedComment.post_id == post.id)
    query = _after_cursor(db, query, FeedComment, cursor)
    comments: List[FeedComment] = (
        query.order_by(FeedComment.created_at.desc(), FeedComment.id.desc())
        .limit(clamp_limit(limit))
        .all()
    )
    authors = user_summaries(db, [c.user_id for c in comments])

    return {
        "comments": [_serialize_comment(c, authors[c.user_id]) for c in comments],
        "next_cursor": comments[-1].id if comments else None,
    }
