import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import ValidationError
from app.models.user import WATER_GOAL_MINIMUM, Friend, User, UserProfile

logger = logging.getLogger(__name__)

_PROFILE_FIELDS = ("age", "weight", "height", "activity_level", "gender")


def user_summaries(db: Session, user_ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
    """Author cards keyed by user id. Unknown ids get an empty card."""
    ids = set(user_ids)
    if not ids:
        return {}
    found = {u.id: u for u in db.query(User).filter(User.id.in_(ids)).all()}
    summaries = {}
    for uid in ids:
        user = found.get(uid)
        summaries[uid] = {
            "id": uid,
            "display_name": user.display_name if user else None,
            "photo_url": user.photo_url if user else None,
        }
    return summaries


def ensure_user(db: Session, user_id: str, **fields) -> User:
    """Create the User row on first sight; non-empty fields overwrite."""
    user = db.get(User, user_id)
    if user is None:
        try:
            with db.begin_nested():
                user = User(id=user_id)
                db.add(user)
        except IntegrityError:
            user = db.get(User, user_id)
            if user is None:
                raise
    for field, value in fields.items():
        if value:
            setattr(user, field, value)
    return user


def get_profile(db: Session, user_id: str) -> Optional[UserProfile]:
    return db.query(UserProfile).filter(UserProfile.user_id == user_id).one_or_none()


def update_profile(db: Session, user_id: str, data: Dict[str, Any]) -> UserProfile:
    """
    Upsert the profile. Only provided fields change; water_goal is raised to
    the minimum when set below it.
    """
    changes = {f: data[f] for f in _PROFILE_FIELDS if data.get(f) is not None}
    if data.get("water_goal") is not None:
        changes["water_goal"] = max(int(data["water_goal"]), WATER_GOAL_MINIMUM)

    ensure_user(
        db,
        user_id,
        display_name=data.get("display_name"),
        photo_url=data.get("photo_url"),
        email=data.get("email"),
    )

    profile = get_profile(db, user_id)
    if profile is None:
        try:
            with db.begin_nested():
                profile = UserProfile(user_id=user_id, water_goal=WATER_GOAL_MINIMUM)
                db.add(profile)
        except IntegrityError:
            profile = get_profile(db, user_id)
            if profile is None:
                raise

    for field, value in changes.items():
        setattr(profile, field, value)

    db.commit()
    db.refresh(profile)
    return profile


def list_friend_uids(db: Session, user_id: str) -> List[str]:
    rows = db.query(Friend.friend_uid).filter(Friend.user_id == user_id).all()
    return [r[0] for r in rows]


def add_friend(db: Session, user_id: str, friend_uid: Optional[str]) -> Friend:
    if not friend_uid:
        raise ValidationError("friend_uid is required")
    if friend_uid == user_id:
        raise ValidationError("Cannot add yourself as a friend")

    def _existing() -> Optional[Friend]:
        return (
            db.query(Friend)
            .filter(Friend.user_id == user_id)
            .filter(Friend.friend_uid == friend_uid)
            .one_or_none()
        )

    friend = _existing()
    if friend is not None:
        return friend

    try:
        with db.begin_nested():
            friend = Friend(user_id=user_id, friend_uid=friend_uid)
            db.add(friend)
    except IntegrityError:
        friend = _existing()
        if friend is None:
            raise

    db.commit()
    db.refresh(friend)
    logger.info("Friend link added: %s -> %s", user_id, friend_uid)
    return friend
