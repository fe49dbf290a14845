from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from app.api.deps import get_current_user_id, ok
from app.core.db import get_db
from app.models.user import WATER_GOAL_MINIMUM
from app.services import users as user_service

router = APIRouter(prefix="/users/me", tags=["users"])


class ProfileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    age: int | None
    weight: float | None
    height: float | None
    activity_level: str | None
    gender: str | None
    water_goal: int


class ProfileIn(BaseModel):
    display_name: str | None = None
    photo_url: str | None = None
    email: str | None = None
    age: int | None = None
    weight: float | None = None
    height: float | None = None
    activity_level: str | None = None
    gender: str | None = None
    water_goal: int | None = None


class FriendIn(BaseModel):
    friend_uid: str | None = None


@router.get("/profile")
def get_profile(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    profile = user_service.get_profile(db, user_id)
    if profile is None:
        # nothing stored yet; report the defaults
        return ok(
            ProfileOut(
                user_id=user_id,
                age=None,
                weight=None,
                height=None,
                activity_level=None,
                gender=None,
                water_goal=WATER_GOAL_MINIMUM,
            )
        )
    return ok(ProfileOut.model_validate(profile))


@router.put("/profile")
def update_profile(
    payload: ProfileIn,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    profile = user_service.update_profile(db, user_id, payload.model_dump())
    return ok(ProfileOut.model_validate(profile), "Profile updated")


@router.get("/friends")
def list_friends(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    uids = user_service.list_friend_uids(db, user_id)
    summaries = user_service.user_summaries(db, uids)
    return ok([summaries[uid] for uid in uids])


@router.post("/friends")
def add_friend(
    payload: FriendIn,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    friend = user_service.add_friend(db, user_id, payload.friend_uid)
    return ok({"user_id": friend.user_id, "friend_uid": friend.friend_uid}, "Friend added")
