from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.api.deps import get_current_user_id, ok
from app.core.db import get_db
from app.services import challenges as challenge_service

router = APIRouter(prefix="/challenges", tags=["challenges"])


class ProgressIn(BaseModel):
    # validated by the service so a non-numeric score reads as a 400
    score: Any = None


@router.get("")
def list_challenges(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return ok(challenge_service.list_challenges(db, user_id))


@router.post("/{slug}/enroll")
def enroll(
    slug: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    challenge = challenge_service.enroll(db, user_id, slug)
    return ok({"id": challenge.id, "slug": challenge.slug, "title": challenge.title}, "Enrolled")


@router.put("/{slug}/progress")
def update_progress(
    slug: str,
    payload: ProgressIn,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    enrollment = challenge_service.update_progress(db, user_id, slug, payload.score)
    return ok({"slug": slug, "score": enrollment.score}, "Progress updated")
