import logging
from datetime import timedelta
from typing import Any, Dict, List

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.clock import utcnow
from app.core.errors import NotFound, ValidationError
from app.models.challenge import Challenge, ChallengeEnrollment
from app.services.users import user_summaries

logger = logging.getLogger(__name__)

DEFAULT_CHALLENGES = (
    {
        "slug": "weekly",
        "title": "Weekly Momentum",
        "description": "Hit 2 of 3 daily goals for 7 days.",
        "prize_amount": 50,
        "currency": "USD",
        "duration_days": 7,
        "rules": ["Hit 2 of 3 daily goals each day", "Complete 7 days"],
    },
    {
        "slug": "30-day",
        "title": "30-Day Consistency",
        "description": "Stack 30 days of steady habits.",
        "prize_amount": 250,
        "currency": "USD",
        "duration_days": 30,
        "rules": ["Hit 2 of 3 daily goals each day", "Complete 30 days"],
    },
    {
        "slug": "75-day",
        "title": "75-Day Discipline",
        "description": "Crush all 3 daily goals for 75 days.",
        "prize_amount": 1000,
        "currency": "USD",
        "duration_days": 75,
        "rules": ["Hit all 3 daily goals each day", "Complete 75 days"],
    },
)


def ensure_default_challenges(db: Session) -> int:
    """Create any missing default challenge. Returns how many were created."""
    existing = {r[0] for r in db.query(Challenge.slug).all()}
    created = 0
    for template in DEFAULT_CHALLENGES:
        if template["slug"] in existing:
            continue
        starts_at = utcnow()
        try:
            with db.begin_nested():
                db.add(
                    Challenge(
                        slug=template["slug"],
                        title=template["title"],
                        description=template["description"],
                        prize_amount=template["prize_amount"],
                        currency=template["currency"],
                        rules=list(template["rules"]),
                        starts_at=starts_at,
                        ends_at=starts_at + timedelta(days=template["duration_days"] - 1),
                    )
                )
            created += 1
        except IntegrityError:
            # seeded by a concurrent request
            continue

    if created:
        db.commit()
        logger.info("Seeded %s default challenges", created)
    return created


def _get_by_slug(db: Session, slug: str) -> Challenge:
    challenge = db.query(Challenge).filter(Challenge.slug == slug).one_or_none()
    if challenge is None:
        raise NotFound("Challenge not found")
    return challenge


def list_challenges(db: Session, user_id: str) -> List[Dict[str, Any]]:
    ensure_default_challenges(db)

    challenges = db.query(Challenge).order_by(Challenge.created_at.asc(), Challenge.id.asc()).all()
    counts = dict(
        db.query(ChallengeEnrollment.challenge_id, func.count(ChallengeEnrollment.id))
        .group_by(ChallengeEnrollment.challenge_id)
        .all()
    )
    enrolled = {
        r[0]
        for r in db.query(ChallengeEnrollment.challenge_id)
        .filter(ChallengeEnrollment.user_id == user_id)
        .all()
    }

    leaders = {}
    for challenge in challenges:
        top = (
            db.query(ChallengeEnrollment)
            .filter(ChallengeEnrollment.challenge_id == challenge.id)
            .order_by(ChallengeEnrollment.score.desc(), ChallengeEnrollment.updated_at.desc())
            .first()
        )
        if top is not None:
            leaders[challenge.id] = top
    cards = user_summaries(db, [e.user_id for e in leaders.values()])

    result = []
    for challenge in challenges:
        top = leaders.get(challenge.id)
        leader = None
        if top is not None:
            card = cards[top.user_id]
            leader = {
                "uid": top.user_id,
                "display_name": card["display_name"],
                "photo_url": card["photo_url"],
                "score": top.score,
            }
        result.append(
            {
                "id": challenge.id,
                "slug": challenge.slug,
                "title": challenge.title,
                "description": challenge.description,
                "prize_amount": challenge.prize_amount,
                "currency": challenge.currency,
                "rules": challenge.rules or [],
                "starts_at": challenge.starts_at,
                "ends_at": challenge.ends_at,
                "enrolled_count": counts.get(challenge.id, 0),
                "leader": leader,
                "is_enrolled": challenge.id in enrolled,
            }
        )
    return result


def _upsert_enrollment(db: Session, challenge: Challenge, user_id: str) -> ChallengeEnrollment:
    def _existing():
        return (
            db.query(ChallengeEnrollment)
            .filter(ChallengeEnrollment.challenge_id == challenge.id)
            .filter(ChallengeEnrollment.user_id == user_id)
            .one_or_none()
        )

    enrollment = _existing()
    if enrollment is not None:
        return enrollment
    try:
        with db.begin_nested():
            enrollment = ChallengeEnrollment(challenge_id=challenge.id, user_id=user_id, score=0)
            db.add(enrollment)
    except IntegrityError:
        enrollment = _existing()
        if enrollment is None:
            raise
    return enrollment


def enroll(db: Session, user_id: str, slug: str) -> Challenge:
    ensure_default_challenges(db)
    challenge = _get_by_slug(db, slug)
    _upsert_enrollment(db, challenge, user_id)
    db.commit()
    db.refresh(challenge)
    logger.info("User %s enrolled in challenge %s", user_id, slug)
    return challenge


def update_progress(db: Session, user_id: str, slug: str, score) -> ChallengeEnrollment:
    try:
        score = float(score)
    except (TypeError, ValueError):
        raise ValidationError("score must be a number")

    ensure_default_challenges(db)
    challenge = _get_by_slug(db, slug)
    enrollment = _upsert_enrollment(db, challenge, user_id)
    enrollment.score = score
    enrollment.updated_at = utcnow()

    db.commit()
    db.refresh(enrollment)
    return enrollment
