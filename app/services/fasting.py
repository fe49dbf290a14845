"""
Fasting session state machine: NoSession -> Active -> Completed.

There is no background timer. An Active session whose elapsed time has
reached its target is completed lazily, the next time its day is read
(daily/weekly reads, start, end). A session that is never read again stays
Active in storage even after it has logically expired; whatever reads it
next will complete it with the duration capped at the target.
"""

import logging
from datetime import date, datetime
from typing import Any, Dict, Iterable, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.clock import hours_between, to_naive_utc, utcnow
from app.core.errors import Conflict, NotFound, ValidationError
from app.core.rounding import round_half_up
from app.models.health import DailyHealthData, FastingSession
from app.services.daily import find_daily, get_or_create_daily

logger = logging.getLogger(__name__)


def round_fasting_duration(hours: float) -> int:
    # Under half an hour still counts as one hour so short fasts are not stored as 0
    if hours < 0.5:
        return 1
    return round_half_up(hours)


def _target_hours(target_duration: Optional[float]) -> Optional[int]:
    if not target_duration:
        return None
    hours = round_half_up(target_duration)
    # a target that rounds to 0 never auto-completes
    if hours < 1:
        raise ValidationError("target_duration must be at least 1 hour")
    return hours


def auto_complete_sessions(
    db: Session,
    dailies: Iterable[DailyHealthData],
    now: Optional[datetime] = None,
) -> int:
    """
    Complete every Active session in `dailies` whose elapsed time has reached
    its target_duration. duration is capped at the target. Commits when
    anything changed and returns the number of sessions completed.
    """
    now = now or utcnow()
    completed = 0
    for daily in dailies:
        session = daily.fasting_session
        if session is None or session.end_time is not None or not session.target_duration:
            continue
        if hours_between(session.start_time, now) >= session.target_duration:
            session.end_time = now
            session.duration = session.target_duration
            completed += 1
            logger.info(
                "Auto-completed fasting session id=%s date=%s at target=%sh",
                session.id,
                daily.date,
                session.target_duration,
            )

    if completed:
        db.commit()
    return completed


def start_fasting_session(
    db: Session,
    user_id: str,
    d: date,
    fasting_type: str,
    target_duration: Optional[float] = None,
    eating_window_start: Optional[int] = None,
    eating_window_end: Optional[int] = None,
) -> FastingSession:
    if not fasting_type:
        raise ValidationError("type is required")
    target_hours = _target_hours(target_duration)

    daily = get_or_create_daily(db, user_id, d)
    auto_complete_sessions(db, [daily])

    session = daily.fasting_session
    if session is not None and session.end_time is None:
        raise Conflict(
            "An active fasting session already exists. "
            "Please end the current session before starting a new one."
        )

    values = {
        "type": fasting_type,
        "start_time": utcnow(),
        "end_time": None,
        "duration": 0,
        "target_duration": target_hours,
        "eating_window_start": eating_window_start,
        "eating_window_end": eating_window_end,
    }

    if session is None:
        try:
            with db.begin_nested():
                session = FastingSession(daily_health_data_id=daily.id, **values)
                db.add(session)
        except IntegrityError:
            db.rollback()
            raise Conflict("A fasting session was started concurrently for this date")
    else:
        # Only one session per day: a completed one is replaced by the new fast
        for field, value in values.items():
            setattr(session, field, value)

    db.commit()
    db.refresh(session)
    logger.info("Fasting session started: id=%s type=%s date=%s", session.id, session.type, d)
    return session


def end_fasting_session(db: Session, user_id: str, d: date) -> FastingSession:
    daily = find_daily(db, user_id, d)
    if daily is None:
        raise NotFound("Daily health data not found")

    auto_complete_sessions(db, [daily])

    session = daily.fasting_session
    if session is None:
        raise NotFound("No active fasting session found")
    if session.end_time is not None:
        raise Conflict("Fasting session has already ended")

    now = utcnow()
    session.end_time = now
    session.duration = round_half_up(hours_between(session.start_time, now))

    db.commit()
    db.refresh(session)
    logger.info("Fasting session ended: id=%s duration=%sh date=%s", session.id, session.duration, d)
    return session


def resolve_fasting_duration(
    start_time: datetime,
    end_time: Optional[datetime],
    target_duration: Optional[float],
    duration: Optional[float],
    now: datetime,
) -> Tuple[Optional[datetime], int]:
    """
    Work out (end_time, whole-hour duration) for an upserted session.

    An open session is measured against `now` and completed if it has reached
    its target. A closed one uses the reported duration, falling back to
    end - start. Either way the result never exceeds the target.
    """
    if end_time is None:
        elapsed = hours_between(start_time, now)
        if target_duration and elapsed >= target_duration:
            end_time = now
            hours = float(target_duration)
        else:
            hours = elapsed
    elif duration is not None:
        hours = float(duration)
    else:
        hours = hours_between(start_time, end_time)

    if target_duration and hours > target_duration:
        hours = float(target_duration)

    return end_time, round_fasting_duration(hours)


def save_fasting_session(db: Session, user_id: str, d: date, data: Dict[str, Any]) -> FastingSession:
    if not data or not data.get("type") or not data.get("start_time"):
        raise ValidationError("Missing required fields: type and start_time are required")

    start_time = to_naive_utc(data["start_time"])
    target_duration = data.get("target_duration")
    target_hours = _target_hours(target_duration)
    end_time, duration = resolve_fasting_duration(
        start_time,
        to_naive_utc(data.get("end_time")),
        target_duration,
        data.get("duration"),
        utcnow(),
    )

    values = {
        "type": data["type"],
        "start_time": start_time,
        "end_time": end_time,
        "duration": duration,
        "target_duration": target_hours,
        "eating_window_start": data.get("eating_window_start"),
        "eating_window_end": data.get("eating_window_end"),
    }

    daily = get_or_create_daily(db, user_id, d)
    session = (
        db.query(FastingSession)
        .filter(FastingSession.daily_health_data_id == daily.id)
        .one_or_none()
    )

    if session is None:
        try:
            with db.begin_nested():
                session = FastingSession(daily_health_data_id=daily.id, **values)
                db.add(session)
        except IntegrityError:
            logger.info("Racing fasting upsert for daily id=%s; updating existing row", daily.id)
            session = (
                db.query(FastingSession)
                .filter(FastingSession.daily_health_data_id == daily.id)
                .one()
            )
            for field, value in values.items():
                setattr(session, field, value)
    else:
        for field, value in values.items():
            setattr(session, field, value)

    db.commit()
    db.refresh(session)
    logger.info(
        "Fasting session saved: id=%s type=%s duration=%s date=%s",
        session.id,
        session.type,
        session.duration,
        d,
    )
    return session
