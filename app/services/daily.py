"""
Daily aggregate store.

One DailyHealthData row per (user_id, date). Creation is race-safe: the
insert runs in a savepoint, and a unique-constraint violation means another
request created the row first, so we reuse theirs. Legacy duplicates (rows
written before the constraint existed) are healed by keeping the oldest row.
"""

import logging
from datetime import date
from typing import Any, Callable, Dict, Optional

from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.models.health import DailyHealthData, Meal, WaterEntry, Workout

logger = logging.getLogger(__name__)

# Running totals owned by child rows
TOTAL_FIELDS = ("calories_consumed", "calories_burned", "water_intake")

# Accepted by save_daily_health_data; the first group defaults to 0 when absent
_ZEROED_FIELDS = ("calories_consumed", "calories_burned", "steps", "water_intake")
_VITAL_FIELDS = (
    "active_energy_burned",
    "dietary_energy_consumed",
    "heart_rate",
    "resting_heart_rate",
)


def daily_query(db: Session):
    return db.query(DailyHealthData).options(
        selectinload(DailyHealthData.meals),
        selectinload(DailyHealthData.water_entries),
        selectinload(DailyHealthData.workouts).selectinload(Workout.exercises),
        selectinload(DailyHealthData.workouts).selectinload(Workout.location_points),
        selectinload(DailyHealthData.fasting_session),
    )


def find_daily(db: Session, user_id: str, d: date) -> Optional[DailyHealthData]:
    rows = (
        daily_query(db)
        .filter(DailyHealthData.user_id == user_id)
        .filter(DailyHealthData.date == d)
        .order_by(DailyHealthData.created_at.asc(), DailyHealthData.id.asc())
        .all()
    )
    if not rows:
        return None

    keep, extras = rows[0], rows[1:]
    if extras:
        logger.warning(
            "Duplicate daily rows for user=%s date=%s: keeping id=%s, deleting %s",
            user_id,
            d,
            keep.id,
            [r.id for r in extras],
        )
        for row in extras:
            db.delete(row)
        db.flush()
    return keep


def _create_or_reuse(
    db: Session,
    user_id: str,
    d: date,
    values: Dict[str, Any],
    on_existing: Optional[Callable[[DailyHealthData], None]] = None,
) -> DailyHealthData:
    try:
        with db.begin_nested():
            daily = DailyHealthData(user_id=user_id, date=d, **values)
            db.add(daily)
        return daily
    except IntegrityError:
        logger.info(
            "Concurrent create of daily row for user=%s date=%s; reusing existing row",
            user_id,
            d,
        )

    daily = find_daily(db, user_id, d)
    if daily is None:
        raise RuntimeError(f"Daily row for user={user_id} date={d} vanished after conflict")
    if on_existing is not None:
        on_existing(daily)
    return daily


def get_or_create_daily(db: Session, user_id: str, d: date) -> DailyHealthData:
    """
    Return the aggregate for (user_id, d), inserting a zeroed one if absent.
    Does not commit; callers commit together with their child writes.
    """
    daily = find_daily(db, user_id, d)
    if daily is not None:
        return daily

    zeroed = {field: 0 for field in _ZEROED_FIELDS}
    return _create_or_reuse(db, user_id, d, zeroed)


def save_daily_health_data(db: Session, user_id: str, d: date, data: Dict[str, Any]) -> DailyHealthData:
    """
    Upsert the day's totals as reported by the client.

    Missing totals are written as 0 and missing vitals are left alone. This
    overwrites the child-derived totals; reconcile_daily_totals restores them.
    """
    values: Dict[str, Any] = {field: data.get(field) or 0 for field in _ZEROED_FIELDS}
    for field in _VITAL_FIELDS:
        if data.get(field) is not None:
            values[field] = data[field]

    def apply(row: DailyHealthData) -> None:
        for field, value in values.items():
            setattr(row, field, value)

    daily = find_daily(db, user_id, d)
    if daily is None:
        daily = _create_or_reuse(db, user_id, d, values, on_existing=apply)
    else:
        apply(daily)

    db.commit()
    return find_daily(db, user_id, d)


def adjust_total(db: Session, daily_id: int, field: str, delta: float) -> None:
    """
    Atomic `field = max(field + delta, 0)` executed in SQL so concurrent
    writers never lose each other's increments.
    """
    if not delta:
        return
    column = getattr(DailyHealthData, field)
    new_value = column + delta
    (
        db.query(DailyHealthData)
        .filter(DailyHealthData.id == daily_id)
        .update(
            {column: case((new_value < 0, 0), else_=new_value)},
            synchronize_session=False,
        )
    )


def _child_sums(db: Session, daily_id: int) -> Dict[str, float]:
    calories_consumed = (
        db.query(func.coalesce(func.sum(Meal.calories), 0))
        .filter(Meal.daily_health_data_id == daily_id)
        .scalar()
    )
    calories_burned = (
        db.query(func.coalesce(func.sum(Workout.total_calories_burned), 0))
        .filter(Workout.daily_health_data_id == daily_id)
        .scalar()
    )
    water_intake = (
        db.query(func.coalesce(func.sum(WaterEntry.glasses), 0))
        .filter(WaterEntry.daily_health_data_id == daily_id)
        .scalar()
    )
    return {
        "calories_consumed": float(calories_consumed),
        "calories_burned": float(calories_burned),
        "water_intake": int(water_intake),
    }


def total_drift(db: Session, daily: DailyHealthData) -> Dict[str, float]:
    """Stored total minus re-summed children, per running total."""
    sums = _child_sums(db, daily.id)
    return {field: (getattr(daily, field) or 0) - sums[field] for field in TOTAL_FIELDS}


def reconcile_daily_totals(db: Session, user_id: str, d: date) -> Optional[Dict[str, Any]]:
    """
    Recompute the running totals from the child rows and store them.
    Returns the drift that was corrected, or None when there is no row.
    """
    daily = find_daily(db, user_id, d)
    if daily is None:
        return None

    drift = total_drift(db, daily)
    sums = _child_sums(db, daily.id)
    for field in TOTAL_FIELDS:
        setattr(daily, field, sums[field])

    if any(drift.values()):
        logger.warning("Reconciled totals for user=%s date=%s drift=%s", user_id, d, drift)

    db.commit()
    return {"date": d.isoformat(), "drift": drift, "totals": sums}
