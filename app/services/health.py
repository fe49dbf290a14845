import logging
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.clock import to_naive_utc, utcnow
from app.core.errors import NotFound, ValidationError
from app.models.health import (
    DailyHealthData,
    Exercise,
    LocationPoint,
    Meal,
    WaterEntry,
    Workout,
)
from app.services.daily import adjust_total, daily_query, find_daily, get_or_create_daily
from app.services.fasting import auto_complete_sessions

logger = logging.getLogger(__name__)

MEAL_TYPES = ("breakfast", "lunch", "dinner", "snack")

_MEAL_FIELDS = ("type", "name", "calories", "carbs", "protein", "fat", "timestamp")
_WORKOUT_FIELDS = (
    "name",
    "type",
    "start_time",
    "end_time",
    "duration",
    "total_calories_burned",
    "distance",
    "average_speed",
    "max_speed",
)
_EXERCISE_FIELDS = ("name", "category", "duration", "sets", "reps", "weight", "calories_burned", "notes")
_POINT_FIELDS = ("latitude", "longitude", "timestamp", "altitude", "speed", "accuracy")
_DATETIME_FIELDS = {"timestamp", "start_time", "end_time"}


def _pick(data: Dict[str, Any], fields) -> Dict[str, Any]:
    picked = {}
    for field in fields:
        value = data.get(field)
        if value is None:
            continue
        picked[field] = to_naive_utc(value) if field in _DATETIME_FIELDS else value
    return picked


# ---------- read path ----------

def get_daily_health_data(db: Session, user_id: str, d: date) -> Optional[DailyHealthData]:
    """
    Fetch the day with all children. Any fasting session that has run past
    its target is completed before returning.
    """
    daily = find_daily(db, user_id, d)
    if daily is None:
        logger.debug("No daily data for user=%s date=%s", user_id, d)
        return None

    auto_complete_sessions(db, [daily])
    return daily


def get_weekly_health_data(db: Session, user_id: str, start_date: date) -> List[DailyHealthData]:
    dates = [start_date + timedelta(days=i) for i in range(7)]
    rows = (
        daily_query(db)
        .filter(DailyHealthData.user_id == user_id)
        .filter(DailyHealthData.date.in_(dates))
        .order_by(DailyHealthData.date.asc(), DailyHealthData.created_at.asc())
        .all()
    )

    # one row per date; older duplicates win, matching find_daily
    by_date: Dict[date, DailyHealthData] = {}
    for row in rows:
        by_date.setdefault(row.date, row)
    days = [by_date[d] for d in dates if d in by_date]

    auto_complete_sessions(db, days)
    return days


# ---------- meals ----------

def _validate_meal(data: Dict[str, Any]) -> None:
    if not data.get("name"):
        raise ValidationError("Meal name is required")
    if data.get("type") not in MEAL_TYPES:
        raise ValidationError(f"Meal type must be one of {', '.join(MEAL_TYPES)}")
    if data.get("calories") is None:
        raise ValidationError("Meal calories are required")


def add_meal(db: Session, user_id: str, d: date, data: Dict[str, Any]) -> Meal:
    _validate_meal(data)
    daily = get_or_create_daily(db, user_id, d)

    values = _pick(data, _MEAL_FIELDS)
    values.setdefault("timestamp", utcnow())
    meal = Meal(daily_health_data_id=daily.id, **values)
    db.add(meal)
    adjust_total(db, daily.id, "calories_consumed", meal.calories)

    db.commit()
    db.refresh(meal)
    return meal


def _owned_meal(db: Session, user_id: str, meal_id: int) -> Meal:
    meal = (
        db.query(Meal)
        .join(DailyHealthData, Meal.daily_health_data_id == DailyHealthData.id)
        .filter(Meal.id == meal_id)
        .filter(DailyHealthData.user_id == user_id)
        .one_or_none()
    )
    if meal is None:
        raise NotFound("Meal not found")
    return meal


def update_meal(db: Session, user_id: str, meal_id: int, data: Dict[str, Any]) -> Meal:
    """
    Apply the provided fields and move calories_consumed by (new - old).
    The total is adjusted by delta, not re-summed from the day's meals.
    """
    meal = _owned_meal(db, user_id, meal_id)
    changes = _pick(data, _MEAL_FIELDS)
    if "type" in changes and changes["type"] not in MEAL_TYPES:
        raise ValidationError(f"Meal type must be one of {', '.join(MEAL_TYPES)}")

    old_calories = meal.calories
    for field, value in changes.items():
        setattr(meal, field, value)

    adjust_total(db, meal.daily_health_data_id, "calories_consumed", meal.calories - old_calories)

    db.commit()
    db.refresh(meal)
    return meal


def delete_meal(db: Session, user_id: str, meal_id: int) -> None:
    meal = _owned_meal(db, user_id, meal_id)
    daily_id, calories = meal.daily_health_data_id, meal.calories

    db.delete(meal)
    adjust_total(db, daily_id, "calories_consumed", -calories)
    db.commit()


# ---------- water ----------

def add_water_entry(db: Session, user_id: str, d: date, data: Dict[str, Any]) -> WaterEntry:
    glasses = data.get("glasses")
    if glasses is None or glasses <= 0:
        raise ValidationError("glasses must be a positive number")

    daily = get_or_create_daily(db, user_id, d)
    entry = WaterEntry(
        daily_health_data_id=daily.id,
        glasses=glasses,
        timestamp=to_naive_utc(data.get("timestamp")) or utcnow(),
    )
    db.add(entry)
    adjust_total(db, daily.id, "water_intake", glasses)

    db.commit()
    db.refresh(entry)
    return entry


# ---------- workouts ----------

def _build_children(workout: Workout, data: Dict[str, Any]) -> None:
    workout.exercises = [
        Exercise(**_pick(item, _EXERCISE_FIELDS)) for item in data.get("exercises") or []
    ]
    workout.location_points = [
        LocationPoint(**_pick(item, _POINT_FIELDS)) for item in data.get("location_points") or []
    ]


def add_workout(db: Session, user_id: str, d: date, data: Dict[str, Any]) -> Workout:
    if not data.get("name") or not data.get("type") or not data.get("start_time"):
        raise ValidationError("Workout name, type and start_time are required")

    daily = get_or_create_daily(db, user_id, d)

    values = _pick(data, _WORKOUT_FIELDS)
    values.setdefault("total_calories_burned", 0)
    workout = Workout(daily_health_data_id=daily.id, **values)
    _build_children(workout, data)
    db.add(workout)
    adjust_total(db, daily.id, "calories_burned", workout.total_calories_burned)

    db.commit()
    db.refresh(workout)
    return workout


def _owned_workout(db: Session, user_id: str, workout_id: int) -> Workout:
    workout = (
        db.query(Workout)
        .join(DailyHealthData, Workout.daily_health_data_id == DailyHealthData.id)
        .filter(Workout.id == workout_id)
        .filter(DailyHealthData.user_id == user_id)
        .one_or_none()
    )
    if workout is None:
        raise NotFound("Workout not found")
    return workout


def update_workout(db: Session, user_id: str, workout_id: int, data: Dict[str, Any]) -> Workout:
    """
    Exercises and location points are replaced wholesale from the payload
    (omitted lists clear them); calories_burned moves by the delta.
    """
    workout = _owned_workout(db, user_id, workout_id)
    old_calories = workout.total_calories_burned

    for field, value in _pick(data, _WORKOUT_FIELDS).items():
        setattr(workout, field, value)

    workout.exercises.clear()
    workout.location_points.clear()
    db.flush()
    _build_children(workout, data)

    adjust_total(
        db,
        workout.daily_health_data_id,
        "calories_burned",
        workout.total_calories_burned - old_calories,
    )

    db.commit()
    db.refresh(workout)
    return workout


def delete_workout(db: Session, user_id: str, workout_id: int) -> None:
    workout = _owned_workout(db, user_id, workout_id)
    daily_id, calories = workout.daily_health_data_id, workout.total_calories_burned

    db.delete(workout)
    adjust_total(db, daily_id, "calories_burned", -calories)
    db.commit()
