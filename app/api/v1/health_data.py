from datetime import date as DateType, datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from app.api.deps import get_current_user_id, ok, parse_date
from app.core.db import get_db
from app.core.errors import NotFound
from app.services import daily as daily_service
from app.services import fasting as fasting_service
from app.services import health as health_service
from app.services.recommendations import MealRecommender, build_context, get_recommender

router = APIRouter(prefix="/health", tags=["health-data"])


# ---------- Pydantic schemas ----------

class MealOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: str
    name: str
    calories: float
    carbs: float
    protein: float
    fat: float
    timestamp: datetime


class WaterEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    glasses: int
    timestamp: datetime


class ExerciseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    category: str | None
    duration: float | None
    sets: int | None
    reps: int | None
    weight: float | None
    calories_burned: float | None
    notes: str | None


class LocationPointOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    latitude: float
    longitude: float
    timestamp: datetime
    altitude: float | None
    speed: float | None
    accuracy: float | None


class WorkoutOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    type: str
    start_time: datetime
    end_time: datetime | None
    duration: float | None
    total_calories_burned: float
    distance: float | None
    average_speed: float | None
    max_speed: float | None
    exercises: list[ExerciseOut] = []
    location_points: list[LocationPointOut] = []


class FastingSessionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: str
    start_time: datetime
    end_time: datetime | None
    duration: int
    target_duration: int | None
    eating_window_start: int | None
    eating_window_end: int | None
    is_active: bool


class DailyHealthOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    date: DateType
    calories_consumed: float
    calories_burned: float
    steps: int
    water_intake: int
    active_energy_burned: float | None
    dietary_energy_consumed: float | None
    heart_rate: float | None
    resting_heart_rate: float | None
    meals: list[MealOut] = []
    water_entries: list[WaterEntryOut] = []
    workouts: list[WorkoutOut] = []
    fasting_session: FastingSessionOut | None = None


class DailyIn(BaseModel):
    date: str
    calories_consumed: float | None = None
    calories_burned: float | None = None
    steps: int | None = None
    water_intake: int | None = None
    active_energy_burned: float | None = None
    dietary_energy_consumed: float | None = None
    heart_rate: float | None = None
    resting_heart_rate: float | None = None


class MealIn(BaseModel):
    date: str
    type: str | None = None
    name: str | None = None
    calories: float | None = None
    carbs: float = 0
    protein: float = 0
    fat: float = 0
    timestamp: datetime | None = None


class MealUpdate(BaseModel):
    type: str | None = None
    name: str | None = None
    calories: float | None = None
    carbs: float | None = None
    protein: float | None = None
    fat: float | None = None
    timestamp: datetime | None = None


class WaterIn(BaseModel):
    date: str
    glasses: int | None = None
    timestamp: datetime | None = None


class ExerciseIn(BaseModel):
    name: str
    category: str | None = None
    duration: float | None = None
    sets: int | None = None
    reps: int | None = None
    weight: float | None = None
    calories_burned: float | None = None
    notes: str | None = None


class LocationPointIn(BaseModel):
    latitude: float
    longitude: float
    timestamp: datetime
    altitude: float | None = None
    speed: float | None = None
    accuracy: float | None = None


class WorkoutFields(BaseModel):
    name: str | None = None
    type: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    duration: float | None = None
    total_calories_burned: float | None = None
    distance: float | None = None
    average_speed: float | None = None
    max_speed: float | None = None
    exercises: list[ExerciseIn] = []
    location_points: list[LocationPointIn] = []


class WorkoutIn(WorkoutFields):
    date: str


class FastingSessionIn(BaseModel):
    type: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    duration: float | None = None
    target_duration: float | None = None
    eating_window_start: int | None = None
    eating_window_end: int | None = None


class FastingUpsertIn(BaseModel):
    date: str
    session: FastingSessionIn | None = None


class FastingStartIn(BaseModel):
    date: str
    type: str | None = None
    target_duration: float | None = None
    eating_window_start: int | None = None
    eating_window_end: int | None = None


class FastingEndIn(BaseModel):
    date: str


def _daily_out(daily) -> DailyHealthOut:
    return DailyHealthOut.model_validate(daily)


# ---------- Daily aggregate ----------

@router.get("/daily/{date}")
def get_daily(
    date: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    d = parse_date(date)
    daily = health_service.get_daily_health_data(db, user_id, d)
    if daily is None:
        raise NotFound(f"No health data for {date}")
    return ok(_daily_out(daily))


@router.get("/weekly")
def get_weekly(
    start_date: str | None = None,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    d = parse_date(start_date, "start_date")
    days = health_service.get_weekly_health_data(db, user_id, d)
    return ok([_daily_out(day) for day in days])


@router.post("/daily")
def save_daily(
    payload: DailyIn,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    d = parse_date(payload.date)
    daily = daily_service.save_daily_health_data(db, user_id, d, payload.model_dump(exclude={"date"}))
    return ok(_daily_out(daily), "Daily health data saved")


@router.post("/daily/{date}/reconcile")
def reconcile_daily(
    date: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    d = parse_date(date)
    result = daily_service.reconcile_daily_totals(db, user_id, d)
    if result is None:
        raise NotFound(f"No health data for {date}")
    return ok(result)


# ---------- Meals ----------

@router.post("/meals")
def add_meal(
    payload: MealIn,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    d = parse_date(payload.date)
    meal = health_service.add_meal(db, user_id, d, payload.model_dump(exclude={"date"}))
    return ok(MealOut.model_validate(meal), "Meal added")


@router.put("/meals/{meal_id}")
def update_meal(
    meal_id: int,
    payload: MealUpdate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    meal = health_service.update_meal(db, user_id, meal_id, payload.model_dump(exclude_none=True))
    return ok(MealOut.model_validate(meal), "Meal updated")


@router.delete("/meals/{meal_id}")
def delete_meal(
    meal_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    health_service.delete_meal(db, user_id, meal_id)
    return ok(message="Meal deleted")


# ---------- Water ----------

@router.post("/water")
def add_water(
    payload: WaterIn,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    d = parse_date(payload.date)
    entry = health_service.add_water_entry(db, user_id, d, payload.model_dump(exclude={"date"}))
    return ok(WaterEntryOut.model_validate(entry), "Water entry added")


# ---------- Workouts ----------

@router.post("/workouts")
def add_workout(
    payload: WorkoutIn,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    d = parse_date(payload.date)
    workout = health_service.add_workout(db, user_id, d, payload.model_dump(exclude={"date"}))
    return ok(WorkoutOut.model_validate(workout), "Workout added")


@router.put("/workouts/{workout_id}")
def update_workout(
    workout_id: int,
    payload: WorkoutFields,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    workout = health_service.update_workout(db, user_id, workout_id, payload.model_dump())
    return ok(WorkoutOut.model_validate(workout), "Workout updated")


@router.delete("/workouts/{workout_id}")
def delete_workout(
    workout_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    health_service.delete_workout(db, user_id, workout_id)
    return ok(message="Workout deleted")


# ---------- Fasting ----------

@router.post("/fasting")
def save_fasting(
    payload: FastingUpsertIn,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    d = parse_date(payload.date)
    data = payload.session.model_dump() if payload.session else {}
    session = fasting_service.save_fasting_session(db, user_id, d, data)
    return ok(FastingSessionOut.model_validate(session), "Fasting session saved")


@router.post("/fasting/start")
def start_fasting(
    payload: FastingStartIn,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    d = parse_date(payload.date)
    session = fasting_service.start_fasting_session(
        db,
        user_id,
        d,
        payload.type,
        target_duration=payload.target_duration,
        eating_window_start=payload.eating_window_start,
        eating_window_end=payload.eating_window_end,
    )
    return ok(FastingSessionOut.model_validate(session), "Fasting session started")


@router.post("/fasting/end")
def end_fasting(
    payload: FastingEndIn,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    d = parse_date(payload.date)
    session = fasting_service.end_fasting_session(db, user_id, d)
    return ok(FastingSessionOut.model_validate(session), "Fasting session ended")


# ---------- Recommendations ----------

@router.get("/recommendations")
def get_recommendations(
    meal_type: str | None = None,
    calorie_limit: float | None = None,
    preferences: str | None = None,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    recommender: MealRecommender = Depends(get_recommender),
):
    context = build_context(db, user_id, meal_type, calorie_limit, preferences)
    return ok(recommender.recommend(context))
