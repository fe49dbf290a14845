from sqlalchemy import (
    Column,
    Integer,
    Float,
    Date,
    DateTime,
    String,
    Text,
    UniqueConstraint,
    ForeignKey,
)
from sqlalchemy.orm import relationship

from app.core.clock import utcnow
from app.core.db import Base


class DailyHealthData(Base):
    """
    Per-user, per-calendar-day aggregate.

    calories_consumed / calories_burned / water_intake are running totals kept
    in step with the child meals / workouts / water entries by delta updates.
    """

    __tablename__ = "daily_health_data"
    __table_args__ = (UniqueConstraint("user_id", "date", name="uq_daily_user_date"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(128), nullable=False, index=True)
    date = Column(Date, nullable=False)

    calories_consumed = Column(Float, nullable=False, default=0)
    calories_burned = Column(Float, nullable=False, default=0)
    steps = Column(Integer, nullable=False, default=0)
    water_intake = Column(Integer, nullable=False, default=0)

    # Raw vitals pushed by the device sync, not derived from children
    active_energy_burned = Column(Float)
    dietary_energy_consumed = Column(Float)
    heart_rate = Column(Float)
    resting_heart_rate = Column(Float)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    meals = relationship(
        "Meal",
        back_populates="daily",
        cascade="all, delete-orphan",
        order_by="Meal.timestamp",
    )
    water_entries = relationship(
        "WaterEntry",
        back_populates="daily",
        cascade="all, delete-orphan",
        order_by="WaterEntry.timestamp",
    )
    workouts = relationship(
        "Workout",
        back_populates="daily",
        cascade="all, delete-orphan",
        order_by="Workout.start_time",
    )
    fasting_session = relationship(
        "FastingSession",
        back_populates="daily",
        cascade="all, delete-orphan",
        uselist=False,
    )


class Meal(Base):
    __tablename__ = "meals"

    id = Column(Integer, primary_key=True, index=True)
    daily_health_data_id = Column(
        Integer, ForeignKey("daily_health_data.id", ondelete="CASCADE"), nullable=False, index=True
    )

    type = Column(String(16), nullable=False)  # breakfast / lunch / dinner / snack
    name = Column(String(255), nullable=False)
    calories = Column(Float, nullable=False, default=0)
    carbs = Column(Float, nullable=False, default=0)
    protein = Column(Float, nullable=False, default=0)
    fat = Column(Float, nullable=False, default=0)
    timestamp = Column(DateTime, nullable=False, default=utcnow)

    daily = relationship("DailyHealthData", back_populates="meals")


class WaterEntry(Base):
    __tablename__ = "water_entries"

    id = Column(Integer, primary_key=True, index=True)
    daily_health_data_id = Column(
        Integer, ForeignKey("daily_health_data.id", ondelete="CASCADE"), nullable=False, index=True
    )

    glasses = Column(Integer, nullable=False)
    timestamp = Column(DateTime, nullable=False, default=utcnow)

    daily = relationship("DailyHealthData", back_populates="water_entries")


class Workout(Base):
    __tablename__ = "workouts"

    id = Column(Integer, primary_key=True, index=True)
    daily_health_data_id = Column(
        Integer, ForeignKey("daily_health_data.id", ondelete="CASCADE"), nullable=False, index=True
    )

    name = Column(String(255), nullable=False)
    type = Column(String(64), nullable=False)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime)
    duration = Column(Float)  # minutes, as reported by the client
    total_calories_burned = Column(Float, nullable=False, default=0)
    distance = Column(Float)
    average_speed = Column(Float)
    max_speed = Column(Float)

    daily = relationship("DailyHealthData", back_populates="workouts")
    exercises = relationship(
        "Exercise",
        back_populates="workout",
        cascade="all, delete-orphan",
        order_by="Exercise.id",
    )
    location_points = relationship(
        "LocationPoint",
        back_populates="workout",
        cascade="all, delete-orphan",
        order_by="LocationPoint.timestamp",
    )


class Exercise(Base):
    __tablename__ = "exercises"

    id = Column(Integer, primary_key=True, index=True)
    workout_id = Column(Integer, ForeignKey("workouts.id", ondelete="CASCADE"), nullable=False, index=True)

    name = Column(String(255), nullable=False)
    category = Column(String(64))
    duration = Column(Float)
    sets = Column(Integer)
    reps = Column(Integer)
    weight = Column(Float)
    calories_burned = Column(Float)
    notes = Column(Text)

    workout = relationship("Workout", back_populates="exercises")


class LocationPoint(Base):
    __tablename__ = "location_points"

    id = Column(Integer, primary_key=True, index=True)
    workout_id = Column(Integer, ForeignKey("workouts.id", ondelete="CASCADE"), nullable=False, index=True)

    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    timestamp = Column(DateTime, nullable=False)
    altitude = Column(Float)
    speed = Column(Float)
    accuracy = Column(Float)

    workout = relationship("Workout", back_populates="location_points")


class FastingSession(Base):
    """
    At most one per DailyHealthData. end_time NULL means the session is active.
    duration / target_duration are whole hours.
    """

    __tablename__ = "fasting_sessions"
    __table_args__ = (UniqueConstraint("daily_health_data_id", name="uq_fasting_daily"),)

    id = Column(Integer, primary_key=True, index=True)
    daily_health_data_id = Column(
        Integer, ForeignKey("daily_health_data.id", ondelete="CASCADE"), nullable=False
    )

    type = Column(String(32), nullable=False)  # e.g. "16:8", "18:6", "omad"
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime)
    duration = Column(Integer, nullable=False, default=0)
    target_duration = Column(Integer)
    eating_window_start = Column(Integer)  # hour of day
    eating_window_end = Column(Integer)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    daily = relationship("DailyHealthData", back_populates="fasting_session")

    @property
    def is_active(self) -> bool:
        return self.end_time is None
