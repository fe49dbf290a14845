from sqlalchemy import (
    Column,
    Integer,
    Float,
    DateTime,
    String,
    CheckConstraint,
    UniqueConstraint,
)

from app.core.clock import utcnow
from app.core.db import Base

WATER_GOAL_MINIMUM = 8


class User(Base):
    # id is the opaque identity handed to us by the auth layer
    __tablename__ = "users"

    id = Column(String(128), primary_key=True)
    display_name = Column(String(255))
    photo_url = Column(String(1024))
    email = Column(String(255))

    created_at = Column(DateTime, default=utcnow)


class UserProfile(Base):
    __tablename__ = "user_profiles"
    __table_args__ = (
        UniqueConstraint("user_id", name="uq_profile_user"),
        CheckConstraint(f"water_goal >= {WATER_GOAL_MINIMUM}", name="water_goal_minimum"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(128), nullable=False)

    age = Column(Integer)
    weight = Column(Float)  # kg
    height = Column(Float)  # cm
    activity_level = Column(String(32))
    gender = Column(String(16))
    water_goal = Column(Integer, nullable=False, default=WATER_GOAL_MINIMUM)  # glasses

    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class Friend(Base):
    __tablename__ = "friends"
    __table_args__ = (UniqueConstraint("user_id", "friend_uid", name="uq_friend_pair"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(128), nullable=False, index=True)
    friend_uid = Column(String(128), nullable=False)

    created_at = Column(DateTime, default=utcnow)
