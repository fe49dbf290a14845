from app.models.health import (
    DailyHealthData,
    Meal,
    WaterEntry,
    Workout,
    Exercise,
    LocationPoint,
    FastingSession,
)
from app.models.food import FoodItem, BasketItem
from app.models.user import User, UserProfile, Friend
from app.models.feed import FeedPost, FeedPostLike, FeedComment
from app.models.challenge import Challenge, ChallengeEnrollment

__all__ = [
    "DailyHealthData",
    "Meal",
    "WaterEntry",
    "Workout",
    "Exercise",
    "LocationPoint",
    "FastingSession",
    "FoodItem",
    "BasketItem",
    "User",
    "UserProfile",
    "Friend",
    "FeedPost",
    "FeedPostLike",
    "FeedComment",
    "Challenge",
    "ChallengeEnrollment",
]
