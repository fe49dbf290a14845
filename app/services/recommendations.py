import json
import logging
from functools import lru_cache
from typing import Any, Dict, List, Optional

import google.generativeai as genai
from sqlalchemy.orm import Session

from app.core.clock import utcnow
from app.core.config import settings
from app.core.errors import ProviderError, ProviderNotConfigured
from app.core.rounding import round_half_up
from app.services.daily import find_daily
from app.services.users import get_profile

logger = logging.getLogger(__name__)

DEFAULT_TDEE = 2000
MEAL_SHARE = 0.3
RECOMMENDATION_COUNT = 3

ACTIVITY_MULTIPLIERS = {
    "sedentary": 1.2,
    "light": 1.375,
    "moderate": 1.55,
    "active": 1.725,
    "very_active": 1.9,
}


def calculate_bmr(weight: float, height: float, age: float, gender: Optional[str]) -> float:
    """Mifflin-St Jeor. weight in kg, height in cm."""
    base = 10 * weight + 6.25 * height - 5 * age
    if gender and gender.lower() == "female":
        return base - 161
    return base + 5


def estimate_tdee(bmr: float, activity_level: Optional[str] = None) -> float:
    multiplier = ACTIVITY_MULTIPLIERS.get((activity_level or "").lower(), 1.2)
    return bmr * multiplier


def build_context(
    db: Session,
    user_id: str,
    meal_type: Optional[str] = None,
    calorie_limit: Optional[float] = None,
    preferences: Optional[str] = None,
) -> Dict[str, Any]:
    context: Dict[str, Any] = {
        "meal_type": meal_type,
        "calorie_limit": calorie_limit,
        "preferences": preferences,
        "current_meals": [],
    }

    profile = get_profile(db, user_id)
    if profile is not None:
        for field in ("age", "weight", "height", "activity_level", "gender"):
            context[field] = getattr(profile, field)

    today = find_daily(db, user_id, utcnow().date())
    if today is not None:
        context["current_calories"] = today.calories_consumed
        context["current_meals"] = [
            {"name": m.name, "calories": m.calories, "type": m.type} for m in today.meals
        ]
    return context


def _tdee_for(context: Dict[str, Any]) -> float:
    if all(context.get(f) for f in ("weight", "height", "age", "gender")):
        bmr = calculate_bmr(context["weight"], context["height"], context["age"], context["gender"])
        return estimate_tdee(bmr, context.get("activity_level"))
    return DEFAULT_TDEE


def build_prompt(context: Dict[str, Any]) -> str:
    tdee = _tdee_for(context)
    target = context.get("calorie_limit") or round_half_up(tdee * MEAL_SHARE)
    meal_type = context.get("meal_type") or "lunch"

    profile_lines = []
    if context.get("age"):
        profile_lines.append(f"- Age: {context['age']}")
    if context.get("gender"):
        profile_lines.append(f"- Gender: {context['gender']}")
    if context.get("weight"):
        profile_lines.append(f"- Weight: {context['weight']} kg")
    if context.get("height"):
        profile_lines.append(f"- Height: {context['height']} cm")
    if context.get("activity_level"):
        profile_lines.append(f"- Activity Level: {context['activity_level']}")

    sections = []
    if profile_lines:
        profile_lines.append(f"- Estimated Daily Calorie Needs: ~{round_half_up(tdee)} kcal")
        sections.append("User Profile:\n" + "\n".join(profile_lines))
    if context.get("current_meals"):
        meals = "\n".join(
            f"- {m['type']}: {m['name']} ({m['calories']} cal)" for m in context["current_meals"]
        )
        sections.append("Current meals today:\n" + meals)
    if context.get("preferences"):
        sections.append(f"Dietary Preferences: {context['preferences']}")

    return f"""You are a nutritionist providing personalized meal recommendations.

{chr(10).join(sections)}

Provide {meal_type} meal recommendations that:
1. Are around {target} calories (can vary +/-200 calories)
2. Are balanced in macronutrients (carbs, protein, fat)
3. Are healthy and nutritious
4. Are different from current meals if provided
5. Are appropriate for the meal type ({meal_type})

Return ONLY a valid JSON array with exactly {RECOMMENDATION_COUNT} meal recommendations. Each recommendation must have this exact structure:
{{"name": "meal name", "calories": number, "macros": {{"carbs": number, "protein": number, "fat": number}}, "description": "brief description of the meal", "reasoning": "why this meal fits the user's needs"}}

Return ONLY the JSON array, no additional text or markdown formatting."""


def strip_code_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


def _rounded(value) -> int:
    try:
        return round_half_up(float(value or 0))
    except (TypeError, ValueError, OverflowError):
        return 0


def parse_recommendations(text: str) -> List[Dict[str, Any]]:
    try:
        items = json.loads(strip_code_fences(text))
    except ValueError as e:
        raise ProviderError(f"Could not parse meal recommendations: {e}") from e
    if not isinstance(items, list):
        raise ProviderError("Invalid response format: expected an array")

    parsed = []
    for item in items[:RECOMMENDATION_COUNT]:
        if not isinstance(item, dict):
            continue
        macros = item.get("macros") if isinstance(item.get("macros"), dict) else {}
        parsed.append(
            {
                "name": item.get("name") or "Unknown Meal",
                "calories": _rounded(item.get("calories")),
                "macros": {
                    "carbs": _rounded(macros.get("carbs")),
                    "protein": _rounded(macros.get("protein")),
                    "fat": _rounded(macros.get("fat")),
                },
                "description": item.get("description") or "",
                "reasoning": item.get("reasoning") or "",
            }
        )
    return parsed


class MealRecommender:
    """Meal suggestions from Gemini for a user context built by build_context."""

    def __init__(self, api_key: Optional[str], model_name: str):
        self.api_key = api_key
        self.model_name = model_name
        self._model = None

    def _get_model(self):
        if not self.api_key:
            raise ProviderNotConfigured(
                "Gemini API is not configured. Please set GEMINI_API_KEY environment variable."
            )
        if self._model is None:
            genai.configure(api_key=self.api_key)
            self._model = genai.GenerativeModel(self.model_name)
        return self._model

    def recommend(self, context: Dict[str, Any]) -> List[Dict[str, Any]]:
        model = self._get_model()
        try:
            response = model.generate_content(build_prompt(context))
            text = response.text
        except Exception as e:
            logger.error("Gemini request failed: %s", e, exc_info=True)
            raise ProviderError(f"Failed to generate meal recommendations: {e}") from e

        try:
            return parse_recommendations(text)
        except ProviderError:
            logger.error("Unparseable Gemini reply: %r", text[:200])
            raise


@lru_cache(maxsize=None)
def get_recommender() -> MealRecommender:
    if not settings.GEMINI_API_KEY:
        logger.warning("GEMINI_API_KEY is not set. Meal recommendations will not work.")
    return MealRecommender(api_key=settings.GEMINI_API_KEY, model_name=settings.GEMINI_MODEL)
