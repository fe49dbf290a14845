import unittest

from support import ApiTestCase

from app.core.errors import ProviderError
from app.services.recommendations import (
    MealRecommender,
    build_prompt,
    calculate_bmr,
    estimate_tdee,
    get_recommender,
    parse_recommendations,
)
from app.main import app


class TestEnergyEstimates(unittest.TestCase):
    def test_bmr(self) -> None:
        self.assertEqual(calculate_bmr(70, 175, 30, "male"), 1648.75)
        self.assertEqual(calculate_bmr(60, 165, 30, "Female"), 1320.25)

    def test_tdee_multipliers(self) -> None:
        self.assertAlmostEqual(estimate_tdee(1000, "moderate"), 1550)
        self.assertAlmostEqual(estimate_tdee(1000, "unknown"), 1200)
        self.assertAlmostEqual(estimate_tdee(1000), 1200)

    def test_prompt_targets_thirty_percent_of_tdee(self) -> None:
        self.assertIn("around 600 calories", build_prompt({"meal_type": "dinner"}))
        self.assertIn("around 450 calories", build_prompt({"calorie_limit": 450}))


class TestParsing(unittest.TestCase):
    def test_fenced_reply(self) -> None:
        reply = (
            "```json\n"
            '[{"name": "Paneer wrap", "calories": 512.6, "macros": {"carbs": 40.4, "protein": 30.5, "fat": 18}},'
            ' {"calories": 300}, {"name": "Dal"}, {"name": "Extra"}]\n'
            "```"
        )
        items = parse_recommendations(reply)
        self.assertEqual(len(items), 3)
        self.assertEqual(items[0]["calories"], 513)
        self.assertEqual(items[0]["macros"], {"carbs": 40, "protein": 31, "fat": 18})
        self.assertEqual(items[1]["name"], "Unknown Meal")
        self.assertEqual(items[2]["description"], "")

    def test_garbage_reply(self) -> None:
        with self.assertRaises(ProviderError):
            parse_recommendations("Sorry, I can't help with that.")
        with self.assertRaises(ProviderError):
            parse_recommendations('{"name": "not a list"}')


class TestRecommendationsEndpoint(ApiTestCase):
    def test_context_includes_profile_and_meals(self) -> None:
        self.recommender.result = [{"name": "Idli sambar"}]
        self.data(self.put("/v1/users/me/profile", {"age": 30, "weight": 70, "height": 175, "gender": "male"}))

        data = self.data(
            self.get("/v1/health/recommendations", params={"meal_type": "dinner", "calorie_limit": 500})
        )
        self.assertEqual(data, [{"name": "Idli sambar"}])

        context = self.recommender.contexts[0]
        self.assertEqual(context["meal_type"], "dinner")
        self.assertEqual(context["calorie_limit"], 500)
        self.assertEqual(context["weight"], 70)

    def test_provider_failure_is_500(self) -> None:
        self.recommender.error = ProviderError("boom")
        resp = self.get("/v1/health/recommendations")
        self.assertError(resp, 500, "PROVIDER_ERROR")

    def test_unconfigured_provider_is_503(self) -> None:
        app.dependency_overrides[get_recommender] = lambda: MealRecommender(api_key=None, model_name="test")
        resp = self.get("/v1/health/recommendations")
        self.assertError(resp, 503, "AI_NOT_CONFIGURED")
