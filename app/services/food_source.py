"""
External nutrition source used to backfill the food catalog.

Only healthy Indian dishes are imported: a product must match the Indian
keyword list and pass the healthy-food rules (keyword exclusions plus
per-100g nutrient limits) before it is returned.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from app.core.config import settings
from app.core.errors import FoodSourceError
from app.core.rounding import round_half_up

logger = logging.getLogger(__name__)

SOURCE_NAME = "open-food-facts-indian-healthy"
DEFAULT_CATEGORY = "Healthy Indian Food"

INDIAN_FOOD_KEYWORDS = (
    "dal", "curry", "roti", "naan", "paratha", "chapati", "puri", "bhature",
    "biryani", "pulao", "khichdi", "dosa", "idli", "vada", "sambar", "rasam",
    "paneer", "tikka", "masala", "tandoori", "kebab", "samosa", "pakora",
    "gulab jamun", "jalebi", "laddu", "barfi", "halwa", "kheer", "payasam",
    "poha", "upma", "dhokla", "khandvi", "thepla", "fafda",
    "pav bhaji", "vada pav", "dahi vada", "pani puri", "bhel puri", "sev puri",
    "rajma", "chole", "aloo gobi", "baingan bharta", "palak paneer", "mutter paneer",
    "butter chicken", "chicken tikka", "tandoori chicken", "fish curry", "prawn curry",
    "hyderabadi", "lucknowi", "awadhi", "punjabi", "gujarati", "south indian",
    "north indian", "indian", "india", "desi", "tadka",
)

UNHEALTHY_KEYWORDS = (
    "deep fried", "deep-fried", "fried", "fry",
    "gulab jamun", "jalebi", "laddu", "barfi", "halwa", "kheer", "payasam", "dessert", "sweet",
    "butter", "ghee", "cream", "heavy cream", "malai",
    "pakora", "samosa", "bhature", "puri", "vada", "fafda",
    "pav bhaji", "vada pav",
    "butter chicken", "butter masala", "paneer butter masala",
    "biryani",
)

HEALTHY_KEYWORDS = (
    "dal", "lentil", "rajma", "chole", "chana", "moong", "toor", "masoor",
    "sambar", "rasam", "curry", "vegetable curry", "sabzi", "subzi",
    "dosa", "idli", "uttapam",
    "poha", "upma", "khichdi", "vegetable pulao",
    "dhokla", "khandvi", "thepla",
    "tandoori", "grilled", "tikka",
    "paneer", "tofu", "chicken", "fish", "prawn",
    "palak", "spinach", "aloo gobi", "baingan", "brinjal", "mutter", "peas",
    "vegetable", "salad", "raita", "dahi", "yogurt",
)

BREAD_KEYWORDS = ("roti", "chapati", "whole wheat")

# Queries used to rebuild the catalog from scratch
HEALTHY_RESEED_QUERIES = (
    # lentils and legumes
    "dal", "dal tadka", "rajma", "chole", "chana", "moong dal", "toor dal", "masoor dal",
    "lentil curry", "lentil soup",
    # curries and vegetables
    "vegetable curry", "sabzi", "subzi", "aloo gobi", "baingan bharta", "brinjal curry",
    "palak", "spinach curry", "mutter", "peas curry", "okra curry", "bhindi",
    # protein
    "tandoori chicken", "grilled chicken", "chicken tikka", "fish curry", "prawn curry",
    "paneer", "paneer curry", "tofu curry",
    # breads
    "roti", "chapati", "whole wheat roti",
    # fermented and steamed
    "dosa", "idli", "uttapam", "sambar", "rasam",
    # light meals
    "poha", "upma", "khichdi", "vegetable pulao",
    # steamed snacks
    "dhokla", "khandvi", "thepla",
    # sides
    "raita", "dahi", "yogurt", "cucumber salad", "vegetable salad",
)


def is_indian_food(name: str, description: Optional[str] = None, category: Optional[str] = None) -> bool:
    text = f"{name} {description or ''} {category or ''}".lower()
    return any(keyword in text for keyword in INDIAN_FOOD_KEYWORDS)


def is_healthy_food(
    name: str,
    calories: float,
    carbs: float,
    protein: float,
    fat: float,
    description: Optional[str] = None,
) -> bool:
    """Nutrient limits are per 100g."""
    text = f"{name} {description or ''}".lower()

    if any(keyword in text for keyword in UNHEALTHY_KEYWORDS):
        return False

    if calories > 400 or fat > 20:
        return False
    # calories with no protein at all: refined carbs or fat
    if protein == 0 and calories > 100:
        return False
    if carbs > 60 and protein < 5:
        return False

    is_bread = any(keyword in text for keyword in BREAD_KEYWORDS)
    if is_bread and (fat > 8 or calories > 300):
        return False

    if any(keyword in text for keyword in HEALTHY_KEYWORDS):
        return True

    # no healthy keyword: must be lean and either protein-rich or light
    return (protein >= 8 or calories <= 200) and fat <= 12 and calories <= 300


def _number(nutriments: Dict[str, Any], *keys: str) -> float:
    for key in keys:
        value = nutriments.get(key)
        if isinstance(value, (int, float)):
            return float(value)
    return 0.0


def product_to_item(product: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Map one Open Food Facts product to a catalog item, or None if rejected."""
    name = product.get("product_name")
    nutriments = product.get("nutriments")
    if not isinstance(name, str) or not name.strip() or not isinstance(nutriments, dict):
        return None

    calories = _number(nutriments, "energy-kcal_100g", "energy-kcal")
    carbs = _number(nutriments, "carbohydrates_100g")
    protein = _number(nutriments, "proteins_100g")
    fat = _number(nutriments, "fat_100g")

    if calories == 0 and carbs == 0 and protein == 0 and fat == 0:
        return None

    description = product.get("generic_name") or None
    categories = product.get("categories") or ""
    if not is_indian_food(name, description, categories):
        return None
    if not is_healthy_food(name, calories, carbs, protein, fat, description):
        return None

    category = categories.split(",")[0].strip() if categories else ""
    return {
        "name": name,
        "description": description,
        "image_url": product.get("image_url") or product.get("image_small_url") or None,
        "calories": round_half_up(calories),
        "carbs": round_half_up(carbs, 1),
        "protein": round_half_up(protein, 1),
        "fat": round_half_up(fat, 1),
        "serving_size": 100,
        "serving_unit": "g",
        "category": category or DEFAULT_CATEGORY,
        "source": SOURCE_NAME,
        "source_url": f"{settings.FOOD_SOURCE_BASE}/product/{product.get('code')}",
    }


class OpenFoodFactsSource:
    """Search client for the Open Food Facts product database."""

    def __init__(self, base_url: str | None = None, timeout: float | None = None, transport=None):
        self.base_url = (base_url or settings.FOOD_SOURCE_BASE).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.FOOD_SOURCE_TIMEOUT
        self.transport = transport

    def _search(self, query: str, page_size: int) -> List[Dict[str, Any]]:
        url = f"{self.base_url}/cgi/search.pl"
        params = {
            "action": "process",
            "tagtype_0": "categories",
            "tag_contains_0": "contains",
            "tag_0": f"Indian {query}",
            "countries_tags_en": "india",
            "page_size": page_size,
            "json": "true",
        }
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                resp = client.get(url, params=params)
        except httpx.HTTPError as e:
            raise FoodSourceError(f"Open Food Facts request failed: {e}") from e

        if resp.status_code != 200:
            raise FoodSourceError(
                f"Open Food Facts search failed with status {resp.status_code}"
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise FoodSourceError(f"Open Food Facts returned invalid JSON: {e}") from e

        products = data.get("products") if isinstance(data, dict) else None
        return products if isinstance(products, list) else []

    def fetch(self, query: str, limit: int = 20) -> List[Dict[str, Any]]:
        """
        Return up to `limit` healthy Indian items for `query`, unique by name
        (case-insensitive). Raises FoodSourceError on network/HTTP failure.
        """
        # over-fetch since most products are filtered out
        products = self._search(query, page_size=limit * 2)

        items: List[Dict[str, Any]] = []
        seen = set()
        for product in products:
            if not isinstance(product, dict):
                continue
            item = product_to_item(product)
            if item is None:
                continue
            key = item["name"].lower()
            if key in seen:
                continue
            seen.add(key)
            items.append(item)
            if len(items) >= limit:
                break

        logger.info("Open Food Facts returned %s usable items for %r", len(items), query)
        return items


def get_food_source() -> OpenFoodFactsSource:
    return OpenFoodFactsSource()
