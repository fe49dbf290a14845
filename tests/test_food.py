import unittest

import httpx

from support import ApiTestCase

from app.core.errors import FoodSourceError
from app.models.food import BasketItem, FoodItem
from app.services import food_catalog
from app.services.basket import build_meal_from_basket, meal_name
from app.services.food_source import OpenFoodFactsSource, is_healthy_food, product_to_item

DAL = {
    "name": "Moong Dal",
    "calories": 105,
    "carbs": 18.2,
    "protein": 7.1,
    "fat": 0.4,
    "category": "Lentils",
    "source": "open-food-facts-indian-healthy",
}


def _product(name, kcal, carbs, protein, fat, categories="Indian dishes", code="123"):
    return {
        "code": code,
        "product_name": name,
        "categories": categories,
        "nutriments": {
            "energy-kcal_100g": kcal,
            "carbohydrates_100g": carbs,
            "proteins_100g": protein,
            "fat_100g": fat,
        },
    }


class TestHealthyFilter(unittest.TestCase):
    def test_unhealthy_keywords_are_excluded(self) -> None:
        self.assertFalse(is_healthy_food("Fried samosa", 250, 30, 5, 10))
        self.assertFalse(is_healthy_food("Paneer butter masala", 200, 10, 10, 12))

    def test_nutrient_limits(self) -> None:
        self.assertFalse(is_healthy_food("Chana curry", 450, 40, 10, 15))
        self.assertFalse(is_healthy_food("Rice crackers", 150, 30, 0, 1))
        self.assertFalse(is_healthy_food("Whole wheat roti", 290, 50, 9, 9))
        self.assertTrue(is_healthy_food("Moong dal", 105, 18, 7, 0.4))
        self.assertTrue(is_healthy_food("Sprout mix", 120, 15, 9, 2))

    def test_product_mapping(self) -> None:
        item = product_to_item(_product("Masoor Dal", 110.4, 19.26, 8.04, 0.55))
        self.assertEqual(item["calories"], 110)
        self.assertEqual(item["carbs"], 19.3)
        self.assertEqual(item["protein"], 8.0)
        self.assertEqual(item["category"], "Indian dishes")
        self.assertTrue(item["source_url"].endswith("/product/123"))

        self.assertIsNone(product_to_item(_product("Masoor Dal", 0, 0, 0, 0)))
        self.assertIsNone(product_to_item(_product(42, 110, 19, 8, 0.5)))
        self.assertIsNone(product_to_item(_product(["Dal"], 110, 19, 8, 0.5)))
        self.assertIsNone(product_to_item(_product("Cola", 40, 10, 0, 0, categories="Beverages")))


class TestOpenFoodFactsSource(unittest.TestCase):
    def test_fetch_filters_and_dedupes(self) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["params"] = dict(request.url.params)
            return httpx.Response(
                200,
                json={
                    "products": [
                        _product("Dal Tadka", 120, 15, 7, 3, code="1"),
                        _product("dal tadka", 118, 15, 7, 3, code="2"),
                        _product("Gulab Jamun", 380, 60, 4, 15, code="3"),
                        _product("Idli", 130, 26, 4, 0.5, code="4"),
                    ]
                },
            )

        source = OpenFoodFactsSource(base_url="https://off.test", transport=httpx.MockTransport(handler))
        items = source.fetch("dal", limit=5)

        self.assertEqual([i["name"] for i in items], ["Dal Tadka", "Idli"])
        self.assertEqual(seen["params"]["tag_0"], "Indian dal")
        self.assertEqual(seen["params"]["page_size"], "10")

    def test_fetch_skips_non_string_names(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json={
                    "products": [
                        _product(12345, 120, 15, 7, 3, code="1"),
                        _product({"en": "Dal"}, 120, 15, 7, 3, code="2"),
                        _product("Idli", 130, 26, 4, 0.5, code="3"),
                    ]
                },
            )

        source = OpenFoodFactsSource(base_url="https://off.test", transport=httpx.MockTransport(handler))
        self.assertEqual([i["name"] for i in source.fetch("idli")], ["Idli"])

    def test_http_failure_raises_source_error(self) -> None:
        source = OpenFoodFactsSource(
            base_url="https://off.test",
            transport=httpx.MockTransport(lambda request: httpx.Response(503)),
        )
        with self.assertRaises(FoodSourceError):
            source.fetch("dal")

    def test_network_failure_raises_source_error(self) -> None:
        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        source = OpenFoodFactsSource(base_url="https://off.test", transport=httpx.MockTransport(handler))
        with self.assertRaises(FoodSourceError):
            source.fetch("dal")


class TestCatalog(ApiTestCase):
    def test_bulk_import_updates_in_place(self) -> None:
        with self.Session() as db:
            first = food_catalog.bulk_import_food_items(db, [dict(DAL)])
            second = food_catalog.bulk_import_food_items(
                db, [dict(DAL, calories=110, category="Pulses", description="")]
            )
            self.assertEqual(first, {"successful": 1, "failed": 0, "total": 1})
            self.assertEqual(second["successful"], 1)
            self.assertEqual(food_catalog.get_food_item_count(db), 1)

        categories = self.data(self.get("/v1/food/categories"))
        self.assertEqual(categories, ["Pulses"])

        items = self.data(self.get("/v1/food/items", params={"search": "moong"}))["items"]
        self.assertEqual(len(items), 1)
        self.assertEqual(items[0]["calories"], 110)

    def test_bulk_import_counts_failures(self) -> None:
        with self.Session() as db:
            result = food_catalog.bulk_import_food_items(db, [dict(DAL), {"name": "Broken"}])
        self.assertEqual(result, {"successful": 1, "failed": 1, "total": 2})

    def test_search_miss_backfills_from_source(self) -> None:
        self.food_source.items = [dict(DAL)]
        page = self.data(self.get("/v1/food/items", params={"search": "dal", "limit": 5}))

        self.assertEqual(self.food_source.calls, [("dal", 5)])
        self.assertEqual([i["name"] for i in page["items"]], ["Moong Dal"])
        self.assertEqual(page["total"], 1)

        # now cached locally
        self.data(self.get("/v1/food/items", params={"search": "dal"}))
        self.assertEqual(len(self.food_source.calls), 1)

    def test_search_swallows_source_failure(self) -> None:
        self.food_source.error = FoodSourceError("down")
        page = self.data(self.get("/v1/food/items", params={"search": "dal"}))
        self.assertEqual(page["items"], [])
        self.assertEqual(page["total"], 0)

    def test_blank_search_does_not_backfill(self) -> None:
        self.data(self.get("/v1/food/items"))
        self.assertEqual(self.food_source.calls, [])

    def test_scrape_failure_is_server_error(self) -> None:
        self.food_source.error = FoodSourceError("down")
        resp = self.post("/v1/food/scrape", {"query": "dal"})
        self.assertError(resp, 500, "UPSTREAM_ERROR")

    def test_scrape_requires_query(self) -> None:
        self.assertError(self.post("/v1/food/scrape", {}), 400, "VALIDATION_ERROR")

    def test_scrape_imports(self) -> None:
        self.food_source.items = [dict(DAL)]
        result = self.data(self.post("/v1/food/scrape", {"query": "dal", "limit": 3}))
        self.assertEqual(result["successful"], 1)

    def test_reseed_purges_then_imports(self) -> None:
        self.data(self.post("/v1/food/items", {"name": "Old item", "calories": 50}))
        self.food_source.items = [dict(DAL)]
        with self.Session() as db:
            result = food_catalog.reseed_catalog(db, self.food_source, queries=("dal", "moong dal"))
        self.assertEqual(result["deleted_count"], 1)
        self.assertEqual(result["scraped_count"], 2)
        self.assertEqual(len(self.food_source.calls), 2)

        names = [i["name"] for i in self.data(self.get("/v1/food/items"))["items"]]
        self.assertEqual(names, ["Moong Dal"])

    def test_create_and_get_item(self) -> None:
        created = self.data(self.post("/v1/food/items", {"name": "Poha", "calories": 180}))
        self.assertEqual(created["source"], "user-added")
        self.assertEqual(created["serving_unit"], "g")

        fetched = self.data(self.get(f"/v1/food/items/{created['id']}"))
        self.assertEqual(fetched["name"], "Poha")
        self.assertError(self.get("/v1/food/items/9999"), 404, "NOT_FOUND")
        self.assertError(self.post("/v1/food/items", {"name": "No calories"}), 400, "VALIDATION_ERROR")

    def test_catalog_routes_require_identity(self) -> None:
        self.data(self.post("/v1/food/items", {"name": "Upma", "calories": 150}))
        self.food_source.items = [dict(DAL)]

        anonymous = [
            self.client.get("/v1/food/items", params={"search": "dal"}),
            self.client.get("/v1/food/items/1"),
            self.client.post("/v1/food/items", json={"name": "Poha", "calories": 180}),
            self.client.delete("/v1/food/items"),
            self.client.get("/v1/food/categories"),
            self.client.post("/v1/food/scrape", json={"query": "dal"}),
            self.client.post("/v1/food/reseed"),
        ]
        for resp in anonymous:
            self.assertError(resp, 401, "AUTH_REQUIRED")

        self.assertEqual(self.food_source.calls, [])
        names = [i["name"] for i in self.data(self.get("/v1/food/items"))["items"]]
        self.assertEqual(names, ["Upma"])

    def test_purge_removes_basket_rows(self) -> None:
        item = self.data(self.post("/v1/food/items", {"name": "Upma", "calories": 150}))
        self.data(self.post("/v1/food/basket", {"food_item_id": item["id"]}))

        purged = self.data(self.delete("/v1/food/items"))
        self.assertEqual(purged["deleted_count"], 1)
        self.assertEqual(self.data(self.get("/v1/food/basket")), [])


class TestBasket(ApiTestCase):
    def _item(self, name, calories, serving_size=100):
        resp = self.post("/v1/food/items", {"name": name, "calories": calories, "serving_size": serving_size})
        return self.data(resp)["id"]

    def test_create_meal_from_basket(self) -> None:
        rice = self._item("Rice", 100)
        curd = self._item("Curd", 50)
        self.data(self.post("/v1/food/basket", {"food_item_id": rice, "quantity": 2, "serving_size": 100}))
        self.data(self.post("/v1/food/basket", {"food_item_id": curd, "quantity": 1, "serving_size": 50}))

        draft = self.data(
            self.post("/v1/food/basket/create-meal", {"meal_type": "lunch", "date": "2025-03-10"})
        )
        self.assertEqual(draft["calories"], 225)
        self.assertEqual(draft["type"], "lunch")
        self.assertEqual(draft["date"], "2025-03-10")
        self.assertEqual(sorted(draft["name"].split(", ")), ["Curd", "Rice"])

        self.assertEqual(self.data(self.get("/v1/food/basket")), [])
        replay = self.post("/v1/food/basket/create-meal", {"meal_type": "lunch"})
        self.assertError(replay, 400, "VALIDATION_ERROR")

    def test_meal_type_is_required(self) -> None:
        rice = self._item("Rice", 100)
        self.data(self.post("/v1/food/basket", {"food_item_id": rice}))
        self.assertError(self.post("/v1/food/basket/create-meal", {}), 400, "VALIDATION_ERROR")

    def test_add_same_food_overwrites_amounts(self) -> None:
        rice = self._item("Rice", 100)
        first = self.data(self.post("/v1/food/basket", {"food_item_id": rice, "quantity": 1}))
        second = self.data(self.post("/v1/food/basket", {"food_item_id": rice, "quantity": 3}))
        self.assertEqual(first["id"], second["id"])
        self.assertEqual(second["quantity"], 3)
        self.assertEqual(len(self.data(self.get("/v1/food/basket"))), 1)

    def test_unknown_food_is_not_found(self) -> None:
        self.assertError(self.post("/v1/food/basket", {"food_item_id": 42}), 404, "NOT_FOUND")

    def test_foreign_basket_item_is_not_found(self) -> None:
        rice = self._item("Rice", 100)
        entry = self.data(self.post("/v1/food/basket", {"food_item_id": rice}))

        resp = self.put(f"/v1/food/basket/{entry['id']}", {"quantity": 5}, user_id="someone-else")
        self.assertError(resp, 404, "NOT_FOUND")
        resp = self.delete(f"/v1/food/basket/{entry['id']}", user_id="someone-else")
        self.assertError(resp, 404, "NOT_FOUND")

        updated = self.data(self.put(f"/v1/food/basket/{entry['id']}", {"quantity": 5}))
        self.assertEqual(updated["quantity"], 5)
        self.data(self.delete(f"/v1/food/basket/{entry['id']}"))
        self.assertEqual(self.data(self.get("/v1/food/basket")), [])


class TestMealName(unittest.TestCase):
    def test_names(self) -> None:
        self.assertEqual(meal_name(["Idli"]), "Idli")
        self.assertEqual(meal_name(["Idli", "Sambar"]), "Idli, Sambar")
        self.assertEqual(meal_name(["Idli", "Sambar", "Chutney", "Vada"]), "Idli, Sambar + 2 more")

    def test_totals_round_half_up(self) -> None:
        food = FoodItem(name="Besan chilla", calories=225, carbs=20.25, protein=8.5, fat=1.05, serving_size=100)
        meal = build_meal_from_basket([BasketItem(quantity=1, serving_size=50, food_item=food)])
        self.assertEqual(meal["calories"], 113)
        self.assertEqual(meal["carbs"], 10.1)
        self.assertEqual(meal["protein"], 4.3)

    def test_empty_basket(self) -> None:
        from app.core.errors import ValidationError

        with self.assertRaises(ValidationError):
            build_meal_from_basket([])
