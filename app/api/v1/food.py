from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from app.api.deps import get_current_user_id, ok, parse_date
from app.core.config import settings
from app.core.db import get_db
from app.services import basket as basket_service
from app.services import food_catalog
from app.services.food_source import OpenFoodFactsSource, get_food_source

# The catalog is shared, but every route still requires a caller identity
router = APIRouter(prefix="/food", tags=["food"], dependencies=[Depends(get_current_user_id)])


# ---------- Pydantic schemas ----------

class FoodItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str | None
    image_url: str | None
    calories: float
    carbs: float
    protein: float
    fat: float
    serving_size: float
    serving_unit: str
    category: str | None
    source: str
    source_url: str | None
    created_at: datetime | None
    updated_at: datetime | None


class FoodItemIn(BaseModel):
    name: str | None = None
    description: str | None = None
    image_url: str | None = None
    calories: float | None = None
    carbs: float | None = None
    protein: float | None = None
    fat: float | None = None
    serving_size: float | None = None
    serving_unit: str | None = None
    category: str | None = None
    source: str | None = None
    source_url: str | None = None


class ScrapeIn(BaseModel):
    query: str | None = None
    limit: int | None = None


class BasketItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    food_item_id: int
    quantity: float
    serving_size: float
    created_at: datetime | None
    food_item: FoodItemOut


class BasketAddIn(BaseModel):
    food_item_id: int
    quantity: float = 1
    serving_size: float = 100


class BasketUpdateIn(BaseModel):
    quantity: float
    serving_size: float | None = None


class CreateMealIn(BaseModel):
    meal_type: str | None = None
    date: str | None = None


# ---------- Catalog ----------

@router.get("/items")
def search_items(
    search: str | None = None,
    category: str | None = None,
    page: int | None = None,
    limit: int | None = None,
    db: Session = Depends(get_db),
    source: OpenFoodFactsSource = Depends(get_food_source),
):
    result = food_catalog.search_with_backfill(db, source, search, category, page, limit)
    result["items"] = [FoodItemOut.model_validate(i) for i in result["items"]]
    return ok(result)


@router.get("/items/{item_id}")
def get_item(item_id: int, db: Session = Depends(get_db)):
    return ok(FoodItemOut.model_validate(food_catalog.get_food_item(db, item_id)))


@router.post("/items")
def create_item(payload: FoodItemIn, db: Session = Depends(get_db)):
    item = food_catalog.create_food_item(db, payload.model_dump())
    return ok(FoodItemOut.model_validate(item), "Food item created")


@router.delete("/items")
def delete_all_items(db: Session = Depends(get_db)):
    deleted = food_catalog.delete_all_food_items(db)
    return ok({"deleted_count": deleted}, f"Deleted {deleted} food items")


@router.get("/categories")
def list_categories(db: Session = Depends(get_db)):
    return ok(food_catalog.get_categories(db))


@router.post("/scrape")
def scrape(
    payload: ScrapeIn,
    db: Session = Depends(get_db),
    source: OpenFoodFactsSource = Depends(get_food_source),
):
    result = food_catalog.scrape_and_import(db, source, payload.query, payload.limit)
    return ok(result, f"Imported {result['successful']} food items")


@router.post("/reseed")
def reseed(
    db: Session = Depends(get_db),
    source: OpenFoodFactsSource = Depends(get_food_source),
):
    result = food_catalog.reseed_catalog(db, source, delay_seconds=settings.RESEED_DELAY_SECONDS)
    return ok(result, "Catalog reseeded")


# ---------- Basket ----------

@router.get("/basket")
def get_basket(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    items = basket_service.get_basket(db, user_id)
    return ok([BasketItemOut.model_validate(i) for i in items])


@router.post("/basket")
def add_to_basket(
    payload: BasketAddIn,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    item = basket_service.add_to_basket(
        db, user_id, payload.food_item_id, payload.quantity, payload.serving_size
    )
    return ok(BasketItemOut.model_validate(item), "Added to basket")


@router.post("/basket/create-meal")
def create_meal_from_basket(
    payload: CreateMealIn,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    meal_date = parse_date(payload.date) if payload.date else None
    draft = basket_service.create_meal_from_basket(db, user_id, payload.meal_type, meal_date)
    return ok(draft, "Meal created from basket")


@router.put("/basket/{basket_item_id}")
def update_basket_item(
    basket_item_id: int,
    payload: BasketUpdateIn,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    item = basket_service.update_basket_item(
        db, user_id, basket_item_id, payload.quantity, payload.serving_size
    )
    return ok(BasketItemOut.model_validate(item), "Basket item updated")


@router.delete("/basket/{basket_item_id}")
def remove_from_basket(
    basket_item_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    basket_service.remove_from_basket(db, user_id, basket_item_id)
    return ok(message="Removed from basket")
