"""
Per-user food basket and the basket-to-meal conversion.

create_meal_from_basket clears the basket on success, so replaying the same
request afterwards fails with "Basket is empty".
"""

import logging
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from app.core.errors import NotFound, ValidationError
from app.core.rounding import round_half_up
from app.models.food import BasketItem, FoodItem

logger = logging.getLogger(__name__)


def get_basket(db: Session, user_id: str) -> List[BasketItem]:
    return (
        db.query(BasketItem)
        .options(joinedload(BasketItem.food_item))
        .filter(BasketItem.user_id == user_id)
        .order_by(BasketItem.created_at.desc(), BasketItem.id.desc())
        .all()
    )


def add_to_basket(
    db: Session,
    user_id: str,
    food_item_id: int,
    quantity: float = 1,
    serving_size: float = 100,
) -> BasketItem:
    """Adding a food that is already in the basket overwrites its amounts."""
    if db.query(FoodItem.id).filter(FoodItem.id == food_item_id).one_or_none() is None:
        raise NotFound("Food item not found")

    def _existing() -> Optional[BasketItem]:
        return (
            db.query(BasketItem)
            .filter(BasketItem.user_id == user_id)
            .filter(BasketItem.food_item_id == food_item_id)
            .one_or_none()
        )

    item = _existing()
    if item is None:
        try:
            with db.begin_nested():
                item = BasketItem(
                    user_id=user_id,
                    food_item_id=food_item_id,
                    quantity=quantity,
                    serving_size=serving_size,
                )
                db.add(item)
        except IntegrityError:
            item = _existing()
            if item is None:
                raise

    item.quantity = quantity
    item.serving_size = serving_size
    db.commit()
    db.refresh(item)
    return item


def _owned_item(db: Session, user_id: str, basket_item_id: int) -> BasketItem:
    item = db.query(BasketItem).filter(BasketItem.id == basket_item_id).one_or_none()
    if item is None or item.user_id != user_id:
        raise NotFound("Basket item not found or access denied")
    return item


def update_basket_item(
    db: Session,
    user_id: str,
    basket_item_id: int,
    quantity: float,
    serving_size: Optional[float] = None,
) -> BasketItem:
    item = _owned_item(db, user_id, basket_item_id)
    item.quantity = quantity
    if serving_size is not None:
        item.serving_size = serving_size
    db.commit()
    db.refresh(item)
    return item


def remove_from_basket(db: Session, user_id: str, basket_item_id: int) -> None:
    item = _owned_item(db, user_id, basket_item_id)
    db.delete(item)
    db.commit()


def clear_basket(db: Session, user_id: str) -> int:
    removed = (
        db.query(BasketItem)
        .filter(BasketItem.user_id == user_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    return removed


def meal_name(names: Sequence[str]) -> str:
    if len(names) == 1:
        return names[0]
    name = ", ".join(names[:2])
    if len(names) > 2:
        name += f" + {len(names) - 2} more"
    return name


def build_meal_from_basket(items: Sequence[BasketItem]) -> Dict[str, Any]:
    """
    Fold basket items into one meal summary.

    Each item's nutrients are scaled by quantity * chosen serving size over
    the food's own serving size.
    """
    if not items:
        raise ValidationError("Basket is empty")

    calories = carbs = protein = fat = 0.0
    names: List[str] = []
    for item in items:
        food = item.food_item
        factor = (item.quantity * item.serving_size) / food.serving_size
        calories += food.calories * factor
        carbs += food.carbs * factor
        protein += food.protein * factor
        fat += food.fat * factor
        names.append(food.name)

    return {
        "name": meal_name(names),
        "calories": round_half_up(calories),
        "carbs": round_half_up(carbs, 1),
        "protein": round_half_up(protein, 1),
        "fat": round_half_up(fat, 1),
        "items": [
            {
                "name": item.food_item.name,
                "quantity": item.quantity,
                "serving_size": item.serving_size,
            }
            for item in items
        ],
    }


def create_meal_from_basket(
    db: Session,
    user_id: str,
    meal_type: Optional[str],
    meal_date: Optional[date] = None,
) -> Dict[str, Any]:
    """
    Turn the basket into a meal draft and empty the basket. The draft is
    returned to the client, which logs it through the meals endpoint.
    """
    if not meal_type:
        raise ValidationError("meal_type is required")

    items = get_basket(db, user_id)
    draft = build_meal_from_basket(items)
    draft["type"] = meal_type
    draft["date"] = meal_date.isoformat() if meal_date else None

    clear_basket(db, user_id)
    logger.info("Built meal %r from %s basket items for user=%s", draft["name"], len(items), user_id)
    return draft
