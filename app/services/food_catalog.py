"""
Shared food catalog with cache-on-miss search.

A search that finds nothing locally asks the external source for the query,
imports what comes back, and searches again. The external source is a
best-effort helper here: its failures are logged and the empty result stands.
"""

import logging
import math
import time
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from app.core.errors import FoodSourceError, NotFound, ValidationError
from app.models.food import BasketItem, FoodItem
from app.services.food_source import HEALTHY_RESEED_QUERIES

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
DEFAULT_IMPORT_SOURCE = "scraped"

_OPTIONAL_TEXT = ("description", "image_url", "category", "source_url")


def create_food_item(db: Session, data: Dict[str, Any]) -> FoodItem:
    if not data.get("name") or data.get("calories") is None:
        raise ValidationError("Name and calories are required")

    item = FoodItem(
        name=data["name"],
        description=data.get("description"),
        image_url=data.get("image_url"),
        calories=float(data["calories"]),
        carbs=float(data.get("carbs") or 0),
        protein=float(data.get("protein") or 0),
        fat=float(data.get("fat") or 0),
        serving_size=data.get("serving_size") or 100,
        serving_unit=data.get("serving_unit") or "g",
        category=data.get("category"),
        source=data.get("source") or "user-added",
        source_url=data.get("source_url"),
    )
    db.add(item)
    db.commit()
    db.refresh(item)
    return item


def get_food_item(db: Session, item_id: int) -> FoodItem:
    item = db.query(FoodItem).filter(FoodItem.id == item_id).one_or_none()
    if item is None:
        raise NotFound("Food item not found")
    return item


def search_food_items(
    db: Session,
    search: Optional[str] = None,
    category: Optional[str] = None,
    page: Optional[int] = None,
    limit: Optional[int] = None,
) -> Dict[str, Any]:
    page = max(page or 1, 1)
    limit = min(max(limit or DEFAULT_PAGE_SIZE, 1), MAX_PAGE_SIZE)

    query = db.query(FoodItem)
    if search:
        query = query.filter(FoodItem.name.ilike(f"%{search}%"))
    if category:
        query = query.filter(FoodItem.category == category)

    total = query.count()
    items = (
        query.order_by(FoodItem.name.asc(), FoodItem.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return {
        "items": items,
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": math.ceil(total / limit),
    }


def search_with_backfill(
    db: Session,
    source,
    search: Optional[str] = None,
    category: Optional[str] = None,
    page: Optional[int] = None,
    limit: Optional[int] = None,
) -> Dict[str, Any]:
    result = search_food_items(db, search, category, page, limit)
    if result["items"] or not search or not search.strip():
        return result

    logger.info("No catalog hits for %r, fetching from external source", search)
    try:
        fetched = source.fetch(search, limit or DEFAULT_PAGE_SIZE)
    except FoodSourceError as e:
        logger.warning("Catalog backfill for %r failed: %s", search, e, exc_info=True)
        return result

    if not fetched:
        return result

    summary = bulk_import_food_items(db, fetched)
    logger.info("Backfilled %s items for %r", summary["successful"], search)
    return search_food_items(db, search, category, page, limit)


def _import_one(db: Session, data: Dict[str, Any]) -> FoodItem:
    source = data.get("source") or DEFAULT_IMPORT_SOURCE
    existing = (
        db.query(FoodItem)
        .filter(FoodItem.name == data["name"])
        .filter(FoodItem.source == source)
        .order_by(FoodItem.id.asc())
        .first()
    )

    if existing is not None:
        existing.calories = data["calories"]
        existing.carbs = data.get("carbs") or 0
        existing.protein = data.get("protein") or 0
        existing.fat = data.get("fat") or 0
        for field in _OPTIONAL_TEXT:
            # blank incoming values keep what we already have
            if data.get(field):
                setattr(existing, field, data[field])
        return existing

    item = FoodItem(
        name=data["name"],
        description=data.get("description"),
        image_url=data.get("image_url"),
        calories=data["calories"],
        carbs=data.get("carbs") or 0,
        protein=data.get("protein") or 0,
        fat=data.get("fat") or 0,
        serving_size=data.get("serving_size") or 100,
        serving_unit=data.get("serving_unit") or "g",
        category=data.get("category"),
        source=source,
        source_url=data.get("source_url"),
    )
    db.add(item)
    return item


def bulk_import_food_items(db: Session, items: Iterable[Dict[str, Any]]) -> Dict[str, int]:
    """
    Upsert each item on (name, source). One bad item does not sink the batch:
    each runs in its own savepoint and is counted as failed on error.
    """
    successful = failed = total = 0
    for data in items:
        total += 1
        try:
            with db.begin_nested():
                _import_one(db, data)
            successful += 1
        except Exception as e:
            failed += 1
            logger.warning("Failed to import food item %r: %s", data.get("name"), e)

    db.commit()
    return {"successful": successful, "failed": failed, "total": total}


def get_categories(db: Session) -> List[str]:
    rows = (
        db.query(FoodItem.category)
        .filter(FoodItem.category.isnot(None))
        .distinct()
        .all()
    )
    return sorted(r[0] for r in rows)


def get_food_item_count(db: Session) -> int:
    return db.query(FoodItem).count()


def delete_all_food_items(db: Session) -> int:
    count = get_food_item_count(db)
    # basket rows reference catalog items
    db.query(BasketItem).delete(synchronize_session=False)
    db.query(FoodItem).delete(synchronize_session=False)
    db.commit()
    return count


def scrape_and_import(db: Session, source, query: Optional[str], limit: Optional[int] = None) -> Dict[str, int]:
    """Forced fetch; source failures propagate to the caller."""
    if not query or not query.strip():
        raise ValidationError("Query is required")

    logger.info("Scraping food items for query %r", query)
    fetched = source.fetch(query, limit or DEFAULT_PAGE_SIZE)
    result = bulk_import_food_items(db, fetched)
    logger.info("Scraped and imported %s items for %r", result["successful"], query)
    return result


def reseed_catalog(
    db: Session,
    source,
    queries: Iterable[str] = HEALTHY_RESEED_QUERIES,
    per_query: int = 10,
    delay_seconds: float = 0.0,
) -> Dict[str, int]:
    deleted = delete_all_food_items(db)
    logger.info("Deleted %s existing food items before reseed", deleted)

    scraped = failed = 0
    for query in queries:
        try:
            fetched = source.fetch(query, per_query)
        except FoodSourceError as e:
            logger.warning("Reseed query %r failed: %s", query, e)
            failed += per_query
            continue

        if fetched:
            result = bulk_import_food_items(db, fetched)
            scraped += result["successful"]
            failed += result["failed"]
            logger.info("Imported %s items for %r", result["successful"], query)

        if delay_seconds:
            time.sleep(delay_seconds)

    return {"deleted_count": deleted, "scraped_count": scraped, "failed_count": failed}
