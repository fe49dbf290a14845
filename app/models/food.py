from sqlalchemy import (
    Column,
    Integer,
    Float,
    DateTime,
    String,
    Text,
    UniqueConstraint,
    ForeignKey,
)
from sqlalchemy.orm import relationship

from app.core.clock import utcnow
from app.core.db import Base


class FoodItem(Base):
    """
    Shared catalog entry. Nutrient values are per serving_size serving_unit.
    Bulk imports deduplicate on (name, source).
    """

    __tablename__ = "food_items"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    description = Column(Text)
    image_url = Column(String(1024))

    calories = Column(Float, nullable=False)
    carbs = Column(Float, nullable=False, default=0)
    protein = Column(Float, nullable=False, default=0)
    fat = Column(Float, nullable=False, default=0)

    serving_size = Column(Float, nullable=False, default=100)
    serving_unit = Column(String(16), nullable=False, default="g")

    category = Column(String(255), index=True)
    source = Column(String(64), nullable=False, default="user-added")
    source_url = Column(String(1024))

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class BasketItem(Base):
    __tablename__ = "basket_items"
    __table_args__ = (UniqueConstraint("user_id", "food_item_id", name="uq_basket_user_food"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(128), nullable=False, index=True)
    food_item_id = Column(Integer, ForeignKey("food_items.id", ondelete="CASCADE"), nullable=False)

    quantity = Column(Float, nullable=False, default=1)
    serving_size = Column(Float, nullable=False, default=100)

    created_at = Column(DateTime, default=utcnow)

    food_item = relationship("FoodItem")
