import logging

from fastapi import APIRouter
from sqlalchemy import text

from app.core.config import settings
from app.core.db import engine

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
def health():
    db_ok = False
    if engine is not None:
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            db_ok = True
        except Exception as e:
            logger.warning("Database ping failed: %s", e)
    return {
        "status": "ok",
        "environment": settings.ENVIRONMENT,
        "db": db_ok,
    }
