import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app import models  # noqa: F401  registers tables on Base.metadata
from app.core.db import Base, engine
from app.core.errors import ServiceError
from app.core.logging import configure_logging
from app.api.v1.health import router as health_router
from app.api.v1.health_data import router as health_data_router
from app.api.v1.food import router as food_router
from app.api.v1.feed import router as feed_router
from app.api.v1.challenges import router as challenges_router
from app.api.v1.users import router as users_router

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Fitness Tracker", version="1.0.0")

if engine:
    Base.metadata.create_all(bind=engine)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"status": "error", "code": exc.code, "detail": exc.detail},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}"
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"status": "error", "code": "VALIDATION_ERROR", "detail": "; ".join(errors)},
    )


app.include_router(health_router, prefix="/v1")
app.include_router(health_data_router, prefix="/v1")
app.include_router(food_router, prefix="/v1")
app.include_router(feed_router, prefix="/v1")
app.include_router(challenges_router, prefix="/v1")
app.include_router(users_router, prefix="/v1")
