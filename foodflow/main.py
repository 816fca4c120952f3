"""FastAPI entrypoint for the food-ordering service."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from foodflow.api.v1.api import api_router
from foodflow.core.config import settings
from foodflow.core.errors import AppError
from foodflow.db import session as db_session
from foodflow.db.base import Base
from foodflow.db.seed import ensure_seed_data
from foodflow.services.kv_store import KeyValueStoreError

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name, debug=settings.debug)
app.include_router(api_router, prefix="/api/v1")


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.warning("[DB] Integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
    return JSONResponse(
        status_code=409,
        content={"detail": "A record with this value already exists", "code": "CONFLICT"},
    )


@app.exception_handler(KeyValueStoreError)
async def kv_store_error_handler(request: Request, exc: KeyValueStoreError) -> JSONResponse:
    logger.error("[KV] %s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=503,
        content={"detail": "Key-value store unavailable", "code": "SERVICE_UNAVAILABLE"},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("[API] Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal Server Error", "code": "INTERNAL_SERVER_ERROR"},
    )


@app.on_event("startup")
def startup() -> None:
    Base.metadata.create_all(bind=db_session.engine)
    if not settings.seed_demo_data:
        return
    with db_session.SessionLocal() as session:
        try:
            seeded = ensure_seed_data(session)
            logger.info("[BOOTSTRAP] demo data seeded: %s", "yes" if seeded else "already present")
        except Exception:
            logger.exception("[BOOTSTRAP] Seed failed; continuing startup.")


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok", "environment": settings.app_env}
