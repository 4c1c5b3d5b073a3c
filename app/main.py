from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from app.bundles.catalog import get_catalog
from app.bundles.routes import admin_router, orders_router, storefront_router
from app.core.config import settings
from app.core.exceptions import AppError, register_exception_handlers
from app.core.log_config import RequestLoggingMiddleware, setup_logging
from app.db.session import SessionLocal

setup_logging()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    catalog = get_catalog()
    logger.info(
        "bundle_engine_starting",
        catalog=type(catalog).__name__,
        remote_catalog=settings.uses_remote_catalog,
    )

    yield

    logger.info("bundle_engine_stopped")


app = FastAPI(
    title=settings.PROJECT_NAME,
    debug=settings.DEBUG,
    lifespan=lifespan,
    description="Bundle pricing, availability, lifecycle and promotion guard engine",
    version="1.0.0",
)

register_exception_handlers(app, debug=settings.DEBUG)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

app.include_router(
    admin_router, prefix=f"{settings.API_V1_PREFIX}/admin", tags=["admin-bundles"]
)
app.include_router(orders_router, prefix=settings.API_V1_PREFIX, tags=["bundle-orders"])
app.include_router(storefront_router, prefix=settings.API_V1_PREFIX, tags=["bundles"])


@app.get("/")
async def root() -> dict[str, str]:
    return {"message": settings.PROJECT_NAME, "version": "1.0.0", "status": "running"}


@app.get("/health")
async def health_check() -> dict[str, str]:
    db_status = "unknown"
    catalog_status = "unknown"

    try:
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
            db_status = "healthy"
        finally:
            db.close()
    except Exception:
        db_status = "unhealthy"

    try:
        get_catalog().get_variants([])
        catalog_status = "healthy"
    except AppError:
        catalog_status = "unhealthy"

    overall = "healthy" if db_status == catalog_status == "healthy" else "degraded"
    return {"status": overall, "database": db_status, "catalog": catalog_status}
