"""Lead Router — FastAPI application factory."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from lead_router.adapters.persistence.database import engine
from lead_router.config import settings
from lead_router.infrastructure.api.routes_analytics import router as analytics_router
from lead_router.infrastructure.api.routes_health import router as health_router
from lead_router.infrastructure.api.routes_ingest import router as ingest_router
from lead_router.infrastructure.api.routes_work_items import router as work_items_router
from lead_router.infrastructure.api.routes_workers import router as workers_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    try:
        async with engine.begin():
            pass  # Connection pool warmed up
        logger.info("Database connection established")
    except (SQLAlchemyError, OSError) as e:
        logger.warning("Database not available on startup: %s", e)
    yield
    await engine.dispose()


def create_app() -> FastAPI:
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="Lead Router",
        description="Atomic, fair, capacity-aware assignment of inbound leads to callers",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register routers
    app.include_router(health_router, prefix="/api")
    app.include_router(ingest_router, prefix="/api")
    app.include_router(work_items_router, prefix="/api")
    app.include_router(workers_router, prefix="/api")
    app.include_router(analytics_router, prefix="/api")

    return app


app = create_app()
