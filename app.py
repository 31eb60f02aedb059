"""
app.py: FastAPI application factory and startup lifecycle.

This is the ASGI application object imported by uvicorn. It wires the
repository and services, registers routers, and prepares the database.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from venuebook.controllers.booking_controller import router as booking_router
from venuebook.controllers.catalog_controller import router as catalog_router
from venuebook.repository.data_repository import DataRepository
from venuebook.services.auth_service import AuthService
from venuebook.services.booking_service import BookingWorkflowService
from venuebook.utils.config import Settings, get_settings
from venuebook.utils.logger import configure_logging, get_logger


logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build and wire the FastAPI application.

    Every dependency is attached to ``app.state`` here so controllers can
    resolve it per request.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    repository = DataRepository(settings)
    auth_service = AuthService(settings=settings)
    booking_service = BookingWorkflowService(repository=repository, settings=settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        _startup(app)
        yield

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )

    app.include_router(catalog_router)
    app.include_router(booking_router)

    app.state.settings = settings
    app.state.repository = repository
    app.state.auth_service = auth_service
    app.state.booking_service = booking_service

    return app


def _startup(app: FastAPI) -> None:
    """Idempotent: schema first, then seed only into empty tables."""
    repository: DataRepository = app.state.repository

    logger.info("Startup: initializing database schema")
    repository.initialize_database()

    logger.info("Startup: seeding reference data (skipped if venues exist)")
    repository.seed_synthetic_data()

    if not app.state.auth_service.auth_enabled:
        logger.warning("ADMIN_TOKEN is not set; admin endpoints are open")
    logger.info("Startup complete")


app = create_app()
