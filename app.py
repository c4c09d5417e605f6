"""
app.py: FastAPI application factory and startup lifecycle.

This is the ASGI application object imported by uvicorn.
It wires all services, registers routers, and runs startup initialization.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from backend.controllers.admin_controller import router as admin_router
from backend.controllers.booking_controller import router as booking_router
from backend.repository.data_repository import DataRepository
from backend.services.allocation_service import SeatAllocationService
from backend.services.auth_service import AuthService
from backend.services.booking_service import BookingService
from backend.services.booking_workflow_service import BookingWorkflowService
from backend.services.showing_service import ShowingService
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build and wire the FastAPI application.

    Every service receives its collaborators explicitly and is exposed on
    app.state for the controller dependency providers.
    """
    settings = settings or get_settings()

    # --- Repository (SQLite connection factory) ---
    repository = DataRepository(settings)

    # --- Services (business logic, no direct DB access) ---
    allocation_service = SeatAllocationService(repository=repository, settings=settings)
    booking_service = BookingService(repository=repository, settings=settings)
    showing_service = ShowingService(repository=repository, settings=settings)
    workflow_service = BookingWorkflowService(
        repository=repository,
        allocation_service=allocation_service,
        booking_service=booking_service,
        settings=settings,
    )
    auth_service = AuthService(settings=settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Run startup initialization before accepting requests."""
        _startup(app)
        yield

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )

    # --- Routers ---
    app.include_router(booking_router)
    app.include_router(admin_router)

    # --- Inject services into app.state for dependency resolution ---
    app.state.repository = repository
    app.state.allocation_service = allocation_service
    app.state.booking_service = booking_service
    app.state.showing_service = showing_service
    app.state.workflow_service = workflow_service
    app.state.auth_service = auth_service

    return app


def _startup(app: FastAPI) -> None:
    """
    Idempotent startup sequence. Safe to re-run on server restarts.

    Schema must exist before the default showing's seat inventory is seeded.
    """
    repository: DataRepository = app.state.repository
    showing_service: ShowingService = app.state.showing_service

    logger.info("Startup: initializing database schema")
    repository.initialize_database()

    logger.info("Startup: seeding default showing (skipped if present)")
    showing_service.seed_default_showing()

    logger.info("Startup complete | system ready")


# Module-level app object for uvicorn
app = create_app()
