"""
app.py: FastAPI application factory and startup lifecycle.

This is the ASGI application object imported by uvicorn.
It wires the repository and services, registers routers, and loads the
allocation state before the first request.

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
from backend.controllers.allocation_controller import router as allocation_router
from backend.repository.state_repository import StateRepository
from backend.services.allocation_service import AllocationStateManager
from backend.services.auth_service import AuthService
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build and wire the FastAPI application.

    Services live on app.state; there are no module-level singletons besides
    the `app` object uvicorn imports.
    """
    settings = settings or get_settings()

    repository = StateRepository(settings)
    allocation_service = AllocationStateManager(
        repository=repository,
        settings=settings,
    )
    auth_service = AuthService(settings=settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Load allocation state before accepting requests."""
        _startup(app)
        yield

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )

    app.include_router(allocation_router)
    app.include_router(admin_router)

    app.state.repository = repository
    app.state.allocation_service = allocation_service
    app.state.auth_service = auth_service

    return app


def _startup(app: FastAPI) -> None:
    """Create storage, then load persisted state or seed the default rooms."""
    allocation_service: AllocationStateManager = app.state.allocation_service
    repository: StateRepository = app.state.repository

    logger.info("Startup: loading allocation state")
    state = allocation_service.initialize()
    if repository.diagnostics:
        logger.warning(
            "Startup: stored state was replaced by the default seed (%s issue(s))",
            len(repository.diagnostics),
        )

    free_slots = sum(room.free_slots for room in state.rooms)
    logger.info("Startup complete: %s free slots across %s rooms", free_slots, len(state.rooms))


# Module-level app object for uvicorn
app = create_app()
