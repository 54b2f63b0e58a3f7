"""FastAPI application configuration module."""

import logging
from typing import Optional

from fastapi import FastAPI

from ..config.environment import Settings
from ..db.repository import EventRepository
from .errors import register_exception_handlers
from .middleware import install_middleware
from .routes import events, health

logger = logging.getLogger(__name__)

def create_application(repository: EventRepository, settings: Optional[Settings] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        repository: Event store the handlers read from
        settings: Process settings; defaults are used when omitted
    """
    settings = settings or Settings()

    app = FastAPI(
        title="Motophoto API",
        description="Photo catalog for motorsport and action-sport events",
        version="0.1.0",
        docs_url=None if settings.is_production else '/api/docs',
        redoc_url=None,
        openapi_url=None if settings.is_production else '/api/openapi.json',
    )
    app.state.repository = repository

    install_middleware(app)
    register_exception_handlers(app)

    app.include_router(health.router, prefix="/api")
    app.include_router(events.router, prefix="/api/v1")

    logger.debug("Application created")
    return app
