"""
Allocation Core API - Main Application.

FastAPI application with CORS enabled for frontend communication. The
allocation engine is built at startup from the environment (or injected by
tests) and the hold-expiry sweep and release check run on a background
scheduler for the lifetime of the app.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import __version__
from api.errors import register_error_handlers
from core.logging_config import configure_logging
from services.engine import AllocationEngine, build_engine
from services.scheduler import create_scheduler

logger = logging.getLogger(__name__)


def create_app(engine: Optional[AllocationEngine] = None, start_scheduler: bool = True) -> FastAPI:
    """Build the app; `engine` defaults to the one configured by the environment."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging()
        app.state.engine = engine or build_engine()
        scheduler = None
        if start_scheduler:
            scheduler = create_scheduler(app.state.engine)
            scheduler.start()
            app.state.scheduler = scheduler
            logger.info("Background jobs started (hold sweep, release check)")
        yield
        if scheduler is not None:
            scheduler.shutdown(wait=False)

    # Create FastAPI application
    app = FastAPI(
        title="Allocation Core API",
        description="Inventory allocation, holds and pricing for tour-operator products",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Configure CORS - Allow all origins for development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Allow all origins for demo
        allow_credentials=True,
        allow_methods=["*"],  # Allow all HTTP methods
        allow_headers=["*"],  # Allow all headers
    )

    register_error_handlers(app)

    @app.get("/health", tags=["Health"])
    def health_check():
        """
        Health check endpoint.

        Returns the API status and version.
        """
        return {
            "status": "healthy",
            "version": __version__,
            "service": "allocation-core-api"
        }

    @app.get("/", tags=["Root"])
    def root():
        """
        Root endpoint with API information.
        """
        return {
            "message": "Allocation Core API",
            "version": __version__,
            "docs": "/docs",
            "health": "/health"
        }

    # Import and include routers
    from api.routers import allocations, availability, holds, pricing, releases

    app.include_router(availability.router, prefix="/api/v1", tags=["Availability"])
    app.include_router(allocations.router, prefix="/api/v1", tags=["Allocations"])
    app.include_router(holds.router, prefix="/api/v1", tags=["Holds"])
    app.include_router(pricing.router, prefix="/api/v1", tags=["Pricing"])
    app.include_router(releases.router, prefix="/api/v1", tags=["Releases"])

    return app


app = create_app()
