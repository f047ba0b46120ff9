"""
FastAPI Application Factory.

This module provides a clean, configurable FastAPI application setup.

Usage:
    # Development
    uvicorn api.app:create_app --factory --reload

    # Production
    uvicorn api.app:app --host 0.0.0.0 --port 8080

    Sessions live in process memory, so run a single worker.

    # Or use the convenience function
    from api.app import create_app
    app = create_app()
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config.settings import get_settings
from core.errors import RecsError
from core.logging import configure_logging, get_logger
from core.middleware import RequestTracingMiddleware
from recs.catalog import get_catalog
from recs.pipeline import get_pipeline
from services.session_manager import get_session_manager


logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan handler.

    Runs on startup:
    - Initialize logging
    - Load the catalog and reference data
    - Build the pipeline and session manager

    Runs on shutdown:
    - Drop expired sessions
    """
    settings = get_settings()

    # Configure logging based on environment
    configure_logging(
        json_logs=settings.is_production,
        log_level="DEBUG" if settings.debug else "INFO",
    )

    logger.info(
        "Starting storefront recommendation API",
        environment=settings.environment,
        port=settings.port,
    )

    catalog = get_catalog()
    pipeline = get_pipeline()
    get_session_manager()
    logger.info(
        "Recommendation engine ready",
        catalog_items=len(catalog),
        inference_active=pipeline.inference.active,
        providers=[p.name for p in pipeline.inference.providers],
    )

    yield  # Application is running

    cleared = get_session_manager().clear_expired()
    logger.info("Shutting down storefront recommendation API", expired_sessions=cleared)


# =============================================================================
# Exception Handlers
# =============================================================================

async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Unreadable body: generic 400, no parser detail in the response."""
    logger.warning("Rejected request body", path=request.url.path, errors=len(exc.errors()))
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": "Invalid request body"},
    )


async def recs_exception_handler(request: Request, exc: RecsError) -> JSONResponse:
    logger.error("Engine error", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "Internal error"},
    )


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application
    """
    settings = get_settings()

    app = FastAPI(
        title="Storefront Recommendation API",
        description="""
        Ranking and recommendation engine for a storefront.

        ## Features

        - **Behavior Analysis**: Intent classification from the session's interactions
        - **Recommendations**: Collaborative, market-basket, behavioral, search and
          context signals combined into one ranking
        - **Grid Ranking**: Filters, plain sorts and a session-scoped ranking cache

        ## Main Endpoints

        - `/api/ai/behavior-analysis` - Classify shopping intent
        - `/api/ai/recommendations` - Recommendations for a page
        - `/api/ai/rank` - Rank a filtered product grid
        - `/api/ai/sessions/*` - Interaction log and cache refresh

        ## Health Checks

        - `/health` - Basic health check
        - `/health/detailed` - Detailed health with dependency status
        - `/ready` - Kubernetes readiness probe
        - `/live` - Kubernetes liveness probe
        """,
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    # =========================================================================
    # Middleware (order matters - first added = outermost)
    # =========================================================================

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request tracing (adds X-Request-ID, logs timing)
    app.add_middleware(RequestTracingMiddleware)

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(RecsError, recs_exception_handler)

    # =========================================================================
    # Routes
    # =========================================================================

    # Health checks
    from api.routes.health import router as health_router
    app.include_router(health_router, tags=["Health"])

    # Behavior analysis, recommendations, ranking, sessions
    from api.routes.ai import router as ai_router
    app.include_router(ai_router)

    return app


# Create default app instance for uvicorn
# Usage: uvicorn api.app:app
app = create_app()

