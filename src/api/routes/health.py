"""
Health check endpoints.

Provides endpoints for monitoring application health and status.
"""

from typing import Dict, Any
from fastapi import APIRouter

from config.settings import get_settings
from core.errors import CatalogLookupError
from recs.catalog import get_catalog
from recs.pipeline import get_pipeline
from services.session_manager import get_session_manager


router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check() -> Dict[str, Any]:
    """
    Basic health check endpoint.

    Returns:
        Health status with basic info
    """
    return {
        "status": "healthy",
        "service": "storefront-recs-api",
    }


@router.get("/health/detailed")
def detailed_health_check() -> Dict[str, Any]:
    """
    Detailed health with dependency status.

    Checks:
    - Configuration loaded
    - Catalog loadable
    - Inference providers configured (the rule table always answers)
    - Session counts

    Returns:
        Detailed health status
    """
    settings = get_settings()

    catalog_status = "ok"
    catalog_error = None
    catalog_items = 0
    try:
        catalog_items = len(get_catalog())
    except CatalogLookupError as e:
        catalog_status = "error"
        catalog_error = str(e)

    inference = get_pipeline().inference
    return {
        "status": "healthy" if catalog_status == "ok" else "degraded",
        "service": "storefront-recs-api",
        "environment": settings.environment,
        "checks": {
            "config": "ok",
            "catalog": {
                "status": catalog_status,
                "items": catalog_items,
                "error": catalog_error,
            },
            "inference": {
                "status": "active" if inference.active else "rules_only",
                "providers": [p.name for p in inference.providers],
            },
            "sessions": get_session_manager().get_stats(),
        },
    }


@router.get("/ready")
def readiness_check() -> Dict[str, str]:
    """
    Kubernetes-style readiness probe.

    Returns 200 if the service is ready to accept traffic.
    """
    try:
        get_catalog()
    except CatalogLookupError:
        return {"status": "not_ready", "reason": "catalog_unavailable"}

    return {"status": "ready"}


@router.get("/live")
async def liveness_check() -> Dict[str, str]:
    """
    Kubernetes-style liveness probe.

    Returns 200 if the service is alive.
    """
    return {"status": "alive"}
