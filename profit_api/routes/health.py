"""
Health check endpoints.

Used for monitoring and load balancer health checks.
"""
import platform

from fastapi import APIRouter

from profit_core import __version__
from profit_core.domain.value_objects import utc_now
from profit_core.settings import get_app_settings


router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Health check endpoint.

    Returns system health status.
    """
    return {
        "status": "healthy",
        "timestamp": utc_now().isoformat(),
        "service": "profit-ledger",
        "version": __version__,
        "python_version": platform.python_version(),
    }


@router.get("/health/ready")
async def readiness_check():
    """
    Readiness check endpoint.

    Reports the configured backends; connectivity is checked by the
    first request that uses them.
    """
    settings = get_app_settings()
    return {
        "status": "ready",
        "timestamp": utc_now().isoformat(),
        "environment": settings.runtime.environment,
        "checks": {
            "api": "ok",
            "idempotency_backend": settings.webhooks.idempotency_backend,
            "webhook_secret_configured": bool(settings.webhooks.shared_secret),
        },
    }
