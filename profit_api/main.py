"""
Profit Ledger - Main FastAPI Application.

REST layer over the ingestion pipeline: webhook intake, manual order
and refund ingestion, bulk sync and profit summaries.
"""
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import logging
import time

from profit_core import __version__
from profit_core.infrastructure.logging import configure_logging
from profit_core.settings import get_app_settings
from profit_api.routes import health, orders, refunds, summary, sync, webhooks


configure_logging(get_app_settings().runtime.log_level)
logger = logging.getLogger(__name__)


# =============================================================================
# CREATE FASTAPI APP
# =============================================================================

app = FastAPI(
    title="Profit Ledger API",
    description="""
    Per-order profit ledger for e-commerce stores.

    Features:
    - HMAC-verified, idempotent webhook ingestion
    - Idempotent order and refund reconciliation
    - Point-in-time COGS snapshots
    - Payment fee and shipping cost resolution
    - Profit summaries with data-quality warnings
    """,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)


# =============================================================================
# REQUEST LOGGING MIDDLEWARE
# =============================================================================

@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all requests with timing."""
    start_time = time.time()

    logger.info(f"→ {request.method} {request.url.path}")

    response = await call_next(request)

    duration = time.time() - start_time
    logger.info(
        f"← {request.method} {request.url.path} "
        f"[{response.status_code}] ({duration:.3f}s)"
    )

    return response


# =============================================================================
# GLOBAL EXCEPTION HANDLER
# =============================================================================

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all uncaught exceptions."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)

    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "detail": str(exc),
            "path": request.url.path,
        },
    )


# =============================================================================
# STARTUP/SHUTDOWN EVENTS
# =============================================================================

@app.on_event("startup")
async def startup_event():
    """Run on application startup."""
    settings = get_app_settings()
    logger.info("🚀 Profit Ledger API starting up...")
    logger.info(f"Environment: {settings.runtime.environment}")
    logger.info(f"Idempotency backend: {settings.webhooks.idempotency_backend}")
    if not settings.webhooks.shared_secret:
        logger.warning("WEBHOOK_SHARED_SECRET is not set; webhooks will be rejected")


@app.on_event("shutdown")
async def shutdown_event():
    """Run on application shutdown."""
    from profit_core.infrastructure.database import close_database

    await close_database()
    logger.info("👋 Profit Ledger API shutting down...")


# =============================================================================
# INCLUDE ROUTERS
# =============================================================================

app.include_router(
    health.router,
    tags=["Health"]
)

app.include_router(
    webhooks.router,
    prefix="/webhooks",
    tags=["Webhooks"]
)

app.include_router(
    orders.router,
    prefix="/api/v1/stores",
    tags=["Orders"]
)

app.include_router(
    refunds.router,
    prefix="/api/v1/stores",
    tags=["Refunds"]
)

app.include_router(
    sync.router,
    prefix="/api/v1/stores",
    tags=["Sync"]
)

app.include_router(
    summary.router,
    prefix="/api/v1/stores",
    tags=["Summary"]
)


# =============================================================================
# ROOT ENDPOINT
# =============================================================================

@app.get("/", tags=["Root"])
async def root():
    """API root endpoint."""
    return {
        "message": "Profit Ledger API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
