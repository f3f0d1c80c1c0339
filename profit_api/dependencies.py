"""
FastAPI Dependencies.

Provides dependency injection for use cases and services. Every getter
can be replaced through app.dependency_overrides.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from fastapi import Depends

# Load environment variables ONCE before any settings objects are created
_PROJECT_ROOT = Path(__file__).resolve().parents[1]
load_dotenv(dotenv_path=_PROJECT_ROOT / ".env")

from profit_core.settings import get_app_settings
from profit_core.calculations import CalculationConfig
from profit_core.domain.repositories import IdempotencyStore
from profit_core.application.idempotency import IdempotencyLedger
from profit_core.application.interfaces import ISignatureVerifier
from profit_core.application.services import SyncJobRegistry, WebhookIngestionService
from profit_core.application.use_cases import (
    OrderReconciler,
    ProfitSummaryQuery,
    RefundReconciler,
    UnitOfWorkFactory,
)
from profit_core.infrastructure.database import create_uow, get_session_factory
from profit_core.infrastructure.idempotency import (
    DatabaseIdempotencyStore,
    MemoryIdempotencyStore,
    RedisIdempotencyStore,
)
from profit_core.infrastructure.security import HmacSignatureVerifier


logger = logging.getLogger(__name__)


# =============================================================================
# SINGLETON INSTANCES
# =============================================================================

_uow_factory: Optional[UnitOfWorkFactory] = None
_idempotency_store: Optional[IdempotencyStore] = None
_signature_verifier: Optional[ISignatureVerifier] = None
_sync_registry: Optional[SyncJobRegistry] = None


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_uow_factory() -> UnitOfWorkFactory:
    global _uow_factory
    if _uow_factory is None:
        session_factory = get_session_factory()
        _uow_factory = lambda: create_uow(session_factory)
        logger.info("Created SQLAlchemy unit of work factory")
    return _uow_factory


def get_calculation_config() -> CalculationConfig:
    return CalculationConfig.from_settings(get_app_settings().calculation)


def get_idempotency_store(
    uow_factory: UnitOfWorkFactory = Depends(get_uow_factory),
) -> IdempotencyStore:
    global _idempotency_store

    if _idempotency_store is None:
        settings = get_app_settings()
        backend = settings.webhooks.idempotency_backend

        if backend == "redis":
            _idempotency_store = RedisIdempotencyStore(
                redis_url=settings.redis.url,
                key_prefix=settings.redis.key_prefix,
                ttl_seconds=settings.webhooks.idempotency_ttl_seconds,
            )
        elif backend == "database":
            _idempotency_store = DatabaseIdempotencyStore(uow_factory)
        else:
            _idempotency_store = MemoryIdempotencyStore(
                max_entries=settings.webhooks.idempotency_max_entries,
                ttl_seconds=settings.webhooks.idempotency_ttl_seconds,
            )
        logger.info(f"Using {backend} idempotency store")

    return _idempotency_store


def get_idempotency_ledger(
    store: IdempotencyStore = Depends(get_idempotency_store),
) -> IdempotencyLedger:
    return IdempotencyLedger(store, ttl_seconds=get_app_settings().webhooks.idempotency_ttl_seconds)


def get_signature_verifier() -> ISignatureVerifier:
    global _signature_verifier
    if _signature_verifier is None:
        _signature_verifier = HmacSignatureVerifier(get_app_settings().webhooks.shared_secret)
    return _signature_verifier


def get_order_reconciler(
    uow_factory: UnitOfWorkFactory = Depends(get_uow_factory),
    config: CalculationConfig = Depends(get_calculation_config),
) -> OrderReconciler:
    return OrderReconciler(
        uow_factory,
        config=config,
        max_retries=get_app_settings().calculation.max_reconcile_retries,
    )


def get_refund_reconciler(
    uow_factory: UnitOfWorkFactory = Depends(get_uow_factory),
    config: CalculationConfig = Depends(get_calculation_config),
) -> RefundReconciler:
    return RefundReconciler(uow_factory, config=config)


def get_summary_query(
    uow_factory: UnitOfWorkFactory = Depends(get_uow_factory),
    config: CalculationConfig = Depends(get_calculation_config),
) -> ProfitSummaryQuery:
    return ProfitSummaryQuery(uow_factory, config=config)


def get_webhook_service(
    order_reconciler: OrderReconciler = Depends(get_order_reconciler),
    refund_reconciler: RefundReconciler = Depends(get_refund_reconciler),
    ledger: IdempotencyLedger = Depends(get_idempotency_ledger),
    verifier: ISignatureVerifier = Depends(get_signature_verifier),
    uow_factory: UnitOfWorkFactory = Depends(get_uow_factory),
) -> WebhookIngestionService:
    return WebhookIngestionService(
        order_reconciler=order_reconciler,
        refund_reconciler=refund_reconciler,
        ledger=ledger,
        verifier=verifier,
        uow_factory=uow_factory,
    )


def get_sync_registry() -> SyncJobRegistry:
    global _sync_registry
    if _sync_registry is None:
        _sync_registry = SyncJobRegistry()
    return _sync_registry


# =============================================================================
# RESET (for testing)
# =============================================================================

def reset_dependencies():
    global _uow_factory, _idempotency_store, _signature_verifier, _sync_registry

    _uow_factory = None
    _idempotency_store = None
    _signature_verifier = None
    _sync_registry = None

    get_app_settings.cache_clear()
    logger.info("Dependencies reset")
