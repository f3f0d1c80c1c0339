"""Pytest configuration and fixtures for integration tests."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from profit_api import dependencies
from profit_api.main import app
from profit_core.infrastructure.database import create_uow, get_session_factory, init_database
from profit_core.infrastructure.database.models import COGSEntryModel, StoreModel, VariantModel
from profit_core.infrastructure.idempotency import MemoryIdempotencyStore
from profit_core.infrastructure.security import HmacSignatureVerifier


# Use in-memory SQLite for testing
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
WEBHOOK_SECRET = "test-secret"


def _create_test_engine():
    return create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )


async def prepare_database(engine) -> None:
    """Create all tables and seed the catalog used by the root fixtures."""
    await init_database(bind=engine)

    session_factory = get_session_factory(bind=engine)
    async with session_factory() as session:
        session.add(
            StoreModel(id="store-1", domain="test-shop.myshopify.com", name="Test Shop", currency="SEK")
        )
        session.add_all(
            [
                VariantModel(id="var-hoodie", store_id="store-1", external_variant_id="44001", title="Hoodie", sku="HOOD-1"),
                VariantModel(id="var-cap", store_id="store-1", external_variant_id="44002", title="Cap", sku="CAP-1"),
            ]
        )
        await session.flush()
        session.add_all(
            [
                COGSEntryModel(
                    variant_id="var-hoodie",
                    cost_price=Decimal("100.00"),
                    effective_from=datetime(2024, 1, 1, tzinfo=timezone.utc),
                    effective_to=datetime(2024, 6, 30, 23, 59, 59, tzinfo=timezone.utc),
                ),
                COGSEntryModel(
                    variant_id="var-hoodie",
                    cost_price=Decimal("120.00"),
                    effective_from=datetime(2024, 7, 1, tzinfo=timezone.utc),
                ),
                COGSEntryModel(
                    variant_id="var-cap",
                    cost_price=Decimal("40.00"),
                    effective_from=datetime(2024, 1, 1, tzinfo=timezone.utc),
                ),
            ]
        )
        await session.commit()


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Seeded in-memory SQLite engine."""
    engine = _create_test_engine()
    await prepare_database(engine)

    yield engine

    await engine.dispose()


@pytest.fixture
def test_session_factory(test_engine):
    return get_session_factory(bind=test_engine)


@pytest.fixture
def uow_factory(test_session_factory):
    """SQLAlchemy unit of work; overrides the in-memory one."""
    return lambda: create_uow(test_session_factory)


@pytest.fixture
def test_client():
    """
    FastAPI test client over a seeded SQLite database.

    The database is prepared through the client's portal so the engine
    and the application share one event loop.
    """
    engine = _create_test_engine()
    session_factory = get_session_factory(bind=engine)
    idempotency_store = MemoryIdempotencyStore()

    app.dependency_overrides[dependencies.get_uow_factory] = lambda: (lambda: create_uow(session_factory))
    app.dependency_overrides[dependencies.get_signature_verifier] = lambda: HmacSignatureVerifier(WEBHOOK_SECRET)
    app.dependency_overrides[dependencies.get_idempotency_store] = lambda: idempotency_store

    with TestClient(app) as client:
        client.portal.call(prepare_database, engine)
        yield client
        client.portal.call(engine.dispose)

    # Cleanup
    app.dependency_overrides.clear()
    dependencies.reset_dependencies()
