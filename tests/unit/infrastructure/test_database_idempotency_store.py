"""Tests for the repository-backed idempotency store over the in-memory unit of work."""
import inspect
from datetime import datetime, timezone
from typing import Callable

import pytest

from profit_core.domain.entities import IdempotencyRecord
from profit_core.domain.enums import IdempotencyStatus
from profit_core.domain.repositories import AbstractUnitOfWork
from profit_core.infrastructure.idempotency import DatabaseIdempotencyStore


NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


class TestDatabaseIdempotencyStoreOverPort:

    @pytest.mark.asyncio
    async def test_writes_are_committed_and_read_back(self, uow_factory, commerce_store):
        store = DatabaseIdempotencyStore(uow_factory)

        await store.put(
            IdempotencyRecord(event_id="e1", status=IdempotencyStatus.SKIPPED, recorded_at=NOW, topic="products/update")
        )

        fetched = await store.get("e1")
        assert fetched.status == IdempotencyStatus.SKIPPED
        assert fetched.topic == "products/update"
        assert await store.get("e2") is None
        assert commerce_store.commits == 1

    def test_factory_is_typed_against_the_domain_unit_of_work(self):
        annotation = inspect.signature(DatabaseIdempotencyStore).parameters["uow_factory"].annotation
        assert annotation == Callable[[], AbstractUnitOfWork]
