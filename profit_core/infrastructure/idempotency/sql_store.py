"""Idempotency store persisted through the commerce repository."""

from typing import Callable, Optional

from profit_core.domain.entities import IdempotencyRecord
from profit_core.domain.repositories import AbstractUnitOfWork, IdempotencyStore


class DatabaseIdempotencyStore(IdempotencyStore):
    """Each read and write runs in its own short transaction."""

    def __init__(self, uow_factory: Callable[[], AbstractUnitOfWork]):
        self.uow_factory = uow_factory

    async def get(self, event_id: str) -> Optional[IdempotencyRecord]:
        async with self.uow_factory() as uow:
            return await uow.commerce.find_idempotency_record(event_id)

    async def put(self, record: IdempotencyRecord) -> None:
        async with self.uow_factory() as uow:
            await uow.commerce.write_idempotency_record(record)
            await uow.commit()
