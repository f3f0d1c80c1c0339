"""Storage interface behind the idempotency ledger."""

from abc import ABC, abstractmethod
from typing import Optional

from ..entities import IdempotencyRecord


class IdempotencyStore(ABC):
    """Key-value store of IdempotencyRecord keyed by event id."""

    @abstractmethod
    async def get(self, event_id: str) -> Optional[IdempotencyRecord]:
        """Return the record, or None if absent or evicted."""
        pass

    @abstractmethod
    async def put(self, record: IdempotencyRecord) -> None:
        pass
