"""
Bounded in-process idempotency store.

Evicts least recently written records beyond max_entries and records
older than ttl_seconds. Only suitable for a single process.
"""
from collections import OrderedDict
from datetime import datetime
from typing import Callable, Optional
import logging

from profit_core.domain.entities import IdempotencyRecord
from profit_core.domain.repositories import IdempotencyStore
from profit_core.domain.value_objects import utc_now


logger = logging.getLogger(__name__)


class MemoryIdempotencyStore(IdempotencyStore):

    def __init__(
        self,
        max_entries: int = 1000,
        ttl_seconds: int = 7 * 24 * 3600,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._records: "OrderedDict[str, IdempotencyRecord]" = OrderedDict()

    async def get(self, event_id: str) -> Optional[IdempotencyRecord]:
        record = self._records.get(event_id)
        if record is None:
            return None
        if record.is_expired(self.clock(), self.ttl_seconds):
            del self._records[event_id]
            return None
        return record

    async def put(self, record: IdempotencyRecord) -> None:
        self._records.pop(record.event_id, None)
        self._records[record.event_id] = record
        while len(self._records) > self.max_entries:
            evicted, _ = self._records.popitem(last=False)
            logger.debug(f"Evicted idempotency record {evicted}")

    def __len__(self) -> int:
        return len(self._records)
