"""
Idempotency Ledger.

Records which external events have been applied so redeliveries are
skipped before any side effect.

This is a skip optimization, not the correctness guarantee: the
check-then-mark pair can race, and the acceptable failure mode is a
duplicate run. Reconcilers are idempotent upserts, so a duplicate run
ends in the same state.
"""
import hashlib
import logging
from datetime import datetime
from typing import Callable, Optional

from profit_core.domain.entities import IdempotencyRecord
from profit_core.domain.enums import IdempotencyStatus
from profit_core.domain.repositories import IdempotencyStore
from profit_core.domain.value_objects import utc_now


logger = logging.getLogger(__name__)

EVENT_ID_LENGTH = 32


def derive_event_id(topic: str, store: str, payload_id: str) -> str:
    """
    Deterministic event id: sha256("topic:store:payload_id"), 32 hex chars.

    The same logical event maps to the same id regardless of transport
    retries or delivery ids.
    """
    raw = f"{topic}:{store}:{payload_id}".encode("utf-8")
    return hashlib.sha256(raw).hexdigest()[:EVENT_ID_LENGTH]


class IdempotencyLedger:
    """
    Usage:
        event_id = derive_event_id(topic, shop_domain, payload["id"])
        if await ledger.should_process(event_id):
            ...  # reconcile
            await ledger.mark_processed(event_id, IdempotencyStatus.PROCESSED)
    """

    def __init__(
        self,
        store: IdempotencyStore,
        ttl_seconds: int = 7 * 24 * 3600,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.ttl_seconds = ttl_seconds
        self.clock = clock

    async def get_record(self, event_id: str) -> Optional[IdempotencyRecord]:
        """Live record for the event, or None if unseen or expired."""
        record = await self.store.get(event_id)
        if record is None:
            return None
        if record.is_expired(self.clock(), self.ttl_seconds):
            return None
        return record

    async def should_process(self, event_id: str) -> bool:
        """
        False when the event was already processed or skipped.

        Failed events are processed again on redelivery.
        """
        record = await self.get_record(event_id)
        if record is None:
            return True
        if record.status == IdempotencyStatus.FAILED:
            logger.info(f"Event {event_id} previously failed ({record.error}); reprocessing")
            return True
        return False

    async def mark_processed(
        self,
        event_id: str,
        outcome: IdempotencyStatus = IdempotencyStatus.PROCESSED,
        topic: Optional[str] = None,
        store_id: Optional[str] = None,
        error: Optional[str] = None,
    ) -> IdempotencyRecord:
        record = IdempotencyRecord(
            event_id=event_id,
            status=outcome,
            recorded_at=self.clock(),
            topic=topic,
            store_id=store_id,
            error=error,
        )
        await self.store.put(record)
        logger.debug(f"Event {event_id} marked {outcome.value}")
        return record
