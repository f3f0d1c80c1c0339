"""Idempotency record entity."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from ..enums import IdempotencyStatus


@dataclass(frozen=True)
class IdempotencyRecord:
    """Outcome of one externally delivered event."""
    event_id: str
    status: IdempotencyStatus
    recorded_at: datetime
    topic: Optional[str] = None
    store_id: Optional[str] = None
    error: Optional[str] = None

    def is_expired(self, now: datetime, ttl_seconds: int) -> bool:
        return now - self.recorded_at > timedelta(seconds=ttl_seconds)
