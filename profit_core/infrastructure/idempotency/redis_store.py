"""
Redis-backed idempotency store.

Shared across processes. Records expire through the Redis key TTL.

Key format: {key_prefix}{event_id}
Value format: {
    "status": str,
    "recorded_at": str,  # ISO format
    "topic": str | null,
    "store_id": str | null,
    "error": str | null,
}
"""
import json
import logging
from datetime import datetime
from typing import Optional

import redis.asyncio as aioredis

from profit_core.domain.entities import IdempotencyRecord
from profit_core.domain.enums import IdempotencyStatus
from profit_core.domain.repositories import IdempotencyStore
from profit_core.domain.value_objects import ensure_utc


logger = logging.getLogger(__name__)


class RedisIdempotencyStore(IdempotencyStore):

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        key_prefix: str = "profit-ledger:webhook:",
        ttl_seconds: int = 7 * 24 * 3600,
        client: Optional[aioredis.Redis] = None,
    ):
        """
        Args:
            redis_url: Redis connection URL
            key_prefix: namespace for ledger keys
            ttl_seconds: key expiry
            client: pre-built client (tests pass a mock)
        """
        self.redis_url = redis_url
        self.key_prefix = key_prefix
        self.ttl_seconds = ttl_seconds
        self._redis_client = client

    async def connect(self) -> aioredis.Redis:
        """Establish Redis connection."""
        if self._redis_client is None:
            try:
                self._redis_client = aioredis.from_url(
                    self.redis_url,
                    encoding="utf-8",
                    decode_responses=True,
                )
                await self._redis_client.ping()
                logger.info(f"✅ Connected to Redis: {self.redis_url}")
            except Exception as e:
                logger.error(f"Failed to connect to Redis: {e}")
                self._redis_client = None
                raise
        return self._redis_client

    async def disconnect(self) -> None:
        """Close Redis connection."""
        if self._redis_client:
            await self._redis_client.aclose()
            self._redis_client = None
            logger.info("✅ Disconnected from Redis")

    def _key(self, event_id: str) -> str:
        return f"{self.key_prefix}{event_id}"

    async def get(self, event_id: str) -> Optional[IdempotencyRecord]:
        client = await self.connect()
        raw = await client.get(self._key(event_id))
        if raw is None:
            return None
        data = json.loads(raw)
        return IdempotencyRecord(
            event_id=event_id,
            status=IdempotencyStatus(data["status"]),
            recorded_at=ensure_utc(datetime.fromisoformat(data["recorded_at"])),
            topic=data.get("topic"),
            store_id=data.get("store_id"),
            error=data.get("error"),
        )

    async def put(self, record: IdempotencyRecord) -> None:
        client = await self.connect()
        value = json.dumps(
            {
                "status": record.status.value,
                "recorded_at": record.recorded_at.isoformat(),
                "topic": record.topic,
                "store_id": record.store_id,
                "error": record.error,
            }
        )
        await client.set(self._key(record.event_id), value, ex=self.ttl_seconds)
