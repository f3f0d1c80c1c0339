"""Idempotency ledger backends."""

from .memory_store import MemoryIdempotencyStore
from .redis_store import RedisIdempotencyStore
from .sql_store import DatabaseIdempotencyStore

__all__ = ["MemoryIdempotencyStore", "RedisIdempotencyStore", "DatabaseIdempotencyStore"]
