"""In-memory persistence."""

from .in_memory_repository import (
    InMemoryCommerceRepository,
    InMemoryCommerceStore,
    InMemoryUnitOfWork,
)

__all__ = ["InMemoryCommerceRepository", "InMemoryCommerceStore", "InMemoryUnitOfWork"]
