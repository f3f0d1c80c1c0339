"""Repository and storage interfaces (ports)."""

from .commerce_repository import CommerceRepository
from .unit_of_work import AbstractUnitOfWork
from .idempotency_store import IdempotencyStore

__all__ = ["CommerceRepository", "AbstractUnitOfWork", "IdempotencyStore"]
