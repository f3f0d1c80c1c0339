"""Unit of Work pattern for atomic transactions."""

from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from profit_core.domain.repositories import AbstractUnitOfWork
from profit_core.domain.value_objects import ExecutionID

from .repositories.sqlalchemy_commerce_repository import SQLAlchemyCommerceRepository


class SQLAlchemyUnitOfWork(AbstractUnitOfWork):
    """
    Unit of Work pattern for atomic transactions.

    Responsibilities:
    1. Manage SQLAlchemy session lifecycle
    2. Propagate ExecutionID across all operations
    3. Atomic commit/rollback of all repository operations
    4. Lazy initialization of the repository
    """

    def __init__(self, session_factory: Callable[[], AsyncSession]) -> None:
        self._session_factory = session_factory
        self._session: Optional[AsyncSession] = None
        self._execution_id: Optional[ExecutionID] = None
        self._commerce: Optional[SQLAlchemyCommerceRepository] = None

    async def __aenter__(self) -> "SQLAlchemyUnitOfWork":
        """Start transaction scope."""
        self._session = self._session_factory()
        self._execution_id = ExecutionID.generate()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Anything not committed is rolled back."""
        try:
            await self._session.rollback()
        finally:
            await self._session.close()
            self._session = None
            self._commerce = None

    @property
    def execution_id(self) -> ExecutionID:
        if self._execution_id is None:
            raise RuntimeError("UnitOfWork not initialized. Use async context manager.")
        return self._execution_id

    @property
    def commerce(self) -> SQLAlchemyCommerceRepository:
        if self._session is None:
            raise RuntimeError("UnitOfWork not initialized. Use async context manager.")
        if self._commerce is None:
            self._commerce = SQLAlchemyCommerceRepository(self._session)
        return self._commerce

    async def commit(self) -> None:
        if self._session is None:
            raise RuntimeError("UnitOfWork not initialized. Use async context manager.")
        await self._session.commit()

    async def rollback(self) -> None:
        if self._session is None:
            raise RuntimeError("UnitOfWork not initialized. Use async context manager.")
        await self._session.rollback()


def create_uow(session_factory: Callable[[], AsyncSession]) -> SQLAlchemyUnitOfWork:
    """Create a new Unit of Work instance."""
    return SQLAlchemyUnitOfWork(session_factory)
