"""Unit of Work interface."""

from abc import ABC, abstractmethod

from ..value_objects import ExecutionID
from .commerce_repository import CommerceRepository


class AbstractUnitOfWork(ABC):
    """
    Transaction scope around a CommerceRepository.

    Leaving the context without commit() discards every write.

    Usage:
        async with uow_factory() as uow:
            order = await uow.commerce.find_order(store_id, external_id, for_update=True)
            ...
            await uow.commit()
    """

    execution_id: ExecutionID

    @property
    @abstractmethod
    def commerce(self) -> CommerceRepository:
        pass

    @abstractmethod
    async def __aenter__(self) -> "AbstractUnitOfWork":
        pass

    @abstractmethod
    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        pass

    @abstractmethod
    async def commit(self) -> None:
        pass

    @abstractmethod
    async def rollback(self) -> None:
        pass
