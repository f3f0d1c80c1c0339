"""SQLAlchemy persistence."""

from .config import close_database, create_engine, get_engine, get_session_factory, init_database
from .unit_of_work import SQLAlchemyUnitOfWork, create_uow

__all__ = [
    "close_database",
    "create_engine",
    "get_engine",
    "get_session_factory",
    "init_database",
    "SQLAlchemyUnitOfWork",
    "create_uow",
]
