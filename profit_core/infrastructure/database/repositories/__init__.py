from .sqlalchemy_commerce_repository import SQLAlchemyCommerceRepository

__all__ = ["SQLAlchemyCommerceRepository"]
