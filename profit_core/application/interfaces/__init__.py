"""Application layer interfaces."""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from profit_core.application.dtos.order_event import OrderEvent


class ISignatureVerifier(ABC):
    """
    Interface for webhook signature verification.

    Implementations must compare in constant time.
    """

    @abstractmethod
    def verify(self, raw_body: bytes, signature: Optional[str]) -> bool:
        """
        Check a signature against the raw request bytes.

        Args:
            raw_body: payload exactly as received, before JSON decoding
            signature: signature header value (may be missing)

        Returns:
            True if the signature is valid
        """
        pass


@dataclass
class OrderPage:
    """One page of orders from an external platform."""
    orders: List[OrderEvent] = field(default_factory=list)
    next_cursor: Optional[str] = None


class IOrderPageSource(ABC):
    """
    Interface for paginated order pulls from an external platform.

    Wire formats and HTTP clients live in the implementation; callers
    are expected to apply their own timeouts.
    """

    @abstractmethod
    async def fetch_page(
        self,
        store_id: str,
        cursor: Optional[str],
        limit: int,
        since: Optional[datetime] = None,
    ) -> OrderPage:
        """
        Fetch one page of orders.

        Args:
            store_id: store to pull for
            cursor: opaque cursor from the previous page (None for the first)
            limit: maximum orders per page
            since: only orders updated after this instant

        Returns:
            OrderPage; next_cursor is None on the last page
        """
        pass

    async def fetch_order_details(self, store_id: str, order: OrderEvent) -> OrderEvent:
        """
        Complete an order with data that needs a separate call (e.g. transactions).

        Default: the page already carries everything.
        """
        return order


__all__ = ["ISignatureVerifier", "IOrderPageSource", "OrderPage"]
