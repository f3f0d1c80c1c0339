"""
Order page source over a fixed list of events.

Used for replaying exported order files and in tests. Cursors are
stringified offsets.
"""
from datetime import datetime
from typing import List, Optional

from profit_core.application.dtos.order_event import OrderEvent
from profit_core.application.interfaces import IOrderPageSource, OrderPage
from profit_core.domain.value_objects import ensure_utc


class StaticOrderPageSource(IOrderPageSource):

    def __init__(self, orders: List[OrderEvent]):
        self.orders = list(orders)
        self.fetched_pages = 0

    async def fetch_page(
        self,
        store_id: str,
        cursor: Optional[str],
        limit: int,
        since: Optional[datetime] = None,
    ) -> OrderPage:
        since = ensure_utc(since)
        candidates = [
            o for o in self.orders
            if since is None or (o.updated_at or o.created_at) > since
        ]
        offset = int(cursor) if cursor else 0
        page = candidates[offset:offset + limit]
        next_offset = offset + len(page)
        self.fetched_pages += 1
        return OrderPage(
            orders=page,
            next_cursor=str(next_offset) if next_offset < len(candidates) else None,
        )
