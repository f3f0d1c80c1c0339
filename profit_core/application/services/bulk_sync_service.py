"""
Bulk Sync Service.

Pull entry point. Pages through a platform's orders and routes each
through the same OrderReconciler webhooks use.

CRITICAL: One order's failure never aborts the run. Cancellation is
checked between pages; the page in flight is finished first, so every
order is either fully reconciled or not touched.
"""
import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from profit_core.domain.enums import OrderSource
from profit_core.domain.value_objects import utc_now

from profit_core.application.interfaces import IOrderPageSource
from profit_core.application.use_cases import BatchItemError, OrderReconciler


logger = logging.getLogger(__name__)


@dataclass
class BulkSyncResult:
    """Summary of one bulk sync run."""
    store_id: str
    pages: int = 0
    processed: int = 0
    created: int = 0
    updated: int = 0
    failed: int = 0
    errors: List[BatchItemError] = field(default_factory=list)
    cancelled: bool = False
    aborted: bool = False
    abort_reason: Optional[str] = None
    duration_seconds: float = 0.0
    started_at: datetime = None

    def __post_init__(self):
        if self.started_at is None:
            self.started_at = utc_now()

    @property
    def success(self) -> bool:
        return self.failed == 0 and not self.aborted


class BulkSyncService:
    """
    Service for paginated order backfills.

    Usage:
        service = BulkSyncService(order_reconciler, page_source)
        result = await service.run(store_id, since=last_sync)
    """

    def __init__(
        self,
        order_reconciler: OrderReconciler,
        page_source: IOrderPageSource,
        page_size: int = 250,
        max_pages: int = 1000,
    ):
        self.order_reconciler = order_reconciler
        self.page_source = page_source
        self.page_size = page_size
        self.max_pages = max_pages

    async def run(
        self,
        store_id: str,
        since: Optional[datetime] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> BulkSyncResult:
        """
        Sync all orders for a store, page by page.

        Args:
            store_id: store to sync
            since: only orders updated after this instant
            cancel_event: set to stop before the next page

        Returns:
            BulkSyncResult with per-order failures listed in errors
        """
        start_time = time.time()
        result = BulkSyncResult(store_id=store_id)
        cursor: Optional[str] = None

        logger.info(f"Starting bulk sync for store {store_id} (since={since})")

        while result.pages < self.max_pages:
            if cancel_event is not None and cancel_event.is_set():
                result.cancelled = True
                logger.info(f"Bulk sync for store {store_id} cancelled after {result.pages} pages")
                break

            # =================================================================
            # STEP 1: Fetch page
            # =================================================================
            try:
                page = await self.page_source.fetch_page(store_id, cursor, self.page_size, since)
            except Exception as e:
                result.aborted = True
                result.abort_reason = f"Page fetch failed: {e}"
                logger.error(f"❌ Bulk sync for store {store_id} aborted: {e}", exc_info=True)
                break
            result.pages += 1

            # =================================================================
            # STEP 2: Reconcile each order in isolation
            # =================================================================
            for order_event in page.orders:
                try:
                    detailed = await self.page_source.fetch_order_details(store_id, order_event)
                    outcome = await self.order_reconciler.ingest_order(
                        detailed, store_id, OrderSource.SYNC
                    )
                except Exception as e:
                    result.failed += 1
                    result.errors.append(
                        BatchItemError(external_order_id=order_event.external_order_id, error=str(e))
                    )
                    logger.error(f"❌ Failed to sync order {order_event.external_order_id}: {e}")
                    continue

                result.processed += 1
                if outcome.created:
                    result.created += 1
                else:
                    result.updated += 1

            logger.info(
                f"Store {store_id} page {result.pages}: {len(page.orders)} orders "
                f"({result.processed} processed, {result.failed} failed so far)"
            )

            cursor = page.next_cursor
            if not cursor:
                break
        else:
            logger.warning(f"Bulk sync for store {store_id} stopped at max_pages={self.max_pages}")

        result.duration_seconds = time.time() - start_time
        status = "✅" if result.success else "❌"
        logger.info(
            f"{status} Bulk sync for store {store_id} finished: {result.processed} processed "
            f"({result.created} created, {result.updated} updated), {result.failed} failed, "
            f"{result.pages} pages in {result.duration_seconds:.2f}s"
        )
        return result


class SyncJobRegistry:
    """
    Tracks running sync jobs per store so they can be cancelled.

    At most one job per store.
    """

    def __init__(self):
        self._jobs: Dict[str, asyncio.Event] = {}

    def start(self, store_id: str) -> asyncio.Event:
        """
        Register a job and return its cancel event.

        Raises:
            RuntimeError: a sync is already running for the store
        """
        if store_id in self._jobs:
            raise RuntimeError(f"Sync already running for store {store_id}")
        event = asyncio.Event()
        self._jobs[store_id] = event
        return event

    def cancel(self, store_id: str) -> bool:
        """Request cancellation. False when no job is running."""
        event = self._jobs.get(store_id)
        if event is None:
            return False
        event.set()
        return True

    def finish(self, store_id: str) -> None:
        self._jobs.pop(store_id, None)

    def is_running(self, store_id: str) -> bool:
        return store_id in self._jobs
