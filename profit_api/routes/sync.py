"""
Bulk sync endpoints.

Runs posted orders through the same paginated path a platform pull uses.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status

from profit_core.application.services import BulkSyncService, SyncJobRegistry
from profit_core.application.use_cases import OrderReconciler
from profit_core.infrastructure.sources import StaticOrderPageSource
from profit_core.settings import get_app_settings
from profit_api.dependencies import get_order_reconciler, get_sync_registry
from profit_api.schemas import SyncErrorDTO, SyncRequestDTO, SyncResponseDTO


logger = logging.getLogger(__name__)
router = APIRouter()


@router.post(
    "/{store_id}/sync",
    response_model=SyncResponseDTO,
    status_code=status.HTTP_200_OK,
    summary="Bulk-sync orders",
    description="""
    Reconcile many orders page by page.

    **Features:**
    - One order's failure does not stop the run
    - At most one run per store (409 otherwise)
    - Cancellable between pages via `/sync/cancel`
    """,
)
async def run_sync(
    store_id: str,
    request: SyncRequestDTO,
    reconciler: OrderReconciler = Depends(get_order_reconciler),
    registry: SyncJobRegistry = Depends(get_sync_registry),
):
    settings = get_app_settings().calculation

    try:
        cancel_event = registry.start(store_id)
    except RuntimeError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    try:
        service = BulkSyncService(
            reconciler,
            StaticOrderPageSource(request.orders),
            page_size=request.page_size or settings.sync_page_size,
            max_pages=settings.sync_max_pages,
        )
        result = await service.run(store_id, since=request.since, cancel_event=cancel_event)
    finally:
        registry.finish(store_id)

    return SyncResponseDTO(
        store_id=store_id,
        success=result.success,
        cancelled=result.cancelled,
        pages=result.pages,
        processed=result.processed,
        created=result.created,
        updated=result.updated,
        failed=result.failed,
        errors=[SyncErrorDTO(external_order_id=e.external_order_id, error=e.error) for e in result.errors],
        abort_reason=result.abort_reason,
        duration_seconds=result.duration_seconds,
    )


@router.post("/{store_id}/sync/cancel", summary="Cancel a running bulk sync")
async def cancel_sync(
    store_id: str,
    registry: SyncJobRegistry = Depends(get_sync_registry),
):
    cancelled = registry.cancel(store_id)
    if cancelled:
        logger.info(f"Cancellation requested for store {store_id} sync")
    return {"store_id": store_id, "cancelled": cancelled}
