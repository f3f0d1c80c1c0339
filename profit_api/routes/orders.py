"""
Order endpoints.

Ingest a normalized order and read back its stored profit.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status

from profit_core.application.dtos import OrderEvent
from profit_core.application.use_cases import OrderReconciler, UnitOfWorkFactory
from profit_core.domain.enums import OrderSource
from profit_core.domain.exceptions import StoreNotFoundError
from profit_api.dependencies import get_order_reconciler, get_uow_factory
from profit_api.schemas import IngestOrderResponseDTO, OrderDetailDTO, WarningDTO


logger = logging.getLogger(__name__)
router = APIRouter()


# =============================================================================
# INGEST ORDER
# =============================================================================

@router.post(
    "/{store_id}/orders",
    response_model=IngestOrderResponseDTO,
    status_code=status.HTTP_200_OK,
    summary="Ingest one order",
    description="""
    Upsert a normalized order and recompute its profit.

    Replaying the same payload leaves the stored order unchanged.
    """,
)
async def ingest_order(
    store_id: str,
    event: OrderEvent,
    reconciler: OrderReconciler = Depends(get_order_reconciler),
):
    logger.info(f"API: Ingest order {event.external_order_id} for store {store_id}")

    try:
        result = await reconciler.ingest_order(event, store_id, OrderSource.MANUAL)
    except StoreNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    return IngestOrderResponseDTO(
        execution_id=str(result.execution_id.value),
        order_id=result.order_id,
        external_order_id=result.external_order_id,
        created=result.created,
        attempts=result.attempts,
        total_cogs=result.total_cogs,
        total_payment_fees=result.total_payment_fees,
        total_shipping_cost=result.total_shipping_cost,
        total_refund_amount=result.total_refund_amount,
        net_profit=result.net_profit,
        profit_margin=result.profit_margin,
        cogs_match_rate=result.cogs_match_rate,
        warnings=[WarningDTO.from_warning(w) for w in result.warnings],
        timestamp=result.timestamp,
    )


# =============================================================================
# GET ORDER
# =============================================================================

@router.get(
    "/{store_id}/orders/{external_order_id}",
    response_model=OrderDetailDTO,
    status_code=status.HTTP_200_OK,
    summary="Get stored order",
)
async def get_order(
    store_id: str,
    external_order_id: str,
    uow_factory: UnitOfWorkFactory = Depends(get_uow_factory),
):
    async with uow_factory() as uow:
        order = await uow.commerce.find_order(store_id, external_order_id)

    if order is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Order not found: {external_order_id}",
        )

    return OrderDetailDTO(
        order_id=order.id,
        store_id=order.store_id,
        external_order_id=order.external_order_id,
        order_number=order.order_number,
        currency=order.currency,
        financial_status=order.financial_status.value if order.financial_status else None,
        source=order.source.value,
        created_at=order.created_at,
        cancelled_at=order.cancelled_at,
        total_price=order.total_price,
        total_tax=order.total_tax,
        total_cogs=order.total_cogs,
        total_cogs_reversed=order.total_cogs_reversed,
        total_payment_fees=order.total_payment_fees,
        total_shipping_cost=order.total_shipping_cost,
        total_refund_amount=order.total_refund_amount,
        gross_profit=order.gross_profit,
        net_profit=order.net_profit,
        profit_margin=order.profit_margin,
        line_items=[
            {
                "external_line_item_id": item.external_line_item_id,
                "sku": item.sku,
                "quantity": item.quantity,
                "unit_price": str(item.unit_price),
                "unit_cogs": str(item.unit_cogs),
                "total_cogs": str(item.total_cogs),
                "cogs_source": item.cogs_source.value,
                "cogs_matched": item.cogs_matched,
            }
            for item in order.line_items
        ],
        refunds=[
            {
                "external_refund_id": refund.external_refund_id,
                "amount": str(refund.amount),
                "cogs_reversed": str(refund.total_cogs_reversed),
                "cogs_precision": refund.cogs_precision.value,
            }
            for refund in order.refunds
        ],
    )
