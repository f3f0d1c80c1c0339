"""
Refund endpoints.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status

from profit_core.application.dtos import RefundEvent
from profit_core.application.use_cases import RefundReconciler
from profit_core.domain.exceptions import MalformedPayloadError, MissingReferenceError
from profit_api.dependencies import get_refund_reconciler
from profit_api.schemas import RefundResponseDTO, WarningDTO


logger = logging.getLogger(__name__)
router = APIRouter()


@router.post(
    "/{store_id}/refunds",
    response_model=RefundResponseDTO,
    status_code=status.HTTP_200_OK,
    summary="Apply a refund",
    description="""
    Upsert one refund on its parent order and rederive the order's profit.

    Applying the same refund twice changes nothing.
    """,
)
async def apply_refund(
    store_id: str,
    event: RefundEvent,
    reconciler: RefundReconciler = Depends(get_refund_reconciler),
):
    logger.info(f"API: Apply refund {event.external_refund_id} for store {store_id}")

    try:
        result = await reconciler.apply_refund(event, store_id)
    except MalformedPayloadError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except MissingReferenceError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    return RefundResponseDTO(
        execution_id=str(result.execution_id.value),
        order_id=result.order_id,
        refund_id=result.refund_id,
        external_refund_id=result.external_refund_id,
        created=result.created,
        amount=result.amount,
        cogs_reversed=result.cogs_reversed,
        cogs_precision=result.cogs_precision.value,
        order_total_refund_amount=result.new_order_totals.total_refund_amount,
        order_net_profit=result.new_order_totals.net_profit,
        warnings=[WarningDTO.from_warning(w) for w in result.warnings],
    )
