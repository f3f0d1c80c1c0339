"""
Profit summary endpoint.
"""
from decimal import Decimal
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.encoders import jsonable_encoder

from profit_core.application.use_cases import ProfitSummaryQuery, SummarizeProfitRequest
from profit_core.domain.exceptions import StoreNotFoundError
from profit_api.dependencies import get_summary_query
from profit_api.schemas import SummaryRequestDTO


logger = logging.getLogger(__name__)
router = APIRouter()


@router.post(
    "/{store_id}/summary",
    status_code=status.HTTP_200_OK,
    summary="Profit summary for a period",
    description="""
    Revenue, cost and profit breakdown with data-quality warnings.

    **Optional:**
    - `previous_start` / `previous_end`: adds period-over-period trends
    - `include_break_even`: adds break-even analysis over custom costs
    """,
)
async def profit_summary(
    store_id: str,
    request: SummaryRequestDTO,
    query: ProfitSummaryQuery = Depends(get_summary_query),
):
    try:
        summary = await query.execute(
            SummarizeProfitRequest(store_id=store_id, **request.model_dump())
        )
    except StoreNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    return jsonable_encoder(summary, custom_encoder={Decimal: str})
