"""
Request / response DTOs for the HTTP API.

Decimals serialize as JSON strings, so amounts keep their exact value.
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from profit_core.application.dtos import OrderEvent
from profit_core.calculations import CalculationWarning


class WarningDTO(BaseModel):
    code: str
    severity: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_warning(cls, warning: CalculationWarning) -> "WarningDTO":
        return cls(
            code=warning.code,
            severity=warning.severity.value,
            message=warning.message,
            details=warning.details,
        )


# =============================================================================
# ORDERS
# =============================================================================

class IngestOrderResponseDTO(BaseModel):
    """Response DTO for one order ingestion."""
    execution_id: str
    order_id: str
    external_order_id: str
    created: bool
    attempts: int
    total_cogs: Decimal
    total_payment_fees: Decimal
    total_shipping_cost: Decimal
    total_refund_amount: Decimal
    net_profit: Decimal
    profit_margin: Decimal
    cogs_match_rate: Decimal
    warnings: List[WarningDTO] = Field(default_factory=list)
    timestamp: datetime


class OrderDetailDTO(BaseModel):
    """Stored order with its derived profit fields."""
    order_id: str
    store_id: str
    external_order_id: str
    order_number: Optional[str] = None
    currency: str
    financial_status: Optional[str] = None
    source: str
    created_at: datetime
    cancelled_at: Optional[datetime] = None
    total_price: Decimal
    total_tax: Decimal
    total_cogs: Decimal
    total_cogs_reversed: Decimal
    total_payment_fees: Decimal
    total_shipping_cost: Decimal
    total_refund_amount: Decimal
    gross_profit: Decimal
    net_profit: Decimal
    profit_margin: Decimal
    line_items: List[Dict[str, Any]] = Field(default_factory=list)
    refunds: List[Dict[str, Any]] = Field(default_factory=list)


# =============================================================================
# REFUNDS
# =============================================================================

class RefundResponseDTO(BaseModel):
    execution_id: str
    order_id: str
    refund_id: str
    external_refund_id: str
    created: bool
    amount: Decimal
    cogs_reversed: Decimal
    cogs_precision: str
    order_total_refund_amount: Decimal
    order_net_profit: Decimal
    warnings: List[WarningDTO] = Field(default_factory=list)


# =============================================================================
# SYNC
# =============================================================================

class SyncRequestDTO(BaseModel):
    """Orders to push through the paginated bulk-sync path."""
    orders: List[OrderEvent] = Field(default_factory=list)
    since: Optional[datetime] = None
    page_size: Optional[int] = Field(default=None, ge=1, le=1000)


class SyncErrorDTO(BaseModel):
    external_order_id: str
    error: str


class SyncResponseDTO(BaseModel):
    store_id: str
    success: bool
    cancelled: bool
    pages: int
    processed: int
    created: int
    updated: int
    failed: int
    errors: List[SyncErrorDTO] = Field(default_factory=list)
    abort_reason: Optional[str] = None
    duration_seconds: float


# =============================================================================
# SUMMARY
# =============================================================================

class SummaryRequestDTO(BaseModel):
    """Request DTO for a profit summary."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "start": "2024-06-01T00:00:00Z",
                "end": "2024-06-30T23:59:59Z",
                "ad_spend": "2500.00",
                "other_expenses": "0",
                "include_break_even": True,
            }
        }
    )

    start: Optional[datetime] = None
    end: Optional[datetime] = None
    ad_spend: Decimal = Field(default=Decimal("0"), ge=0)
    other_expenses: Decimal = Field(default=Decimal("0"), ge=0)
    previous_start: Optional[datetime] = None
    previous_end: Optional[datetime] = None
    previous_ad_spend: Decimal = Field(default=Decimal("0"), ge=0)
    previous_other_expenses: Decimal = Field(default=Decimal("0"), ge=0)
    include_break_even: bool = False
