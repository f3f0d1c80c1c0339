"""
Normalized commerce event shapes.

Platform adapters translate their native payloads into these models;
the reconcilers only ever see this shape. Monetary fields are
non-negative, tax-inclusive decimals in the store's currency.
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, List, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from profit_core.domain.enums import FinancialStatus, TransactionKind, TransactionStatus
from profit_core.domain.exceptions import MalformedPayloadError
from profit_core.domain.value_objects import ZERO, ensure_utc, sum_decimals


def _as_str(value: Any) -> Any:
    # Platforms send numeric ids; keys are compared as strings
    if value is None or isinstance(value, str):
        return value
    return str(value)


class _EventModel(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)


# =============================================================================
# CHILD EVENTS
# =============================================================================

class LineItemEvent(_EventModel):
    """One purchased line."""

    external_line_item_id: str
    external_variant_id: Optional[str] = None
    title: Optional[str] = None
    sku: Optional[str] = None
    quantity: int = Field(ge=0)
    unit_price: Decimal = Field(ge=0)
    total_discount: Decimal = Field(default=ZERO, ge=0)
    tax_amount: Optional[Decimal] = Field(default=None, ge=0)
    tax_lines: List[Decimal] = Field(default_factory=list)
    requires_shipping: bool = True
    platform_unit_cost: Optional[Decimal] = Field(default=None, ge=0)

    @field_validator("external_line_item_id", "external_variant_id", mode="before")
    @classmethod
    def coerce_ids(cls, v: Any) -> Any:
        return _as_str(v)

    @property
    def resolved_tax(self) -> Decimal:
        """Explicit tax amount, else the sum of the line's tax lines."""
        if self.tax_amount is not None:
            return self.tax_amount
        return sum_decimals(self.tax_lines)


class TransactionEvent(_EventModel):
    """One payment gateway event."""

    external_transaction_id: str
    kind: TransactionKind
    status: TransactionStatus
    amount: Decimal = Field(ge=0)
    gateway: Optional[str] = None
    fee: Optional[Decimal] = Field(default=None, ge=0, description="Platform-reported fee")
    processed_at: Optional[datetime] = None

    @field_validator("external_transaction_id", mode="before")
    @classmethod
    def coerce_ids(cls, v: Any) -> Any:
        return _as_str(v)

    # Unrecognized gateway values are kept as OTHER / UNKNOWN, never fee-eligible
    @field_validator("kind", mode="before")
    @classmethod
    def parse_kind(cls, v: Any) -> Any:
        return TransactionKind(v) if isinstance(v, str) else v

    @field_validator("status", mode="before")
    @classmethod
    def parse_status(cls, v: Any) -> Any:
        return TransactionStatus(v) if isinstance(v, str) else v

    @field_validator("processed_at")
    @classmethod
    def to_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)


class RefundLineEvent(_EventModel):
    external_line_item_id: str
    quantity: int = Field(ge=0)
    subtotal: Decimal = Field(default=ZERO, ge=0)

    @field_validator("external_line_item_id", mode="before")
    @classmethod
    def coerce_ids(cls, v: Any) -> Any:
        return _as_str(v)


class RefundEvent(_EventModel):
    """
    A refund against an order.

    `amount` is authoritative when given; otherwise it is the sum of the
    refund's successful refund transactions.
    """

    external_refund_id: str
    external_order_id: Optional[str] = None
    amount: Optional[Decimal] = Field(default=None, ge=0)
    processed_at: Optional[datetime] = None
    note: Optional[str] = None
    restock: bool = False
    line_items: List[RefundLineEvent] = Field(default_factory=list)
    transactions: List[TransactionEvent] = Field(default_factory=list)

    @field_validator("external_refund_id", "external_order_id", mode="before")
    @classmethod
    def coerce_ids(cls, v: Any) -> Any:
        return _as_str(v)

    @field_validator("processed_at")
    @classmethod
    def to_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)

    @property
    def resolved_amount(self) -> Decimal:
        if self.amount is not None:
            return self.amount
        return sum_decimals(
            t.amount
            for t in self.transactions
            if t.kind == TransactionKind.REFUND and t.status == TransactionStatus.SUCCESS
        )

    @property
    def payload_id(self) -> str:
        return self.external_refund_id


# =============================================================================
# ORDER EVENT
# =============================================================================

class OrderEvent(_EventModel):
    """
    Normalized order payload.

    `refunds=None` means the payload carries no refund information and
    the stored refunds are kept; a list (even empty) replaces them.
    """

    model_config = ConfigDict(
        extra="ignore",
        str_strip_whitespace=True,
        json_schema_extra={
            "example": {
                "external_order_id": "5123456789",
                "order_number": "#1001",
                "currency": "SEK",
                "financial_status": "paid",
                "subtotal_price": "1000.00",
                "total_discounts": "100.00",
                "total_shipping_price": "79.20",
                "total_tax": "195.84",
                "total_price": "979.20",
                "created_at": "2024-03-15T10:30:00Z",
                "line_items": [
                    {
                        "external_line_item_id": "1",
                        "external_variant_id": "44001",
                        "quantity": 2,
                        "unit_price": "500.00",
                    }
                ],
                "transactions": [
                    {
                        "external_transaction_id": "t1",
                        "kind": "sale",
                        "status": "success",
                        "amount": "979.20",
                        "gateway": "stripe",
                    }
                ],
            }
        },
    )

    external_order_id: str
    order_number: Optional[str] = None
    currency: Optional[str] = None
    financial_status: Optional[FinancialStatus] = None

    subtotal_price: Decimal = Field(default=ZERO, ge=0)
    total_discounts: Decimal = Field(default=ZERO, ge=0)
    total_shipping_price: Decimal = Field(default=ZERO, ge=0)
    total_tax: Decimal = Field(default=ZERO, ge=0)
    total_price: Decimal = Field(default=ZERO, ge=0)

    shipping_country: Optional[str] = None

    created_at: datetime
    updated_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    line_items: List[LineItemEvent] = Field(default_factory=list)
    transactions: List[TransactionEvent] = Field(default_factory=list)
    refunds: Optional[List[RefundEvent]] = None

    @field_validator("external_order_id", "order_number", mode="before")
    @classmethod
    def coerce_ids(cls, v: Any) -> Any:
        return _as_str(v)

    @field_validator("financial_status", mode="before")
    @classmethod
    def parse_status(cls, v: Any) -> Optional[FinancialStatus]:
        if v is None or isinstance(v, FinancialStatus):
            return v
        return FinancialStatus.parse(str(v))

    @field_validator("created_at", "updated_at", "processed_at", "cancelled_at")
    @classmethod
    def to_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)

    @property
    def payload_id(self) -> str:
        return self.external_order_id


# =============================================================================
# PARSING
# =============================================================================

EventT = TypeVar("EventT", bound=BaseModel)


def parse_event(model: Type[EventT], data: Mapping[str, Any]) -> EventT:
    """
    Validate a decoded payload against a normalized event model.

    Raises:
        MalformedPayloadError: payload does not match the model
    """
    if not isinstance(data, Mapping):
        raise MalformedPayloadError(f"Expected a JSON object, got {type(data).__name__}")
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise MalformedPayloadError(
            f"Invalid {model.__name__}: {e.error_count()} validation errors: {e.errors()[:3]}"
        ) from e
