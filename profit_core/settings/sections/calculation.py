from decimal import Decimal
from typing import Optional

from pydantic_settings import BaseSettings
from pydantic import Field


class CalculationSettings(BaseSettings):
    """
    Profit calculation defaults.

    Fee rate is a fraction (0.029 = 2.9%). Coverage thresholds are percentages.
    """

    currency: str = Field(default="SEK", alias="STORE_CURRENCY")
    vat_rate: Decimal = Field(default=Decimal("0.25"), alias="VAT_RATE")

    include_shipping_in_revenue: bool = Field(default=True, alias="INCLUDE_SHIPPING_IN_REVENUE")
    exclude_cancelled_orders: bool = Field(default=True, alias="EXCLUDE_CANCELLED_ORDERS")

    # Payment fees when no gateway config matches
    default_fee_rate: Decimal = Field(default=Decimal("0.029"), alias="DEFAULT_PAYMENT_FEE_RATE")
    default_fixed_fee: Decimal = Field(default=Decimal("3.00"), alias="DEFAULT_PAYMENT_FIXED_FEE")

    break_even_sentinel: Decimal = Field(default=Decimal("999"), alias="BREAK_EVEN_SENTINEL")

    # COGS coverage severity thresholds
    coverage_warning_threshold: Decimal = Field(default=Decimal("80"), alias="COGS_COVERAGE_WARNING")
    coverage_error_threshold: Decimal = Field(default=Decimal("50"), alias="COGS_COVERAGE_ERROR")
    default_cogs: Optional[Decimal] = Field(default=None, alias="DEFAULT_UNIT_COGS")

    # Ingestion
    max_reconcile_retries: int = Field(default=3, alias="MAX_RECONCILE_RETRIES")
    sync_page_size: int = Field(default=250, alias="SYNC_PAGE_SIZE")
    sync_max_pages: int = Field(default=1000, alias="SYNC_MAX_PAGES")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "populate_by_name": True,
    }
