from typing import Literal, Optional

from pydantic_settings import BaseSettings
from pydantic import Field


class WebhookSettings(BaseSettings):
    """
    Webhook ingestion settings.
    Loaded from .env file with exact variable name matching.
    """

    shared_secret: Optional[str] = Field(default=None, alias="WEBHOOK_SHARED_SECRET")

    # Idempotency ledger
    idempotency_backend: Literal["memory", "redis", "database"] = Field(
        default="memory", alias="IDEMPOTENCY_BACKEND"
    )
    idempotency_ttl_seconds: int = Field(default=7 * 24 * 3600, alias="IDEMPOTENCY_TTL_SECONDS")
    idempotency_max_entries: int = Field(default=1000, alias="IDEMPOTENCY_MAX_ENTRIES")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "populate_by_name": True,
    }
