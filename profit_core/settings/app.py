from __future__ import annotations

from functools import lru_cache

from pydantic import BaseModel, ConfigDict

from profit_core.settings.sections import (
    CalculationSettings,
    DatabaseSettings,
    RedisSettings,
    RuntimeSettings,
    WebhookSettings,
)


class AppSettings(BaseModel):
    """
    Application settings aggregator.

    Sections are instantiated lazily by get_app_settings() so nothing is
    read from the environment at import time.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, extra="ignore")

    runtime: RuntimeSettings
    database: DatabaseSettings
    webhooks: WebhookSettings
    redis: RedisSettings
    calculation: CalculationSettings


@lru_cache()
def get_app_settings() -> AppSettings:
    """Return cached global settings for the entire app."""
    return AppSettings(
        runtime=RuntimeSettings(),
        database=DatabaseSettings(),
        webhooks=WebhookSettings(),
        redis=RedisSettings(),
        calculation=CalculationSettings(),
    )
