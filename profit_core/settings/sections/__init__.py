"""Settings sections, one per concern."""

from .calculation import CalculationSettings
from .database import DatabaseSettings
from .redis import RedisSettings
from .runtime import RuntimeSettings
from .webhooks import WebhookSettings

__all__ = [
    "CalculationSettings",
    "DatabaseSettings",
    "RedisSettings",
    "RuntimeSettings",
    "WebhookSettings",
]
