"""
Test settings loading from the environment.

Every section reads its own aliases; get_app_settings() caches the
aggregate until cache_clear().
"""
from __future__ import annotations

from decimal import Decimal

import pytest

from profit_core.calculations import CalculationConfig
from profit_core.settings import get_app_settings
from profit_core.settings.sections import (
    CalculationSettings,
    DatabaseSettings,
    RedisSettings,
    RuntimeSettings,
    WebhookSettings,
)


@pytest.fixture(autouse=True)
def fresh_settings():
    get_app_settings.cache_clear()
    yield
    get_app_settings.cache_clear()


def _aliases(model_cls) -> list[str]:
    return [field.alias for field in model_cls.model_fields.values() if field.alias]


def test_defaults(monkeypatch):
    monkeypatch.delenv("IDEMPOTENCY_BACKEND", raising=False)
    monkeypatch.delenv("DEFAULT_PAYMENT_FEE_RATE", raising=False)

    settings = get_app_settings()

    assert settings.webhooks.idempotency_backend == "memory"
    assert settings.calculation.default_fee_rate == Decimal("0.029")
    assert settings.calculation.break_even_sentinel == Decimal("999")


def test_env_aliases_override(monkeypatch):
    monkeypatch.setenv("STORE_CURRENCY", "EUR")
    monkeypatch.setenv("DEFAULT_PAYMENT_FEE_RATE", "0.019")
    monkeypatch.setenv("WEBHOOK_SHARED_SECRET", "s3cret")
    monkeypatch.setenv("IDEMPOTENCY_BACKEND", "redis")

    settings = get_app_settings()

    assert settings.calculation.currency == "EUR"
    assert settings.calculation.default_fee_rate == Decimal("0.019")
    assert settings.webhooks.shared_secret == "s3cret"
    assert settings.webhooks.idempotency_backend == "redis"


def test_settings_are_cached(monkeypatch):
    first = get_app_settings()
    monkeypatch.setenv("STORE_CURRENCY", "NOK")

    assert get_app_settings() is first
    get_app_settings.cache_clear()
    assert get_app_settings().calculation.currency == "NOK"


def test_every_alias_is_unique():
    aliases = []
    for section in (CalculationSettings, DatabaseSettings, RedisSettings, RuntimeSettings, WebhookSettings):
        aliases.extend(_aliases(section))

    assert len(aliases) == len(set(aliases))


def test_calculation_config_from_settings(monkeypatch):
    monkeypatch.setenv("DEFAULT_UNIT_COGS", "25.50")

    config = CalculationConfig.from_settings(CalculationSettings(), currency="USD")

    assert config.currency == "USD"
    assert config.default_cogs == Decimal("25.50")
