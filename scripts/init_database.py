"""
Initialize the ledger database.

Creates all tables. When SEED_STORE_DOMAIN is set, also registers that
store with the default shipping tiers so webhooks for it are accepted.
"""
import asyncio
import logging
import os

from sqlalchemy import select

from profit_core.calculations import default_shipping_tiers, validate_shipping_tiers
from profit_core.infrastructure.database import close_database, get_session_factory, init_database
from profit_core.infrastructure.database.models import ShippingTierModel, StoreModel
from profit_core.infrastructure.logging import configure_logging


configure_logging("INFO")
logger = logging.getLogger(__name__)


async def seed_store(domain: str, currency: str) -> None:
    tiers = default_shipping_tiers()
    problems = validate_shipping_tiers(tiers)
    if problems:
        raise ValueError(f"Default shipping tiers are invalid: {problems}")

    factory = get_session_factory()
    async with factory() as session:
        existing = await session.execute(select(StoreModel).where(StoreModel.domain == domain))
        if existing.scalar_one_or_none() is not None:
            logger.info(f"Store {domain} already exists")
            return

        store = StoreModel(domain=domain, name=domain.split(".")[0], currency=currency)
        session.add(store)
        await session.flush()
        for tier in tiers:
            session.add(
                ShippingTierModel(
                    store_id=store.id,
                    min_items=tier.min_items,
                    max_items=tier.max_items,
                    cost=tier.cost,
                    cost_per_additional_item=tier.cost_per_additional_item,
                    zone=tier.zone,
                )
            )
        await session.commit()
        logger.info(f"✅ Seeded store {domain} (id={store.id}) with {len(tiers)} shipping tiers")


async def main():
    try:
        await init_database()

        domain = os.getenv("SEED_STORE_DOMAIN")
        if domain:
            await seed_store(domain.strip().lower(), os.getenv("STORE_CURRENCY", "SEK"))
    finally:
        await close_database()


if __name__ == "__main__":
    asyncio.run(main())
