"""Infrastructure layer: persistence, idempotency stores, security."""
