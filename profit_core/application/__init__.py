"""Application layer: use cases, services and DTOs."""
