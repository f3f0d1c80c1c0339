"""Identifier value objects - pure Python immutable types."""

from dataclasses import dataclass
from uuid import UUID, uuid4


@dataclass(frozen=True)
class ExecutionID:
    """Unique identifier for tracing one ingestion end to end."""

    value: UUID

    @classmethod
    def generate(cls) -> "ExecutionID":
        return cls(value=uuid4())

    def short(self) -> str:
        """First 8 hex chars, used as a log prefix."""
        return self.value.hex[:8]

    def __str__(self) -> str:
        return str(self.value)


def new_entity_id() -> str:
    """Generate an internal entity identifier."""
    return str(uuid4())
