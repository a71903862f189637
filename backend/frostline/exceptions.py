"""Exception hierarchy for the risk engine."""
from __future__ import annotations

from frostline.models.base import EntityKind


class FrostlineError(Exception):
    """Base exception for all frostline errors."""


class NotFoundError(FrostlineError):
    """The vehicle or trip being scored does not exist."""

    def __init__(self, kind: EntityKind, entity_id: str) -> None:
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind.value.capitalize()} not found: {entity_id}")


class DataUnavailableError(FrostlineError):
    """The data-access layer failed to answer a query."""

    def __init__(self, operation: str, message: str = "") -> None:
        self.operation = operation
        super().__init__(message or f"Data access failed during {operation}")
