"""Base abstraction for primary store backends.

A backend is the narrow CRUD collaborator behind the transaction store: rows keyed by an opaque id, equality
filtering on named columns, newest-first ordering by ``created_at`` and limit/offset pagination. Backends are
synchronous; the transaction store runs them off the event loop.
"""

from abc import ABC, abstractmethod
from typing import Any

from openfinance.core.settings import Settings


class PrimaryBackend(ABC):
    """Abstract base class for all primary store backends."""

    name: str = ""

    @classmethod
    @abstractmethod
    def from_settings(cls, settings: Settings) -> "PrimaryBackend":
        """Build the backend from application settings."""

    def prepare(self) -> None:
        """Create whatever the backend needs before serving requests."""

    @abstractmethod
    def ping(self) -> None:
        """Run a trivial query; raises when the backend is unreachable."""

    @abstractmethod
    def insert(self, values: dict[str, Any]) -> dict[str, Any]:
        """Insert a row and return it as stored, including its assigned id."""

    @abstractmethod
    def select(self, conditions: dict[str, Any], limit: int | None = None, offset: int = 0) -> list[dict[str, Any]]:
        """Return rows matching every condition, newest ``created_at`` first."""

    @abstractmethod
    def get(self, row_id: str) -> dict[str, Any] | None:
        """Return the row with the given id, or None."""

    @abstractmethod
    def update(self, row_id: str, values: dict[str, Any]) -> dict[str, Any] | None:
        """Replace the given columns and return the row as re-read, or None when it is gone."""

    @abstractmethod
    def delete(self, row_id: str) -> None:
        """Remove the row; removing an absent row is not an error."""
