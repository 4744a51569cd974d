"""Backend registry for selecting the primary store implementation by name.

Backends register themselves under the name used by the ``PRIMARY_BACKEND`` setting, so that deployments can
switch between a local SQL database and Supabase without code changes.
"""

from typing import ClassVar

from openfinance.core.errors import StorageError
from openfinance.core.settings import Settings
from openfinance.services.backends.base import PrimaryBackend


class BackendRegistry:
    """Registry for primary backend classes."""

    _registry: ClassVar[dict[str, type[PrimaryBackend]]] = {}

    @classmethod
    def register(cls, name: str, backend_cls: type[PrimaryBackend]) -> None:
        """Register a backend class with a given name."""
        cls._registry[name] = backend_cls

    @classmethod
    def get(cls, name: str) -> type[PrimaryBackend]:
        """Retrieve a backend class by name."""
        try:
            return cls._registry[name]
        except KeyError:
            msg = f"Unknown primary backend '{name}', expected one of {cls.available()}"
            raise StorageError(msg) from None

    @classmethod
    def available(cls) -> list[str]:
        """List all available backend names."""
        return list(cls._registry.keys())


def build_backend(settings: Settings) -> PrimaryBackend:
    """Instantiate the backend selected by the settings."""
    return BackendRegistry.get(settings.primary_backend).from_settings(settings)
