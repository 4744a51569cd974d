"""Core package: provides models, settings, errors, and shared utilities."""

from .errors import (  # noqa: F401
    ConfigurationError,
    MirrorError,
    NotFoundError,
    OpenFinanceError,
    StorageError,
    ValidationError,
)
from .models import Location, Transaction, TransactionDraft, TransactionFilters, TransactionUpdate  # noqa: F401
from .settings import Settings, get_settings  # noqa: F401
from .utils import get_logger  # noqa: F401
