"""Exception taxonomy for OpenFinance Sync.

Failures on the authoritative path (``ValidationError``, ``NotFoundError``,
``StorageError``) reach the caller. Failures on the mirror path
(``ConfigurationError``, ``MirrorError``) are contained by the sync
orchestrator and only ever show up in the logs.
"""


class OpenFinanceError(Exception):
    """Base class for all application errors."""


class ValidationError(OpenFinanceError):
    """An inbound payload is missing a required field or carries an unusable one."""


class NotFoundError(OpenFinanceError):
    """A transaction expected to exist is not in the primary store."""


class StorageError(OpenFinanceError):
    """The primary store backend failed; carries the backend's message."""


class ConfigurationError(OpenFinanceError):
    """The mirror is missing its credentials or target database."""


class MirrorError(OpenFinanceError):
    """A mirror-side write or read failed."""
