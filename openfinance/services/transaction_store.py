"""TransactionStore: authoritative create/read/update/delete over a pluggable primary backend.

The store stamps ``created_at`` and the default ``month_year`` on creation, converts backend rows into
``Transaction`` models, and turns any backend failure into a ``StorageError`` carrying the backend's message.
Backends are synchronous clients, so every call runs in the threadpool.
"""

from collections.abc import Callable
from datetime import datetime
from typing import Any, TypeVar

from starlette.concurrency import run_in_threadpool

from openfinance.core.errors import NotFoundError, StorageError
from openfinance.core.models import Transaction, TransactionDraft, TransactionFilters, TransactionUpdate
from openfinance.core.utils import format_month_year, get_logger, utcnow
from openfinance.services.backends.base import PrimaryBackend

DEFAULT_PAGE_SIZE = 10

logger = get_logger("openfinance.store")

T = TypeVar("T")


class TransactionStore:
    """Adapter between canonical transactions and the primary backend."""

    def __init__(
        self,
        backend: PrimaryBackend,
        month_timezone: str = "UTC",
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Initialize the store with a backend, the timezone used for ``month_year`` and a clock."""
        self.backend = backend
        self.month_timezone = month_timezone
        self.clock = clock

    async def create(self, draft: TransactionDraft) -> Transaction:
        """Persist a draft and return the stored transaction with its assigned id."""
        created_at = self.clock()
        values: dict[str, Any] = {
            "description": draft.description,
            "amount": draft.amount,
            "is_credit_card": draft.is_credit_card,
            "month_year": draft.month_year or format_month_year(created_at, self.month_timezone),
            "created_at": created_at,
        }
        if draft.category:
            values["category"] = draft.category
        if draft.tags:
            values["tags"] = draft.tags
        if draft.location:
            values["location"] = draft.location.model_dump()
        row = await self._call("create transaction", self.backend.insert, values)
        transaction = Transaction.model_validate(row)
        logger.info(f"Stored transaction {transaction.id} ({transaction.month_year})")
        return transaction

    async def find_many(self, filters: TransactionFilters | None = None) -> list[Transaction]:
        """List transactions matching all given filters, newest first, paginated."""
        filters = filters or TransactionFilters()
        limit = filters.limit
        offset = filters.offset or 0
        if offset and limit is None:
            limit = DEFAULT_PAGE_SIZE
        rows = await self._call("list transactions", self.backend.select, filters.equality(), limit, offset)
        return [Transaction.model_validate(row) for row in rows]

    async def find_by_id(self, transaction_id: str) -> Transaction | None:
        """Return the transaction, or None when it does not exist."""
        row = await self._call("fetch transaction", self.backend.get, transaction_id)
        return Transaction.model_validate(row) if row is not None else None

    async def update(self, transaction_id: str, partial: TransactionUpdate) -> Transaction:
        """Replace the set fields of a transaction and return the confirmed record."""
        changes = partial.changes()
        if not changes:
            current = await self.find_by_id(transaction_id)
            if current is None:
                raise NotFoundError(f"Transaction {transaction_id} not found")
            return current
        row = await self._call("update transaction", self.backend.update, transaction_id, changes)
        if row is None:
            raise NotFoundError(f"Transaction {transaction_id} not found after update")
        logger.info(f"Updated transaction {transaction_id}: {sorted(changes)}")
        return Transaction.model_validate(row)

    async def attach_mirror_ref(self, transaction_id: str, mirror_ref: str) -> Transaction:
        """Record the mirror reference on the authoritative row."""
        row = await self._call("attach mirror reference", self.backend.update, transaction_id, {"mirror_ref": mirror_ref})
        if row is None:
            raise NotFoundError(f"Transaction {transaction_id} not found while attaching mirror reference")
        return Transaction.model_validate(row)

    async def delete(self, transaction_id: str) -> None:
        """Delete a transaction; deleting an absent one is a no-op."""
        await self._call("delete transaction", self.backend.delete, transaction_id)
        logger.info(f"Deleted transaction {transaction_id}")

    async def check_reachable(self) -> None:
        """Ping the backend; raises ``StorageError`` when it cannot be reached."""
        await self._call("ping primary store", self.backend.ping)

    async def _call(self, action: str, func: Callable[..., T], *args: Any) -> T:
        try:
            return await run_in_threadpool(func, *args)
        except StorageError:
            raise
        except Exception as exc:
            logger.exception(f"Failed to {action}")
            raise StorageError(f"Failed to {action}: {exc}") from exc
