"""Sync orchestration between the primary store and the Notion mirror.

The primary store is the single source of truth. Every lifecycle event writes to it first and fails if that write
fails. The mirror step that follows is fire-and-forget: its outcome (succeeded, failed or skipped) is logged and
reported to an optional observer, and it never changes what the caller gets back. There is no reconciliation, so a
failed mirror write leaves the mirror behind until the next successful write to that record.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol

from openfinance.core.errors import ConfigurationError, NotFoundError
from openfinance.core.models import (
    MirrorOutcome,
    Transaction,
    TransactionDraft,
    TransactionFilters,
    TransactionUpdate,
)
from openfinance.core.utils import get_logger
from openfinance.services.transaction_store import TransactionStore

logger = get_logger("openfinance.sync")


class Mirror(Protocol):
    """Operations the orchestrator needs from a mirror adapter."""

    async def project(self, transaction: Transaction) -> str: ...

    async def reproject(self, mirror_ref: str, partial: TransactionUpdate) -> None: ...

    async def retire(self, mirror_ref: str) -> None: ...


@dataclass(frozen=True)
class MirrorStepResult:
    """Outcome of one best-effort mirror step."""

    step: str
    transaction_id: str
    outcome: MirrorOutcome
    mirror_ref: str | None = None
    detail: str | None = None


MirrorObserver = Callable[[MirrorStepResult], None]


class SyncOrchestrator:
    """Sequences primary writes, mirror writes and the mirror reference back-fill."""

    def __init__(
        self,
        store: TransactionStore,
        mirror: Mirror | None = None,
        observer: MirrorObserver | None = None,
    ) -> None:
        """Initialize the orchestrator with the store, an optional mirror and an optional outcome observer."""
        self.store = store
        self.mirror = mirror
        self.observer = observer

    async def create(self, draft: TransactionDraft) -> Transaction:
        """Persist a draft, then mirror it; mirror failures leave ``mirror_ref`` unset."""
        transaction = await self.store.create(draft)
        if self.mirror is None:
            self._report(MirrorStepResult("project", transaction.id, MirrorOutcome.SKIPPED, detail="mirror disabled"))
            return transaction
        mirror = self.mirror
        result = await self._mirror_step("project", transaction.id, lambda: mirror.project(transaction))
        if result.outcome is not MirrorOutcome.SUCCEEDED or result.mirror_ref is None:
            return transaction
        transaction = transaction.model_copy(update={"mirror_ref": result.mirror_ref})
        await self._backfill_mirror_ref(transaction.id, result.mirror_ref)
        return transaction

    async def update(self, transaction_id: str, partial: TransactionUpdate) -> Transaction:
        """Apply a partial update to the primary store, then reproject it when it has a mirror page."""
        current = await self.store.find_by_id(transaction_id)
        if current is None:
            raise NotFoundError(f"Transaction {transaction_id} not found")
        updated = await self.store.update(transaction_id, partial)
        mirror_ref = current.mirror_ref
        if mirror_ref is None:
            return updated
        if self.mirror is None:
            self._report(MirrorStepResult("reproject", transaction_id, MirrorOutcome.SKIPPED, mirror_ref, "mirror disabled"))
            return updated
        mirror = self.mirror
        await self._mirror_step("reproject", transaction_id, lambda: mirror.reproject(mirror_ref, partial), mirror_ref)
        return updated

    async def delete(self, transaction_id: str) -> bool:
        """Delete from the primary store, then archive the mirror page; returns whether the record existed."""
        current = await self.store.find_by_id(transaction_id)
        await self.store.delete(transaction_id)
        if current is None:
            logger.info(f"Transaction {transaction_id} was already absent")
            return False
        mirror_ref = current.mirror_ref
        if mirror_ref is None:
            return True
        if self.mirror is None:
            self._report(MirrorStepResult("retire", transaction_id, MirrorOutcome.SKIPPED, mirror_ref, "mirror disabled"))
            return True
        mirror = self.mirror
        await self._mirror_step("retire", transaction_id, lambda: mirror.retire(mirror_ref), mirror_ref)
        return True

    async def find_many(self, filters: TransactionFilters | None = None) -> list[Transaction]:
        """List transactions from the primary store."""
        return await self.store.find_many(filters)

    async def find_by_id(self, transaction_id: str) -> Transaction | None:
        """Fetch one transaction from the primary store."""
        return await self.store.find_by_id(transaction_id)

    async def _mirror_step(
        self,
        step: str,
        transaction_id: str,
        action: Callable[[], Awaitable[str | None]],
        mirror_ref: str | None = None,
    ) -> MirrorStepResult:
        try:
            returned = await action()
        except ConfigurationError as exc:
            result = MirrorStepResult(step, transaction_id, MirrorOutcome.SKIPPED, mirror_ref, str(exc))
        except Exception as exc:
            logger.exception(f"Mirror {step} failed for transaction {transaction_id}")
            result = MirrorStepResult(step, transaction_id, MirrorOutcome.FAILED, mirror_ref, str(exc))
        else:
            result = MirrorStepResult(step, transaction_id, MirrorOutcome.SUCCEEDED, returned or mirror_ref)
        self._report(result)
        return result

    async def _backfill_mirror_ref(self, transaction_id: str, mirror_ref: str) -> None:
        try:
            await self.store.attach_mirror_ref(transaction_id, mirror_ref)
        except Exception:
            logger.exception(f"Could not record mirror reference {mirror_ref} on transaction {transaction_id}")
            self._report(MirrorStepResult("backfill", transaction_id, MirrorOutcome.FAILED, mirror_ref))
        else:
            self._report(MirrorStepResult("backfill", transaction_id, MirrorOutcome.SUCCEEDED, mirror_ref))

    def _report(self, result: MirrorStepResult) -> None:
        message = f"Mirror {result.step} {result.outcome.value} for transaction {result.transaction_id}"
        if result.mirror_ref:
            message += f" (ref {result.mirror_ref})"
        if result.detail:
            message += f": {result.detail}"
        if result.outcome is MirrorOutcome.FAILED:
            logger.warning(message)
        else:
            logger.info(message)
        if self.observer is not None:
            self.observer(result)
