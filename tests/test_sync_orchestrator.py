"""Tests for the sync orchestrator: the primary store decides, the mirror never does."""

import pytest

from openfinance.core.errors import ConfigurationError, NotFoundError, StorageError
from openfinance.core.models import MirrorOutcome, TransactionDraft, TransactionUpdate
from openfinance.services.transaction_store import TransactionStore
from openfinance.workers.sync_orchestrator import MirrorStepResult, SyncOrchestrator

from .conftest import FakeMirror

pytestmark = pytest.mark.anyio

LUNCH = TransactionDraft(description="Lunch", amount=42.50, is_credit_card=False)


def _orchestrator(store: TransactionStore, mirror: FakeMirror | None) -> tuple[SyncOrchestrator, list[MirrorStepResult]]:
    outcomes: list[MirrorStepResult] = []
    return SyncOrchestrator(store, mirror, observer=outcomes.append), outcomes


async def test_create_mirrors_and_backfills_reference(store: TransactionStore, fake_mirror: FakeMirror) -> None:
    """A successful projection sets mirror_ref on the result and on the stored record."""
    orchestrator, outcomes = _orchestrator(store, fake_mirror)
    created = await orchestrator.create(LUNCH)
    if created.mirror_ref != "page-1":
        msg = f"Expected mirror_ref 'page-1', got {created.mirror_ref!r}"
        raise AssertionError(msg)
    stored = await store.find_by_id(created.id)
    if stored is None or stored.mirror_ref != "page-1":
        msg = f"Expected the stored record to carry the reference, got {stored!r}"
        raise AssertionError(msg)
    if [(o.step, o.outcome) for o in outcomes] != [
        ("project", MirrorOutcome.SUCCEEDED),
        ("backfill", MirrorOutcome.SUCCEEDED),
    ]:
        msg = f"Unexpected outcomes {outcomes}"
        raise AssertionError(msg)


async def test_create_survives_mirror_failure(store: TransactionStore, fake_mirror: FakeMirror) -> None:
    """A failing projection still returns the stored record, without mirror_ref."""
    fake_mirror.fail_on.add("project")
    orchestrator, outcomes = _orchestrator(store, fake_mirror)
    created = await orchestrator.create(LUNCH)
    if not created.id or created.mirror_ref is not None:
        msg = f"Expected an id and no mirror_ref, got {created!r}"
        raise AssertionError(msg)
    stored = await store.find_by_id(created.id)
    if stored != created:
        msg = f"Core fields differ: {stored!r} vs {created!r}"
        raise AssertionError(msg)
    if [(o.step, o.outcome) for o in outcomes] != [("project", MirrorOutcome.FAILED)]:
        msg = f"Unexpected outcomes {outcomes}"
        raise AssertionError(msg)


async def test_create_core_fields_do_not_depend_on_mirror(store: TransactionStore, fake_mirror: FakeMirror) -> None:
    """Only mirror_ref differs between a mirrored and an unmirrored create."""
    mirrored, _ = _orchestrator(store, fake_mirror)
    broken_mirror = FakeMirror()
    broken_mirror.fail_on.add("project")
    unmirrored, _ = _orchestrator(store, broken_mirror)
    first = await mirrored.create(LUNCH)
    second = await unmirrored.create(LUNCH)
    fields = {"description", "amount", "is_credit_card", "category", "tags", "location", "month_year"}
    if first.model_dump(include=fields) != second.model_dump(include=fields):
        msg = f"Core fields differ: {first!r} vs {second!r}"
        raise AssertionError(msg)


async def test_create_survives_backfill_failure(
    store: TransactionStore,
    fake_mirror: FakeMirror,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """A failed reference back-fill is logged; the caller still sees the reference."""

    async def broken_attach(transaction_id: str, mirror_ref: str) -> None:
        raise StorageError("write conflict")

    monkeypatch.setattr(store, "attach_mirror_ref", broken_attach)
    orchestrator, outcomes = _orchestrator(store, fake_mirror)
    created = await orchestrator.create(LUNCH)
    if created.mirror_ref != "page-1":
        msg = f"Expected mirror_ref 'page-1', got {created.mirror_ref!r}"
        raise AssertionError(msg)
    if outcomes[-1].step != "backfill" or outcomes[-1].outcome is not MirrorOutcome.FAILED:
        msg = f"Unexpected outcomes {outcomes}"
        raise AssertionError(msg)


async def test_create_without_mirror_is_skipped(store: TransactionStore) -> None:
    """With no mirror the step is reported as skipped."""
    orchestrator, outcomes = _orchestrator(store, None)
    created = await orchestrator.create(LUNCH)
    if created.mirror_ref is not None or outcomes[0].outcome is not MirrorOutcome.SKIPPED:
        msg = f"Unexpected result {created!r} / {outcomes}"
        raise AssertionError(msg)


async def test_unconfigured_mirror_is_skipped(store: TransactionStore) -> None:
    """A ConfigurationError from the mirror counts as skipped, not failed."""

    class UnconfiguredMirror(FakeMirror):
        async def project(self, transaction: object) -> str:
            raise ConfigurationError("NOTION_TOKEN is not configured")

    orchestrator, outcomes = _orchestrator(store, UnconfiguredMirror())
    created = await orchestrator.create(LUNCH)
    if created.mirror_ref is not None or outcomes[0].outcome is not MirrorOutcome.SKIPPED:
        msg = f"Unexpected result {created!r} / {outcomes}"
        raise AssertionError(msg)


async def test_persist_failure_aborts_before_mirror(store: TransactionStore, fake_mirror: FakeMirror) -> None:
    """When the primary write fails nothing is mirrored and the error propagates."""

    async def broken_create(draft: TransactionDraft) -> None:
        raise StorageError("disk full")

    store.create = broken_create  # type: ignore[method-assign]
    orchestrator, _ = _orchestrator(store, fake_mirror)
    with pytest.raises(StorageError):
        await orchestrator.create(LUNCH)
    if fake_mirror.calls:
        msg = f"Mirror should not be called, got {fake_mirror.calls}"
        raise AssertionError(msg)


async def test_update_reprojects_mirrored_record(store: TransactionStore, fake_mirror: FakeMirror) -> None:
    """Updates of mirrored records are propagated with only the changed fields."""
    orchestrator, _ = _orchestrator(store, fake_mirror)
    created = await orchestrator.create(LUNCH)
    updated = await orchestrator.update(created.id, TransactionUpdate(category="Food"))
    if updated.category != "Food" or updated.month_year != created.month_year:
        msg = f"Unexpected update {updated!r}"
        raise AssertionError(msg)
    if fake_mirror.calls[-1] != ("reproject", "page-1", {"category": "Food"}):
        msg = f"Unexpected mirror calls {fake_mirror.calls}"
        raise AssertionError(msg)


async def test_update_survives_reprojection_failure(store: TransactionStore, fake_mirror: FakeMirror) -> None:
    """A failed reprojection does not fail the update."""
    orchestrator, outcomes = _orchestrator(store, fake_mirror)
    created = await orchestrator.create(LUNCH)
    fake_mirror.fail_on.add("reproject")
    updated = await orchestrator.update(created.id, TransactionUpdate(amount=40.0))
    if updated.amount != 40.0:  # noqa: PLR2004
        msg = f"Expected amount 40.0, got {updated.amount}"
        raise AssertionError(msg)
    if outcomes[-1].step != "reproject" or outcomes[-1].outcome is not MirrorOutcome.FAILED:
        msg = f"Unexpected outcomes {outcomes}"
        raise AssertionError(msg)


async def test_update_of_unmirrored_record_skips_mirror(store: TransactionStore, fake_mirror: FakeMirror) -> None:
    """Records without mirror_ref are not reprojected."""
    fake_mirror.fail_on.add("project")
    orchestrator, _ = _orchestrator(store, fake_mirror)
    created = await orchestrator.create(LUNCH)
    await orchestrator.update(created.id, TransactionUpdate(amount=1.0))
    if [call[0] for call in fake_mirror.calls] != ["project"]:
        msg = f"Unexpected mirror calls {fake_mirror.calls}"
        raise AssertionError(msg)


async def test_update_of_missing_record_raises(store: TransactionStore, fake_mirror: FakeMirror) -> None:
    """Updating an unknown id raises NotFoundError."""
    orchestrator, _ = _orchestrator(store, fake_mirror)
    with pytest.raises(NotFoundError):
        await orchestrator.update("missing", TransactionUpdate(amount=1.0))


@pytest.mark.parametrize("retire_fails", [False, True])
async def test_delete_retires_mirror_exactly_once(
    store: TransactionStore,
    fake_mirror: FakeMirror,
    retire_fails: bool,
) -> None:
    """Deleting a mirrored record archives its page once, whatever the outcome."""
    orchestrator, _ = _orchestrator(store, fake_mirror)
    created = await orchestrator.create(LUNCH)
    if retire_fails:
        fake_mirror.fail_on.add("retire")
    existed = await orchestrator.delete(created.id)
    retires = [call for call in fake_mirror.calls if call[0] == "retire"]
    if not existed or retires != [("retire", "page-1")]:
        msg = f"Unexpected delete result {existed} / {fake_mirror.calls}"
        raise AssertionError(msg)
    if await store.find_by_id(created.id) is not None:
        msg = "Expected the record to be deleted"
        raise AssertionError(msg)


async def test_delete_of_absent_record_is_noop(store: TransactionStore, fake_mirror: FakeMirror) -> None:
    """Deleting an unknown id reports absence and touches no mirror."""
    orchestrator, _ = _orchestrator(store, fake_mirror)
    if await orchestrator.delete("missing") is not False or fake_mirror.calls:
        msg = f"Unexpected mirror calls {fake_mirror.calls}"
        raise AssertionError(msg)
