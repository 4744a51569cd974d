"""Shared fixtures: an in-memory SQL store, a deterministic clock and a scriptable mirror."""

from datetime import UTC, datetime, timedelta

import pytest

from openfinance.core.errors import MirrorError
from openfinance.core.models import Transaction, TransactionUpdate
from openfinance.core.settings import Settings
from openfinance.services.backends.sql_backend import SQLBackend, get_engine
from openfinance.services.transaction_store import TransactionStore


class TickingClock:
    """Clock returning strictly increasing timestamps, one step per call."""

    def __init__(self, start: datetime, step: timedelta) -> None:
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        value = self.current
        self.current += self.step
        return value


class FakeMirror:
    """Mirror double that records every call and fails the steps named in ``fail_on``."""

    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.fail_on: set[str] = set()
        self.reachable = True
        self.pages = 0

    async def project(self, transaction: Transaction) -> str:
        self.calls.append(("project", transaction.id))
        if "project" in self.fail_on:
            raise MirrorError("Notion is down")
        self.pages += 1
        return f"page-{self.pages}"

    async def reproject(self, mirror_ref: str, partial: TransactionUpdate) -> None:
        self.calls.append(("reproject", mirror_ref, partial.model_dump(exclude_unset=True)))
        if "reproject" in self.fail_on:
            raise MirrorError("Notion is down")

    async def retire(self, mirror_ref: str) -> None:
        self.calls.append(("retire", mirror_ref))
        if "retire" in self.fail_on:
            raise MirrorError("Notion is down")

    async def check_reachable(self) -> bool:
        return self.reachable


@pytest.fixture
def anyio_backend() -> str:
    """Run async tests on asyncio only."""
    return "asyncio"


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the environment's .env file."""
    return Settings(
        _env_file=None,
        environment="development",
        database_url="sqlite://",
        notion_token=None,
        notion_database_id=None,
        log_file=None,
    )


@pytest.fixture
def clock() -> TickingClock:
    """Clock starting mid-March 2025, advancing one minute per call."""
    return TickingClock(datetime(2025, 3, 14, 12, 0, tzinfo=UTC), timedelta(minutes=1))


@pytest.fixture
def backend() -> SQLBackend:
    """Fresh in-memory SQLite backend with its schema created."""
    sql_backend = SQLBackend(get_engine("sqlite://"))
    sql_backend.prepare()
    return sql_backend


@pytest.fixture
def store(backend: SQLBackend, clock: TickingClock) -> TransactionStore:
    """Transaction store over the in-memory backend."""
    return TransactionStore(backend, clock=clock)


@pytest.fixture
def fake_mirror() -> FakeMirror:
    """Mirror double that succeeds unless told otherwise."""
    return FakeMirror()
