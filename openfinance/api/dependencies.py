"""FastAPI dependencies for DI (settings, store, mirror, orchestrator, etc).

Services are built once per process by the application lifespan and kept on ``app.state``; endpoints receive them
through ``get_services`` so tests can hand in their own store and mirror.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

import httpx
from fastapi import Request

from openfinance.core.settings import Settings
from openfinance.core.utils import get_logger, utcnow
from openfinance.normalizer import PayloadNormalizer
from openfinance.services.backends import PrimaryBackend, build_backend
from openfinance.services.notion_mirror import NotionMirror, build_http_client
from openfinance.services.summary_service import SummaryService
from openfinance.services.transaction_store import TransactionStore
from openfinance.workers.sync_orchestrator import Mirror, SyncOrchestrator

logger = get_logger("openfinance.api")


@dataclass
class Services:
    """Everything the endpoints need, wired together."""

    settings: Settings
    store: TransactionStore
    mirror: Mirror | None
    orchestrator: SyncOrchestrator
    normalizer: PayloadNormalizer
    summary: SummaryService
    http_client: httpx.AsyncClient | None = None

    async def aclose(self) -> None:
        """Release pooled connections."""
        if self.http_client is not None:
            await self.http_client.aclose()


def build_services(
    settings: Settings,
    backend: PrimaryBackend | None = None,
    mirror: Mirror | None = None,
    clock: Callable[[], datetime] = utcnow,
) -> Services:
    """Build the store, mirror and orchestrator; a Notion mirror is created unless one is given."""
    if backend is None:
        backend = build_backend(settings)
    backend.prepare()
    store = TransactionStore(backend, month_timezone=settings.month_timezone, clock=clock)
    http_client = None
    if mirror is None:
        http_client = build_http_client(settings)
        mirror = NotionMirror.from_settings(http_client, settings)
    logger.info(f"Services ready: primary backend '{type(backend).__name__}', mirror '{type(mirror).__name__}'")
    return Services(
        settings=settings,
        store=store,
        mirror=mirror,
        orchestrator=SyncOrchestrator(store, mirror),
        normalizer=PayloadNormalizer(settings.category_fallback),
        summary=SummaryService(store),
        http_client=http_client,
    )


def get_services(request: Request) -> Services:
    """Provide the process-wide services for dependency injection."""
    return request.app.state.services
