"""Main entrypoint and application factory for the OpenFinance Sync API.

This module builds the FastAPI application, wires the primary store, the Notion mirror and the sync orchestrator
during the lifespan, maps the error taxonomy onto HTTP responses, and exposes the Scalar API reference. It also
includes the main entrypoint for running the app with Uvicorn.
"""

from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from scalar_fastapi import get_scalar_api_reference

from openfinance import __version__
from openfinance.api.dependencies import Services, build_services
from openfinance.api.routes import HTTP_400_BAD_REQUEST, HTTP_404_NOT_FOUND, HTTP_500_INTERNAL_SERVER_ERROR, router
from openfinance.core.errors import ConfigurationError, NotFoundError, StorageError, ValidationError
from openfinance.core.models import ApiResponse
from openfinance.core.settings import Settings, get_settings
from openfinance.core.utils import get_logger, setup_logging


logger = get_logger("openfinance")


async def _check_mirror(services: Services) -> None:
    """Log whether the Notion database is reachable; startup continues either way."""
    check = getattr(services.mirror, "check_reachable", None)
    if check is None:
        return
    try:
        if await check():
            logger.info("Notion mirror is reachable")
        else:
            logger.warning("Notion mirror is unreachable, transactions will only be stored in the primary store")
    except ConfigurationError as exc:
        logger.warning(f"Notion mirror is not configured ({exc}), continuing without it")


def _error_response(
    request: Request,
    status_code: int,
    message: str,
    exc: Exception,
    expose: bool = True,
) -> JSONResponse:
    """Render an error in the response envelope; unexposed messages only show in development."""
    services: Services | None = getattr(request.app.state, "services", None)
    development = services.settings.is_development if services is not None else False
    body = ApiResponse(
        success=False,
        message=message,
        error=str(exc) if expose or development else None,
        status_code=status_code,
    )
    return JSONResponse(body.model_dump(mode="json"), status_code=status_code)


def create_app(settings: Settings | None = None, services: Services | None = None) -> FastAPI:
    """Create the FastAPI application; pre-built services skip the lifespan wiring."""
    settings = settings or (services.settings if services is not None else get_settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Build services once per process and release them on shutdown."""
        setup_logging(settings.log_level, settings.log_file)
        owned = getattr(app.state, "services", None) is None
        if owned:
            app.state.services = build_services(settings)
            await _check_mirror(app.state.services)
        try:
            yield
        finally:
            if owned:
                await app.state.services.aclose()

    app = FastAPI(
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        title="OpenFinance Sync API",
        description="""
    The OpenFinance Sync API receives transactions from a phone shortcut, stores them in the primary store and mirrors
    them into a Notion database on a best-effort basis.

    **Endpoints:**
    - `POST /api/transactions`: Record a transaction (alias `POST /api/transaction`).
    - `GET /api/transactions`: List transactions filtered by month, category and credit card flag.
    - `GET /api/transactions/summary`: Income, expenses and top categories.
    - `GET|PATCH|DELETE /api/transactions/{id}`: Fetch, update or delete one transaction.
    - `GET /api/test-store`, `GET /api/test-notion`: Connectivity checks.
    - `GET /health`: Health check endpoint.
    - `GET /scalar`: Interactive Scalar OpenAPI documentation.
    """,
        version=__version__,
    )
    if services is not None:
        app.state.services = services
    app.include_router(router)

    @app.middleware("http")
    async def log_requests(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        """Log every request with its response status."""
        response = await call_next(request)
        logger.info(f"{request.method} {request.url.path} -> {response.status_code}")
        return response

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError) -> JSONResponse:
        logger.warning(f"Rejected request: {exc}")
        return _error_response(request, HTTP_400_BAD_REQUEST, "Invalid transaction payload", exc)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError) -> JSONResponse:
        return _error_response(request, HTTP_404_NOT_FOUND, "Transaction not found", exc)

    @app.exception_handler(StorageError)
    async def handle_storage_error(request: Request, exc: StorageError) -> JSONResponse:
        logger.error(f"Primary store failure on {request.method} {request.url.path}: {exc}")
        return _error_response(request, HTTP_500_INTERNAL_SERVER_ERROR, "Primary store failure", exc, expose=False)

    @app.get("/scalar", include_in_schema=False)
    async def scalar_docs() -> JSONResponse:
        """Return Scalar API reference."""
        return get_scalar_api_reference(openapi_url=app.openapi_url, title=app.title)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run("openfinance.main:app", host=settings.server_host, port=settings.server_port, reload=True)
