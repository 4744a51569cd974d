"""FastAPI endpoints for the OpenFinance Sync API.

This module defines the routes the phone shortcut posts transactions to, the listing, summary and maintenance
endpoints, and the connectivity checks for the primary store and the Notion mirror.
"""

from typing import Any

from fastapi import APIRouter, Body, Depends, Query
from fastapi.responses import JSONResponse

from openfinance import __version__
from openfinance.api.dependencies import Services, get_services
from openfinance.core.errors import ConfigurationError, NotFoundError, StorageError
from openfinance.core.models import ApiResponse, TransactionFilters
from openfinance.core.utils import get_logger, utcnow_iso

router = APIRouter()
logger = get_logger("openfinance.api")

HTTP_201_CREATED = 201
HTTP_400_BAD_REQUEST = 400
HTTP_404_NOT_FOUND = 404
HTTP_500_INTERNAL_SERVER_ERROR = 500


def _failure(message: str, error: str | None, details: dict[str, Any] | None = None) -> JSONResponse:
    body = ApiResponse(
        success=False,
        message=message,
        error=error,
        data=details,
        status_code=HTTP_500_INTERNAL_SERVER_ERROR,
    )
    return JSONResponse(body.model_dump(mode="json"), status_code=HTTP_500_INTERNAL_SERVER_ERROR)


@router.get("/", summary="Service banner")
async def root() -> dict:
    """Describe the service."""
    return {
        "message": "OpenFinance API - financial automation",
        "version": __version__,
        "status": "online",
        "timestamp": utcnow_iso(),
    }


@router.get(
    "/health",
    summary="Health check",
    description="Simple health check endpoint. Returns status ok.",
    response_description="Status ok.",
    responses={200: {"description": "API is healthy.", "content": {"application/json": {"example": {"status": "ok"}}}}},
)
async def health() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}


@router.get("/api/test", response_model=ApiResponse, summary="Liveness check with server details")
async def api_test(services: Services = Depends(get_services)) -> ApiResponse:
    """Report that the API is up and which primary backend it uses."""
    return ApiResponse(
        success=True,
        message="API is running",
        data={"server": "FastAPI", "primary_backend": services.settings.primary_backend},
    )


@router.get(
    "/api/test-store",
    response_model=ApiResponse,
    summary="Check the primary store connection",
    responses={500: {"description": "Primary store unreachable."}},
)
async def test_store(services: Services = Depends(get_services)) -> ApiResponse | JSONResponse:
    """Ping the primary store."""
    logger.info("Testing primary store connection...")
    try:
        await services.store.check_reachable()
    except StorageError as exc:
        logger.error(f"Primary store connection failed: {exc}")
        error = str(exc) if services.settings.is_development else "Could not connect to the database"
        return _failure("Primary store connection failed", error)
    return ApiResponse(
        success=True,
        message="Primary store connection established",
        data={"connected": True, "primary_backend": services.settings.primary_backend},
    )


@router.get(
    "/api/test-notion",
    response_model=ApiResponse,
    summary="Check the Notion mirror connection",
    responses={500: {"description": "Notion not configured or database unreachable."}},
)
async def test_notion(services: Services = Depends(get_services)) -> ApiResponse | JSONResponse:
    """Verify that the mirror database is reachable."""
    logger.info("Testing Notion connection...")
    settings = services.settings
    details = None
    if settings.is_development:
        details = {
            "has_notion_token": bool(settings.notion_token),
            "has_notion_database_id": bool(settings.notion_database_id),
        }
    if services.mirror is None or not hasattr(services.mirror, "check_reachable"):
        return _failure("Notion mirror is disabled", None, details)
    try:
        reachable = await services.mirror.check_reachable()
    except ConfigurationError as exc:
        logger.error(f"Notion is not configured: {exc}")
        return _failure("Notion is not configured", str(exc) if settings.is_development else None, details)
    if not reachable:
        return _failure("Could not reach the Notion database", None, details)
    return ApiResponse(
        success=True,
        message="Notion connection established",
        data={"connected": True, "database_id": settings.notion_database_id},
    )


@router.post(
    "/api/transactions",
    response_model=ApiResponse,
    status_code=HTTP_201_CREATED,
    summary="Record a transaction sent by the phone shortcut",
    description=(
        "Accepts a loosely shaped JSON object. `description` and `amount` are required; `is_credit_card`, "
        "`category`, `tags` (string or list) and `location` (object or JSON string) are optional and repaired "
        "or dropped when malformed. The transaction is stored and then mirrored to Notion on a best-effort basis."
    ),
    responses={
        201: {"description": "Transaction stored."},
        400: {"description": "Description or amount missing."},
        500: {"description": "Primary store failure."},
    },
)
@router.post("/api/transaction", response_model=ApiResponse, status_code=HTTP_201_CREATED, include_in_schema=False)
async def create_transaction(
    payload: Any = Body(...),
    services: Services = Depends(get_services),
) -> ApiResponse:
    """Normalize and store a transaction."""
    draft = services.normalizer.normalize(payload)
    transaction = await services.orchestrator.create(draft)
    return ApiResponse(success=True, message="Transaction saved", data=transaction, status_code=HTTP_201_CREATED)


@router.get("/api/transactions", response_model=ApiResponse, summary="List transactions, newest first")
async def list_transactions(
    month_year: str | None = Query(None, description="Month in YYYY-MM form"),
    category: str | None = Query(None),
    is_credit_card: bool | None = Query(None),
    limit: int | None = Query(None, ge=1),
    offset: int | None = Query(None, ge=0),
    services: Services = Depends(get_services),
) -> ApiResponse:
    """List transactions matching every given filter."""
    filters = TransactionFilters(
        month_year=month_year,
        category=category,
        is_credit_card=is_credit_card,
        limit=limit,
        offset=offset,
    )
    transactions = await services.orchestrator.find_many(filters)
    return ApiResponse(success=True, message="Transactions", data=transactions, total=len(transactions))


@router.get("/api/transactions/summary", response_model=ApiResponse, summary="Income, expenses and top categories")
async def transactions_summary(
    month_year: str | None = Query(None, description="Month in YYYY-MM form"),
    category: str | None = Query(None),
    is_credit_card: bool | None = Query(None),
    services: Services = Depends(get_services),
) -> ApiResponse:
    """Summarize the transactions matching every given filter."""
    filters = TransactionFilters(month_year=month_year, category=category, is_credit_card=is_credit_card)
    summary = await services.summary.summarize(filters)
    return ApiResponse(success=True, message="Financial summary", data=summary)


@router.get("/api/transactions/{transaction_id}", response_model=ApiResponse, summary="Fetch one transaction")
async def get_transaction(transaction_id: str, services: Services = Depends(get_services)) -> ApiResponse:
    """Fetch a transaction by id."""
    transaction = await services.orchestrator.find_by_id(transaction_id)
    if transaction is None:
        raise NotFoundError(f"Transaction {transaction_id} not found")
    return ApiResponse(success=True, message="Transaction", data=transaction)


@router.patch("/api/transactions/{transaction_id}", response_model=ApiResponse, summary="Update a transaction")
async def update_transaction(
    transaction_id: str,
    payload: Any = Body(...),
    services: Services = Depends(get_services),
) -> ApiResponse:
    """Apply a partial update; the Notion page follows on a best-effort basis."""
    partial = services.normalizer.normalize_update(payload)
    transaction = await services.orchestrator.update(transaction_id, partial)
    return ApiResponse(success=True, message="Transaction updated", data=transaction)


@router.delete("/api/transactions/{transaction_id}", response_model=ApiResponse, summary="Delete a transaction")
async def delete_transaction(transaction_id: str, services: Services = Depends(get_services)) -> ApiResponse:
    """Delete a transaction and archive its Notion page."""
    existed = await services.orchestrator.delete(transaction_id)
    message = "Transaction deleted" if existed else "Transaction was already absent"
    return ApiResponse(success=True, message=message, data={"id": transaction_id, "deleted": existed})
