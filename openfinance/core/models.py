"""Pydantic models for OpenFinance Sync.

This module defines the canonical transaction shapes that flow between the normalizer, the primary store, the mirror
and the API: the draft produced by normalization, the stored transaction, partial updates, list filters, the financial
summary and the API response envelope.
"""

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field, field_validator

from openfinance.core.utils import utcnow_iso

MONTH_YEAR_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"


class Location(BaseModel):
    """Geographic position of a transaction, with an optional canonicalized address."""

    latitude: float
    longitude: float
    address: str | None = None


class TransactionDraft(BaseModel):
    """Canonical draft: a normalized payload before the primary store assigns id and created_at."""

    description: str = Field(min_length=1)
    amount: float
    is_credit_card: bool = False
    month_year: str | None = Field(default=None, pattern=MONTH_YEAR_PATTERN)
    category: str | None = None
    tags: list[str] | None = None
    location: Location | None = None


class Transaction(BaseModel):
    """Pydantic model representing a transaction as held by the primary store."""

    id: str
    description: str
    amount: float
    is_credit_card: bool = False
    month_year: str
    created_at: datetime
    category: str | None = None
    tags: list[str] | None = None
    location: Location | None = None
    mirror_ref: str | None = None


class TransactionUpdate(BaseModel):
    """Partial field replacement; only explicitly set fields are applied."""

    description: str | None = Field(default=None, min_length=1)
    amount: float | None = None
    is_credit_card: bool | None = None
    category: str | None = None
    tags: list[str] | None = None
    location: Location | None = None

    @field_validator("description", "amount", "is_credit_card")
    @classmethod
    def reject_explicit_null(cls, value: object) -> object:
        """Required columns may be changed but not cleared."""
        if value is None:
            raise ValueError("field cannot be cleared")
        return value

    def changes(self) -> dict[str, Any]:
        """Return the set fields in storage form."""
        return self.model_dump(mode="json", exclude_unset=True)


class TransactionFilters(BaseModel):
    """Equality filters and pagination for listing transactions."""

    month_year: str | None = None
    category: str | None = None
    is_credit_card: bool | None = None
    limit: int | None = Field(default=None, ge=1)
    offset: int | None = Field(default=None, ge=0)

    def equality(self) -> dict[str, Any]:
        """Return the equality conditions that are set, keyed by column name."""
        conditions = {"month_year": self.month_year, "category": self.category, "is_credit_card": self.is_credit_card}
        return {key: value for key, value in conditions.items() if value is not None}


class MirrorOutcome(StrEnum):
    """Outcome of a best-effort mirror step."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


class CategoryShare(BaseModel):
    """Spending in one category."""

    category: str
    amount: float
    percentage: float


class FinancialSummary(BaseModel):
    """Income, expenses and top spending categories over a set of transactions."""

    total_income: float = 0.0
    total_expenses: float = 0.0
    balance: float = 0.0
    savings_rate: float = 0.0
    top_categories: list[CategoryShare] = Field(default_factory=list)


class ApiResponse(BaseModel):
    """Response envelope returned by every API endpoint."""

    success: bool
    message: str
    data: Any = None
    error: str | None = None
    total: int | None = None
    timestamp: str = Field(default_factory=utcnow_iso)
    status_code: int = 200
