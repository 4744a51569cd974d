"""Tests for the transaction models."""

import pytest
from pydantic import ValidationError

from openfinance.core.models import TransactionUpdate


@pytest.mark.parametrize("field", ["description", "amount", "is_credit_card"])
def test_update_cannot_clear_required_fields(field: str) -> None:
    """Required columns reject an explicit null."""
    with pytest.raises(ValidationError, match="cannot be cleared"):
        TransactionUpdate(**{field: None})


def test_update_can_clear_optional_fields() -> None:
    """Optional columns accept an explicit null and keep it as a change."""
    partial = TransactionUpdate(category=None, tags=None, location=None)
    if partial.changes() != {"category": None, "tags": None, "location": None}:
        msg = f"Unexpected changes {partial.changes()}"
        raise AssertionError(msg)


def test_empty_update_is_valid() -> None:
    """Defaults are not validated, so an empty update carries no changes."""
    if TransactionUpdate().changes() != {}:
        msg = "Expected no changes"
        raise AssertionError(msg)
