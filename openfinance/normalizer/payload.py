"""PayloadNormalizer: turns loosely shaped shortcut payloads into canonical transaction drafts.

The phone shortcut that posts transactions is an uncontrolled automation client. It double-encodes JSON, pads keys
and values with whitespace and sends garbled sub-objects. Only a missing description or amount rejects a request;
every other malformed field is repaired or dropped and the anomaly is logged.
"""

import json
from collections.abc import Mapping
from typing import Any

from openfinance.core.errors import ValidationError
from openfinance.core.models import TransactionDraft, TransactionUpdate
from openfinance.core.utils import get_logger
from openfinance.normalizer.fields import (
    coerce_amount,
    coerce_bool,
    parse_location,
    parse_month_year,
    sanitize_category,
    split_tags,
)

NESTED_JSON_FIELD = "json"
MAX_PAYLOAD_LOG_LEN = 300

logger = get_logger("openfinance.normalizer")


class PayloadNormalizer:
    """Normalizes raw inbound payloads for the transaction endpoints."""

    def __init__(self, category_fallback: str = "Other") -> None:
        """Initialize the normalizer with the label that replaces garbled categories."""
        self.category_fallback = category_fallback

    def normalize(self, raw: Mapping[str, Any]) -> TransactionDraft:
        """Normalize a create payload; raises ``ValidationError`` when description or amount is missing."""
        fields = self._prepare(raw)
        description = fields.get("description")
        amount = fields.get("amount")
        if _is_blank(description) or _is_blank(amount):
            logger.warning(f"Rejected payload without description or amount: {_preview(fields)}")
            raise ValidationError("description and amount are required")
        draft = TransactionDraft(
            description=str(description),
            amount=coerce_amount(amount),
            is_credit_card=coerce_bool(fields.get("is_credit_card", False)),
            month_year=parse_month_year(fields.get("month_year")),
            category=sanitize_category(fields.get("category"), self.category_fallback),
            tags=split_tags(fields.get("tags")),
            location=parse_location(fields.get("location")),
        )
        logger.info(f"Normalized transaction draft: {draft.description!r} amount={draft.amount}")
        return draft

    def normalize_update(self, raw: Mapping[str, Any]) -> TransactionUpdate:
        """Normalize a partial update payload; only the fields present are repaired and kept."""
        fields = self._prepare(raw)
        changes: dict[str, Any] = {}
        if "description" in fields:
            if _is_blank(fields["description"]):
                raise ValidationError("description must not be empty")
            changes["description"] = str(fields["description"])
        if "amount" in fields:
            if _is_blank(fields["amount"]):
                raise ValidationError("amount must not be empty")
            changes["amount"] = coerce_amount(fields["amount"])
        if "is_credit_card" in fields:
            changes["is_credit_card"] = coerce_bool(fields["is_credit_card"])
        if "category" in fields:
            changes["category"] = sanitize_category(fields["category"], self.category_fallback)
        if "tags" in fields:
            changes["tags"] = split_tags(fields["tags"])
        if "location" in fields:
            # explicit null clears the location; unreadable values are dropped
            location = parse_location(fields["location"])
            if location is not None or fields["location"] is None:
                changes["location"] = location
        return TransactionUpdate(**changes)

    def _prepare(self, raw: Mapping[str, Any]) -> dict[str, Any]:
        """Unwrap a nested JSON payload, then trim every key and every text value."""
        if not isinstance(raw, Mapping):
            raise ValidationError(f"payload must be an object, got {type(raw).__name__}")
        payload = self._unwrap_nested_json(raw)
        fields: dict[str, Any] = {}
        for key, value in payload.items():
            fields[str(key).strip()] = value.strip() if isinstance(value, str) else value
        logger.debug(f"Prepared payload: {_preview(fields)}")
        return fields

    def _unwrap_nested_json(self, raw: Mapping[str, Any]) -> Mapping[str, Any]:
        nested = next((value for key, value in raw.items() if str(key).strip() == NESTED_JSON_FIELD), None)
        if not isinstance(nested, str):
            return raw
        try:
            parsed = json.loads(nested)
        except json.JSONDecodeError as exc:
            logger.warning(f"Could not parse nested '{NESTED_JSON_FIELD}' field, keeping payload as sent: {exc}")
            return raw
        if not isinstance(parsed, dict):
            logger.warning(f"Nested '{NESTED_JSON_FIELD}' field is not an object, keeping payload as sent")
            return raw
        logger.info(f"Unwrapped nested '{NESTED_JSON_FIELD}' payload")
        return parsed


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _preview(fields: Mapping[str, Any]) -> str:
    text = repr(dict(fields))
    if len(text) > MAX_PAYLOAD_LOG_LEN:
        text = text[: MAX_PAYLOAD_LOG_LEN - 3] + "..."
    return text
