"""Field-level repairs for inbound transaction payloads.

Each helper takes a raw value as sent by the phone shortcut and returns a canonical value, or ``None`` when the
value cannot be salvaged. None of them raise for malformed input except the amount coercion, because a garbled
amount cannot be repaired into something meaningful.
"""

import json
import re
from typing import Any

from openfinance.core.errors import ValidationError
from openfinance.core.models import MONTH_YEAR_PATTERN, Location
from openfinance.core.utils import get_logger, safe_cast

MAX_CATEGORY_LEN = 100
ADDRESS_ALIASES = ("address", "adress")
FALSE_WORDS = frozenset({"", "false", "f", "0", "no", "n", "off", "nao", "não", "null", "none"})

TAG_SEPARATORS = re.compile(r"[,;\r\n]+")
LINE_BREAKS = re.compile(r"(?:\r\n|\r|\n)+")
COMMA_RUNS = re.compile(r"(?:\s*,\s*)+")
SPACE_RUNS = re.compile(r"[ \t]+")

logger = get_logger("openfinance.normalizer")


def coerce_amount(value: Any) -> float:
    """Read an amount as a float, accepting a comma decimal with optional dot thousands (``1.234,56``)."""
    if isinstance(value, bool):
        raise ValidationError(f"amount must be a number, got {value!r}")
    if isinstance(value, int | float):
        amount = safe_cast(value, float)
    else:
        amount = safe_cast(_decimal_text(str(value)), float)
    if amount is None or amount != amount or amount in (float("inf"), float("-inf")):
        raise ValidationError(f"amount must be a number, got {value!r}")
    return amount


def _decimal_text(text: str) -> str:
    text = text.strip().replace(" ", "")
    if "," not in text:
        return text
    if "." in text and text.rfind(".") > text.rfind(","):
        # 1,234.56
        return text.replace(",", "")
    return text.replace(".", "").replace(",", ".")


def coerce_bool(value: Any) -> bool:
    """Read a loosely typed flag; text such as ``"false"`` or ``"0"`` is false."""
    if isinstance(value, str):
        return value.strip().lower() not in FALSE_WORDS
    return bool(value)


def sanitize_category(value: Any, fallback: str) -> str | None:
    """Replace oversized, JSON-shaped or non-text categories with the fallback label."""
    if value is None:
        return None
    if isinstance(value, dict | list):
        logger.warning(f"Category is structured data ({type(value).__name__}); using '{fallback}'")
        return fallback
    text = str(value).strip()
    if not text:
        return None
    if len(text) > MAX_CATEGORY_LEN or text.startswith("{"):
        logger.warning(f"Category looks garbled ({len(text)} chars); using '{fallback}'")
        return fallback
    return text


def split_tags(value: Any) -> list[str] | None:
    """Split a tag string on commas, semicolons or line breaks; sequences pass through."""
    if value is None:
        return None
    if isinstance(value, str):
        tags = [piece.strip() for piece in TAG_SEPARATORS.split(value)]
        return [tag for tag in tags if tag]
    if isinstance(value, list | tuple):
        if all(isinstance(tag, str) for tag in value):
            return list(value)
        logger.warning(f"Tags contain non-text items, converting to text: {value!r}")
        return [str(tag) for tag in value]
    logger.warning(f"Dropping tags of unsupported type {type(value).__name__}")
    return None


def canonicalize_address(text: str) -> str:
    """Turn line breaks into ``", "`` and collapse spaces and repeated commas."""
    text = LINE_BREAKS.sub(", ", text)
    text = SPACE_RUNS.sub(" ", text)
    text = COMMA_RUNS.sub(", ", text)
    return text.strip().strip(",").strip()


def parse_location(value: Any) -> Location | None:
    """Parse a location object or JSON string; anything unusable is dropped."""
    if value is None or value == "":
        return None
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError as exc:
            logger.warning(f"Dropping location, not valid JSON: {exc}")
            return None
    if not isinstance(value, dict):
        logger.warning(f"Dropping location of unsupported type {type(value).__name__}")
        return None
    fields = {str(key).strip(): item for key, item in value.items()}
    latitude = safe_cast(fields.get("latitude"), float)
    longitude = safe_cast(fields.get("longitude"), float)
    if latitude is None or longitude is None:
        logger.warning(f"Dropping location without numeric coordinates: {fields!r}")
        return None
    address = next((fields[key] for key in ADDRESS_ALIASES if fields.get(key)), None)
    if address is not None:
        address = canonicalize_address(str(address)) or None
    return Location(latitude=latitude, longitude=longitude, address=address)


def parse_month_year(value: Any) -> str | None:
    """Accept a ``YYYY-MM`` month; anything else is dropped so the store defaults it."""
    if value is None or value == "":
        return None
    text = str(value).strip()
    if re.match(MONTH_YEAR_PATTERN, text):
        return text
    logger.warning(f"Ignoring month_year not in YYYY-MM form: {text!r}")
    return None
