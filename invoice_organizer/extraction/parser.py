"""Recovery of invoice fields from free-form language-model output.

Models wrap the requested JSON in prose or markdown fences often enough that
the response is never parsed as a whole. The widest ``{...}`` span is taken
instead and every field is coerced leniently.
"""

import json
import logging
import math
import re
from decimal import Decimal, InvalidOperation
from typing import Any

from invoice_organizer.extraction.schema import InvoiceFields, InvoiceType
from invoice_organizer.shared.errors import JSONInvalidError, JSONNotFoundError

logger = logging.getLogger(__name__)

# Greedy on purpose: first "{" to last "}"
_JSON_SPAN = re.compile(r"\{[\s\S]*\}")
_LEADING_NUMBER = re.compile(r"^\s*[-+]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][-+]?\d+)?")

_VALID_TYPES = {t.value for t in InvoiceType}


def extract_json_object(content: str) -> dict[str, Any]:
    """Locate and decode the JSON object embedded in a response.

    Args:
        content: Raw response text

    Returns:
        Decoded JSON object

    Raises:
        JSONNotFoundError: If the text has no ``{...}`` span
        JSONInvalidError: If the span is not a valid JSON object
    """
    match = _JSON_SPAN.search(content)
    if not match:
        raise JSONNotFoundError(f"Could not find JSON in model response: {content[:200]}")

    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise JSONInvalidError(f"Model response contains invalid JSON: {e}") from e

    if not isinstance(parsed, dict):
        raise JSONInvalidError("Model response JSON is not an object")
    return parsed


def coerce_type(value: Any) -> InvoiceType | None:
    """Map a category value onto the taxonomy; anything else is unknown."""
    if isinstance(value, str) and value in _VALID_TYPES:
        return InvoiceType(value)
    return None


def coerce_amount(value: Any) -> Decimal | None:
    """Coerce an amount to Decimal.

    Native numbers are kept as-is (including zero). Strings are read like a
    leading-number parse, so ``"553.5元"`` gives 553.5; a string that yields
    nothing or zero is unknown.

    Args:
        value: Raw ``amount`` value from the model

    Returns:
        Decimal amount or None when unknown
    """
    if isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        return Decimal(str(value))

    if isinstance(value, str):
        match = _LEADING_NUMBER.match(value.replace(",", ""))
        if not match:
            return None
        try:
            amount = Decimal(match.group(0).strip())
        except InvalidOperation:
            return None
        return amount if amount else None

    return None


def _text_or_none(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return value if isinstance(value, str) else str(value)


def parse_structured_response(content: str) -> InvoiceFields:
    """Parse a model response into invoice fields.

    Args:
        content: Raw textual response from the structuring endpoint

    Returns:
        InvoiceFields with unknown values as None and raw_text set to content

    Raises:
        JSONNotFoundError: If no JSON object is present
        JSONInvalidError: If the JSON object cannot be decoded
    """
    parsed = extract_json_object(content)

    fields = InvoiceFields(
        type=coerce_type(parsed.get("type")),
        amount=coerce_amount(parsed.get("amount")),
        date=_text_or_none(parsed.get("date")),
        description=_text_or_none(parsed.get("description")),
        raw_text=content,
    )
    logger.debug(f"Parsed structured response: type={fields.type} amount={fields.amount}")
    return fields
