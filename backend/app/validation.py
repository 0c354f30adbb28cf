from __future__ import annotations

from typing import Any

from app.time_utils import parse_iso_date


# $9,999,999.99; anything larger is a typo, not a ledger amount
MAX_AMOUNT_CENTS = 999_999_999


class ValidationError(ValueError):
    """400-level input problem."""


def parse_int(value: Any, field: str, *, required: bool = True) -> int | None:
    """
    Strict integer parsing for JSON bodies and query strings.

    Rejects floats, booleans, decimals and scientific notation so that a
    dollar amount sent by mistake never becomes cents silently.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f"{field} is required")
        return None

    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    if isinstance(value, str):
        stripped = value.strip()
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    raise ValidationError(f"{field} must be an integer")


def parse_cents(value: Any, field: str, *, required: bool = True, allow_negative: bool = False) -> int | None:
    cents = parse_int(value, field, required=required)
    if cents is None:
        return None
    if cents < 0 and not allow_negative:
        raise ValidationError(f"{field} cannot be negative")
    if abs(cents) > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{field} exceeds maximum allowed ({MAX_AMOUNT_CENTS} cents)")
    return cents


def parse_date(value: Any, field: str, *, required: bool = False):
    try:
        parsed = parse_iso_date(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an ISO-8601 date (YYYY-MM-DD)")
    if parsed is None and required:
        raise ValidationError(f"{field} is required")
    return parsed


def parse_lines(raw: Any) -> list[dict]:
    """
    Journal lines from a request body.

    Each line: {"account_id": int, "debit_cents": int, "credit_cents": int,
    "description": str?}. Side rules (one-sided, at least two lines) are
    enforced by the journal service.
    """
    if not isinstance(raw, list):
        raise ValidationError("lines must be a list")

    lines = []
    for index, item in enumerate(raw, start=1):
        if not isinstance(item, dict):
            raise ValidationError(f"Line {index} must be an object")
        lines.append({
            "account_id": parse_int(item.get("account_id"), f"lines[{index}].account_id"),
            "debit_cents": parse_cents(item.get("debit_cents"), f"lines[{index}].debit_cents", required=False) or 0,
            "credit_cents": parse_cents(item.get("credit_cents"), f"lines[{index}].credit_cents", required=False) or 0,
            "description": (str(item["description"]).strip() or None) if item.get("description") else None,
        })
    return lines


def require_json_object(data: Any) -> dict:
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data
