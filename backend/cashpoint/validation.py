# Overview: Input parsing for API payloads; strict ints, cent-exact money, column-driven patches.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import Boolean, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError


# Numeric(10, 2): 99,999,999.99 is the largest storable amount
MAX_MONEY = Decimal("99999999.99")
CENT = Decimal("0.01")


@dataclass(frozen=True)
class ModelValidationPolicy:
    """Which columns a client may write, and which a create must supply."""
    writable_fields: set[str]
    required_on_create: frozenset[str] = frozenset()


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def parse_int(value: Any, field: str) -> int:
    """Strict integer parsing: rejects bools, floats, decimals and scientific notation."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def parse_positive_int(value: Any, field: str) -> int:
    n = parse_int(value, field)
    if n <= 0:
        raise ValidationError(f"{field} must be a positive integer")
    return n


def parse_decimal(value: Any, field: str) -> Decimal:
    """
    Convert a JSON number/string into a Decimal without binary float drift.

    Floats are converted through their shortest repr, so 19.99 stays 19.99.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, Decimal):
        d = value
    elif isinstance(value, (int, float)):
        d = Decimal(repr(value)) if isinstance(value, float) else Decimal(value)
    elif isinstance(value, str):
        try:
            d = Decimal(value.strip())
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number")
    else:
        raise ValidationError(f"{field} must be a number")

    if not d.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    return d


def parse_money(value: Any, field: str, *, positive: bool = False) -> Decimal:
    """Parse a non-negative monetary amount with at most 2 fraction digits."""
    d = parse_decimal(value, field)
    if d != d.quantize(CENT):
        raise ValidationError(f"{field} must have at most 2 decimal places")
    d = d.quantize(CENT)
    if d < 0:
        raise ValidationError(f"{field} must be >= 0")
    if positive and d == 0:
        raise ValidationError(f"{field} must be > 0")
    if d > MAX_MONEY:
        raise ValidationError(f"{field} cannot exceed {MAX_MONEY}")
    return d


def parse_rate(value: Any, field: str = "tax_rate") -> Decimal:
    """Tax rate as a decimal fraction in [0, 1]."""
    d = parse_decimal(value, field)
    if d < 0 or d > 1:
        raise ValidationError(f"{field} must be between 0 and 1")
    return d


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return parse_int(value, col.key)

    # Fixed-point money columns
    if isinstance(coltype, Numeric):
        return parse_money(value, col.key)

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be a boolean")

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def _check_text(col, field: str, val: str) -> None:
    if not col.nullable and val == "":
        raise ValidationError(f"{field} cannot be blank")
    max_len = getattr(col.type, "length", None)
    if max_len and len(val) > max_len:
        raise ValidationError(f"{field} exceeds max length {max_len}")


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Turn a client JSON body into a column -> value patch for `model`.

    Only policy.writable_fields may appear. Values are coerced by column type
    (money through parse_money, integers strictly), NULL is refused on
    non-nullable columns, and String(n) limits are enforced. With
    partial=False every policy.required_on_create field must be present.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")

    if not partial:
        missing = sorted((policy.required_on_create or set()) - payload.keys())
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    columns = _columns_by_key(model)
    forbidden = sorted(k for k in payload if k not in policy.writable_fields or k not in columns)
    if forbidden:
        raise ValidationError(f"Field not allowed: {', '.join(forbidden)}")

    patch: dict = {}
    for field, raw in payload.items():
        col = columns[field]
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{field} cannot be null")
            patch[field] = None
            continue

        value = _coerce_value(col, raw)
        if isinstance(value, str) and isinstance(col.type, (String, Text)):
            _check_text(col, field, value)
        patch[field] = value

    return patch


def enforce_rules_product(patch: dict) -> None:
    """Product rules beyond column metadata: positive price, non-negative stock and threshold."""
    price = patch.get("selling_price")
    if price is not None and price <= 0:
        raise ValidationError("selling_price must be > 0")

    for field in ("stock_quantity", "low_stock_threshold"):
        value = patch.get(field)
        if value is not None and value < 0:
            raise ValidationError(f"{field} must be >= 0")
