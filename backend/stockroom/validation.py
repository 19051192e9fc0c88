from __future__ import annotations
from datetime import date, datetime
from stockroom.time_utils import parse_iso_datetime, parse_iso_date, today

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Date, DateTime, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta


# Maximum price: 9,999,999.99 (999,999,999 cents)
MAX_PRICE_CENTS = 999_999_999

# Same ceilings the dashboard forms enforce
MAX_QUANTITY = 1_000_000
MAX_REORDER_LEVEL = 100_000


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate SKU)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise ValidationError(f"{col.key} must be an integer")
            if 'e' in stripped.lower():
                raise ValidationError(f"{col.key} must be a plain integer (scientific notation not allowed)")
            if '.' in stripped:
                raise ValidationError(f"{col.key} must be an integer (no decimals)")
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer")
        if isinstance(value, float):
            raise ValidationError(f"{col.key} must be an integer, not a decimal")
        raise ValidationError(f"{col.key} must be an integer")

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        return bool(value)

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    # Calendar dates ("YYYY-MM-DD")
    if isinstance(coltype, Date):
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            try:
                d = parse_iso_date(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 date (YYYY-MM-DD)")
            if d is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 date (YYYY-MM-DD)")
            return d
        raise ValidationError(f"{col.key} must be a date")

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def _check_price(patch: dict, field: str) -> None:
    if field in patch and patch[field] is not None:
        price = patch[field]
        if price < 0:
            raise ValidationError(f"{field} must be >= 0")
        if price > MAX_PRICE_CENTS:
            raise ValidationError(f"{field} cannot exceed {MAX_PRICE_CENTS} ({MAX_PRICE_CENTS / 100:,.2f})")


def _check_positive_quantity(patch: dict, field: str = "quantity") -> None:
    if field in patch:
        qty = patch[field]
        if qty is None or qty < 1:
            raise ValidationError(f"{field} must be at least 1")
        if qty >= MAX_QUANTITY:
            raise ValidationError(f"{field} must be less than {MAX_QUANTITY:,}")


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    _check_price(patch, "cost_price_cents")
    _check_price(patch, "retail_price_cents")

    if "quantity" in patch and patch["quantity"] is not None:
        if patch["quantity"] < 0:
            raise ValidationError("quantity cannot be negative")
        if patch["quantity"] >= MAX_QUANTITY:
            raise ValidationError(f"quantity must be less than {MAX_QUANTITY:,}")

    if "reorder_level" in patch and patch["reorder_level"] is not None:
        if patch["reorder_level"] < 0:
            raise ValidationError("reorder_level cannot be negative")
        if patch["reorder_level"] >= MAX_REORDER_LEVEL:
            raise ValidationError(f"reorder_level must be less than {MAX_REORDER_LEVEL:,}")


def enforce_rules_movement(patch: dict) -> None:
    # Manual adjustments require a non-zero delta and a stated reason
    if patch.get("qty_change") in (None, 0):
        raise ValidationError("qty_change must be non-zero")
    if abs(patch["qty_change"]) >= MAX_QUANTITY:
        raise ValidationError(f"qty_change must be less than {MAX_QUANTITY:,} in magnitude")
    if not patch.get("reason"):
        raise ValidationError("reason is required")


def enforce_rules_sale(patch: dict) -> None:
    _check_positive_quantity(patch)
    if patch.get("date_sold") and patch["date_sold"] > today():
        raise ValidationError("date_sold cannot be in the future")


def enforce_rules_return(patch: dict) -> None:
    _check_positive_quantity(patch)


def enforce_rules_purchase_order(patch: dict, *, partial: bool = False) -> None:
    _check_positive_quantity(patch)
    if "expected_delivery_date" in patch:
        expected = patch["expected_delivery_date"]
        if expected is None:
            raise ValidationError("expected_delivery_date cannot be null")
        if not partial and expected < today():
            raise ValidationError("expected_delivery_date cannot be in the past")
