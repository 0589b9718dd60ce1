from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from sqlalchemy import Float, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import InvalidInput


# Maximum unit price accepted for an item
MAX_PRICE = 9_999_999.99

# Signed 64-bit INTEGER range of the database
MAX_DB_INT = 2**63 - 1

# Maximum stock quantity accepted for an item
MAX_QUANTITY = 2_147_483_647


def is_db_int(value) -> bool:
    """True for a non-bool int the database INTEGER type can store."""
    return isinstance(value, int) and not isinstance(value, bool) and -MAX_DB_INT - 1 <= value <= MAX_DB_INT


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: frozenset[str]
    required_on_create: frozenset[str] = frozenset()


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        # Already an int (but not bool which is a subclass of int)
        if isinstance(value, int) and not isinstance(value, bool):
            number = value
        elif isinstance(value, str):
            stripped = value.strip()
            if not stripped or 'e' in stripped.lower() or '.' in stripped:
                raise InvalidInput(f"{col.key} must be a plain integer")
            try:
                number = int(stripped)
            except ValueError:
                raise InvalidInput(f"{col.key} must be an integer")
        else:
            raise InvalidInput(f"{col.key} must be an integer")
        if not is_db_int(number):
            raise InvalidInput(f"{col.key} is out of range")
        return number

    # Floats - accept ints and numeric strings, reject bool/NaN/inf
    if isinstance(coltype, Float):
        if isinstance(value, bool):
            raise InvalidInput(f"{col.key} must be a number")
        if isinstance(value, (int, float)):
            try:
                number = float(value)
            except OverflowError:
                raise InvalidInput(f"{col.key} is out of range")
        elif isinstance(value, str):
            try:
                number = float(value.strip())
            except ValueError:
                raise InvalidInput(f"{col.key} must be a number")
        else:
            raise InvalidInput(f"{col.key} must be a number")
        if math.isnan(number) or math.isinf(number):
            raise InvalidInput(f"{col.key} must be a finite number")
        return number

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        if not isinstance(value, (str, int, float)) or isinstance(value, bool):
            raise InvalidInput(f"{col.key} must be a string")
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
    Returns a cleaned dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys; a null
    value is kept as None and later treated as "not supplied")
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise InvalidInput("Invalid JSON payload")

    if not partial:
        missing = sorted(f for f in policy.required_on_create if f not in payload)
        if missing:
            raise InvalidInput(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields or k not in cols:
            raise InvalidInput(f"Field not allowed: {k}")

    cleaned: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable and not partial:
                raise InvalidInput(f"{k} cannot be null")
            cleaned[k] = None
            continue

        val = _coerce_value(col, raw)

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise InvalidInput(f"{k} exceeds max length {col.type.length}")

        cleaned[k] = val

    return cleaned


def enforce_rules_item(fields: dict) -> None:
    """
    Structural rules every persisted item must satisfy, on create and
    after an update merge alike.
    """
    for key in ("name", "sku"):
        value = fields.get(key)
        if value is None or not str(value).strip():
            raise InvalidInput(f"{key} cannot be blank")

    quantity = fields.get("quantity")
    if quantity is None or isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InvalidInput("quantity must be an integer")
    if quantity < 0:
        raise InvalidInput("quantity must be >= 0")
    if quantity > MAX_QUANTITY:
        raise InvalidInput(f"quantity cannot exceed {MAX_QUANTITY:,}")

    price = fields.get("price")
    if price is None or isinstance(price, bool) or not isinstance(price, (int, float)):
        raise InvalidInput("price must be a number")
    if price < 0:
        raise InvalidInput("price must be >= 0")
    if price > MAX_PRICE:
        raise InvalidInput(f"price cannot exceed {MAX_PRICE:,.2f}")
