# Overview: Request payload validation driven by SQLAlchemy column metadata.

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from sqlalchemy import Boolean, Integer, Numeric, String

from .decimal_utils import to_decimal


# Largest amount or quantity accepted from clients; NUMERIC(14, x) leaves room above it
MAX_AMOUNT = 999_999_999


class ValidationError(ValueError):
    """Bad input; answered with 400."""


class ConflictError(ValueError):
    """The request is well formed but clashes with current state (409)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Which keys a route accepts for a model.

    - writable_fields: columns clients may set; anything else is rejected
    - required_on_create: must be present and non-null when partial=False
    - extra_fields: non-column keys passed through for the route to handle
    """
    writable_fields: frozenset[str] | set[str]
    required_on_create: frozenset[str] | set[str] = field(default_factory=frozenset)
    extra_fields: frozenset[str] | set[str] = field(default_factory=frozenset)


def _as_number(key: str, value: Any) -> Decimal:
    if isinstance(value, bool) or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"{key} must be a number")
    try:
        number = to_decimal(value)
    except ValueError:
        raise ValidationError(f"{key} must be a number")
    if abs(number) > MAX_AMOUNT:
        raise ValidationError(f"{key} cannot exceed {MAX_AMOUNT:,}")
    return number


def _as_integer(key: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise ValidationError(f"{key} must be an integer")


def _coerce(column, value: Any) -> Any:
    coltype = column.type
    key = column.key

    # Numeric first: quantities and money arrive as JSON numbers or numeric strings
    if isinstance(coltype, Numeric):
        return _as_number(key, value)
    if isinstance(coltype, Integer):
        return _as_integer(key, value)
    if isinstance(coltype, Boolean):
        if not isinstance(value, bool):
            raise ValidationError(f"{key} must be true or false")
        return value
    if isinstance(coltype, String):
        text = str(value).strip()
        if coltype.length and len(text) > coltype.length:
            raise ValidationError(f"{key} exceeds max length {coltype.length}")
        return text
    return value


def validate_payload(*, model, payload: dict, policy: ModelValidationPolicy, partial: bool) -> dict:
    """
    Check a JSON body against the policy and the model's columns and return
    the cleaned values.

    Nulls on nullable (or defaulted) columns are dropped so the service
    default applies. partial=True skips the required check (PUT/PATCH).
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(k for k in policy.required_on_create if payload.get(k) is None)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    columns = {c.key: c for c in model.__mapper__.columns}
    cleaned: dict = {}

    for key, raw in payload.items():
        if key in policy.extra_fields:
            cleaned[key] = raw
            continue
        if key not in policy.writable_fields or key not in columns:
            raise ValidationError(f"Field not allowed: {key}")

        column = columns[key]
        if raw is None:
            if not column.nullable and column.default is None:
                raise ValidationError(f"{key} cannot be null")
            continue
        cleaned[key] = _coerce(column, raw)

    return cleaned


def enforce_rules_stock_movement(data: dict) -> None:
    # Manual postings are restricted to restocks and adjustments
    movement_type = data.get("type") or "reposicion"
    if movement_type not in ("reposicion", "ajuste"):
        raise ValidationError("type must be reposicion or ajuste")
    data["type"] = movement_type


def enforce_rules_cash_movement(data: dict) -> None:
    if data.get("type") not in ("ingreso", "egreso"):
        raise ValidationError("type must be ingreso or egreso")
