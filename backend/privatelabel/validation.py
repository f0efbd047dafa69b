# Overview: Domain error taxonomy and request-payload validation helpers.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import Boolean, Date, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta


class DomainError(Exception):
    """
    Base class for expected business failures.

    Carries a human message, a details dict for the client, and the HTTP
    status the route layer should answer with.
    """
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": str(self), "details": self.details}


class ValidationError(DomainError):
    """400-level input problem."""
    status_code = 400


class NotFoundError(DomainError):
    """404: a referenced client/label/order/product id does not resolve."""
    status_code = 404


class ConflictError(DomainError):
    """409-level business rule conflict (e.g., duplicate product name)."""
    status_code = 409


class StateConflictError(ConflictError):
    """409: the operation is not allowed in the entity's current lifecycle state."""


class PriceNotConfiguredError(DomainError):
    """422: no active registry entry prices the requested product type."""
    status_code = 422


class UpstreamServiceError(DomainError):
    """502: media store or mail transport failure."""
    status_code = 502


class InvalidStageError(ValidationError):
    pass


class InvalidStatusError(ValidationError):
    pass


class InvalidDiscountError(ValidationError):
    pass


class OwnershipMismatchError(ValidationError):
    pass


class LabelNotReadyError(StateConflictError):
    pass


class OrderLockedError(StateConflictError):
    pass


# =============================================================================
# Payload validation
# =============================================================================


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set
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

    # Booleans before Integer: bool is an int subclass
    if isinstance(coltype, Boolean):
        return parse_bool(value, col.key)

    if isinstance(coltype, Integer):
        return parse_int(value, col.key)

    # Currency columns arrive as JSON numbers or numeric strings
    if isinstance(coltype, Numeric):
        if isinstance(value, bool):
            raise ValidationError(f"{col.key} must be a number", {"field": col.key})
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise ValidationError(f"{col.key} must be a number", {"field": col.key})
        if not result.is_finite():
            raise ValidationError(f"{col.key} must be a number", {"field": col.key})
        return result

    if isinstance(coltype, Date):
        from .time_utils import parse_iso_date
        try:
            parsed = parse_iso_date(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{col.key} must be an ISO-8601 date", {"field": col.key})
        if parsed is None:
            raise ValidationError(f"{col.key} must be an ISO-8601 date", {"field": col.key})
        return parsed

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    # Default: leave as-is
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
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(
                f"Missing required fields: {', '.join(missing)}", {"fields": missing}
            )

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}", {"field": k})
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}", {"field": k})

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null", {"field": k})
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank", {"field": k})

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}", {"field": k})

        patch[k] = val

    return patch


def parse_int(value: Any, field: str) -> int:
    """Strict integer parsing: rejects floats, bools, decimals and scientific notation."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if stripped and "e" not in stripped.lower() and "." not in stripped:
            try:
                return int(stripped)
            except ValueError:
                pass
    raise ValidationError(f"{field} must be an integer", {"field": field})


def parse_bool(value: Any, field: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "1", "yes", "on"}:
            return True
        if lowered in {"false", "0", "no", "off"}:
            return False
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    raise ValidationError(f"{field} must be a boolean", {"field": field})


def require_text(payload: dict, field: str, *, max_length: int | None = None) -> str:
    """Required, trimmed, non-empty string field."""
    raw = payload.get(field)
    if raw is None or not isinstance(raw, str) or not raw.strip():
        raise ValidationError(f"{field} is required", {"field": field})
    value = raw.strip()
    if max_length and len(value) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}", {"field": field})
    return value


def optional_text(value: Any, field: str, *, max_length: int | None = None) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", {"field": field})
    value = value.strip()
    if max_length and len(value) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}", {"field": field})
    return value or None


def normalize_pagination(page: Any, limit: Any, *, default_limit: int, max_limit: int = 200) -> tuple[int, int]:
    """Clamp page/limit query parameters to sane positive values."""
    try:
        page = int(page) if page not in (None, "") else 1
    except (TypeError, ValueError):
        raise ValidationError("page must be an integer", {"field": "page"})
    try:
        limit = int(limit) if limit not in (None, "") else default_limit
    except (TypeError, ValueError):
        raise ValidationError("limit must be an integer", {"field": "limit"})
    page = max(page, 1)
    limit = min(max(limit, 1), max_limit)
    return page, limit
