"""Common helper functions for the service layer.

This module provides reusable utilities for:
- UUID handling
- Query ordering and pagination
- Enum validation
"""

from __future__ import annotations

import uuid

from fieldflow.services.errors import InvalidRequest


def coerce_uuid(value, label: str = "id"):
    """Convert value to UUID, returning None if value is None.

    Raises:
        InvalidRequest: if value is not a valid UUID
    """
    if value is None:
        return None
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError as exc:
        raise InvalidRequest(f"Invalid {label}") from exc


def apply_ordering(query, order_by: str, order_dir: str, allowed_columns: dict):
    """Apply ordering to a query with validation.

    Args:
        query: SQLAlchemy query object
        order_by: Column name to order by
        order_dir: Direction ('asc' or 'desc')
        allowed_columns: Dict mapping column names to SQLAlchemy columns

    Raises:
        InvalidRequest: if order_by is not in allowed_columns
    """
    if order_by not in allowed_columns:
        raise InvalidRequest(
            f"Invalid order_by. Allowed: {', '.join(sorted(allowed_columns))}"
        )
    column = allowed_columns[order_by]
    if order_dir == "desc":
        return query.order_by(column.desc())
    return query.order_by(column.asc())


def apply_pagination(query, limit: int, offset: int):
    return query.limit(limit).offset(offset)


def validate_enum(value, enum_cls, label: str):
    """Validate and convert a value to an enum member.

    Accepts the member itself, its value, or its name in any case, so
    ``"ACTIVE"`` and ``"active"`` both resolve to ``CustomerStatus.active``.

    Raises:
        InvalidRequest: if value is not a valid enum member
    """
    if value is None:
        return None
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        pass
    if isinstance(value, str):
        lowered = value.strip().lower()
        for member in enum_cls:
            if member.name.lower() == lowered:
                return member
    raise InvalidRequest(f"Invalid {label}")


def list_response(items: list, limit: int, offset: int) -> dict:
    """Shape a page of results the way ``ListResponse`` serializes it."""
    return {"items": items, "count": len(items), "limit": limit, "offset": offset}
