"""Reusable query-builder helpers for service-layer list filtering."""

from __future__ import annotations


def apply_optional_equals(query, filters: dict):
    """Apply equality filters when values are not None."""
    for column, value in filters.items():
        if value is not None:
            query = query.filter(column == value)
    return query


def apply_optional_ilike(query, filters: dict):
    """Apply case-insensitive contains filters when values are non-empty."""
    for column, value in filters.items():
        if value:
            query = query.filter(column.ilike(f"%{value.strip()}%"))
    return query


def apply_optional_range(query, column, start, end):
    """Apply an inclusive range filter; either bound may be omitted."""
    if start is not None:
        query = query.filter(column >= start)
    if end is not None:
        query = query.filter(column <= end)
    return query
