"""Thin CRUD helpers over the Supabase (PostgREST) async client.

Every round-trip goes through :func:`_execute`, which bounds it with
``DB_TIMEOUT_SECONDS`` and converts driver failures into the
``app.utils.errors`` taxonomy so callers never see raw PostgREST errors.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional, Sequence, Union

from supabase import AsyncClient

from app.settings import DB_TIMEOUT_SECONDS
from app.utils.errors import DatabaseError, DatabaseTimeoutError, DuplicateKeyError
from .logger import logger

OrderBy = Union[tuple, Sequence[tuple], None]

# Postgres SQLSTATE for unique_violation
UNIQUE_VIOLATION = "23505"


def _is_duplicate(exc: Exception) -> bool:
    # supabase errors are badly structured; fall back to the message text
    return getattr(exc, "code", None) == UNIQUE_VIOLATION or "duplicate key" in str(exc).lower()


async def _execute(query, table_name: str):
    try:
        return await asyncio.wait_for(query.execute(), timeout=DB_TIMEOUT_SECONDS)
    except asyncio.TimeoutError as exc:
        logger.error("database.timeout", extra={"table": table_name, "timeout_s": DB_TIMEOUT_SECONDS})
        raise DatabaseTimeoutError(f"query on {table_name} exceeded {DB_TIMEOUT_SECONDS}s") from exc
    except Exception as exc:
        if _is_duplicate(exc):
            raise DuplicateKeyError(str(exc)) from exc
        raise DatabaseError(f"query on {table_name} failed: {exc}") from exc


def _apply_filters(query, filters: dict | None):
    """Apply a ``{column: value | (operator, value)}`` mapping to a query.

    Supported operators: 'eq', 'in', 'is', 'gt', 'lt', 'gte', 'lte', 'like',
    'ilike', 'neq', 'cs' (array contains) and 'fts' (plain full-text search,
    ``simple`` configuration).
    """
    for key, condition in (filters or {}).items():
        if not isinstance(condition, tuple):
            query = query.eq(key, condition)
            continue
        operator, value = condition
        if operator == "eq":
            query = query.eq(key, value)
        elif operator == "in":
            query = query.in_(key, value)
        elif operator == "is":
            query = query.is_(key, value)
        elif operator == "gt":
            query = query.gt(key, value)
        elif operator == "lt":
            query = query.lt(key, value)
        elif operator == "gte":
            query = query.gte(key, value)
        elif operator == "lte":
            query = query.lte(key, value)
        elif operator == "like":
            query = query.like(key, value)
        elif operator == "ilike":
            query = query.ilike(key, value)
        elif operator == "neq":
            query = query.neq(key, value)
        elif operator == "cs":
            query = query.contains(key, value)
        elif operator == "fts":
            # text_search() returns a terminal builder; filter() keeps the chain open
            query = query.filter(key, "plfts(simple)", value)
        else:
            raise ValueError(f"unsupported filter operator: {operator}")
    return query


async def insert_data(
    supabase: AsyncClient,
    table_name: str,
    data: dict | list[dict],
) -> list[dict]:
    """Insert one or many rows and return them as stored (db defaults filled in)."""
    response = await _execute(supabase.table(table_name).insert(data), table_name)
    return getattr(response, "data", None) or []


async def query_data(
    supabase: AsyncClient,
    table_name: str,
    filters: dict | None = None,
    order_by: OrderBy = None,
    select_fields: str = "*",
    limit: Optional[int] = None,
    offset: int = 0,
    count: Optional[str] = None,
):
    """
    Query a Supabase table with dynamic filters, ordering, pagination, and count.

    :param table_name: Name of the table to query.
    :param filters: Dictionary where keys are column names and values are filter conditions.
                     Use a tuple (operator, value) for non-equality filters.
    :param order_by: Tuple (column_name, desc) or a list of such tuples, applied in order.
    :param select_fields: Fields to select (default is "*").
    :param limit: Optional page size.
    :param offset: Rows to skip before the page starts (only used with ``limit``).
    :param count: Optional string to specify count method (e.g., 'exact').
    :return: Query result from Supabase (``.data`` rows, ``.count`` when requested).
    """
    query = supabase.table(table_name).select(select_fields, count=count)
    query = _apply_filters(query, filters)

    if order_by:
        orderings = [order_by] if isinstance(order_by[0], str) else order_by
        for column, desc in orderings:
            query = query.order(column, desc=desc)

    if limit:
        query = query.range(offset, offset + limit - 1)

    return await _execute(query, table_name)


async def update_data(
    supabase: AsyncClient,
    table_name: str,
    update_values: dict,
    filters: dict,
) -> list[dict]:
    """
    Updates records in a specified table based on provided filters.

    Returns the rows as they are after the update; an empty list means no row
    matched ``filters``, which is how conditional (versioned) writes detect a
    lost race.
    """
    query = _apply_filters(supabase.table(table_name).update(update_values), filters)
    response = await _execute(query, table_name)
    return getattr(response, "data", None) or []


async def delete_data(
    supabase: AsyncClient,
    table_name: str,
    filters: dict,
) -> list[dict]:
    """Delete the rows matching ``filters`` and return the removed rows."""
    query = _apply_filters(supabase.table(table_name).delete(), filters)
    response = await _execute(query, table_name)
    return getattr(response, "data", None) or []


async def query_one(
    supabase: AsyncClient,
    table_name: str,
    match: dict | None = None,
    order_by: OrderBy = None,
    select_fields: str = "*",
):
    """Return the first (or *None*) row that matches the filters."""
    resp = await query_data(
        supabase,
        table_name,
        filters=match or {},
        order_by=order_by,
        select_fields=select_fields,
        limit=1,
    )
    rows = getattr(resp, "data", None) or []
    return rows[0] if rows else None


async def query_many(
    supabase: AsyncClient,
    table_name: str,
    match: dict | None = None,
    order_by: OrderBy = None,
    select_fields: str = "*",
    limit: int | None = None,
) -> list[dict]:
    """Return a list of rows that match the filters (empty list if none)."""
    resp = await query_data(
        supabase,
        table_name,
        filters=match or {},
        order_by=order_by,
        select_fields=select_fields,
        limit=limit,
    )
    return getattr(resp, "data", None) or []
