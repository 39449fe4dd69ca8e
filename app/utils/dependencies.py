"""FastAPI dependency providers for external clients and app-scoped services."""

from __future__ import annotations

import asyncio
from typing import AsyncGenerator

from fastapi import Request
from supabase import AsyncClient, acreate_client

from app import SUPABASE_KEY, SUPABASE_URL
from app.utils.background import BackgroundRunner
from app.utils.mailer import Mailer

_cached_client: AsyncClient | None = None
_cached_loop: asyncio.AbstractEventLoop | None = None


async def _get_cached_client() -> AsyncClient:
    """Return a cached Supabase async client tied to the current event loop.

    A client created on one loop cannot do I/O on another (its httpx pool is
    bound to the loop it was created on), so the cache is per-loop rather
    than per-process.
    """

    global _cached_client, _cached_loop

    current_loop = asyncio.get_running_loop()

    if (
        _cached_client is None
        or _cached_loop is None
        or _cached_loop is not current_loop
        or _cached_loop.is_closed()
    ):
        _cached_client = await acreate_client(SUPABASE_URL, SUPABASE_KEY)  # type: ignore[arg-type]
        _cached_loop = current_loop

    return _cached_client


async def get_supabase_async() -> AsyncGenerator[AsyncClient, None]:
    """FastAPI dependency yielding the shared async Supabase client.

    Tests replace it through ``app.dependency_overrides``.
    """
    client = await _get_cached_client()
    yield client


async def close_supabase_client() -> None:
    """Release the cached client's connection pool (called on shutdown)."""
    global _cached_client, _cached_loop

    client, _cached_client, _cached_loop = _cached_client, None, None
    if client is None:
        return
    await client.postgrest.aclose()


def get_mailer(request: Request) -> Mailer:
    return request.app.state.mailer


def get_background(request: Request) -> BackgroundRunner:
    return request.app.state.background
