"""Data access for the ``tokens`` table. Only hashes are ever stored."""

from __future__ import annotations

from datetime import timedelta

from supabase import AsyncClient

from app.models import Token, TokenScope
from app.utils.database import delete_data, insert_data
from app.utils.security_utils import generate_token

TOKENS_TABLE = "tokens"

ACTIVATION_TTL = timedelta(days=3)
AUTHENTICATION_TTL = timedelta(hours=24)


async def new_token(supabase: AsyncClient, user_id: int, ttl: timedelta, scope: TokenScope) -> Token:
    token = generate_token(user_id, ttl, scope)
    await insert_token(supabase, token)
    return token


async def insert_token(supabase: AsyncClient, token: Token) -> None:
    await insert_data(
        supabase,
        TOKENS_TABLE,
        {
            "hash": token.hash,
            "user_id": token.user_id,
            "expiry": token.expiry.isoformat(),
            "scope": token.scope.value,
        },
    )


async def delete_all_for_user(supabase: AsyncClient, scope: TokenScope, user_id: int) -> int:
    """Drop every token of ``scope`` owned by ``user_id``; returns how many went."""
    rows = await delete_data(supabase, TOKENS_TABLE, filters={"scope": scope.value, "user_id": user_id})
    return len(rows)
