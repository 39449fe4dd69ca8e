"""Data access and validation for the ``users`` table."""

from __future__ import annotations

from datetime import datetime, timezone

from supabase import AsyncClient

from app.models import TokenScope, User
from app.utils.database import insert_data, query_one, update_data
from app.utils.errors import EditConflictError, RecordNotFoundError
from app.utils.security_utils import hash_token
from app.utils.validator import EMAIL_RX, Validator, matches

USERS_TABLE = "users"
TOKENS_TABLE = "tokens"


def validate_email(v: Validator, email: str) -> None:
    v.check(email != "", "email", "must be provided")
    v.check(matches(email, EMAIL_RX), "email", "must be a valid email address")


def validate_password_plaintext(v: Validator, password: str) -> None:
    size = len(password.encode())
    v.check(password != "", "password", "must be provided")
    v.check(size >= 8, "password", "must be at least 8 bytes long")
    v.check(size <= 72, "password", "must not be more than 72 bytes long")


def validate_user(v: Validator, name: str, email: str, password: str) -> None:
    v.check(name != "", "name", "must be provided")
    v.check(len(name.encode()) <= 500, "name", "must not be more than 500 bytes long")
    validate_email(v, email)
    validate_password_plaintext(v, password)


async def insert_user(supabase: AsyncClient, name: str, email: str, password_hash: str) -> User:
    """Insert a new, not yet activated user.

    A taken e-mail address surfaces as ``DuplicateKeyError`` from the unique
    constraint on ``users.email``.
    """
    rows = await insert_data(
        supabase,
        USERS_TABLE,
        {"name": name, "email": email, "password_hash": password_hash, "activated": False},
    )
    return User.model_validate(rows[0])


async def get_user_by_email(supabase: AsyncClient, email: str) -> User:
    row = await query_one(supabase, USERS_TABLE, match={"email": email})
    if row is None:
        raise RecordNotFoundError(f"user {email}")
    return User.model_validate(row)


async def update_user(supabase: AsyncClient, user: User) -> User:
    """Versioned write, same protocol as ``app.utils.movies.update_movie``."""
    rows = await update_data(
        supabase,
        USERS_TABLE,
        update_values={
            "name": user.name,
            "email": user.email,
            "password_hash": user.password_hash,
            "activated": user.activated,
            "version": user.version + 1,
        },
        filters={"id": user.id, "version": user.version},
    )
    if not rows:
        if await query_one(supabase, USERS_TABLE, match={"id": user.id}, select_fields="id") is None:
            raise RecordNotFoundError(f"user {user.id}")
        raise EditConflictError(f"user {user.id} is no longer at version {user.version}")
    return User.model_validate(rows[0])


async def get_user_for_token(supabase: AsyncClient, scope: TokenScope, plaintext: str) -> User:
    """Resolve the owner of an unexpired token with the given scope."""
    token_row = await query_one(
        supabase,
        TOKENS_TABLE,
        match={
            "hash": hash_token(plaintext),
            "scope": scope.value,
            "expiry": ("gt", datetime.now(timezone.utc).isoformat()),
        },
        select_fields="user_id",
    )
    if token_row is None:
        raise RecordNotFoundError("token")

    row = await query_one(supabase, USERS_TABLE, match={"id": token_row["user_id"]})
    if row is None:
        raise RecordNotFoundError("token owner")
    return User.model_validate(row)
