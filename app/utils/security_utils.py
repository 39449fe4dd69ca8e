"""Token and password hashing helpers."""

from __future__ import annotations

import asyncio
import base64
import re
import secrets
from datetime import datetime, timedelta, timezone
from hashlib import sha256

import bcrypt

from app.models import Token, TokenScope
from app.settings import BCRYPT_ROUNDS
from app.utils.validator import Validator

TOKEN_LENGTH = 26
_TOKEN_RX = re.compile(r"^[A-Z2-7]{26}$")


def hash_token(plaintext: str) -> str:
    """Return the SHA-256 hex digest stored in ``tokens.hash``."""
    return sha256(plaintext.encode()).hexdigest()


def generate_token(user_id: int, ttl: timedelta, scope: TokenScope) -> Token:
    """Create a token for ``user_id``: 16 random bytes as unpadded base32 (26 chars)."""
    plaintext = base64.b32encode(secrets.token_bytes(16)).decode().rstrip("=")
    return Token(
        plaintext=plaintext,
        hash=hash_token(plaintext),
        user_id=user_id,
        expiry=datetime.now(timezone.utc) + ttl,
        scope=scope,
    )


def is_well_formed_token(plaintext: str) -> bool:
    """Cheap syntactic check run before any database lookup."""
    return bool(_TOKEN_RX.match(plaintext))


def validate_token_plaintext(v: Validator, plaintext: str) -> None:
    v.check(plaintext != "", "token", "must be provided")
    v.check(len(plaintext.encode()) == TOKEN_LENGTH, "token", f"must be {TOKEN_LENGTH} bytes long")


# ---------------------------------------------------------------------------
# Passwords (bcrypt work is CPU bound – keep it off the event loop)
# ---------------------------------------------------------------------------

async def hash_password(plaintext: str) -> str:
    digest = await asyncio.to_thread(
        bcrypt.hashpw, plaintext.encode(), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    )
    return digest.decode()


async def password_matches(plaintext: str, password_hash: str) -> bool:
    return await asyncio.to_thread(bcrypt.checkpw, plaintext.encode(), password_hash.encode())
