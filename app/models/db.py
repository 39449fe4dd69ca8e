from __future__ import annotations

"""Persistence row models for the ``movies``, ``users`` and ``tokens`` tables."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, SerializerFunctionWrapHandler, model_serializer

from app.models.runtime import Runtime
from app.models.scopes import TokenScope

__all__ = [
    "Movie",
    "Token",
    "User",
]


class Movie(BaseModel):
    """Row in `movies`. ``version`` starts at 1 and grows by one per update."""

    id: int = Field(..., description="Bigserial primary key (db-generated)")
    created_at: Optional[datetime] = Field(None, exclude=True)
    title: str
    year: int = 0
    runtime: Runtime = 0
    genres: List[str] = Field(default_factory=list)
    version: int = Field(..., description="Optimistic-lock counter")

    @model_serializer(mode="wrap")
    def _omit_empty(self, handler: SerializerFunctionWrapHandler) -> dict:
        data = handler(self)
        for key in ("year", "runtime", "genres"):
            if not getattr(self, key):
                data.pop(key, None)
        return data


class User(BaseModel):
    """Row in `users`."""

    id: int
    created_at: Optional[datetime] = None
    name: str
    email: str
    password_hash: str = Field("", exclude=True, description="bcrypt hash")
    activated: bool = False
    version: int = Field(1, exclude=True)

    def is_anonymous(self) -> bool:
        return False


class Token(BaseModel):
    """Row in `tokens` plus the plaintext, which only exists at creation time."""

    model_config = ConfigDict(populate_by_name=True)

    plaintext: str = Field(..., alias="token")
    hash: str = Field("", exclude=True, description="SHA-256 hex digest of the plaintext")
    user_id: int = Field(0, exclude=True)
    expiry: datetime
    scope: TokenScope = Field(TokenScope.authentication, exclude=True)
