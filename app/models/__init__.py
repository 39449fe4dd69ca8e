from __future__ import annotations

"""Unified models namespace – contains both API (request/response) and DB models.

All FastAPI route models, enums and helpers live directly in this package so
call-sites can simply::

    from app.models import AuthContext, Movie, MovieEnvelope
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, SerializerFunctionWrapHandler, model_serializer

from app.models.db import Movie, Token, User
from app.models.runtime import RuntimeInput
from app.models.scopes import DEFAULT_PERMISSIONS, Permission, TokenScope

__all__ = [
    "ANONYMOUS_USER",
    "AnonymousUser",
    "AuthContext",
    "ActivateUserRequest",
    "AuthenticationTokenEnvelope",
    "AuthenticationTokenRequest",
    "DEFAULT_PERMISSIONS",
    "HealthcheckResponse",
    "MessageResponse",
    "Metadata",
    "Movie",
    "MovieCreateRequest",
    "MovieEnvelope",
    "MoviesEnvelope",
    "MovieUpdateRequest",
    "Permission",
    "Token",
    "TokenScope",
    "User",
    "UserEnvelope",
    "UserRegisterRequest",
]

# ---------------------------------------------------------------------------
# Authentication Models
# ---------------------------------------------------------------------------


class AnonymousUser:
    """Principal of a request that carried no ``Authorization`` header."""

    id = None
    activated = False

    def is_anonymous(self) -> bool:
        return True

    def __repr__(self) -> str:
        return "AnonymousUser()"


ANONYMOUS_USER = AnonymousUser()


@dataclass
class AuthContext:
    """Authentication context resolved once per request.

    Produced by ``app.utils.auth.authenticate`` and handed to the gate
    dependencies and route handlers, which read the principal from here
    instead of re-resolving the bearer token.
    """
    user: Union[User, AnonymousUser]

    def is_authenticated(self) -> bool:
        return not self.user.is_anonymous()

    def is_activated(self) -> bool:
        return self.is_authenticated() and bool(self.user.activated)

# ---------------------------------------------------------------------------
# Request bodies – strict typing, unknown keys rejected
# ---------------------------------------------------------------------------


class RequestModel(BaseModel):
    model_config = ConfigDict(extra="forbid", strict=True)


class MovieCreateRequest(RequestModel):
    title: str = ""
    year: int = 0
    runtime: RuntimeInput = 0
    genres: Optional[List[str]] = None


class MovieUpdateRequest(RequestModel):
    """Partial update; ``None`` (absent or JSON null) leaves the field unchanged."""

    title: Optional[str] = None
    year: Optional[int] = None
    runtime: Optional[RuntimeInput] = None
    genres: Optional[List[str]] = None


class UserRegisterRequest(RequestModel):
    name: str = ""
    email: str = ""
    password: str = ""


class ActivateUserRequest(RequestModel):
    token: str = ""


class AuthenticationTokenRequest(RequestModel):
    email: str = ""
    password: str = ""

# ---------------------------------------------------------------------------
# Response envelopes
# ---------------------------------------------------------------------------


class MessageResponse(BaseModel):
    message: str = Field(..., examples=["OK"])


class HealthcheckResponse(BaseModel):
    status: str
    system_info: Dict[str, str]


class Metadata(BaseModel):
    """Pagination details; every field is zero (rendered ``{}``) for an empty result."""

    current_page: int = 0
    page_size: int = 0
    first_page: int = 0
    last_page: int = 0
    total_records: int = 0

    @model_serializer(mode="wrap")
    def _empty_as_object(self, handler: SerializerFunctionWrapHandler) -> Dict[str, int]:
        if self.total_records == 0:
            return {}
        return handler(self)


class MovieEnvelope(BaseModel):
    movie: Movie


class MoviesEnvelope(BaseModel):
    movies: List[Movie]
    metadata: Metadata


class UserEnvelope(BaseModel):
    user: User


class AuthenticationTokenEnvelope(BaseModel):
    authentication_token: Token
