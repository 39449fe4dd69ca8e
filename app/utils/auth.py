"""Centralized authentication and authorization for the movie catalog API.

``authenticate`` runs once per request as an application-wide dependency and
resolves the bearer token (if any) into an :class:`AuthContext`. The gate
dependencies below build on it, each adding one requirement:

    authenticated -> activated -> permitted(code)

Routes declare the strongest gate they need::

    auth: AuthContext = Depends(require_permission(Permission.movies_write))

FastAPI caches dependency results per request, so chaining gates never
resolves the token twice.
"""

from __future__ import annotations

from fastapi import Depends, Request, Response
from supabase import AsyncClient

from app.models import ANONYMOUS_USER, AuthContext, Permission, TokenScope
from app.utils.dependencies import get_supabase_async
from app.utils.errors import (
    RecordNotFoundError,
    authentication_required,
    inactive_account,
    invalid_authentication_token,
    not_permitted,
)
from app.utils.permissions import get_all_for_user
from app.utils.security_utils import is_well_formed_token
from app.utils.users import get_user_for_token

_AUTH_STATE_KEY = "auth"


def _bearer_token(authorization: str) -> str:
    """Extract the token from ``Bearer <token>``; reject anything else."""
    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer":
        invalid_authentication_token()
    token = parts[1]
    if not is_well_formed_token(token):
        invalid_authentication_token()
    return token


async def authenticate(
    request: Request,
    response: Response,
    supabase: AsyncClient = Depends(get_supabase_async),
) -> AuthContext:
    response.headers.append("Vary", "Authorization")

    authorization = request.headers.get("Authorization")
    if not authorization:
        context = AuthContext(user=ANONYMOUS_USER)
    else:
        token = _bearer_token(authorization)
        try:
            user = await get_user_for_token(supabase, TokenScope.authentication, token)
        except RecordNotFoundError:
            invalid_authentication_token()
        context = AuthContext(user=user)

    setattr(request.state, _AUTH_STATE_KEY, context)
    return context


def get_auth_context(request: Request) -> AuthContext:
    """Typed accessor for the context stored by :func:`authenticate`."""
    context = getattr(request.state, _AUTH_STATE_KEY, None)
    if not isinstance(context, AuthContext):
        raise RuntimeError("authenticate has not run for this request")
    return context


async def require_authenticated_user(auth: AuthContext = Depends(authenticate)) -> AuthContext:
    if not auth.is_authenticated():
        authentication_required()
    return auth


async def require_activated_user(auth: AuthContext = Depends(require_authenticated_user)) -> AuthContext:
    if not auth.is_activated():
        inactive_account()
    return auth


def require_permission(code: Permission | str):
    """Dependency factory: the activated user must hold permission ``code``.

    Permissions are read fresh on every request.
    """
    wanted = code.value if isinstance(code, Permission) else code

    async def _permission_dependency(
        auth: AuthContext = Depends(require_activated_user),
        supabase: AsyncClient = Depends(get_supabase_async),
    ) -> AuthContext:
        granted = await get_all_for_user(supabase, auth.user.id)
        if wanted not in granted:
            not_permitted()
        return auth

    return _permission_dependency
