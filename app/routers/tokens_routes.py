from __future__ import annotations

"""Stateful bearer token issuance under /v1/tokens.

Tokens are random 26-character strings; only their SHA-256 digest is stored.
"""

from fastapi import APIRouter, Depends, Request, status
from supabase import AsyncClient

from app.models import AuthenticationTokenEnvelope, AuthenticationTokenRequest, TokenScope
from app.utils.dependencies import get_supabase_async
from app.utils.errors import FailedValidationError, RecordNotFoundError, invalid_credentials
from app.utils.request import read_json
from app.utils.security_utils import password_matches
from app.utils.tokens import AUTHENTICATION_TTL, new_token
from app.utils.users import get_user_by_email, validate_email, validate_password_plaintext
from app.utils.validator import Validator

router = APIRouter(prefix="/v1/tokens", tags=["tokens"])


@router.post(
    "/authentication",
    response_model=AuthenticationTokenEnvelope,
    status_code=status.HTTP_201_CREATED,
)
async def create_authentication_token(
    request: Request,
    supabase: AsyncClient = Depends(get_supabase_async),
):
    """Exchange e-mail and password for a 24 hour authentication token."""
    payload = await read_json(request, AuthenticationTokenRequest)

    v = Validator()
    validate_email(v, payload.email)
    validate_password_plaintext(v, payload.password)
    if not v.valid():
        raise FailedValidationError(v.errors)

    try:
        user = await get_user_by_email(supabase, payload.email)
    except RecordNotFoundError:
        invalid_credentials()

    if not await password_matches(payload.password, user.password_hash):
        invalid_credentials()

    token = await new_token(supabase, user.id, AUTHENTICATION_TTL, TokenScope.authentication)
    return AuthenticationTokenEnvelope(authentication_token=token)
