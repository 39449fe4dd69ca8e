from __future__ import annotations

"""User registration and activation under /v1/users."""

from fastapi import APIRouter, Depends, Request, status
from supabase import AsyncClient

from app.models import (
    DEFAULT_PERMISSIONS,
    ActivateUserRequest,
    TokenScope,
    UserEnvelope,
    UserRegisterRequest,
)
from app.utils.background import BackgroundRunner
from app.utils.dependencies import get_background, get_mailer, get_supabase_async
from app.utils.errors import (
    DuplicateKeyError,
    EditConflictError,
    FailedValidationError,
    RecordNotFoundError,
    edit_conflict,
    not_found,
)
from app.utils.mailer import Mailer
from app.utils.permissions import add_for_user
from app.utils.request import read_json
from app.utils.security_utils import hash_password, validate_token_plaintext
from app.utils.tokens import ACTIVATION_TTL, delete_all_for_user, new_token
from app.utils.users import get_user_for_token, insert_user, update_user, validate_user
from app.utils.validator import Validator

WELCOME_TEMPLATE = "user_welcome.html"

router = APIRouter(prefix="/v1/users", tags=["users"])


@router.post("", response_model=UserEnvelope, status_code=status.HTTP_201_CREATED)
async def register_user(
    request: Request,
    supabase: AsyncClient = Depends(get_supabase_async),
    mailer: Mailer = Depends(get_mailer),
    background: BackgroundRunner = Depends(get_background),
):
    """Create an inactive user and e-mail them an activation token.

    The welcome mail is sent in the background; the response does not wait
    for SMTP.
    """
    payload = await read_json(request, UserRegisterRequest)

    v = Validator()
    validate_user(v, payload.name, payload.email, payload.password)
    if not v.valid():
        raise FailedValidationError(v.errors)

    password_hash = await hash_password(payload.password)
    try:
        user = await insert_user(supabase, payload.name, payload.email, password_hash)
    except DuplicateKeyError:
        raise FailedValidationError({"email": "a user with this email address already exists"}) from None

    await add_for_user(supabase, user.id, DEFAULT_PERMISSIONS)
    token = await new_token(supabase, user.id, ACTIVATION_TTL, TokenScope.activation)

    background.spawn(
        mailer.send,
        user.email,
        WELCOME_TEMPLATE,
        {"activation_token": token.plaintext, "user_id": user.id},
    )
    return UserEnvelope(user=user)


@router.put("/activated", response_model=UserEnvelope)
async def activate_user(
    request: Request,
    supabase: AsyncClient = Depends(get_supabase_async),
):
    payload = await read_json(request, ActivateUserRequest)

    v = Validator()
    validate_token_plaintext(v, payload.token)
    if not v.valid():
        raise FailedValidationError(v.errors)

    try:
        user = await get_user_for_token(supabase, TokenScope.activation, payload.token)
    except RecordNotFoundError:
        raise FailedValidationError({"token": "invalid or expired activation token"}) from None

    try:
        user = await update_user(supabase, user.model_copy(update={"activated": True}))
    except EditConflictError:
        edit_conflict()
    except RecordNotFoundError:
        not_found()

    await delete_all_for_user(supabase, TokenScope.activation, user.id)
    return UserEnvelope(user=user)
