"""Error taxonomy and the stable client-facing messages.

Data-access code raises the ``*Error`` classes below; route handlers translate
business failures into HTTP responses with the helpers at the bottom of the
module. Anything that is not translated is turned into a generic 500 by the
exception handlers registered in ``app.main``.
"""

from __future__ import annotations

from typing import Dict, NoReturn

from fastapi import HTTPException, status


class DataError(Exception):
    """Base class for failures raised by the data-access layer."""


class RecordNotFoundError(DataError):
    pass


class EditConflictError(DataError):
    pass


class DuplicateKeyError(DataError):
    pass


class DatabaseError(DataError):
    """A genuine backend failure (connectivity, unexpected PostgREST error)."""


class DatabaseTimeoutError(DatabaseError):
    pass


class BadRequestError(Exception):
    """The request could not be parsed; ``str(exc)`` is shown to the client."""


class FailedValidationError(Exception):
    """Per-field validation failures, rendered as ``{"errors": {...}}`` with 422."""

    def __init__(self, errors: Dict[str, str]):
        super().__init__("failed validation")
        self.errors = dict(errors)


# ---------------------------------------------------------------------------
# Stable messages
# ---------------------------------------------------------------------------

SERVER_ERROR_MESSAGE = "the server encountered a problem and could not process your request"
NOT_FOUND_MESSAGE = "the requested resource could not be found"
EDIT_CONFLICT_MESSAGE = "unable to update the record due to an edit conflict, please try again"
RATE_LIMIT_MESSAGE = "rate limit exceeded"
INVALID_CREDENTIALS_MESSAGE = "invalid authentication credentials"
INVALID_TOKEN_MESSAGE = "invalid or missing authentication token"
AUTHENTICATION_REQUIRED_MESSAGE = "you must be authenticated to access this resource"
INACTIVE_ACCOUNT_MESSAGE = "your user account must be activated to access this resource"
NOT_PERMITTED_MESSAGE = "your user account doesn't have the necessary permissions to access this resource"


def method_not_allowed_message(method: str) -> str:
    return f"the {method} method is not supported for this resource"


# ---------------------------------------------------------------------------
# Rejections raised from handlers and gates
# ---------------------------------------------------------------------------

def not_found() -> NoReturn:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND_MESSAGE)


def edit_conflict() -> NoReturn:
    raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=EDIT_CONFLICT_MESSAGE)


def invalid_credentials() -> NoReturn:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=INVALID_CREDENTIALS_MESSAGE)


def invalid_authentication_token() -> NoReturn:
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=INVALID_TOKEN_MESSAGE,
        headers={"WWW-Authenticate": "Bearer"},
    )


def authentication_required() -> NoReturn:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=AUTHENTICATION_REQUIRED_MESSAGE)


def inactive_account() -> NoReturn:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=INACTIVE_ACCOUNT_MESSAGE)


def not_permitted() -> NoReturn:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=NOT_PERMITTED_MESSAGE)
