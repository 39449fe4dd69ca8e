"""Request parsing helpers: JSON bodies, query strings and path ids.

Bodies are read by hand instead of through FastAPI's ``Body`` parameters so
every way a body can be wrong maps to its own stable 400 message.
"""

from __future__ import annotations

import json
from typing import Any, Mapping, Type, TypeVar

from fastapi import Request
from pydantic import BaseModel, ValidationError

from app.utils.errors import BadRequestError
from app.utils.validator import Validator

MAX_BODY_BYTES = 1_048_576

M = TypeVar("M", bound=BaseModel)

_WHITESPACE = " \t\n\r"


def _skip_whitespace(text: str, idx: int) -> int:
    while idx < len(text) and text[idx] in _WHITESPACE:
        idx += 1
    return idx


def _describe_validation_error(exc: ValidationError) -> str:
    errors = exc.errors()
    # Report unknown keys ahead of type problems
    errors.sort(key=lambda err: err["type"] != "extra_forbidden")
    err = errors[0]
    field = str(err["loc"][0]) if err["loc"] else ""
    if err["type"] == "extra_forbidden":
        return f'body contains unknown key "{field}"'
    if err["type"] == "value_error":
        return str(err.get("ctx", {}).get("error", err["msg"]))
    return f'body contains incorrect JSON type for field "{field}"'


async def read_body(request: Request, max_bytes: int = MAX_BODY_BYTES) -> bytes:
    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > max_bytes:
            raise BadRequestError(f"body must not be larger than {max_bytes} bytes")
    return bytes(body)


def decode_json(raw: bytes) -> Any:
    """Decode exactly one JSON value from ``raw``."""
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise BadRequestError(f"body contains badly-formed JSON (at character {exc.start + 1})") from None

    start = _skip_whitespace(text, 0)
    if start == len(text):
        raise BadRequestError("body must not be empty")

    try:
        value, end = json.JSONDecoder().raw_decode(text, start)
    except json.JSONDecodeError as exc:
        if exc.pos >= len(text.rstrip(_WHITESPACE)) or exc.msg.startswith("Unterminated string"):
            raise BadRequestError("body contains badly-formed JSON") from None
        raise BadRequestError(f"body contains badly-formed JSON (at character {exc.pos + 1})") from None

    if _skip_whitespace(text, end) != len(text):
        raise BadRequestError("body must only contain a single JSON value")
    if not isinstance(value, dict):
        raise BadRequestError(f"body contains incorrect JSON type (at character {end})")
    return value


async def read_json(request: Request, model: Type[M]) -> M:
    """Parse the request body into ``model``; raises ``BadRequestError``."""
    data = decode_json(await read_body(request))
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise BadRequestError(_describe_validation_error(exc)) from None


def read_string(qs: Mapping[str, str], key: str, default: str = "") -> str:
    return qs.get(key) or default


def read_int(qs: Mapping[str, str], key: str, default: int, v: Validator) -> int:
    raw = qs.get(key)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        v.add_error(key, "must be an integer value")
        return default


def parse_id(raw: str) -> int | None:
    """Path ids are positive integers; anything else is treated as not found."""
    if not raw.isdigit():
        return None
    value = int(raw)
    return value if value >= 1 else None
