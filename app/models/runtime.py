from __future__ import annotations

"""Movie runtime: an integer number of minutes, ``"<n> mins"`` on the wire."""

from typing import Annotated, Any

from pydantic import BeforeValidator, PlainSerializer

INVALID_RUNTIME_FORMAT = "invalid runtime format"


def parse_runtime(value: Any) -> int:
    """Parse the client form ``"102 mins"``.

    Bare numbers are rejected: clients always send the quoted form.
    """
    if not isinstance(value, str):
        raise ValueError(INVALID_RUNTIME_FORMAT)
    parts = value.split(" ")
    if len(parts) != 2 or parts[1] != "mins":
        raise ValueError(INVALID_RUNTIME_FORMAT)
    try:
        return int(parts[0])
    except ValueError:
        raise ValueError(INVALID_RUNTIME_FORMAT) from None


def _coerce_stored_runtime(value: Any) -> Any:
    # Rows store plain integers; accept the wire form too so models round-trip
    if isinstance(value, str):
        return parse_runtime(value)
    return value


def _format_runtime(minutes: int) -> str:
    return f"{minutes} mins"


# Used on persisted movies
Runtime = Annotated[int, BeforeValidator(_coerce_stored_runtime), PlainSerializer(_format_runtime, return_type=str)]

# Used on request bodies
RuntimeInput = Annotated[int, BeforeValidator(parse_runtime)]
