"""Misc cross-cutting helpers."""

from __future__ import annotations

import os


def get_env_bool(name: str, default: bool = False) -> bool:
    return os.getenv(name, str(int(default))).lower() in {"1", "true", "yes"}


def read_csv(value: str | None, default: list[str] | None = None) -> list[str]:
    """Split a comma separated query value into a list.

    Empty items are dropped so ``?genres=drama,`` behaves like ``?genres=drama``.

    Examples:
        >>> read_csv("drama,comedy")
        ['drama', 'comedy']
        >>> read_csv(None, [])
        []
    """
    if not value:
        return list(default or [])
    return [part.strip() for part in value.split(",") if part.strip()]
