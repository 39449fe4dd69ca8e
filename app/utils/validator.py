"""Field validation helpers shared by the movie, user and token rules."""

from __future__ import annotations

import re
from typing import Dict, Iterable

EMAIL_RX = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$"
)


class Validator:
    """Collects the first error message per field."""

    def __init__(self) -> None:
        self.errors: Dict[str, str] = {}

    def valid(self) -> bool:
        return not self.errors

    def add_error(self, key: str, message: str) -> None:
        self.errors.setdefault(key, message)

    def check(self, ok: bool, key: str, message: str) -> None:
        if not ok:
            self.add_error(key, message)


def permitted_value(value: str, *permitted: str) -> bool:
    return value in permitted


def matches(value: str, rx: re.Pattern[str]) -> bool:
    return rx.match(value) is not None


def unique(values: Iterable[str]) -> bool:
    values = list(values)
    return len(set(values)) == len(values)
