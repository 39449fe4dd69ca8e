from __future__ import annotations

"""Application-level configuration helpers (env → constants).

Only generic utilities that may be imported *anywhere* in the code-base
should live in this module.  Avoid importing heavy libraries to keep the
import cost near-zero.
"""

# Standard library
import os

from app.utils.utils import get_env_bool

__all__ = [
    "ALLOWED_ORIGINS",
    "BCRYPT_ROUNDS",
    "DB_TIMEOUT_SECONDS",
    "FORWARDED_ALLOW_IPS",
    "LIMITER_BURST",
    "LIMITER_ENABLED",
    "LIMITER_RPS",
    "PORT",
    "SHUTDOWN_GRACE_SECONDS",
    "SMTP_HOST",
    "SMTP_PASSWORD",
    "SMTP_PORT",
    "SMTP_SENDER",
    "SMTP_USERNAME",
]


def _collect_origins() -> list[str]:
    """Collect trusted CORS origins from the environment.

    ``CORS_TRUSTED_ORIGINS`` is a space separated list; ``FRONTEND_ORIGIN`` is
    appended when set. No origins means no cross-origin access at all.
    """
    origins: list[str] = os.getenv("CORS_TRUSTED_ORIGINS", "").split()
    if (val := os.getenv("FRONTEND_ORIGIN")) and val not in origins:
        origins.append(val)
    return origins


ALLOWED_ORIGINS: list[str] = _collect_origins()

PORT = int(os.getenv("PORT", "4000"))
SHUTDOWN_GRACE_SECONDS = float(os.getenv("SHUTDOWN_GRACE_SECONDS", "5"))

# Proxies whose X-Forwarded-For uvicorn trusts when resolving the client address
FORWARDED_ALLOW_IPS = os.getenv("FORWARDED_ALLOW_IPS", "127.0.0.1")

# Upper bound for every single database round-trip
DB_TIMEOUT_SECONDS = float(os.getenv("DB_TIMEOUT_SECONDS", "3"))

# Token bucket per client address
LIMITER_RPS = float(os.getenv("LIMITER_RPS", "2"))
LIMITER_BURST = int(os.getenv("LIMITER_BURST", "4"))
LIMITER_ENABLED = get_env_bool("LIMITER_ENABLED", True)

SMTP_HOST = os.getenv("SMTP_HOST", "localhost")
SMTP_PORT = int(os.getenv("SMTP_PORT", "25"))
SMTP_USERNAME = os.getenv("SMTP_USERNAME", "")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD", "")
SMTP_SENDER = os.getenv("SMTP_SENDER", "Movie Catalog <no-reply@example.com>")

BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))
