from __future__ import annotations

"""Pytest fixtures for FastAPI integration tests.

Supabase is replaced by the in-memory ``SupabaseStub`` through
``app.dependency_overrides`` and SMTP delivery is captured in memory, so the
request pipeline runs end-to-end without network or database round-trips.
"""

import os
import sys
from datetime import datetime, timedelta, timezone
from email.message import EmailMessage
from pathlib import Path
from typing import Any, Dict, Iterable, List

import bcrypt
import pytest
from fastapi import FastAPI
from starlette.testclient import TestClient

# ---------------------------------------------------------------------------
# Runtime env for the application
# ---------------------------------------------------------------------------

os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test_key")
os.environ.setdefault("FRONTEND_ORIGIN", "https://frontend.test")
os.environ["LIMITER_ENABLED"] = "false"
os.environ["BCRYPT_ROUNDS"] = "4"

# Ensure project root on PYTHONPATH so `import app` works when pytest is run
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.main import create_app  # noqa: E402
from app.models import TokenScope  # noqa: E402
from app.utils.dependencies import get_supabase_async  # noqa: E402
from app.utils.mailer import Mailer  # noqa: E402
from app.utils.rate_limit import ClientRateLimiter  # noqa: E402
from app.utils.security_utils import generate_token  # noqa: E402
from tests.supabase_stub import SupabaseStub  # noqa: E402

PASSWORD = "pa55word1234"


class RecordingMailer(Mailer):
    """Real rendering, no SMTP: delivered messages land in ``outbox``."""

    def __init__(self) -> None:
        super().__init__("localhost", 25, "", "", "Movie Catalog <no-reply@test>", retry_delay=0)
        self.outbox: List[EmailMessage] = []

    def _deliver(self, msg: EmailMessage) -> None:
        self.outbox.append(msg)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def supabase() -> SupabaseStub:
    return SupabaseStub()


@pytest.fixture()
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture()
def app(supabase, mailer) -> FastAPI:
    application = create_app(
        rate_limiter=ClientRateLimiter(2, 4, enabled=False),
        mailer=mailer,
    )

    async def _stub():
        yield supabase

    application.dependency_overrides[get_supabase_async] = _stub
    return application


@pytest.fixture()
def api_client(app) -> TestClient:
    with TestClient(app) as client:
        yield client


# ---------------------------------------------------------------------------
# Helpers: seed users and tokens straight into the stub tables
# ---------------------------------------------------------------------------

@pytest.fixture()
def make_user(supabase):
    def _make(
        email: str = "alice@example.com",
        *,
        name: str = "Alice",
        activated: bool = True,
        permissions: Iterable[str] = ("movie:read",),
        password: str = PASSWORD,
    ) -> Dict[str, Any]:
        user = {
            "id": supabase.next_id("users"),
            "created_at": datetime.now(timezone.utc).isoformat(),
            "name": name,
            "email": email,
            "password_hash": bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=4)).decode(),
            "activated": activated,
            "version": 1,
        }
        supabase.tables["users"].append(user)
        codes = {p["code"]: p["id"] for p in supabase.tables["permissions"]}
        for code in permissions:
            supabase.tables["users_permissions"].append({"user_id": user["id"], "permission_id": codes[code]})
        return user

    return _make


@pytest.fixture()
def issue_token(supabase):
    def _issue(
        user: Dict[str, Any],
        scope: TokenScope = TokenScope.authentication,
        ttl: timedelta = timedelta(hours=1),
    ) -> str:
        token = generate_token(user["id"], ttl, scope)
        supabase.tables["tokens"].append(
            {
                "hash": token.hash,
                "user_id": user["id"],
                "expiry": token.expiry.isoformat(),
                "scope": scope.value,
            }
        )
        return token.plaintext

    return _issue


@pytest.fixture()
def reader_headers(make_user, issue_token) -> Dict[str, str]:
    user = make_user("reader@example.com")
    return {"Authorization": f"Bearer {issue_token(user)}"}


@pytest.fixture()
def writer_headers(make_user, issue_token) -> Dict[str, str]:
    user = make_user("writer@example.com", permissions=("movie:read", "movie:write"))
    return {"Authorization": f"Bearer {issue_token(user)}"}


@pytest.fixture()
def seed_movies(supabase):
    def _seed(*movies: Dict[str, Any]) -> List[Dict[str, Any]]:
        rows = []
        for movie in movies:
            row = {
                "id": supabase.next_id("movies"),
                "created_at": datetime.now(timezone.utc).isoformat(),
                "version": 1,
                **movie,
            }
            supabase.tables["movies"].append(row)
            rows.append(row)
        return rows

    return _seed
