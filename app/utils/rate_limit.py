"""Per-client token bucket rate limiting.

:class:`ClientRateLimiter` keeps one bucket per client key (the caller's IP)
in a table guarded by a single lock. Buckets start full, refill continuously
at ``rps`` tokens per second up to ``burst`` and each admitted request takes
one token. Clients idle for longer than ``idle_timeout`` are dropped by a
periodic sweep so the table cannot grow without bound.

The limiter is a plain object handed to ``create_app``; tests build their own
instances with a fake clock. Clients are keyed on the socket peer address;
behind a reverse proxy uvicorn rewrites that address from the forwarding
headers of trusted proxies only (``FORWARDED_ALLOW_IPS``).
"""

from __future__ import annotations

import asyncio
import threading
import time
from dataclasses import dataclass
from typing import Callable, Awaitable, Dict, Optional

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware

from app.utils.errors import RATE_LIMIT_MESSAGE
from app.utils.logger import logger

EVICTION_INTERVAL_SECONDS = 60.0
IDLE_TIMEOUT_SECONDS = 180.0


@dataclass
class TokenBucket:
    capacity: float
    refill_rate: float
    tokens: float
    last_refill: float

    def refill(self, now: float) -> None:
        elapsed = max(0.0, now - self.last_refill)
        self.tokens = min(self.capacity, self.tokens + elapsed * self.refill_rate)
        self.last_refill = max(self.last_refill, now)

    def try_consume(self) -> bool:
        if self.tokens >= 1:
            self.tokens -= 1
            return True
        return False


@dataclass
class ClientEntry:
    bucket: TokenBucket
    last_seen: float


class ClientRateLimiter:
    """Token bucket per client key with idle eviction."""

    def __init__(
        self,
        rps: float,
        burst: int,
        *,
        enabled: bool = True,
        idle_timeout: float = IDLE_TIMEOUT_SECONDS,
        eviction_interval: float = EVICTION_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        if enabled and (rps <= 0 or burst < 1):
            raise ValueError("rate limiter needs rps > 0 and burst >= 1")
        self.rps = rps
        self.burst = burst
        self.enabled = enabled
        self.idle_timeout = idle_timeout
        self.eviction_interval = eviction_interval
        self._clock = clock
        self._clients: Dict[str, ClientEntry] = {}
        self._lock = threading.Lock()
        self._eviction_task: Optional[asyncio.Task] = None

    def admit(self, client_key: str) -> bool:
        """Take one token from ``client_key``'s bucket; False when it is empty."""
        if not self.enabled:
            return True

        with self._lock:
            now = self._clock()
            entry = self._clients.get(client_key)
            if entry is None:
                bucket = TokenBucket(capacity=self.burst, refill_rate=self.rps, tokens=self.burst, last_refill=now)
                entry = self._clients[client_key] = ClientEntry(bucket=bucket, last_seen=now)
            else:
                entry.bucket.refill(now)
            entry.last_seen = now
            return entry.bucket.try_consume()

    def evict_idle(self) -> int:
        """Drop clients not seen for more than ``idle_timeout``; returns the count."""
        with self._lock:
            now = self._clock()
            stale = [key for key, entry in self._clients.items() if now - entry.last_seen > self.idle_timeout]
            for key in stale:
                del self._clients[key]
        return len(stale)

    def tracked_clients(self) -> int:
        with self._lock:
            return len(self._clients)

    # -------------------------------------------------------------------
    # Background eviction lifecycle
    # -------------------------------------------------------------------

    async def _eviction_loop(self) -> None:
        while True:
            await asyncio.sleep(self.eviction_interval)
            evicted = self.evict_idle()
            if evicted:
                logger.info("rate_limiter.evicted", extra={"clients": evicted})

    def start_eviction(self) -> None:
        if not self.enabled or self._eviction_task is not None:
            return
        self._eviction_task = asyncio.create_task(self._eviction_loop(), name="rate-limiter-eviction")

    async def stop_eviction(self) -> None:
        task, self._eviction_task = self._eviction_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Reject over-quota clients with 429 before any other work is done."""

    def __init__(self, app, limiter: ClientRateLimiter):
        super().__init__(app)
        self.limiter = limiter

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:  # type: ignore[override]
        if not self.limiter.admit(get_remote_address(request)):
            return JSONResponse(status_code=status.HTTP_429_TOO_MANY_REQUESTS, content={"error": RATE_LIMIT_MESSAGE})
        return await call_next(request)
