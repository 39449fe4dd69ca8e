"""Entry-point for the movie catalog ASGI app.

This module constructs the FastAPI instance, wires global middleware and
exception handlers, registers all route groups, and exposes the ``app``
variable that uvicorn imports (``app.main:app``).

Request path, outermost first::

    error recovery -> request logging + metrics -> CORS -> rate limit
        -> authenticate -> route gates -> handler
"""

from __future__ import annotations

import os
import logging
from contextlib import asynccontextmanager
from contextvars import ContextVar
from time import perf_counter
from typing import Callable, Awaitable, Optional

from fastapi import Depends, FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from app import APP_ENV, VERSION
from app.models import HealthcheckResponse
from app.settings import (
    ALLOWED_ORIGINS,
    LIMITER_BURST,
    LIMITER_ENABLED,
    LIMITER_RPS,
    SHUTDOWN_GRACE_SECONDS,
    SMTP_HOST,
    SMTP_PASSWORD,
    SMTP_PORT,
    SMTP_SENDER,
    SMTP_USERNAME,
)
from app.utils.auth import authenticate
from app.utils.background import BackgroundRunner
from app.utils.dependencies import close_supabase_client
from app.utils.errors import (
    NOT_FOUND_MESSAGE,
    SERVER_ERROR_MESSAGE,
    BadRequestError,
    DatabaseError,
    FailedValidationError,
    method_not_allowed_message,
)
from app.utils.logger import configure_logging, logger
from app.utils.mailer import Mailer
from app.utils.metrics import RequestMetrics
from app.utils.rate_limit import ClientRateLimiter, RateLimitMiddleware


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Attach a request id, log every request and feed the metrics counters."""

    _request_id_ctx: ContextVar[str] = ContextVar("request_id", default="-")

    def __init__(self, app, metrics: RequestMetrics):
        super().__init__(app)
        self.metrics = metrics

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:  # type: ignore[override]
        start = perf_counter()
        request_id = request.headers.get("X-Request-Id", os.urandom(4).hex())
        token = self._request_id_ctx.set(request_id)
        self.metrics.request_started()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
        finally:
            duration = perf_counter() - start
            self.metrics.response_sent(status_code, int(duration * 1_000_000))
            logger.info(
                "request.complete",
                extra={
                    "path": request.url.path,
                    "method": request.method,
                    "status_code": status_code,
                    "duration_ms": round(duration * 1000, 2),
                    "request_id": request_id,
                },
            )
            self._request_id_ctx.reset(token)
        return response


def _error(status_code: int, message: str, headers: Optional[dict] = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


def _install_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        message = exc.detail
        # Router-generated 404/405 carry Starlette's default phrases
        if exc.status_code == 404 and message == "Not Found":
            message = NOT_FOUND_MESSAGE
        elif exc.status_code == 405 and message == "Method Not Allowed":
            message = method_not_allowed_message(request.method)
        return _error(exc.status_code, message, getattr(exc, "headers", None))

    @app.exception_handler(BadRequestError)
    async def bad_request(request: Request, exc: BadRequestError):
        return _error(400, str(exc))

    @app.exception_handler(FailedValidationError)
    async def failed_validation(request: Request, exc: FailedValidationError):
        return JSONResponse(status_code=422, content={"errors": exc.errors})

    @app.exception_handler(RequestValidationError)
    async def request_validation(request: Request, exc: RequestValidationError):
        errors = {str(err["loc"][-1]): err["msg"] for err in exc.errors()}
        return JSONResponse(status_code=422, content={"errors": errors})

    @app.exception_handler(DatabaseError)
    async def database_error(request: Request, exc: DatabaseError):
        logger.error(
            "database.error",
            exc_info=exc,
            extra={"method": request.method, "uri": str(request.url)},
        )
        return _error(500, SERVER_ERROR_MESSAGE)

    # Anything else reaches Starlette's outermost error middleware
    @app.exception_handler(Exception)
    async def unhandled_exception(request: Request, exc: Exception):
        logging.getLogger("uvicorn.error").error(
            "UNHANDLED %s at %s %s",
            type(exc).__name__,
            request.method,
            request.url.path,
            exc_info=exc,
        )
        return _error(500, SERVER_ERROR_MESSAGE, headers={"Connection": "close"})


def create_app(
    *,
    rate_limiter: ClientRateLimiter | None = None,
    mailer: Mailer | None = None,
    background: BackgroundRunner | None = None,
) -> FastAPI:
    """Build the application.

    Collaborators default to instances configured from the environment;
    tests pass their own.
    """
    configure_logging()

    if rate_limiter is None:
        rate_limiter = ClientRateLimiter(LIMITER_RPS, LIMITER_BURST, enabled=LIMITER_ENABLED)
    if mailer is None:
        mailer = Mailer(SMTP_HOST, SMTP_PORT, SMTP_USERNAME, SMTP_PASSWORD, SMTP_SENDER)
    if background is None:
        background = BackgroundRunner()
    metrics = RequestMetrics()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        rate_limiter.start_eviction()
        logger.info("starting server", extra={"env": APP_ENV, "version": VERSION})
        try:
            yield
        finally:
            logger.info("shutting down server")
            await rate_limiter.stop_eviction()
            await background.drain(SHUTDOWN_GRACE_SECONDS)
            await close_supabase_client()
            logger.info("stopped server")

    app = FastAPI(
        title="Movie Catalog API",
        version=VERSION,
        docs_url="/docs" if APP_ENV != "production" else None,
        redoc_url=None,
        openapi_url="/openapi.json" if APP_ENV != "production" else None,
        dependencies=[Depends(authenticate)],
        lifespan=lifespan,
    )
    app.state.rate_limiter = rate_limiter
    app.state.mailer = mailer
    app.state.background = background
    app.state.metrics = metrics

    # Added innermost first
    app.add_middleware(RateLimitMiddleware, limiter=rate_limiter)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Expected-Version"],
        max_age=600,
    )
    app.add_middleware(RequestContextMiddleware, metrics=metrics)

    _install_exception_handlers(app)

    @app.get("/v1/healthcheck", response_model=HealthcheckResponse, tags=["health"])
    async def healthcheck() -> HealthcheckResponse:  # pylint: disable=unused-variable
        return HealthcheckResponse(
            status="available",
            system_info={"environment": APP_ENV, "version": VERSION},
        )

    from app.routers import metrics_routes, movies_routes, tokens_routes, users_routes

    app.include_router(movies_routes.router)
    app.include_router(users_routes.router)
    app.include_router(tokens_routes.router)
    app.include_router(metrics_routes.router)

    return app


# The object uvicorn imports
app = create_app()
