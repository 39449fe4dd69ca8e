"""Fire-and-forget work tied to the application lifespan."""

from __future__ import annotations

import asyncio
import functools
from typing import Any, Callable, Set

from app.utils.logger import logger


class BackgroundRunner:
    """Run blocking callables off the request path and drain them on shutdown.

    Failures are logged, never propagated: by the time a job fails the HTTP
    response it belongs to has already been sent.
    """

    def __init__(self) -> None:
        self._tasks: Set[asyncio.Task] = set()

    def spawn(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> asyncio.Task:
        call = functools.partial(fn, *args, **kwargs)
        task = asyncio.create_task(self._run(call), name=getattr(fn, "__name__", "background"))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, call: functools.partial) -> None:
        try:
            await asyncio.to_thread(call)
        except Exception:
            logger.exception("background.failed", extra={"job": getattr(call.func, "__name__", repr(call.func))})

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self, timeout: float) -> None:
        """Wait up to ``timeout`` seconds for running jobs, then cancel the rest."""
        if not self._tasks:
            return
        logger.info("completing background tasks", extra={"pending": len(self._tasks)})
        done, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            logger.warning("background.abandoned", extra={"tasks": len(pending)})
