from __future__ import annotations

"""Process-level counters for operators, served at /debug/vars."""

import asyncio
import time
from typing import Any, Dict

from fastapi import APIRouter, Request

from app import VERSION

router = APIRouter(tags=["metrics"])


@router.get("/debug/vars")
async def debug_vars(request: Request) -> Dict[str, Any]:
    snapshot = request.app.state.metrics.snapshot()
    return {
        "version": VERSION,
        "tasks": len(asyncio.all_tasks()),
        "timestamp": int(time.time()),
        **snapshot,
    }
