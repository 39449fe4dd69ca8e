from __future__ import annotations

"""Cron job: delete activation and authentication tokens past their expiry.

   Expired tokens are already ignored by every lookup, so this only keeps the
   ``tokens`` table small. The job is idempotent and safe to run as often as
   you like::

       python -m app.cron.token_sweeper            # delete
       python -m app.cron.token_sweeper --dry-run  # count only

   It exits with status-code 0 on success.
"""

import argparse
import asyncio
from datetime import datetime, timezone

from supabase import AsyncClient

from app.utils.database import delete_data, query_data
from app.utils.dependencies import close_supabase_client, get_supabase_async
from app.utils.logger import configure_logging, logger
from app.utils.tokens import TOKENS_TABLE


async def sweep_expired_tokens(supabase: AsyncClient, *, dry_run: bool = False) -> int:
    """Remove tokens whose expiry is not in the future; returns how many."""
    expired = {"expiry": ("lte", datetime.now(timezone.utc).isoformat())}
    if dry_run:
        resp = await query_data(supabase, TOKENS_TABLE, filters=expired, select_fields="hash", count="exact")
        return getattr(resp, "count", None) or 0
    rows = await delete_data(supabase, TOKENS_TABLE, filters=expired)
    return len(rows)


async def _run(dry_run: bool) -> None:
    try:
        async for supabase in get_supabase_async():
            swept = await sweep_expired_tokens(supabase, dry_run=dry_run)
            logger.info("token_sweeper.done", extra={"tokens": swept, "dry_run": dry_run})
    finally:
        await close_supabase_client()


def main() -> None:
    parser = argparse.ArgumentParser(description="Delete expired tokens")
    parser.add_argument("--dry-run", action="store_true", help="only count expired tokens")
    args = parser.parse_args()
    configure_logging()
    asyncio.run(_run(args.dry_run))


if __name__ == "__main__":
    main()
