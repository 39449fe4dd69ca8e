"""Permission lookups through the ``users_permissions`` join table."""

from __future__ import annotations

from typing import Iterable, Set

from supabase import AsyncClient

from app.models import Permission
from app.utils.database import insert_data, query_many

PERMISSIONS_TABLE = "permissions"
USERS_PERMISSIONS_TABLE = "users_permissions"


async def get_all_for_user(supabase: AsyncClient, user_id: int) -> Set[str]:
    """Return the permission codes granted to ``user_id``.

    Never cached: a revoked permission takes effect on the very next request.
    """
    links = await query_many(
        supabase,
        USERS_PERMISSIONS_TABLE,
        match={"user_id": user_id},
        select_fields="permission_id",
    )
    if not links:
        return set()
    rows = await query_many(
        supabase,
        PERMISSIONS_TABLE,
        match={"id": ("in", [link["permission_id"] for link in links])},
        select_fields="code",
    )
    return {row["code"] for row in rows}


async def add_for_user(supabase: AsyncClient, user_id: int, codes: Iterable[Permission | str]) -> None:
    wanted = [c.value if isinstance(c, Permission) else c for c in codes]
    rows = await query_many(
        supabase,
        PERMISSIONS_TABLE,
        match={"code": ("in", wanted)},
        select_fields="id",
    )
    if rows:
        await insert_data(
            supabase,
            USERS_PERMISSIONS_TABLE,
            [{"user_id": user_id, "permission_id": row["id"]} for row in rows],
        )
