"""Data access for the ``movies`` table.

Updates use optimistic concurrency: the write is conditioned on the version
the caller read, and the stored version is bumped by exactly one. A write
that matches no row lost a race with another writer (or with a delete) and is
reported instead of being retried.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Tuple

from supabase import AsyncClient

from app.models import Metadata, Movie
from app.utils.database import delete_data, insert_data, query_data, query_one, update_data
from app.utils.errors import EditConflictError, RecordNotFoundError
from app.utils.filters import Filters, calculate_metadata
from app.utils.validator import Validator, unique

MOVIES_TABLE = "movies"
MOVIE_SORT_SAFELIST = ["id", "title", "year", "runtime", "-id", "-title", "-year", "-runtime"]


def validate_movie(v: Validator, title: str, year: int, runtime: int, genres: list[str] | None) -> None:
    v.check(title != "", "title", "must be provided")
    v.check(len(title.encode()) <= 500, "title", "must not be more than 500 bytes long")

    v.check(year != 0, "year", "must be provided")
    v.check(year >= 1888, "year", "must be greater than 1888")
    v.check(year <= datetime.now().year, "year", "must not be in the future")

    v.check(runtime != 0, "runtime", "must be provided")
    v.check(runtime > 0, "runtime", "must be a positive integer")

    v.check(genres is not None, "genres", "must be provided")
    genres = genres or []
    v.check(len(genres) >= 1, "genres", "must contain at least 1 genre")
    v.check(len(genres) <= 5, "genres", "must not contain more than 5 genres")
    v.check(unique(genres), "genres", "must not contain duplicate values")


async def insert_movie(supabase: AsyncClient, title: str, year: int, runtime: int, genres: list[str]) -> Movie:
    rows = await insert_data(
        supabase,
        MOVIES_TABLE,
        {"title": title, "year": year, "runtime": runtime, "genres": genres},
    )
    return Movie.model_validate(rows[0])


async def get_movie(supabase: AsyncClient, movie_id: int) -> Movie:
    if movie_id < 1:
        raise RecordNotFoundError(f"movie {movie_id}")
    row = await query_one(supabase, MOVIES_TABLE, match={"id": movie_id})
    if row is None:
        raise RecordNotFoundError(f"movie {movie_id}")
    return Movie.model_validate(row)


async def update_movie(supabase: AsyncClient, movie: Movie) -> Movie:
    """Write ``movie`` if its version is still current; return the stored row.

    Raises ``EditConflictError`` when another writer got there first and
    ``RecordNotFoundError`` when the movie was deleted in the meantime.
    """
    rows = await update_data(
        supabase,
        MOVIES_TABLE,
        update_values={
            "title": movie.title,
            "year": movie.year,
            "runtime": movie.runtime,
            "genres": movie.genres,
            "version": movie.version + 1,
        },
        filters={"id": movie.id, "version": movie.version},
    )
    if not rows:
        # Zero rows: tell a concurrent delete apart from a version mismatch
        if await query_one(supabase, MOVIES_TABLE, match={"id": movie.id}, select_fields="id") is None:
            raise RecordNotFoundError(f"movie {movie.id}")
        raise EditConflictError(f"movie {movie.id} is no longer at version {movie.version}")
    return Movie.model_validate(rows[0])


async def delete_movie(supabase: AsyncClient, movie_id: int) -> None:
    if movie_id < 1:
        raise RecordNotFoundError(f"movie {movie_id}")
    rows = await delete_data(supabase, MOVIES_TABLE, filters={"id": movie_id})
    if len(rows) != 1:
        raise RecordNotFoundError(f"movie {movie_id}")


async def get_all_movies(
    supabase: AsyncClient,
    title: str,
    genres: list[str],
    filters: Filters,
) -> Tuple[List[Movie], Metadata]:
    """Filter by title words and genre containment, sorted with ``id`` as tiebreaker."""
    conditions: dict = {}
    if title:
        conditions["title"] = ("fts", title)
    if genres:
        conditions["genres"] = ("cs", genres)

    order_by = [(filters.sort_column(), filters.sort_descending())]
    if filters.sort_column() != "id":
        order_by.append(("id", False))

    resp = await query_data(
        supabase,
        MOVIES_TABLE,
        filters=conditions,
        order_by=order_by,
        limit=filters.limit(),
        offset=filters.offset(),
        count="exact",
    )
    movies = [Movie.model_validate(row) for row in getattr(resp, "data", None) or []]
    total = getattr(resp, "count", None) or 0
    return movies, calculate_metadata(total, filters.page, filters.page_size)
