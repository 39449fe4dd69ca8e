from __future__ import annotations

"""Movie catalogue endpoints under /v1/movies.

Reads need ``movie:read``; writes need ``movie:write``. Both imply an
authenticated, activated user.
"""

from fastapi import APIRouter, Depends, Request, Response, status
from supabase import AsyncClient

from app.models import (
    MessageResponse,
    MovieCreateRequest,
    MovieEnvelope,
    MoviesEnvelope,
    MovieUpdateRequest,
    Permission,
)
from app.utils.auth import get_auth_context, require_permission
from app.utils.dependencies import get_supabase_async
from app.utils.errors import (
    EditConflictError,
    FailedValidationError,
    RecordNotFoundError,
    edit_conflict,
    not_found,
)
from app.utils.filters import Filters, validate_filters
from app.utils.logger import logger
from app.utils.movies import (
    MOVIE_SORT_SAFELIST,
    delete_movie,
    get_all_movies,
    get_movie,
    insert_movie,
    update_movie,
    validate_movie,
)
from app.utils.request import parse_id, read_int, read_json, read_string
from app.utils.utils import read_csv
from app.utils.validator import Validator

router = APIRouter(prefix="/v1/movies", tags=["movies"])

can_read = require_permission(Permission.movies_read)
can_write = require_permission(Permission.movies_write)


def _movie_id(raw: str) -> int:
    movie_id = parse_id(raw)
    if movie_id is None:
        not_found()
    return movie_id


@router.get("", response_model=MoviesEnvelope, dependencies=[Depends(can_read)])
async def list_movies(
    request: Request,
    supabase: AsyncClient = Depends(get_supabase_async),
):
    qs = request.query_params
    v = Validator()

    title = read_string(qs, "title")
    genres = read_csv(qs.get("genres"), [])
    filters = Filters(
        page=read_int(qs, "page", 1, v),
        page_size=read_int(qs, "page_size", 20, v),
        sort=read_string(qs, "sort", "id"),
        sort_safelist=MOVIE_SORT_SAFELIST,
    )
    validate_filters(v, filters)
    if not v.valid():
        raise FailedValidationError(v.errors)

    movies, metadata = await get_all_movies(supabase, title, genres, filters)
    return MoviesEnvelope(movies=movies, metadata=metadata)


@router.post(
    "",
    response_model=MovieEnvelope,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(can_write)],
)
async def create_movie(
    request: Request,
    response: Response,
    supabase: AsyncClient = Depends(get_supabase_async),
):
    payload = await read_json(request, MovieCreateRequest)

    v = Validator()
    validate_movie(v, payload.title, payload.year, payload.runtime, payload.genres)
    if not v.valid():
        raise FailedValidationError(v.errors)

    movie = await insert_movie(supabase, payload.title, payload.year, payload.runtime, payload.genres or [])
    logger.info("movie.created", extra={"movie_id": movie.id, "user_id": get_auth_context(request).user.id})
    response.headers["Location"] = f"/v1/movies/{movie.id}"
    return MovieEnvelope(movie=movie)


@router.get("/{movie_id}", response_model=MovieEnvelope, dependencies=[Depends(can_read)])
async def show_movie(
    movie_id: str,
    supabase: AsyncClient = Depends(get_supabase_async),
):
    try:
        movie = await get_movie(supabase, _movie_id(movie_id))
    except RecordNotFoundError:
        not_found()
    return MovieEnvelope(movie=movie)


@router.patch("/{movie_id}", response_model=MovieEnvelope, dependencies=[Depends(can_write)])
async def patch_movie(
    movie_id: str,
    request: Request,
    supabase: AsyncClient = Depends(get_supabase_async),
):
    """Partial update guarded by the row version.

    Clients may send ``X-Expected-Version`` to refuse the write up front if
    the movie changed since they last read it.
    """
    try:
        movie = await get_movie(supabase, _movie_id(movie_id))
    except RecordNotFoundError:
        not_found()

    expected = request.headers.get("X-Expected-Version")
    if expected and expected != str(movie.version):
        edit_conflict()

    payload = await read_json(request, MovieUpdateRequest)
    movie = movie.model_copy(update=payload.model_dump(exclude_none=True))

    v = Validator()
    validate_movie(v, movie.title, movie.year, movie.runtime, movie.genres)
    if not v.valid():
        raise FailedValidationError(v.errors)

    try:
        movie = await update_movie(supabase, movie)
    except EditConflictError:
        edit_conflict()
    except RecordNotFoundError:
        not_found()
    return MovieEnvelope(movie=movie)


@router.delete("/{movie_id}", response_model=MessageResponse, dependencies=[Depends(can_write)])
async def remove_movie(
    movie_id: str,
    supabase: AsyncClient = Depends(get_supabase_async),
):
    try:
        await delete_movie(supabase, _movie_id(movie_id))
    except RecordNotFoundError:
        not_found()
    return MessageResponse(message="movie successfully deleted")
