import asyncio

import pytest
from postgrest import AsyncPostgrestClient

from app.utils.database import _apply_filters
from app.utils.errors import EditConflictError, RecordNotFoundError
from app.utils.movies import delete_movie, get_movie, insert_movie, update_movie
from tests.supabase_stub import SupabaseStub

PATH = "/v1/movies"

MOANA = {"title": "Moana", "year": 2016, "runtime": 107, "genres": ["animation", "adventure"]}
BLACK_PANTHER = {"title": "Black Panther", "year": 2018, "runtime": 134, "genres": ["action", "adventure"]}
DEADPOOL = {"title": "Deadpool", "year": 2016, "runtime": 108, "genres": ["action", "comedy"]}
BREAKFAST_CLUB = {"title": "The Breakfast Club", "year": 1985, "runtime": 96, "genres": ["drama"]}


# ---------------------------------------------------------------------------
# Create / show
# ---------------------------------------------------------------------------

def test_create_movie_returns_201_and_location(api_client, writer_headers):
    body = {"title": "Moana", "year": 2016, "runtime": "107 mins", "genres": ["animation", "adventure"]}
    resp = api_client.post(PATH, json=body, headers=writer_headers)

    assert resp.status_code == 201
    movie = resp.json()["movie"]
    assert movie == {
        "id": movie["id"],
        "title": "Moana",
        "year": 2016,
        "runtime": "107 mins",
        "genres": ["animation", "adventure"],
        "version": 1,
    }
    assert resp.headers["location"] == f"/v1/movies/{movie['id']}"


def test_create_movie_reports_every_invalid_field(api_client, writer_headers):
    resp = api_client.post(PATH, json={"title": "", "year": 1500, "genres": ["a", "a"]}, headers=writer_headers)

    assert resp.status_code == 422
    assert resp.json() == {
        "errors": {
            "title": "must be provided",
            "year": "must be greater than 1888",
            "runtime": "must be provided",
            "genres": "must not contain duplicate values",
        }
    }


def test_show_movie(api_client, reader_headers, seed_movies):
    (row,) = seed_movies(MOANA)
    resp = api_client.get(f"{PATH}/{row['id']}", headers=reader_headers)

    assert resp.status_code == 200
    assert resp.json()["movie"]["runtime"] == "107 mins"


@pytest.mark.parametrize("movie_id", ["999", "0", "-1", "abc"])
def test_show_missing_or_invalid_id_is_404(api_client, reader_headers, movie_id):
    resp = api_client.get(f"{PATH}/{movie_id}", headers=reader_headers)
    assert resp.status_code == 404
    assert resp.json() == {"error": "the requested resource could not be found"}


# ---------------------------------------------------------------------------
# Update
# ---------------------------------------------------------------------------

def test_patch_updates_given_fields_and_bumps_version(api_client, writer_headers, seed_movies):
    (row,) = seed_movies(MOANA)
    resp = api_client.patch(f"{PATH}/{row['id']}", json={"year": 2017}, headers=writer_headers)

    assert resp.status_code == 200
    movie = resp.json()["movie"]
    assert movie["year"] == 2017
    assert movie["title"] == "Moana"
    assert movie["version"] == 2


def test_patch_with_stale_expected_version_conflicts(api_client, writer_headers, seed_movies):
    (row,) = seed_movies(MOANA)
    headers = {**writer_headers, "X-Expected-Version": "7"}
    resp = api_client.patch(f"{PATH}/{row['id']}", json={"year": 2017}, headers=headers)

    assert resp.status_code == 409
    assert resp.json() == {"error": "unable to update the record due to an edit conflict, please try again"}


def test_patch_validates_merged_movie(api_client, writer_headers, seed_movies):
    (row,) = seed_movies(MOANA)
    resp = api_client.patch(f"{PATH}/{row['id']}", json={"genres": []}, headers=writer_headers)

    assert resp.status_code == 422
    assert resp.json()["errors"] == {"genres": "must contain at least 1 genre"}


def test_patch_rejects_bad_runtime(api_client, writer_headers, seed_movies):
    (row,) = seed_movies(MOANA)
    resp = api_client.patch(f"{PATH}/{row['id']}", json={"runtime": "107 minutes"}, headers=writer_headers)

    assert resp.status_code == 400
    assert resp.json() == {"error": "invalid runtime format"}


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------

def test_delete_movie(api_client, writer_headers, seed_movies):
    (row,) = seed_movies(MOANA)
    resp = api_client.delete(f"{PATH}/{row['id']}", headers=writer_headers)

    assert resp.status_code == 200
    assert resp.json() == {"message": "movie successfully deleted"}

    again = api_client.delete(f"{PATH}/{row['id']}", headers=writer_headers)
    assert again.status_code == 404


# ---------------------------------------------------------------------------
# List
# ---------------------------------------------------------------------------

def test_list_sort_descending_year_breaks_ties_by_id(api_client, reader_headers, seed_movies):
    rows = seed_movies(MOANA, BLACK_PANTHER, DEADPOOL, BREAKFAST_CLUB)
    resp = api_client.get(PATH, params={"sort": "-year"}, headers=reader_headers)

    assert resp.status_code == 200
    ids = [m["id"] for m in resp.json()["movies"]]
    moana, panther, deadpool, club = (r["id"] for r in rows)
    assert ids == [panther, moana, deadpool, club]


def test_list_filters_and_paginates(api_client, reader_headers, seed_movies):
    seed_movies(MOANA, BLACK_PANTHER, DEADPOOL, BREAKFAST_CLUB)
    resp = api_client.get(PATH, params={"genres": "adventure", "page_size": 1, "page": 2}, headers=reader_headers)

    body = resp.json()
    assert [m["title"] for m in body["movies"]] == ["Black Panther"]
    assert body["metadata"] == {
        "current_page": 2,
        "page_size": 1,
        "first_page": 1,
        "last_page": 2,
        "total_records": 2,
    }


def test_list_title_search_matches_words(api_client, reader_headers, seed_movies):
    seed_movies(MOANA, BREAKFAST_CLUB)
    resp = api_client.get(PATH, params={"title": "breakfast"}, headers=reader_headers)
    assert [m["title"] for m in resp.json()["movies"]] == ["The Breakfast Club"]


def test_list_without_matches_has_empty_metadata(api_client, reader_headers):
    resp = api_client.get(PATH, headers=reader_headers)
    assert resp.json() == {"movies": [], "metadata": {}}


def test_list_rejects_bad_query_values(api_client, reader_headers):
    resp = api_client.get(PATH, params={"page": "x", "page_size": "500", "sort": "rating"}, headers=reader_headers)

    assert resp.status_code == 422
    assert resp.json()["errors"] == {
        "page": "must be an integer value",
        "page_size": "must be a maximum of 100",
        "sort": "invalid sort value",
    }


# ---------------------------------------------------------------------------
# Data layer
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_insert_then_get_round_trips_with_version_one():
    supabase = SupabaseStub()
    created = await insert_movie(supabase, "Moana", 2016, 107, ["animation"])
    fetched = await get_movie(supabase, created.id)

    assert fetched == created
    assert fetched.version == 1


@pytest.mark.asyncio
async def test_concurrent_updates_from_same_version_conflict():
    supabase = SupabaseStub()
    created = await insert_movie(supabase, "Moana", 2016, 107, ["animation"])

    first, second = await asyncio.gather(get_movie(supabase, created.id), get_movie(supabase, created.id))
    saved = await update_movie(supabase, first.model_copy(update={"year": 2017}))
    assert saved.version == 2

    with pytest.raises(EditConflictError):
        await update_movie(supabase, second.model_copy(update={"year": 2018}))
    assert (await get_movie(supabase, created.id)).year == 2017


@pytest.mark.asyncio
async def test_update_of_deleted_movie_is_not_found():
    supabase = SupabaseStub()
    created = await insert_movie(supabase, "Moana", 2016, 107, ["animation"])
    await delete_movie(supabase, created.id)

    with pytest.raises(RecordNotFoundError):
        await update_movie(supabase, created)


@pytest.mark.asyncio
async def test_delete_missing_movie_is_not_found():
    with pytest.raises(RecordNotFoundError):
        await delete_movie(SupabaseStub(), 42)


# ---------------------------------------------------------------------------
# PostgREST query building
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_title_search_leaves_postgrest_query_chainable():
    async with AsyncPostgrestClient("http://postgrest.invalid") as client:
        query = client.from_("movies").select("*", count="exact")
        query = _apply_filters(query, {"title": ("fts", "breakfast club"), "genres": ("cs", ["drama"])})
        query = query.order("year", desc=True).order("id").range(0, 19)

    assert query.params.get("title") == "plfts(simple).breakfast club"
    assert query.params.get("genres").startswith("cs.")
    assert "order" in query.params
