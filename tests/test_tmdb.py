"""
Tests for the TMDB adapter, against httpx.MockTransport (no network).
"""

from __future__ import annotations

import asyncio

import httpx
import pytest

from moviedna.config import Settings
from moviedna.errors import SourceTimeout, SourceUnavailable
from moviedna.models import CatalogFilter
from moviedna.sources import CatalogSource, StreamingSource
from moviedna.sources import tmdb
from moviedna.sources.tmdb import TMDBClient, build_discover_params, parse_offers


def _client(handler, retries: int = 2) -> TMDBClient:
    config = Settings(tmdb_api_read_token="test-token", tmdb_max_retries=retries)
    http = httpx.AsyncClient(
        transport=httpx.MockTransport(handler),
        base_url="https://api.test/3",
        headers=config.tmdb_headers,
    )
    return TMDBClient(config, client=http, backoff_base=0)


PROVIDERS = {
    "id": 550,
    "results": {
        "US": {
            "link": "https://example.test/550",
            "flatrate": [{"provider_name": "Netflix", "provider_id": 8, "display_priority": 1}],
            "rent": [{"provider_name": "Apple TV", "provider_id": 2, "display_priority": 4}],
            "buy": [{"provider_name": "Apple TV", "provider_id": 2, "display_priority": 4}],
        },
    },
}


class TestBuildDiscoverParams:

    def test_full_filter(self):
        params = build_discover_params(CatalogFilter(
            genre_ids=[28, 35],
            keyword_ids=[14819, 4344],
            min_year=1990,
            max_year=1999,
            min_vote_count=50,
            min_vote_average=7.0,
            max_popularity=40,
            origin_country="KR",
            sort_by="vote_average.desc",
            page=2,
        ))
        assert params["with_genres"] == "28,35"
        assert params["with_keywords"] == "14819|4344"
        assert params["primary_release_date.gte"] == "1990-01-01"
        assert params["primary_release_date.lte"] == "1999-12-31"
        assert params["vote_count.gte"] == 50
        assert params["vote_average.gte"] == 7.0
        assert params["popularity.lte"] == 40
        assert params["with_origin_country"] == "KR"
        assert params["sort_by"] == "vote_average.desc"
        assert params["page"] == 2
        assert params["include_adult"] is False

    def test_unset_fields_omitted(self):
        params = build_discover_params(CatalogFilter())
        assert set(params) == {"sort_by", "include_adult", "page"}


class TestParseOffers:

    def test_all_offer_types_surfaced(self):
        offers = parse_offers(PROVIDERS, "US")
        assert [o.type for o in offers] == ["flatrate", "rent", "buy"]
        assert offers[0].provider_name == "Netflix"
        assert all(o.country == "US" for o in offers)

    def test_unknown_country(self):
        assert parse_offers(PROVIDERS, "GB") == []

    def test_empty_payload(self):
        assert parse_offers({}, "US") == []


def test_client_satisfies_source_protocols():
    client = TMDBClient(Settings(tmdb_api_read_token="x"))
    assert isinstance(client, CatalogSource)
    assert isinstance(client, StreamingSource)


@pytest.mark.asyncio
async def test_discover_query():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(200, json={
            "results": [
                {"id": 1, "title": "Oldboy", "vote_average": 8.3, "vote_count": 8000,
                 "genre_ids": [18, 53], "release_date": "2003-11-21", "original_language": "ko"},
                {"title": "record without id"},
            ],
            "total_pages": 3,
        })

    client = _client(handler)
    page = await client.query(CatalogFilter(genre_ids=[18], origin_country="KR"))

    assert seen["path"] == "/3/discover/movie"
    assert seen["params"]["with_genres"] == "18"
    assert seen["params"]["with_origin_country"] == "KR"
    assert seen["params"]["include_adult"] == "false"
    assert seen["auth"] == "Bearer test-token"
    assert page.total_pages == 3
    assert [m.id for m in page.results] == [1]
    assert page.results[0].decade == "2000s"


@pytest.mark.asyncio
async def test_list_endpoints_routed():
    paths = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        return httpx.Response(200, json={"results": [], "total_pages": 1})

    client = _client(handler)
    await client.query(CatalogFilter(endpoint="trending", time_window="day"))
    await client.query(CatalogFilter(endpoint="top_rated"))
    await client.query(CatalogFilter(endpoint="now_playing"))

    assert paths == ["/3/trending/movie/day", "/3/movie/top_rated", "/3/movie/now_playing"]


@pytest.mark.asyncio
async def test_details_parsed():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["append_to_response"] == "credits,keywords"
        return httpx.Response(200, json={
            "id": 550,
            "title": "Fight Club",
            "original_language": "en",
            "release_date": "1999-10-15",
            "vote_average": 8.4,
            "vote_count": 29000,
            "popularity": 84.0,
            "runtime": 139,
            "budget": 63000000,
            "revenue": 100853753,
            "genres": [{"id": 18, "name": "Drama"}, {"id": 53, "name": "Thriller"}],
            "production_countries": [{"iso_3166_1": "US", "name": "United States of America"}],
            "credits": {
                "cast": [
                    {"name": "Brad Pitt", "character": "Tyler Durden", "order": 1},
                    {"name": "Edward Norton", "character": None, "order": 0},
                ],
                "crew": [{"name": "David Fincher", "job": "Director", "department": "Directing"}],
            },
            "keywords": {"keywords": [{"id": 825, "name": "support group"}]},
        })

    detail = await _client(handler).details(550)

    assert detail.genre_ids == [18, 53]
    assert detail.genre_names == ["Drama", "Thriller"]
    assert detail.runtime == 139
    assert detail.production_countries == ["US"]
    assert detail.crew[0].name == "David Fincher"
    assert len(detail.cast) == 2
    assert detail.keywords == ["support group"]


@pytest.mark.asyncio
async def test_availability():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/3/movie/550/watch/providers"
        return httpx.Response(200, json=PROVIDERS)

    offers = await _client(handler).availability(550, "US")
    assert len(offers) == 3


@pytest.mark.asyncio
async def test_server_error_is_unavailable():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"status_message": "boom"})

    with pytest.raises(SourceUnavailable) as exc_info:
        await _client(handler).details(1)
    assert exc_info.value.status_code == 500
    assert exc_info.value.source == "tmdb"


@pytest.mark.asyncio
async def test_rate_limit_retried_then_succeeds():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) == 1:
            return httpx.Response(429, headers={"Retry-After": "0"})
        return httpx.Response(200, json={"results": [], "total_pages": 1})

    page = await _client(handler).query(CatalogFilter(endpoint="popular"))
    assert page.results == []
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_rate_limit_exhausts_retries():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(429)

    with pytest.raises(SourceUnavailable) as exc_info:
        await _client(handler, retries=3).query(CatalogFilter(endpoint="popular"))
    assert exc_info.value.status_code == 429
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_timeout_maps_to_source_timeout():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("too slow", request=request)

    with pytest.raises(SourceTimeout):
        await _client(handler).details(1)


@pytest.mark.asyncio
async def test_connection_error_retried_then_unavailable():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(SourceUnavailable):
        await _client(handler, retries=2).details(1)
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_connection_retry_releases_slot_while_waiting(monkeypatch):
    calls = []
    held_during_wait = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) == 1:
            raise httpx.ConnectError("refused", request=request)
        return httpx.Response(200, json={"results": [], "total_pages": 1})

    client = _client(handler)
    client._semaphore = asyncio.Semaphore(1)

    async def fake_sleep(delay):
        held_during_wait.append(client._semaphore.locked())

    monkeypatch.setattr(tmdb.asyncio, "sleep", fake_sleep)
    page = await client.query(CatalogFilter(endpoint="popular"))

    assert page.results == []
    assert len(calls) == 2
    assert held_during_wait == [False]
