"""
Shared fakes for the engine tests: in-memory catalog, community and
streaming sources plus record factories.
"""

from __future__ import annotations

import asyncio
from typing import Dict, Iterable, List, Optional, Sequence, Union

import pytest

from moviedna.errors import SourceUnavailable
from moviedna.models import (
    CandidateMovie,
    CastMember,
    CatalogDetail,
    CatalogFilter,
    CatalogPage,
    CommunityRecord,
    CrewMember,
    DataQuality,
    EnrichedMovie,
    StreamingOffer,
)

DRAMA = 18

Route = Union[Sequence[CandidateMovie], Exception]


def _make_movie(
    movie_id: int,
    title: Optional[str] = None,
    *,
    genres: Iterable[int] = (DRAMA,),
    rating: float = 7.5,
    votes: int = 1000,
    popularity: float = 20.0,
    date: str = "2010-05-01",
    language: str = "en",
    **extra,
) -> CandidateMovie:
    return CandidateMovie(
        id=movie_id,
        title=title or f"Movie {movie_id}",
        original_language=language,
        release_date=date,
        genre_ids=list(genres),
        vote_average=rating,
        vote_count=votes,
        popularity=popularity,
        **extra,
    )


def _make_detail(
    movie: CandidateMovie,
    *,
    runtime: Optional[int] = 110,
    budget: Optional[int] = 50_000_000,
    revenue: Optional[int] = 120_000_000,
    director: Optional[str] = None,
    keywords: Optional[List[str]] = None,
    countries: Optional[List[str]] = None,
) -> CatalogDetail:
    return CatalogDetail(
        **movie.model_dump(),
        runtime=runtime,
        budget=budget,
        revenue=revenue,
        production_countries=countries if countries is not None else ["US"],
        cast=[CastMember(name=f"Actor {movie.id}-{i}", order=i) for i in range(6)],
        crew=[CrewMember(name=director or f"Director {movie.id}", job="Director", department="Directing")],
        keywords=keywords if keywords is not None else ["friendship"],
    )


def _make_enriched(
    movie_id: int,
    *,
    completeness: float = 1.0,
    **fields,
) -> EnrichedMovie:
    base = {
        "title": f"Movie {movie_id}",
        "original_language": "en",
        "release_date": "2010-05-01",
        "genre_ids": [DRAMA],
        "vote_average": 7.5,
        "vote_count": 1000,
        "popularity": 20.0,
    }
    base.update(fields)
    return EnrichedMovie(
        id=movie_id,
        data_quality=DataQuality(
            catalog_available=True,
            sources_attempted=3,
            sources_succeeded=round(completeness * 3),
            completeness_score=completeness,
        ),
        **base,
    )


class FakeCatalog:
    """
    Routes queries by ``filter.origin_country`` (falling back to the
    endpoint name), so tests tag each SourceQuery with a country code.
    """

    name = "fake-catalog"

    def __init__(
        self,
        routes: Optional[Dict[str, Route]] = None,
        *,
        paged: Optional[Dict[str, List[Route]]] = None,
        details: Optional[Dict[int, CatalogDetail]] = None,
        fail_details: Iterable[int] = (),
        detail_delay: float = 0.0,
        query_delays: Optional[Dict[str, float]] = None,
    ) -> None:
        self.routes = routes or {}
        self.paged = paged or {}
        self.details_by_id = dict(details or {})
        self.fail_details = set(fail_details)
        self.detail_delay = detail_delay
        self.query_delays = query_delays or {}
        self.query_calls: List[CatalogFilter] = []
        self.detail_calls: List[int] = []

    def _known(self) -> Dict[int, CandidateMovie]:
        known: Dict[int, CandidateMovie] = {}
        for route in list(self.routes.values()) + [p for pages in self.paged.values() for p in pages]:
            if not isinstance(route, Exception):
                for movie in route:
                    known.setdefault(movie.id, movie)
        return known

    async def query(self, filter: CatalogFilter) -> CatalogPage:
        self.query_calls.append(filter)
        key = filter.origin_country or filter.endpoint
        if key in self.query_delays:
            await asyncio.sleep(self.query_delays[key])
        if key in self.paged:
            pages = self.paged[key]
            page = pages[filter.page - 1]
            if isinstance(page, Exception):
                raise page
            return CatalogPage(results=list(page), total_pages=len(pages))
        route = self.routes.get(key)
        if isinstance(route, Exception):
            raise route
        return CatalogPage(results=list(route or []), total_pages=1)

    async def details(self, movie_id: int) -> CatalogDetail:
        self.detail_calls.append(movie_id)
        if self.detail_delay:
            await asyncio.sleep(self.detail_delay)
        if movie_id in self.fail_details:
            raise SourceUnavailable(self.name, "HTTP 500", status_code=500)
        if movie_id in self.details_by_id:
            return self.details_by_id[movie_id]
        return _make_detail(self._known()[movie_id])


class FakeCommunity:
    name = "fake-community"

    def __init__(
        self,
        records: Optional[Dict[str, CommunityRecord]] = None,
        *,
        default: Optional[CommunityRecord] = None,
        delay: float = 0.0,
        slow_titles: Iterable[str] = (),
        error: Optional[Exception] = None,
    ) -> None:
        self.records = records or {}
        self.default = default
        self.delay = delay
        self.slow_titles = set(slow_titles)
        self.error = error
        self.calls: List[str] = []

    async def lookup(self, title: str, year: Optional[int] = None) -> Optional[CommunityRecord]:
        self.calls.append(title)
        if self.delay and (not self.slow_titles or title in self.slow_titles):
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.records.get(title, self.default)


class FakeStreaming:
    name = "fake-streaming"

    def __init__(
        self,
        offers: Optional[Dict[int, List[StreamingOffer]]] = None,
        *,
        default: Optional[List[StreamingOffer]] = None,
        error: Optional[Exception] = None,
    ) -> None:
        self.offers = offers or {}
        self.default = default if default is not None else []
        self.error = error
        self.calls: List[int] = []

    async def availability(self, movie_id: int, country: str) -> List[StreamingOffer]:
        self.calls.append(movie_id)
        if self.error is not None:
            raise self.error
        return list(self.offers.get(movie_id, self.default))


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


# ── Fixtures ─────────────────────────────────────────────


@pytest.fixture
def make_movie():
    return _make_movie


@pytest.fixture
def make_detail():
    return _make_detail


@pytest.fixture
def make_enriched():
    return _make_enriched


@pytest.fixture
def fake_catalog():
    return FakeCatalog


@pytest.fixture
def fake_community():
    return FakeCommunity


@pytest.fixture
def fake_streaming():
    return FakeStreaming


@pytest.fixture
def clock():
    return FakeClock()
