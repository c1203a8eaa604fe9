"""
MovieDNA - Candidate Collector

Design patterns:
  - Parallel Aggregator: every SourceQuery runs concurrently, failures are
    isolated per query
  - Strategy: static fallback pool when the catalog gives nothing usable

Fans out a list of uniform ``SourceQuery`` descriptors against one
``CatalogSource``, applies the quality gate and merges by movie id.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from moviedna.errors import EmptyCandidatePool, SourceError
from moviedna.models import CandidateMovie, CatalogFilter, CollectionStats, SourceQuery
from moviedna.policy import COLLECTION_GENRES, DEFAULT_POLICY, DOCUMENTARY, ScoringPolicy
from moviedna.sources import CatalogSource, call_source

logger = logging.getLogger(__name__)

# TMDB keyword ids: cult film, underground, midnight movie
CULT_KEYWORDS = [14819, 4344, 157186]

# country, min rating, min year
INTERNATIONAL_MARKETS: List[Tuple[str, float, int]] = [
    ("KR", 7.0, 2000),
    ("JP", 7.0, 1990),
    ("FR", 6.8, 1980),
    ("IT", 6.8, 1960),
    ("ES", 6.8, 1970),
    ("DE", 6.8, 1970),
    ("IN", 7.0, 1990),
    ("BR", 6.8, 1980),
    ("MX", 6.8, 1990),
    ("IR", 7.0, 1990),
]

# decade start, sort order, pages
ERA_COLLECTIONS: List[Tuple[int, str, int]] = [
    (2020, "vote_average.desc", 2),
    (2010, "popularity.desc", 2),
    (2000, "vote_average.desc", 2),
    (1990, "vote_average.desc", 2),
    (1980, "vote_average.desc", 1),
    (1970, "vote_average.desc", 1),
]

_GENRE_SORTS = ("popularity.desc", "vote_average.desc", "primary_release_date.desc")
_PER_GENRE_SORT_LIMIT = 8
_PER_COUNTRY_LIMIT = 5


# ── Query plan ────────────────────────────────────────────


def build_default_queries() -> List[SourceQuery]:
    """The broad discovery fan-out: charts, niches, markets, eras, genres."""
    queries: List[SourceQuery] = [
        SourceQuery(name="popular", filter=CatalogFilter(endpoint="popular")),
        SourceQuery(name="top_rated", filter=CatalogFilter(endpoint="top_rated")),
        SourceQuery(name="trending", filter=CatalogFilter(endpoint="trending", time_window="week")),
        SourceQuery(name="now_playing", filter=CatalogFilter(endpoint="now_playing")),
        SourceQuery(
            name="hidden_gems",
            filter=CatalogFilter(
                min_vote_average=7.0, min_vote_count=200, max_popularity=50,
                sort_by="vote_average.desc",
            ),
            max_pages=2,
        ),
        SourceQuery(
            name="cult_classics",
            filter=CatalogFilter(
                keyword_ids=CULT_KEYWORDS, min_year=1970, min_vote_average=6.0,
                sort_by="vote_average.desc",
            ),
            max_pages=2,
        ),
        SourceQuery(
            name="award_level",
            filter=CatalogFilter(
                min_vote_average=7.5, min_vote_count=1000, min_year=1990,
                sort_by="vote_average.desc",
            ),
            max_pages=2,
        ),
        SourceQuery(
            name="documentaries",
            filter=CatalogFilter(
                genre_ids=[DOCUMENTARY], min_vote_average=7.0, min_year=2000,
                min_vote_count=50, sort_by="vote_average.desc",
            ),
            max_pages=2,
        ),
    ]

    for country, min_rating, min_year in INTERNATIONAL_MARKETS:
        queries.append(SourceQuery(
            name=f"international:{country}",
            filter=CatalogFilter(
                origin_country=country, min_vote_average=min_rating, min_year=min_year,
                min_vote_count=50, sort_by="vote_average.desc",
            ),
            limit=_PER_COUNTRY_LIMIT,
        ))

    for start, sort_by, pages in ERA_COLLECTIONS:
        queries.append(SourceQuery(
            name=f"era:{start}s",
            filter=CatalogFilter(min_year=start, max_year=start + 9, min_vote_count=50, sort_by=sort_by),
            max_pages=pages,
        ))

    for genre_id, label in COLLECTION_GENRES:
        for sort_by in _GENRE_SORTS:
            strict = sort_by != "popularity.desc"
            queries.append(SourceQuery(
                name=f"genre:{label}:{sort_by.split('.')[0]}",
                filter=CatalogFilter(
                    genre_ids=[genre_id],
                    sort_by=sort_by,
                    min_vote_count=100 if strict else None,
                    min_vote_average=6.0 if strict else None,
                ),
                limit=_PER_GENRE_SORT_LIMIT,
            ))

    return queries


# ── Static fallback pool ──────────────────────────────────


def _fallback(movie_id: int, title: str, date: str, genres: List[int], rating: float,
              votes: int, popularity: float, language: str = "en") -> CandidateMovie:
    return CandidateMovie(
        id=movie_id, title=title, original_title=title, original_language=language,
        release_date=date, genre_ids=genres, vote_average=rating, vote_count=votes,
        popularity=popularity,
    )


FALLBACK_MOVIES: List[CandidateMovie] = [
    _fallback(550, "Fight Club", "1999-10-15", [18, 53], 8.4, 29000, 84.0),
    _fallback(13, "Forrest Gump", "1994-06-23", [35, 18, 10749], 8.5, 27000, 78.0),
    _fallback(27205, "Inception", "2010-07-16", [28, 878, 53], 8.4, 36000, 89.0),
    _fallback(238, "The Godfather", "1972-03-14", [18, 80], 8.7, 20000, 92.0),
    _fallback(19404, "Dilwale Dulhania Le Jayenge", "1995-10-20", [35, 18, 10749], 8.5, 4300, 65.0, "hi"),
    _fallback(680, "Pulp Fiction", "1994-09-10", [53, 80], 8.5, 27000, 85.0),
    _fallback(155, "The Dark Knight", "2008-07-14", [28, 80, 18, 53], 8.5, 32000, 96.0),
    _fallback(129, "Spirited Away", "2001-07-20", [16, 10751, 14], 8.5, 16000, 70.0, "ja"),
    _fallback(496243, "Parasite", "2019-05-30", [35, 53, 18], 8.5, 18000, 75.0, "ko"),
    _fallback(194, "Amélie", "2001-04-25", [35, 10749], 7.9, 11000, 40.0, "fr"),
    _fallback(598, "City of God", "2002-02-05", [18, 80], 8.4, 7500, 35.0, "pt"),
    _fallback(419430, "Get Out", "2017-02-24", [9648, 53, 27], 7.6, 17000, 45.0),
    _fallback(346, "Seven Samurai", "1954-04-26", [28, 18], 8.5, 3600, 30.0, "ja"),
    _fallback(120467, "The Grand Budapest Hotel", "2014-02-26", [35, 18], 8.0, 15000, 50.0),
]


# ── Merge helpers ─────────────────────────────────────────


def passes_quality_gate(movie: CandidateMovie, policy: ScoringPolicy = DEFAULT_POLICY) -> bool:
    return movie.vote_average >= policy.min_vote_average and movie.vote_count >= policy.min_vote_count


def _authority(movie: CandidateMovie) -> Tuple[int, float, float, str]:
    # The json dump makes the order total, so merging never depends on arrival order.
    return (movie.vote_count, movie.vote_average, movie.popularity, movie.model_dump_json())


def merge_records(records: Iterable[CandidateMovie]) -> CandidateMovie:
    """
    Merge every record seen for one movie id.

    Rating fields come from the record with the most votes; fields that
    record leaves empty are filled from the others; genre ids are unioned.
    """
    ranked = sorted(records, key=_authority, reverse=True)
    if not ranked:
        raise ValueError("merge_records needs at least one record")
    primary = ranked[0]
    if len(ranked) == 1:
        return primary

    update: Dict[str, object] = {}
    for field in ("original_title", "original_language", "release_date", "adult", "poster_path", "overview"):
        if getattr(primary, field) in (None, ""):
            for other in ranked[1:]:
                value = getattr(other, field)
                if value not in (None, ""):
                    update[field] = value
                    break

    genres = list(primary.genre_ids)
    for other in ranked[1:]:
        genres.extend(g for g in other.genre_ids if g not in genres)
    update["genre_ids"] = genres

    return primary.model_copy(update=update)


# ── Collector ─────────────────────────────────────────────


class CandidateCollector:
    """Runs a query plan against a catalog source."""

    def __init__(
        self,
        source: CatalogSource,
        *,
        policy: ScoringPolicy = DEFAULT_POLICY,
        fallback: Optional[Sequence[CandidateMovie]] = None,
        query_timeout: Optional[float] = None,
    ) -> None:
        self.source = source
        self.policy = policy
        self.fallback = list(FALLBACK_MOVIES if fallback is None else fallback)
        self.query_timeout = query_timeout

    async def _run_query(self, query: SourceQuery) -> List[CandidateMovie]:
        """All pages of one query. Only a first-page failure fails the query."""
        movies: List[CandidateMovie] = []
        for page in range(1, query.max_pages + 1):
            page_filter = query.filter.model_copy(update={"page": page})
            try:
                result = await call_source(
                    getattr(self.source, "name", "catalog"),
                    self.source.query(page_filter),
                    self.query_timeout,
                )
            except SourceError as exc:
                if page == 1:
                    raise
                logger.warning("Query %s page %d failed, keeping %d records: %s",
                               query.name, page, len(movies), exc)
                break
            movies.extend(result.results)
            if page >= result.total_pages:
                break

        if query.limit is not None:
            movies = movies[:query.limit]
        return movies

    async def collect(
        self, queries: Sequence[SourceQuery],
    ) -> Tuple[Dict[int, CandidateMovie], CollectionStats]:
        """
        Issue all queries concurrently and merge qualifying records by id.
        Never raises for source failures; they show up in ``stats.failed``.
        """
        stats = CollectionStats(attempted=len(queries))
        results = await asyncio.gather(
            *[self._run_query(q) for q in queries],
            return_exceptions=True,
        )

        grouped: Dict[int, List[CandidateMovie]] = defaultdict(list)
        for query, result in zip(queries, results):
            if isinstance(result, BaseException):
                stats.failed += 1
                logger.warning("Source query %s failed: %s", query.name, result)
                continue
            stats.succeeded += 1
            stats.total_records += len(result)
            for movie in result:
                if passes_quality_gate(movie, self.policy):
                    grouped[movie.id].append(movie)

        candidates = {movie_id: merge_records(records) for movie_id, records in grouped.items()}
        logger.info(
            "Collection stats: attempted=%d succeeded=%d failed=%d records=%d unique=%d",
            stats.attempted, stats.succeeded, stats.failed, stats.total_records, len(candidates),
        )
        return candidates, stats

    def require_pool(self, candidates: Dict[int, CandidateMovie]) -> List[CandidateMovie]:
        if not candidates:
            raise EmptyCandidatePool("no catalog query produced a qualifying candidate")
        return list(candidates.values())

    def fallback_pool(self) -> List[CandidateMovie]:
        logger.warning("Candidate pool empty, using %d fallback movies", len(self.fallback))
        return list(self.fallback)
