"""
MovieDNA - Enrichment Aggregator

Design patterns:
  - Builder: constructs EnrichedMovie from catalog, community and streaming
    sources
  - Parallel Aggregator: secondary sources run concurrently, each under its
    own deadline and failure isolation
  - Batch Processor: fixed-size batches with a fixed inter-batch delay
  - Cache Aside: results cached by (movie id, options) with TTL

A failed primary detail fetch degrades the movie to its bare catalog form;
a failed secondary source only lowers ``DataQuality``.
"""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict

from moviedna.cache import TTLCache, cache_key
from moviedna.config import settings
from moviedna.errors import SourceError
from moviedna.models import (
    CandidateMovie,
    CatalogDetail,
    CommunityRecord,
    DataQuality,
    EnrichedMovie,
    StreamingOffer,
)
from moviedna.sources import CatalogSource, CommunityRatingSource, StreamingSource, call_source

logger = logging.getLogger(__name__)

_ARTHOUSE_KEYWORDS = ("art house", "auteur", "experimental", "avant-garde", "minimalist")
_CULT_KEYWORDS = ("cult", "midnight", "underground", "bizarre", "surreal")


class EnrichmentOptions(BaseModel):
    """Per-pass switches. Part of the cache key."""

    model_config = ConfigDict(frozen=True)

    include_community: bool = True
    include_streaming: bool = True
    country: str = "US"
    timeout_ms: int = settings.enrichment_timeout_ms

    @property
    def primary_timeout(self) -> float:
        return self.timeout_ms / 1000

    @property
    def secondary_timeout(self) -> float:
        return self.timeout_ms / 2000


# ── Derived categorisation ────────────────────────────────


def critical_consensus(vote_average: float, vote_count: int, community_rating: Optional[float]) -> str:
    """Community rating (0-5, rescaled to 0-10) counts twice when present."""
    if vote_count < 30:
        return "unknown"
    if community_rating is not None:
        avg = (vote_average + community_rating * 2 * 2) / 3
    else:
        avg = vote_average
    if avg >= 8.0:
        return "acclaimed"
    if avg >= 6.5:
        return "mixed"
    return "poor"


def box_office_category(budget: Optional[int], revenue: Optional[int], popularity: float) -> str:
    budget_mil = (budget or 0) / 1_000_000
    revenue_mil = (revenue or 0) / 1_000_000
    if budget_mil > 100 or revenue_mil > 200 or popularity > 80:
        return "blockbuster"
    if budget_mil > 20 or revenue_mil > 50 or popularity > 40:
        return "moderate"
    if budget and budget_mil < 15:
        return "indie"
    return "unknown"


def _has_keyword(keywords: Optional[List[str]], needles: Sequence[str]) -> bool:
    return any(n in k.lower() for k in keywords or [] for n in needles)


def is_indie(detail: CatalogDetail) -> Optional[bool]:
    if detail.budget is None:
        return None
    return detail.budget / 1_000_000 < 15 and detail.vote_count < 1000


def is_arthouse(detail: CatalogDetail) -> bool:
    return _has_keyword(detail.keywords, _ARTHOUSE_KEYWORDS) or (
        detail.vote_average > 7.0 and detail.popularity < 30
    )


def is_cult_classic(detail: CatalogDetail) -> bool:
    return _has_keyword(detail.keywords, _CULT_KEYWORDS)


def _director(detail: CatalogDetail) -> Optional[str]:
    for member in detail.crew or []:
        if member.job == "Director":
            return member.name
    return None


# ── Merge ─────────────────────────────────────────────────


def build_enriched(
    detail: CatalogDetail,
    community: Optional[CommunityRecord],
    offers: Optional[List[StreamingOffer]],
) -> EnrichedMovie:
    """
    Combine the primary record with secondary data. Secondary data only
    adds: a missing community record or offer list leaves fields as None.
    """
    cast = sorted(detail.cast or [], key=lambda c: c.order)
    movie = EnrichedMovie(
        **detail.model_dump(include=set(CandidateMovie.model_fields)),
        runtime=detail.runtime,
        budget=detail.budget,
        revenue=detail.revenue,
        genre_names=detail.genre_names,
        production_countries=detail.production_countries,
        director=_director(detail),
        main_cast=[c.name for c in cast[:5]],
        keywords=detail.keywords,
        is_indie=is_indie(detail),
        is_arthouse=is_arthouse(detail),
        is_cult_classic=is_cult_classic(detail),
    )

    update: Dict[str, Any] = {}
    if community is not None:
        update["community_rating"] = community.rating
        update["community_watches"] = community.watches
        update["is_cult_classic"] = community.is_cult_classic or bool(movie.is_cult_classic)
        if community.themes:
            update["themes"] = list(community.themes)
    if offers is not None:
        update["streaming_offers"] = list(offers)

    rating = update.get("community_rating", movie.community_rating)
    update["critical_consensus"] = critical_consensus(movie.vote_average, movie.vote_count, rating)
    update["box_office_category"] = box_office_category(movie.budget, movie.revenue, movie.popularity)
    return movie.model_copy(update=update)


# ── Aggregator ────────────────────────────────────────────


class EnrichmentAggregator:
    """Enriches candidates from one catalog plus optional secondary sources."""

    def __init__(
        self,
        catalog: CatalogSource,
        *,
        community: Optional[CommunityRatingSource] = None,
        streaming: Optional[StreamingSource] = None,
        cache: Optional[TTLCache[EnrichedMovie]] = None,
        batch_size: int = settings.enrichment_batch_size,
        batch_delay_ms: int = settings.enrichment_batch_delay_ms,
    ) -> None:
        self.catalog = catalog
        self.community = community
        self.streaming = streaming
        self.cache = cache if cache is not None else TTLCache(
            settings.enrichment_cache_ttl_seconds, name="enrichment",
        )
        self.batch_size = max(1, batch_size)
        self.batch_delay = batch_delay_ms / 1000

    async def _secondary(self, name: str, awaitable, timeout: float) -> Any:
        """Run a non-critical source call; None means it gave no data."""
        try:
            return await call_source(name, awaitable, timeout)
        except SourceError as exc:
            logger.debug("Non-critical enrichment failed: %s", exc)
            return None

    async def enrich(self, candidate: CandidateMovie, options: Optional[EnrichmentOptions] = None) -> EnrichedMovie:
        options = options or EnrichmentOptions()
        key = cache_key(candidate.id, options.model_dump())
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Enrichment cache HIT: %d", candidate.id)
            return cached

        # ── Phase 1: primary detail record ────────────────
        try:
            detail = await call_source(
                getattr(self.catalog, "name", "catalog"),
                self.catalog.details(candidate.id),
                options.primary_timeout,
            )
        except SourceError as exc:
            logger.warning("Failed to enrich movie %s: %s", candidate.title, exc)
            return EnrichedMovie.bare(candidate)

        # ── Phase 2: secondary sources (parallel) ─────────
        use_community = options.include_community and self.community is not None
        use_streaming = options.include_streaming and self.streaming is not None

        community_task = (
            self._secondary(
                getattr(self.community, "name", "community"),
                self.community.lookup(detail.title, detail.year),
                options.secondary_timeout,
            )
            if use_community else _none()
        )
        streaming_task = (
            self._secondary(
                getattr(self.streaming, "name", "streaming"),
                self.streaming.availability(candidate.id, options.country),
                options.secondary_timeout,
            )
            if use_streaming else _none()
        )
        community, offers = await asyncio.gather(community_task, streaming_task)

        movie = build_enriched(detail, community, offers)

        attempted = 1 + int(use_community) + int(use_streaming)
        succeeded = 1 + int(community is not None) + int(offers is not None)
        quality = DataQuality(
            catalog_available=True,
            community_available=community is not None,
            streaming_available=offers is not None,
            credits_available=bool(detail.cast),
            keywords_available=bool(detail.keywords),
            sources_attempted=attempted,
            sources_succeeded=succeeded,
            completeness_score=succeeded / attempted,
        )
        movie = movie.model_copy(update={"data_quality": quality})

        self.cache.set(key, movie)
        return movie

    async def _enrich_or_bare(self, candidate: CandidateMovie, options: EnrichmentOptions) -> EnrichedMovie:
        try:
            return await self.enrich(candidate, options)
        except Exception as exc:
            logger.warning("Failed to enrich movie %s: %s", candidate.title, exc)
            return EnrichedMovie.bare(candidate)

    async def enrich_batch(
        self,
        candidates: Sequence[CandidateMovie],
        options: Optional[EnrichmentOptions] = None,
    ) -> List[EnrichedMovie]:
        """Enrich in fixed-size batches; output order follows input order."""
        options = options or EnrichmentOptions()
        results: List[EnrichedMovie] = []

        for start in range(0, len(candidates), self.batch_size):
            batch = candidates[start:start + self.batch_size]
            results.extend(await asyncio.gather(
                *[self._enrich_or_bare(c, options) for c in batch]
            ))
            if start + self.batch_size < len(candidates) and self.batch_delay > 0:
                await asyncio.sleep(self.batch_delay)

        logger.info(
            "Enriched %d / %d movies with full catalog data",
            sum(1 for m in results if m.data_quality.catalog_available), len(results),
        )
        return results


async def _none() -> None:
    return None


# ── Curation ──────────────────────────────────────────────


def curation_score(movie: EnrichedMovie) -> float:
    """Post-enrichment ordering: quality first, with niche and data bonuses."""
    score = movie.vote_average * 10
    score += min(20.0, math.log10(movie.vote_count + 1) * 3)
    if movie.community_rating is not None:
        score += movie.community_rating * 4
    if movie.is_cult_classic:
        score += 15
    if movie.is_arthouse:
        score += 10
    if movie.is_indie and movie.vote_average > 7.0:
        score += 12
    if movie.critical_consensus == "acclaimed":
        score += 18
    if movie.original_language and movie.original_language != "en":
        score += 8
    if movie.decade in ("1970s", "1980s", "1990s"):
        score += 5
    if movie.decade == "2020s" and movie.vote_average > 7.5:
        score += 10
    if movie.data_quality.completeness_score > 0.7:
        score += 8
    if movie.streaming_offers:
        score += 5
    return score


def curate(movies: Sequence[EnrichedMovie], limit: int, *, min_vote_average: float = 5.5) -> List[EnrichedMovie]:
    kept = [m for m in movies if m.vote_average >= min_vote_average]
    kept.sort(key=curation_score, reverse=True)
    return kept[:limit]
