"""
MovieDNA - TMDB Source Adapter

Design patterns:
  - Adapter: maps TMDB v3 JSON onto CandidateMovie / CatalogDetail /
    StreamingOffer records
  - Retry with Backoff: exponential backoff on rate limits / transport errors
  - Semaphore: rate-limited concurrent requests

Implements both ``CatalogSource`` and ``StreamingSource``. Transport
failures surface as ``SourceTimeout`` / ``SourceUnavailable``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from moviedna.config import Settings, settings as default_settings
from moviedna.errors import SourceTimeout, SourceUnavailable
from moviedna.models import (
    CandidateMovie,
    CastMember,
    CatalogDetail,
    CatalogFilter,
    CatalogPage,
    CrewMember,
    StreamingOffer,
)

logger = logging.getLogger(__name__)

_OFFER_TYPES = ("flatrate", "rent", "buy", "ads")

_LIST_ENDPOINTS = {
    "popular": "/movie/popular",
    "top_rated": "/movie/top_rated",
    "now_playing": "/movie/now_playing",
}


class TMDBClient:
    """Async TMDB client usable as catalog and streaming source."""

    name = "tmdb"

    def __init__(
        self,
        config: Optional[Settings] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
        backoff_base: float = 1.0,
    ) -> None:
        self._config = config or default_settings
        self._client = client
        self._owns_client = client is None
        self._semaphore = asyncio.Semaphore(self._config.tmdb_max_concurrency)
        self._max_retries = self._config.tmdb_max_retries
        self._backoff_base = backoff_base

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._config.tmdb_base_url,
                headers=self._config.tmdb_headers,
                timeout=httpx.Timeout(connect=10.0, read=30.0, write=10.0, pool=10.0),
            )
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        if self._owns_client and self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    # ── Rate-limited request with exponential backoff ─────

    async def _request(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        client = await self._get_client()
        params = params or {}

        for attempt in range(1, self._max_retries + 1):
            error: Optional[httpx.HTTPError] = None
            async with self._semaphore:
                try:
                    resp = await client.get(path, params=params)
                except httpx.TimeoutException as exc:
                    raise SourceTimeout(self.name, f"{path}: {exc}") from exc
                except httpx.HTTPError as exc:
                    if attempt == self._max_retries:
                        raise SourceUnavailable(self.name, f"{path}: {exc}") from exc
                    error = exc

            if error is not None:
                wait = self._backoff_base * 2 ** attempt
                logger.warning(
                    "TMDB request error (attempt %d/%d): %s – retrying in %.1fs",
                    attempt, self._max_retries, error, wait,
                )
                await asyncio.sleep(wait)
                continue

            if resp.status_code == 429:
                if attempt == self._max_retries:
                    raise SourceUnavailable(self.name, f"{path}: rate limited", status_code=429)
                wait = float(resp.headers.get("Retry-After", self._backoff_base * 2 ** attempt))
                logger.warning("TMDB rate-limited, waiting %.1fs", wait)
                await asyncio.sleep(wait)
                continue
            if resp.status_code >= 400:
                raise SourceUnavailable(
                    self.name, f"{path}: HTTP {resp.status_code}", status_code=resp.status_code,
                )
            return resp.json()

        raise SourceUnavailable(self.name, f"{path}: failed after retries")  # unreachable

    # ── CatalogSource ─────────────────────────────────────

    async def query(self, filter: CatalogFilter) -> CatalogPage:
        if filter.endpoint == "trending":
            path = f"/trending/movie/{filter.time_window}"
            params: Dict[str, Any] = {"page": filter.page}
        elif filter.endpoint in _LIST_ENDPOINTS:
            path = _LIST_ENDPOINTS[filter.endpoint]
            params = {"page": filter.page}
        else:
            path = "/discover/movie"
            params = build_discover_params(filter)

        data = await self._request(path, params)
        return CatalogPage(
            results=_parse_results(data.get("results", [])),
            total_pages=int(data.get("total_pages") or 1),
        )

    async def details(self, movie_id: int) -> CatalogDetail:
        data = await self._request(f"/movie/{movie_id}", {"append_to_response": "credits,keywords"})
        return parse_detail(data)

    # ── StreamingSource ───────────────────────────────────

    async def availability(self, movie_id: int, country: str) -> List[StreamingOffer]:
        data = await self._request(f"/movie/{movie_id}/watch/providers")
        return parse_offers(data, country)


# ── Wire mapping ──────────────────────────────────────────


def build_discover_params(filter: CatalogFilter) -> Dict[str, Any]:
    """Translate a CatalogFilter into /discover/movie parameters."""
    params: Dict[str, Any] = {
        "sort_by": filter.sort_by,
        "include_adult": False,
        "page": filter.page,
    }
    if filter.genre_ids:
        params["with_genres"] = ",".join(str(g) for g in filter.genre_ids)
    if filter.keyword_ids:
        # pipe = any of
        params["with_keywords"] = "|".join(str(k) for k in filter.keyword_ids)
    if filter.min_year:
        params["primary_release_date.gte"] = f"{filter.min_year}-01-01"
    if filter.max_year:
        params["primary_release_date.lte"] = f"{filter.max_year}-12-31"
    if filter.min_vote_count is not None:
        params["vote_count.gte"] = filter.min_vote_count
    if filter.min_vote_average is not None:
        params["vote_average.gte"] = filter.min_vote_average
    if filter.max_popularity is not None:
        params["popularity.lte"] = filter.max_popularity
    if filter.origin_country:
        params["with_origin_country"] = filter.origin_country
    return params


def _parse_results(raw: List[Dict[str, Any]]) -> List[CandidateMovie]:
    movies: List[CandidateMovie] = []
    for item in raw:
        try:
            movies.append(CandidateMovie.model_validate(item))
        except ValidationError as exc:
            logger.debug("Skipping malformed TMDB record %s: %s", item.get("id"), exc)
    return movies


def parse_detail(data: Dict[str, Any]) -> CatalogDetail:
    genres = data.get("genres") or []
    credits = data.get("credits")
    keywords = data.get("keywords")
    countries = data.get("production_countries")

    return CatalogDetail(
        **{k: v for k, v in data.items() if k in CandidateMovie.model_fields and k != "genre_ids"},
        genre_ids=[g["id"] for g in genres] or data.get("genre_ids", []),
        genre_names=[g["name"] for g in genres],
        runtime=data.get("runtime") or None,
        budget=data.get("budget"),
        revenue=data.get("revenue"),
        production_countries=[c.get("iso_3166_1", "") for c in countries] if countries is not None else None,
        cast=[CastMember.model_validate(c) for c in credits.get("cast", [])] if credits else None,
        crew=[CrewMember.model_validate(c) for c in credits.get("crew", [])] if credits else None,
        keywords=[k["name"] for k in keywords.get("keywords", [])] if keywords else None,
    )


def parse_offers(data: Dict[str, Any], country: str) -> List[StreamingOffer]:
    """Flatten every offer type for one country; an unknown country means no offers."""
    country_data = (data.get("results") or {}).get(country)
    if not country_data:
        return []

    offers: List[StreamingOffer] = []
    for offer_type in _OFFER_TYPES:
        for provider in country_data.get(offer_type, []):
            offers.append(StreamingOffer(
                provider_name=provider["provider_name"],
                type=offer_type,
                provider_id=provider.get("provider_id"),
                country=country,
                display_priority=provider.get("display_priority"),
            ))
    return offers
