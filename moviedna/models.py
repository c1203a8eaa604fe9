"""
MovieDNA - Pydantic Models

Shared data models used across the entire pipeline.

Optional fields use ``None`` for "no data"; an empty list or a zero means
the source answered and the value really is empty/zero. Scoring relies on
that distinction.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Literal, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, field_validator

OfferType = Literal["flatrate", "rent", "buy", "ads"]
CriticalConsensus = Literal["acclaimed", "mixed", "poor", "unknown"]
BoxOfficeCategory = Literal["blockbuster", "moderate", "indie", "unknown"]
DiscoveryPreference = Literal["safe", "adventurous", "mixed"]
WatchCompanion = Literal["alone", "friends", "family", "date"]
WatchPriority = Literal["high", "medium", "low"]
ReasonType = Literal[
    "genre", "mood", "era", "director", "actor", "theme", "similar",
    "trending", "award", "hidden_gem", "streaming", "fallback",
]

_DECADE_RE = re.compile(r"^\d{3}0s$")


def year_from_date(date_str: Optional[str]) -> Optional[int]:
    if date_str and len(date_str) >= 4:
        try:
            return int(date_str[:4])
        except ValueError:
            return None
    return None


def decade_label(year: Optional[int]) -> Optional[str]:
    """1994 -> '1990s'."""
    if year is None:
        return None
    return f"{year // 10 * 10}s"


# ── Catalog records ──────────────────────────────────────


class CandidateMovie(BaseModel):
    """A movie surfaced by a catalog query, before enrichment."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: int
    title: str
    original_title: Optional[str] = None
    original_language: Optional[str] = None
    overview: str = ""
    release_date: Optional[str] = None
    genre_ids: List[int] = Field(default_factory=list)
    vote_average: float = 0.0
    vote_count: int = 0
    popularity: float = 0.0
    adult: Optional[bool] = None
    poster_path: Optional[str] = None

    @field_validator("release_date", mode="before")
    @classmethod
    def _blank_date(cls, v: Any) -> Any:
        return v or None

    @property
    def year(self) -> Optional[int]:
        return year_from_date(self.release_date)

    @property
    def decade(self) -> Optional[str]:
        return decade_label(self.year)


class CastMember(BaseModel):
    name: str
    character: Optional[str] = ""
    order: int = 0


class CrewMember(BaseModel):
    name: str
    job: str = ""
    department: str = ""


class CatalogDetail(CandidateMovie):
    """Full catalog record returned by a detail lookup."""

    runtime: Optional[int] = None
    budget: Optional[int] = None
    revenue: Optional[int] = None
    genre_names: List[str] = Field(default_factory=list)
    production_countries: Optional[List[str]] = None
    cast: Optional[List[CastMember]] = None
    crew: Optional[List[CrewMember]] = None
    keywords: Optional[List[str]] = None


class CatalogPage(BaseModel):
    results: List[CandidateMovie] = Field(default_factory=list)
    total_pages: int = 1


class CatalogFilter(BaseModel):
    """Source-agnostic description of one catalog request."""

    model_config = ConfigDict(frozen=True)

    endpoint: Literal["discover", "popular", "top_rated", "trending", "now_playing"] = "discover"
    genre_ids: List[int] = Field(default_factory=list)
    keyword_ids: List[int] = Field(default_factory=list)
    min_year: Optional[int] = None
    max_year: Optional[int] = None
    sort_by: str = "popularity.desc"
    min_vote_count: Optional[int] = None
    min_vote_average: Optional[float] = None
    max_popularity: Optional[float] = None
    origin_country: Optional[str] = None
    time_window: Literal["day", "week"] = "week"
    page: int = 1


class SourceQuery(BaseModel):
    """One entry of the collection fan-out."""

    model_config = ConfigDict(frozen=True)

    name: str
    filter: CatalogFilter = Field(default_factory=CatalogFilter)
    max_pages: int = Field(default=1, ge=1)
    limit: Optional[int] = Field(default=None, ge=1, description="Keep at most N records from this query")


# ── Secondary sources ────────────────────────────────────


class CommunityRecord(BaseModel):
    """Community-rating lookup result (ratings on a 0-5 scale)."""

    rating: Optional[float] = Field(default=None, ge=0, le=5)
    watches: Optional[int] = Field(default=None, ge=0)
    is_cult_classic: bool = False
    themes: List[str] = Field(default_factory=list)


class StreamingOffer(BaseModel):
    provider_name: str
    type: OfferType
    provider_id: Optional[int] = None
    country: Optional[str] = None
    display_priority: Optional[int] = None


# ── Enriched record ──────────────────────────────────────


class DataQuality(BaseModel):
    """Which sources answered for one movie."""

    catalog_available: bool = False
    community_available: bool = False
    streaming_available: bool = False
    credits_available: bool = False
    keywords_available: bool = False
    sources_attempted: int = 0
    sources_succeeded: int = 0
    completeness_score: float = Field(default=0.0, ge=0.0, le=1.0)


class EnrichedMovie(CandidateMovie):
    """CandidateMovie plus whatever the secondary sources contributed."""

    runtime: Optional[int] = None
    budget: Optional[int] = None
    revenue: Optional[int] = None
    genre_names: List[str] = Field(default_factory=list)
    production_countries: Optional[List[str]] = None
    director: Optional[str] = None
    main_cast: List[str] = Field(default_factory=list)
    keywords: Optional[List[str]] = None
    community_rating: Optional[float] = None
    community_watches: Optional[int] = None
    is_cult_classic: Optional[bool] = None
    is_indie: Optional[bool] = None
    is_arthouse: Optional[bool] = None
    themes: Optional[List[str]] = None
    streaming_offers: Optional[List[StreamingOffer]] = None
    critical_consensus: CriticalConsensus = "unknown"
    box_office_category: BoxOfficeCategory = "unknown"
    data_quality: DataQuality = Field(default_factory=DataQuality)

    @classmethod
    def bare(cls, candidate: CandidateMovie) -> "EnrichedMovie":
        """Degraded form used when the primary detail fetch fails."""
        return cls(**candidate.model_dump(include=set(CandidateMovie.model_fields)))


class FeatureVector(BaseModel):
    """Fixed-shape numeric representation of an EnrichedMovie."""

    model_config = ConfigDict(frozen=True)

    movie_id: int
    genre_vector: List[int]
    theme_vector: List[int]
    decade_score: float = 0.0
    popularity_score: float = 0.0
    quality_score: float = 0.0
    indie_score: float = 0.0
    international_score: float = 0.0
    cult_score: float = 0.0
    director_score: float = 0.0


# ── Caller-supplied context ──────────────────────────────


class MoviePreferences(BaseModel):
    """Explicit preferences stated by the user (quiz answers)."""

    model_config = ConfigDict(extra="forbid")

    favorite_genres: List[int] = Field(default_factory=list)
    preferred_decades: List[str] = Field(default_factory=list)
    favorite_actors: List[str] = Field(default_factory=list)
    mood_preferences: List[str] = Field(default_factory=list)
    rating_threshold: float = Field(default=6.0, ge=0.0, le=10.0)

    @field_validator("preferred_decades")
    @classmethod
    def _check_decades(cls, v: List[str]) -> List[str]:
        bad = [d for d in v if not _DECADE_RE.match(d)]
        if bad:
            raise ValueError(f"decades must look like '1990s', got {bad}")
        return v


class RecommendationContext(BaseModel):
    user_preferences: MoviePreferences
    viewing_history: Optional[List[int]] = None
    current_mood: Optional[str] = None
    available_time: Optional[int] = Field(default=None, gt=0, description="Minutes")
    streaming_services: Optional[List[str]] = None
    watch_with: Optional[WatchCompanion] = None
    discovery_preference: Optional[DiscoveryPreference] = None
    country: str = "US"


class UserProfile(BaseModel):
    """Per-user affinity state. Weights live in [0, 1]."""

    user_id: str
    preferences: MoviePreferences = Field(default_factory=MoviePreferences)
    viewing_history: List[int] = Field(default_factory=list)
    genre_affinity: Dict[int, float] = Field(default_factory=dict)
    decade_affinity: Dict[str, float] = Field(default_factory=dict)
    director_affinity: Dict[str, float] = Field(default_factory=dict)
    actor_affinity: Dict[str, float] = Field(default_factory=dict)
    theme_affinity: Dict[str, float] = Field(default_factory=dict)

    @property
    def richness(self) -> int:
        return (
            len(self.preferences.favorite_genres)
            + len(self.preferences.preferred_decades)
            + len(self.viewing_history)
        )


# ── Output ───────────────────────────────────────────────


class RecommendationReason(BaseModel):
    type: ReasonType
    message: str
    weight: float


class Recommendation(BaseModel):
    movie: EnrichedMovie
    score: float
    confidence: float = Field(ge=0.0, le=1.0)
    reasons: List[RecommendationReason] = Field(default_factory=list)
    tags: Set[str] = Field(default_factory=set)
    watch_priority: WatchPriority = "low"
    estimated_enjoyment: float = Field(default=0.0, ge=0.0, le=10.0)
    signals: Dict[str, float] = Field(default_factory=dict, description="Sub-scores behind `score`")


class CollectionStats(BaseModel):
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    total_records: int = 0


class RecommendationStats(BaseModel):
    sources_attempted: int = 0
    sources_succeeded: int = 0
    sources_failed: int = 0
    records_fetched: int = 0
    candidates_unique: int = 0
    candidates_prefiltered: int = 0
    candidates_enriched: int = 0
    candidates_scored: int = 0
    candidates_after_context_filter: int = 0
    used_fallback_pool: bool = False
    used_relaxed_fallback: bool = False
    candidates_from_cache: bool = False
    processing_time_ms: int = 0


class RecommendationResult(BaseModel):
    user_id: str
    recommendations: List[Recommendation]
    stats: RecommendationStats
