"""
MovieDNA - Scoring Policy

Every tunable number used by the collector, scorer and ranker lives in this
table. Components take an optional ``policy`` argument and fall back to
``DEFAULT_POLICY``.
"""

from __future__ import annotations

from typing import Dict, List, Tuple

from pydantic import BaseModel, ConfigDict, Field

# TMDB genre ids
ACTION = 28
ADVENTURE = 12
ANIMATION = 16
COMEDY = 35
CRIME = 80
DOCUMENTARY = 99
DRAMA = 18
FANTASY = 14
HISTORY = 36
HORROR = 27
MUSIC = 10402
MYSTERY = 9648
ROMANCE = 10749
SCIENCE_FICTION = 878
THRILLER = 53
TV_MOVIE = 10770
WAR = 10752
WESTERN = 37


class ScoringPolicy(BaseModel):
    """Named constants for filtering, scoring and ranking."""

    model_config = ConfigDict(frozen=True)

    # ── Collector quality gate ────────────────────────────
    min_vote_average: float = 5.5
    min_vote_count: int = 20

    # ── Diversity pre-filter ──────────────────────────────
    prefilter_quality_weight: float = 0.7
    prefilter_diversity_weight: float = 0.3

    # ── Feature vocabularies (order is part of the vector shape) ─
    genre_vocabulary: Tuple[int, ...] = (
        ACTION, COMEDY, DRAMA, HORROR, ROMANCE, SCIENCE_FICTION, THRILLER,
        ANIMATION, CRIME, DOCUMENTARY, WESTERN, HISTORY, FANTASY, WAR, MYSTERY,
    )
    theme_vocabulary: Tuple[str, ...] = (
        "friendship", "love", "family", "revenge", "war", "coming-of-age",
        "redemption", "sacrifice",
    )
    decade_reference_year: int = 2020
    popularity_ceiling: float = 100.0
    acclaimed_quality_bonus: float = 0.1
    cult_quality_bonus: float = 0.05
    known_director_score: float = 0.5
    domestic_country: str = "US"
    domestic_language: str = "en"

    # ── Profile affinity increments ───────────────────────
    genre_affinity_step: float = 0.2
    decade_affinity_step: float = 0.15

    # ── Hybrid weights ────────────────────────────────────
    content_weight: float = 0.4
    collaborative_weight: float = 0.2
    contextual_weight: float = 0.3
    popularity_weight: float = 0.1

    # ── Content sub-weights ───────────────────────────────
    genre_similarity_weight: float = 0.3
    decade_affinity_weight: float = 0.2
    rating_threshold_weight: float = 0.2
    director_affinity_weight: float = 0.15
    theme_similarity_weight: float = 0.15

    # ── Collaborative proxy ───────────────────────────────
    watch_count_ceiling: float = 1_000_000
    community_rating_scale: float = 5.0
    watch_count_weight: float = 0.3
    community_rating_weight: float = 0.7
    collaborative_damping: float = 0.8
    genre_overlap_bonus: float = 0.2

    # ── Contextual signals ────────────────────────────────
    streaming_match_bonus: float = 0.3
    runtime_fit_bonus: float = 0.2
    runtime_miss_penalty: float = 0.1
    mood_match_bonus: float = 0.2
    companion_genres: Dict[str, Tuple[Tuple[int, ...], float, float]] = Field(
        default_factory=lambda: {
            # companion: (genres, bonus if matched, score otherwise)
            "family": ((ANIMATION, ADVENTURE), 0.2, -0.1),
            "date": ((ROMANCE, COMEDY), 0.2, 0.0),
            "friends": ((ACTION, COMEDY, HORROR), 0.15, 0.0),
        }
    )
    mood_genres: Dict[str, Tuple[int, ...]] = Field(
        default_factory=lambda: {
            "happy": (COMEDY, ANIMATION, ROMANCE),
            "sad": (DRAMA,),
            "excited": (ACTION, ADVENTURE, THRILLER),
            "relaxed": (DOCUMENTARY, HISTORY),
            "scared": (HORROR,),
            "thoughtful": (SCIENCE_FICTION, DRAMA),
        }
    )

    # ── Confidence / enjoyment ────────────────────────────
    base_confidence: float = 0.5
    completeness_confidence_weight: float = 0.3
    profile_confidence_cap: float = 0.2
    profile_richness_divisor: float = 15.0
    excellent_rating: float = 8.0
    excellent_rating_bonus: float = 0.5

    # ── Reasons ───────────────────────────────────────────
    max_reasons: int = 3
    rating_reason_margin: float = 1.0
    rating_reason_weight: float = 0.2
    streaming_reason_weight: float = 0.15
    cult_reason_weight: float = 0.1
    indie_reason_weight: float = 0.1

    # ── Contextual post-filter ────────────────────────────
    runtime_slack_minutes: int = 30
    no_streaming_penalty: float = 0.7

    # ── Ranker ────────────────────────────────────────────
    max_recommendations: int = 12
    high_score_cutoff: float = 0.7
    min_admitted: int = 6
    new_genre_bonus: float = 0.1
    new_decade_bonus: float = 0.05
    new_director_bonus: float = 0.05

    # ── Watch priority ────────────────────────────────────
    high_priority_cutoff: float = 0.7
    medium_priority_cutoff: float = 0.4

    # ── Discovery preference inference ────────────────────
    adventurous_genres: Tuple[int, ...] = (HORROR, SCIENCE_FICTION, DOCUMENTARY, HISTORY, FANTASY)
    safe_genres: Tuple[int, ...] = (COMEDY, ROMANCE, ANIMATION, ADVENTURE)
    adventurous_moods: Tuple[str, ...] = ("mystery", "thriller", "sci-fi")
    safe_moods: Tuple[str, ...] = ("comedy", "action")


DEFAULT_POLICY = ScoringPolicy()

# Genres queried individually by the default collection plan.
COLLECTION_GENRES: List[Tuple[int, str]] = [
    (ACTION, "Action"),
    (COMEDY, "Comedy"),
    (DRAMA, "Drama"),
    (SCIENCE_FICTION, "Sci-Fi"),
    (HORROR, "Horror"),
    (THRILLER, "Thriller"),
    (ROMANCE, "Romance"),
    (ANIMATION, "Animation"),
    (CRIME, "Crime"),
    (WESTERN, "Western"),
    (HISTORY, "History"),
    (FANTASY, "Fantasy"),
    (WAR, "War"),
    (MYSTERY, "Mystery"),
    (MUSIC, "Music"),
    (TV_MOVIE, "TV Movie"),
]
