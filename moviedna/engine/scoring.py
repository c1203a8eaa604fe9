"""
MovieDNA - Hybrid Scorer

Design patterns:
  - Strategy: one method per signal (content, collaborative proxy,
    contextual, popularity), combined by the policy weights
  - Template Method: ``score()`` fixes the order; subclasses may override
    a single signal

Every sub-score is clamped to [0, 1]. Missing optional data contributes
nothing; it never raises.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional, Sequence, Set

from moviedna.models import (
    EnrichedMovie,
    FeatureVector,
    Recommendation,
    RecommendationContext,
    RecommendationReason,
    StreamingOffer,
    UserProfile,
    WatchPriority,
)
from moviedna.policy import DEFAULT_POLICY, ScoringPolicy

logger = logging.getLogger(__name__)


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def affinity_similarity(affinity: Mapping, vocabulary: Sequence, vector: Sequence[int]) -> float:
    """Σ affinity·indicator over the vocabulary, normalised by map size."""
    total = sum(affinity.get(item, 0.0) * flag for item, flag in zip(vocabulary, vector))
    return clamp(total / max(1, len(affinity)))


def _matching_offer(offers: Sequence[StreamingOffer], services: Sequence[str]) -> Optional[StreamingOffer]:
    wanted = [s.lower() for s in services]
    for offer in offers:
        name = offer.provider_name.lower()
        if any(s in name for s in wanted):
            return offer
    return None


class HybridScorer:

    def __init__(self, policy: ScoringPolicy = DEFAULT_POLICY) -> None:
        self.policy = policy

    # ── Sub-scores ────────────────────────────────────────

    def content_score(self, profile: UserProfile, movie: EnrichedMovie, features: FeatureVector) -> float:
        p = self.policy
        genre = affinity_similarity(profile.genre_affinity, p.genre_vocabulary, features.genre_vector)
        decade = profile.decade_affinity.get(movie.decade, 0.0) if movie.decade else 0.0
        rating = 1.0 if movie.vote_average >= profile.preferences.rating_threshold else 0.0
        director = profile.director_affinity.get(movie.director, 0.0) if movie.director else 0.0
        theme = 0.0
        if movie.themes:
            theme = affinity_similarity(
                {k.lower(): v for k, v in profile.theme_affinity.items()},
                [t.lower() for t in p.theme_vocabulary],
                features.theme_vector,
            )
        return clamp(
            p.genre_similarity_weight * genre
            + p.decade_affinity_weight * clamp(decade)
            + p.rating_threshold_weight * rating
            + p.director_affinity_weight * clamp(director)
            + p.theme_similarity_weight * theme
        )

    def collaborative_score(self, profile: UserProfile, movie: EnrichedMovie) -> float:
        """Community popularity/rating stand in for real cross-user signal."""
        p = self.policy
        score = 0.0
        if movie.community_rating is not None:
            watches = clamp((movie.community_watches or 0) / p.watch_count_ceiling)
            rating = clamp(movie.community_rating / p.community_rating_scale)
            score = (p.watch_count_weight * watches + p.community_rating_weight * rating) * p.collaborative_damping

        if profile.viewing_history and movie.genre_ids:
            favorites = set(profile.preferences.favorite_genres)
            overlap = sum(1 for g in movie.genre_ids if g in favorites)
            score += overlap / len(movie.genre_ids) * p.genre_overlap_bonus
        return clamp(score)

    def contextual_score(self, movie: EnrichedMovie, context: RecommendationContext) -> float:
        p = self.policy
        score = 0.0
        genres = set(movie.genre_ids)

        if context.streaming_services and movie.streaming_offers:
            if _matching_offer(movie.streaming_offers, context.streaming_services):
                score += p.streaming_match_bonus

        if context.watch_with and context.watch_with in p.companion_genres:
            companion_genres, hit, miss = p.companion_genres[context.watch_with]
            score += hit if genres.intersection(companion_genres) else miss

        if context.available_time and movie.runtime:
            if context.available_time >= movie.runtime:
                score += p.runtime_fit_bonus
            else:
                score -= p.runtime_miss_penalty

        if context.current_mood:
            mood_genres = p.mood_genres.get(context.current_mood.lower(), ())
            if genres.intersection(mood_genres):
                score += p.mood_match_bonus

        return clamp(score)

    def popularity_score(self, movie: EnrichedMovie, discovery_preference: Optional[str]) -> float:
        normalized = clamp(movie.popularity / self.policy.popularity_ceiling)
        if discovery_preference == "safe":
            return normalized
        if discovery_preference == "adventurous":
            return 1.0 - normalized
        return 0.5

    # ── Derived outputs ───────────────────────────────────

    def confidence(self, profile: UserProfile, movie: EnrichedMovie) -> float:
        p = self.policy
        value = p.base_confidence
        value += movie.data_quality.completeness_score * p.completeness_confidence_weight
        value += min(p.profile_confidence_cap, profile.richness / p.profile_richness_divisor)
        return clamp(value)

    def estimated_enjoyment(self, score: float, confidence: float, movie: EnrichedMovie) -> float:
        """Low confidence pulls the estimate toward a neutral midpoint."""
        enjoyment = score * 10
        enjoyment = enjoyment * confidence + (10 - enjoyment) * (1 - confidence) * 0.5
        if movie.vote_average > self.policy.excellent_rating:
            enjoyment += self.policy.excellent_rating_bonus
        return clamp(enjoyment, 0.0, 10.0)

    def watch_priority(self, score: float, confidence: float) -> WatchPriority:
        priority = score * confidence
        if priority > self.policy.high_priority_cutoff:
            return "high"
        if priority > self.policy.medium_priority_cutoff:
            return "medium"
        return "low"

    def reasons(
        self,
        profile: UserProfile,
        movie: EnrichedMovie,
        context: RecommendationContext,
        content: float,
    ) -> List[RecommendationReason]:
        p = self.policy
        reasons: List[RecommendationReason] = []

        favorites = set(profile.preferences.favorite_genres)
        matching = [g for g in movie.genre_ids if g in favorites]
        if matching:
            reasons.append(RecommendationReason(
                type="genre",
                message=f"Matches {len(matching)} of your favorite genres",
                weight=content * p.genre_similarity_weight,
            ))

        if movie.vote_average >= profile.preferences.rating_threshold + p.rating_reason_margin:
            reasons.append(RecommendationReason(
                type="award",
                message=f"Excellent rating ({movie.vote_average:g}/10)",
                weight=p.rating_reason_weight,
            ))

        if movie.streaming_offers:
            offer = _matching_offer(movie.streaming_offers, context.streaming_services or []) or movie.streaming_offers[0]
            reasons.append(RecommendationReason(
                type="streaming",
                message=f"Available on {offer.provider_name}",
                weight=p.streaming_reason_weight,
            ))

        if movie.is_cult_classic:
            reasons.append(RecommendationReason(
                type="hidden_gem", message="Cult classic with devoted following", weight=p.cult_reason_weight,
            ))

        if movie.is_indie:
            reasons.append(RecommendationReason(
                type="hidden_gem", message="Independent film with unique perspective", weight=p.indie_reason_weight,
            ))

        reasons.sort(key=lambda r: r.weight, reverse=True)
        return reasons[:p.max_reasons]

    def tags(self, movie: EnrichedMovie, features: FeatureVector) -> Set[str]:
        tags: Set[str] = set()
        if features.quality_score > 0.8:
            tags.add("high-quality")
        if features.indie_score > 0:
            tags.add("indie")
        if features.international_score > 0:
            tags.add("international")
        if features.cult_score > 0:
            tags.add("cult-classic")
        if movie.critical_consensus == "acclaimed":
            tags.add("critically-acclaimed")
        if movie.box_office_category == "blockbuster":
            tags.add("blockbuster")
        if movie.decade == "2020s":
            tags.add("recent")
        return tags

    # ── Entry point ───────────────────────────────────────

    def score(
        self,
        profile: UserProfile,
        movie: EnrichedMovie,
        features: FeatureVector,
        context: RecommendationContext,
    ) -> Recommendation:
        p = self.policy
        discovery = context.discovery_preference or "mixed"

        signals: Dict[str, float] = {
            "content": self.content_score(profile, movie, features),
            "collaborative": self.collaborative_score(profile, movie),
            "contextual": self.contextual_score(movie, context),
            "popularity": self.popularity_score(movie, discovery),
        }
        hybrid = (
            p.content_weight * signals["content"]
            + p.collaborative_weight * signals["collaborative"]
            + p.contextual_weight * signals["contextual"]
            + p.popularity_weight * signals["popularity"]
        )
        confidence = self.confidence(profile, movie)

        return Recommendation(
            movie=movie,
            score=hybrid,
            confidence=confidence,
            reasons=self.reasons(profile, movie, context, signals["content"]),
            tags=self.tags(movie, features),
            watch_priority=self.watch_priority(hybrid, confidence),
            estimated_enjoyment=self.estimated_enjoyment(hybrid, confidence, movie),
            signals=signals,
        )

    def score_all(
        self,
        profile: UserProfile,
        movies: Sequence[EnrichedMovie],
        features: Mapping[int, FeatureVector],
        context: RecommendationContext,
    ) -> List[Recommendation]:
        return [
            self.score(profile, movie, features[movie.id], context)
            for movie in movies
            if movie.id in features
        ]


# ── Contextual post-filter ────────────────────────────────


def apply_context_filter(
    recommendations: Sequence[Recommendation],
    context: RecommendationContext,
    policy: ScoringPolicy = DEFAULT_POLICY,
) -> List[Recommendation]:
    """
    Hard-drop movies far longer than the time available; scale down movies
    with no known offer when the user named streaming services.
    """
    kept: List[Recommendation] = []
    for rec in recommendations:
        runtime = rec.movie.runtime
        if context.available_time and runtime and runtime > context.available_time + policy.runtime_slack_minutes:
            continue
        if context.streaming_services and not rec.movie.streaming_offers:
            rec = rec.model_copy(update={"score": rec.score * policy.no_streaming_penalty})
        kept.append(rec)

    dropped = len(recommendations) - len(kept)
    if dropped:
        logger.debug("Context filter dropped %d over-long movies", dropped)
    return kept
