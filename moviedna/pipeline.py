"""
MovieDNA - Pipeline Orchestrator

Design patterns:
  - Chain of Responsibility: phases execute sequentially, each passing
    results to the next
  - Strategy: fallback strategies when phases return empty results
  - Facade: RecommendationEngine.recommend() is the single entry point

Pipeline flow:
  Profile → Collect → Diversity pre-filter → Enrich → Curate → Features
  → Score → Context filter → Rank & diversify
"""

from __future__ import annotations

import logging
import time
from typing import Any, List, Mapping, Optional, Sequence, Tuple, Union

from pydantic import ValidationError

from moviedna.cache import Clock, TTLCache, cache_key
from moviedna.config import Settings, settings as default_settings
from moviedna.engine.collector import CandidateCollector, build_default_queries
from moviedna.engine.enrichment import EnrichmentAggregator, EnrichmentOptions, curate
from moviedna.engine.features import FeatureExtractor
from moviedna.engine.prefilter import diversity_filter
from moviedna.engine.ranker import rank_and_diversify
from moviedna.engine.scoring import HybridScorer, apply_context_filter
from moviedna.errors import EmptyCandidatePool, NoQualifyingRecommendations, PreferenceValidationError
from moviedna.models import (
    CandidateMovie,
    CollectionStats,
    EnrichedMovie,
    Recommendation,
    RecommendationContext,
    RecommendationReason,
    RecommendationResult,
    RecommendationStats,
    SourceQuery,
    UserProfile,
)
from moviedna.policy import DEFAULT_POLICY, ScoringPolicy
from moviedna.profiles import ProfileStore, infer_discovery_preference
from moviedna.sources import CatalogSource, CommunityRatingSource, StreamingSource

logger = logging.getLogger(__name__)


def _coerce_context(context: Union[RecommendationContext, Mapping[str, Any]]) -> RecommendationContext:
    if isinstance(context, RecommendationContext):
        return context
    try:
        return RecommendationContext.model_validate(context)
    except ValidationError as exc:
        raise PreferenceValidationError(
            f"invalid recommendation context: {exc.error_count()} error(s)", exc.errors(),
        ) from exc


class RecommendationEngine:
    """Owns the caches and profile store; one instance serves many requests."""

    def __init__(
        self,
        catalog: CatalogSource,
        *,
        community: Optional[CommunityRatingSource] = None,
        streaming: Optional[StreamingSource] = None,
        profiles: Optional[ProfileStore] = None,
        queries: Optional[Sequence[SourceQuery]] = None,
        fallback: Optional[Sequence[CandidateMovie]] = None,
        policy: ScoringPolicy = DEFAULT_POLICY,
        config: Optional[Settings] = None,
        clock: Clock = time.monotonic,
    ) -> None:
        self.config = config or default_settings
        self.policy = policy
        self.queries = list(queries) if queries is not None else build_default_queries()

        self.collector = CandidateCollector(
            catalog,
            policy=policy,
            fallback=fallback,
            query_timeout=self.config.collection_timeout_ms / 1000,
        )
        self.enricher = EnrichmentAggregator(
            catalog,
            community=community,
            streaming=streaming,
            cache=TTLCache(self.config.enrichment_cache_ttl_seconds, clock=clock, name="enrichment"),
            batch_size=self.config.enrichment_batch_size,
            batch_delay_ms=self.config.enrichment_batch_delay_ms,
        )
        self.features = FeatureExtractor(policy, cache=TTLCache(None, clock=clock, name="features"))
        self.scorer = HybridScorer(policy)
        self.profiles = profiles or ProfileStore(policy)
        self.candidate_cache: TTLCache[Tuple[List[CandidateMovie], CollectionStats, int]] = TTLCache(
            self.config.candidate_cache_ttl_seconds, clock=clock, name="candidates",
        )

    # ── Candidate pool (cached) ───────────────────────────

    async def gather_candidates(self, stats: RecommendationStats) -> List[CandidateMovie]:
        cap = self.config.prefilter_cap
        key = cache_key([q.model_dump() for q in self.queries], cap)
        cached = self.candidate_cache.get(key)

        if cached is not None:
            logger.debug("Candidate cache HIT")
            pool, collection, unique = cached
            stats.candidates_from_cache = True
        else:
            candidates, collection = await self.collector.collect(self.queries)
            unique = len(candidates)
            try:
                pool = diversity_filter(self.collector.require_pool(candidates), cap, policy=self.policy)
            except EmptyCandidatePool:
                stats.used_fallback_pool = True
                pool = self.collector.fallback_pool()
            else:
                self.candidate_cache.set(key, (pool, collection, unique))

        stats.sources_attempted = collection.attempted
        stats.sources_succeeded = collection.succeeded
        stats.sources_failed = collection.failed
        stats.records_fetched = collection.total_records
        stats.candidates_unique = unique
        stats.candidates_prefiltered = len(pool)
        return pool

    # ── Fallback ──────────────────────────────────────────

    def relaxed_fallback(self, profile: UserProfile, movies: Sequence[EnrichedMovie]) -> List[Recommendation]:
        """Top-K by raw rating with a generic reason, so the output is never empty."""
        top = sorted(movies, key=lambda m: (m.vote_average, m.vote_count), reverse=True)
        recommendations: List[Recommendation] = []
        for movie in top[:self.config.max_recommendations]:
            confidence = self.scorer.confidence(profile, movie)
            recommendations.append(Recommendation(
                movie=movie,
                score=0.0,
                confidence=confidence,
                reasons=[RecommendationReason(
                    type="fallback",
                    message=f"Highly rated pick ({movie.vote_average:g}/10)",
                    weight=0.0,
                )],
                tags=self.scorer.tags(movie, self.features.extract(movie)),
                watch_priority="low",
                estimated_enjoyment=self.scorer.estimated_enjoyment(0.0, confidence, movie),
            ))
        return recommendations

    # ── Public entry point ────────────────────────────────

    async def recommend(
        self,
        user_id: str,
        context: Union[RecommendationContext, Mapping[str, Any]],
    ) -> RecommendationResult:
        """
        Run the full pipeline for one user. Only malformed preferences raise
        (PreferenceValidationError); source failures degrade the result.
        """
        t0 = time.perf_counter()
        context = _coerce_context(context)
        stats = RecommendationStats()

        # ── Phase 1: Profile ──────────────────────────────
        profile = self.profiles.apply_preferences(
            self.profiles.get_or_create(user_id),
            context.user_preferences,
            context.viewing_history,
        )
        if context.discovery_preference is None:
            context = context.model_copy(update={
                "discovery_preference": infer_discovery_preference(profile.preferences, self.policy),
            })
        logger.info("Phase 1 - Profile: user=%s discovery=%s", user_id, context.discovery_preference)

        # ── Phase 2: Collect + pre-filter ─────────────────
        pool = await self.gather_candidates(stats)
        logger.info("Phase 2 complete: %d candidates (fallback=%s)", len(pool), stats.used_fallback_pool)

        # ── Phase 3: Enrichment + curation ────────────────
        options = EnrichmentOptions(country=context.country, timeout_ms=self.config.enrichment_timeout_ms)
        enriched = await self.enricher.enrich_batch(pool, options)
        stats.candidates_enriched = len(enriched)
        curated = curate(enriched, self.config.curated_limit, min_vote_average=self.policy.min_vote_average) or enriched
        logger.info("Phase 3 - Enriched %d, curated to %d", len(enriched), len(curated))

        # ── Phase 4: Features + scoring ───────────────────
        features = self.features.extract_all(curated)
        scored = self.scorer.score_all(profile, curated, features, context)
        stats.candidates_scored = len(scored)
        filtered = apply_context_filter(scored, context, self.policy)
        stats.candidates_after_context_filter = len(filtered)
        logger.info("Phase 4 - Scored %d, %d after context filter", len(scored), len(filtered))

        # ── Phase 5: Rank & diversify ─────────────────────
        try:
            ranked = rank_and_diversify(
                filtered,
                context.discovery_preference,
                limit=self.config.max_recommendations,
                policy=self.policy,
            )
        except NoQualifyingRecommendations as exc:
            logger.warning("No qualifying recommendations (%s), using rating fallback", exc)
            stats.used_relaxed_fallback = True
            ranked = self.relaxed_fallback(profile, curated)

        stats.processing_time_ms = int((time.perf_counter() - t0) * 1000)
        logger.info("Pipeline complete in %d ms: %d recommendations", stats.processing_time_ms, len(ranked))
        return RecommendationResult(user_id=user_id, recommendations=ranked, stats=stats)

    def purge_caches(self) -> int:
        """Drop expired enrichment and candidate entries. Returns count removed."""
        return self.enricher.cache.purge_expired() + self.candidate_cache.purge_expired()
