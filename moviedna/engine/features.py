"""
MovieDNA - Feature Extractor

Turns an EnrichedMovie into a fixed-shape FeatureVector. Vectors are
memoized by movie id for the life of the extractor, except for degraded
records whose catalog detail fetch failed; the vocabularies are
fixed when it is built, so the same id always yields the same shape.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from moviedna.cache import TTLCache
from moviedna.models import EnrichedMovie, FeatureVector
from moviedna.policy import DEFAULT_POLICY, ScoringPolicy


def indicator_vector(present: Sequence, vocabulary: Sequence) -> List[int]:
    wanted = set(present)
    return [1 if item in wanted else 0 for item in vocabulary]


class FeatureExtractor:

    def __init__(self, policy: ScoringPolicy = DEFAULT_POLICY, cache: Optional[TTLCache[FeatureVector]] = None) -> None:
        self.policy = policy
        self.cache = cache if cache is not None else TTLCache(None, name="features")

    def extract(self, movie: EnrichedMovie) -> FeatureVector:
        cached = self.cache.get(movie.id)
        if cached is not None:
            return cached
        features = self._compute(movie)
        # degraded records are recomputed once a full enrichment arrives
        if movie.data_quality.catalog_available:
            self.cache.set(movie.id, features)
        return features

    def extract_all(self, movies: Sequence[EnrichedMovie]) -> Dict[int, FeatureVector]:
        return {m.id: self.extract(m) for m in movies}

    def _compute(self, movie: EnrichedMovie) -> FeatureVector:
        p = self.policy
        themes = [t.lower() for t in movie.themes or []]
        return FeatureVector(
            movie_id=movie.id,
            genre_vector=indicator_vector(movie.genre_ids, p.genre_vocabulary),
            theme_vector=indicator_vector(themes, [t.lower() for t in p.theme_vocabulary]),
            decade_score=self.decade_score(movie.year),
            popularity_score=min(1.0, max(0.0, movie.popularity / p.popularity_ceiling)),
            quality_score=self.quality_score(movie),
            indie_score=1.0 if movie.is_indie else 0.0,
            international_score=self.international_score(movie),
            cult_score=1.0 if movie.is_cult_classic else 0.0,
            director_score=p.known_director_score if movie.director else 0.0,
        )

    def decade_score(self, year: Optional[int]) -> float:
        """Relative recency only; 2020s map to 1.0, later decades exceed it."""
        if year is None:
            return 0.0
        return (year // 10 * 10) / self.policy.decade_reference_year

    def quality_score(self, movie: EnrichedMovie) -> float:
        p = self.policy
        score = movie.vote_average / 10
        if movie.community_rating is not None:
            score = (score + movie.community_rating / p.community_rating_scale) / 2
        if movie.critical_consensus == "acclaimed":
            score += p.acclaimed_quality_bonus
        if movie.is_cult_classic:
            score += p.cult_quality_bonus
        return max(0.0, min(1.0, score))

    def international_score(self, movie: EnrichedMovie) -> float:
        p = self.policy
        if movie.original_language and movie.original_language != p.domestic_language:
            return 1.0
        if any(c != p.domestic_country for c in movie.production_countries or []):
            return 0.5
        return 0.0
