"""
MovieDNA - Diversity Pre-Filter

Bounds enrichment cost by keeping the ``cap`` best candidates under a blend
of reliability (rating weighted by log vote count) and rarity of their
genres, decade and original language within the pool.
"""

from __future__ import annotations

import math
from collections import Counter
from typing import Dict, List, Sequence

from moviedna.models import CandidateMovie
from moviedna.policy import DEFAULT_POLICY, ScoringPolicy


def attribute_counts(candidates: Sequence[CandidateMovie]) -> Dict[str, Counter]:
    genres: Counter = Counter()
    decades: Counter = Counter()
    languages: Counter = Counter()
    for movie in candidates:
        genres.update(movie.genre_ids)
        if movie.decade:
            decades[movie.decade] += 1
        if movie.original_language:
            languages[movie.original_language] += 1
    return {"genre": genres, "decade": decades, "language": languages}


def diversity_score(movie: CandidateMovie, counts: Dict[str, Counter]) -> float:
    """Rarer attributes contribute more: sum of 1/(1+count)."""
    score = sum(1.0 / (1 + counts["genre"][g]) for g in movie.genre_ids)
    if movie.decade:
        score += 1.0 / (1 + counts["decade"][movie.decade])
    if movie.original_language:
        score += 1.0 / (1 + counts["language"][movie.original_language])
    return score


def quality_score(movie: CandidateMovie) -> float:
    return movie.vote_average * math.log10(movie.vote_count + 1)


def diversity_filter(
    candidates: Sequence[CandidateMovie],
    cap: int,
    *,
    policy: ScoringPolicy = DEFAULT_POLICY,
) -> List[CandidateMovie]:
    """Sort by blended score (stable on ties) and keep the first ``cap``."""
    if cap <= 0:
        return []
    counts = attribute_counts(candidates)

    def total(movie: CandidateMovie) -> float:
        return (
            policy.prefilter_quality_weight * quality_score(movie)
            + policy.prefilter_diversity_weight * diversity_score(movie, counts)
        )

    return sorted(candidates, key=total, reverse=True)[:cap]
