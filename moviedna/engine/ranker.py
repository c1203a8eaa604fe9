"""
MovieDNA - Ranker / Diversifier

Design patterns:
  - Strategy: greedy diversity admission, then score backfill

Sorts by hybrid score, admits items that widen genre / decade / director
coverage (or are simply strong), backfills by score up to the cap.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Set

from moviedna.errors import NoQualifyingRecommendations
from moviedna.models import Recommendation
from moviedna.policy import DEFAULT_POLICY, ScoringPolicy

logger = logging.getLogger(__name__)


def rank_and_diversify(
    recommendations: Sequence[Recommendation],
    discovery_preference: Optional[str] = "mixed",
    *,
    limit: Optional[int] = None,
    policy: ScoringPolicy = DEFAULT_POLICY,
) -> List[Recommendation]:
    """
    Return at most ``limit`` recommendations, best first.

    Raises NoQualifyingRecommendations when nothing scored above zero.
    """
    cap = limit if limit is not None else policy.max_recommendations
    if not any(r.score > 0 for r in recommendations):
        raise NoQualifyingRecommendations(f"0 of {len(recommendations)} candidates scored above zero")

    ordered = sorted(recommendations, key=lambda r: r.score, reverse=True)
    adventurous = discovery_preference == "adventurous"

    admitted: List[Recommendation] = []
    admitted_ids: Set[int] = set()
    used_genres: Set[int] = set()
    used_decades: Set[str] = set()
    used_directors: Set[str] = set()

    # ── Greedy admission ──────────────────────────────────
    for rec in ordered:
        if len(admitted) >= cap:
            break
        movie = rec.movie
        if movie.id in admitted_ids:
            continue

        new_genre = any(g not in used_genres for g in movie.genre_ids)
        new_decade = bool(movie.decade) and movie.decade not in used_decades
        new_director = bool(movie.director) and movie.director not in used_directors

        if not (new_genre or new_decade or new_director
                or rec.score >= policy.high_score_cutoff
                or len(admitted) < policy.min_admitted):
            continue

        if adventurous:
            bonus = (
                (policy.new_genre_bonus if new_genre else 0.0)
                + (policy.new_decade_bonus if new_decade else 0.0)
                + (policy.new_director_bonus if new_director else 0.0)
            )
            if bonus:
                rec = rec.model_copy(update={"score": rec.score + bonus})

        admitted.append(rec)
        admitted_ids.add(movie.id)
        used_genres.update(movie.genre_ids)
        if movie.decade:
            used_decades.add(movie.decade)
        if movie.director:
            used_directors.add(movie.director)

    # ── Backfill ──────────────────────────────────────────
    for rec in ordered:
        if len(admitted) >= cap:
            break
        if rec.movie.id not in admitted_ids:
            admitted.append(rec)
            admitted_ids.add(rec.movie.id)

    admitted.sort(key=lambda r: r.score, reverse=True)
    logger.debug(
        "Diversified %d -> %d (genres=%d decades=%d directors=%d)",
        len(ordered), min(len(admitted), cap), len(used_genres), len(used_decades), len(used_directors),
    )
    return admitted[:cap]
