"""
MovieDNA - User Profile Store

Keeps one affinity profile per user id for the life of the store. Stated
preferences are folded in by saturating addition, so retaking the quiz
reinforces earlier answers but never erases them.

Updates build a new UserProfile and swap it in whole; readers holding the
old object are unaffected.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Iterable, Mapping, Optional, TypeVar, Union

from pydantic import ValidationError

from moviedna.errors import PreferenceValidationError
from moviedna.models import DiscoveryPreference, MoviePreferences, UserProfile
from moviedna.policy import DEFAULT_POLICY, ScoringPolicy

logger = logging.getLogger(__name__)

K = TypeVar("K")


def saturating_add(affinity: Mapping[K, float], keys: Iterable[K], step: float) -> Dict[K, float]:
    """Copy of ``affinity`` with ``step`` added to each key, capped at 1.0."""
    updated = dict(affinity)
    for key in keys:
        updated[key] = min(1.0, updated.get(key, 0.0) + step)
    return updated


def coerce_preferences(stated: Union[MoviePreferences, Mapping[str, Any]]) -> MoviePreferences:
    """Validate raw caller input, raising the one caller-facing error type."""
    if isinstance(stated, MoviePreferences):
        return stated
    try:
        return MoviePreferences.model_validate(stated)
    except ValidationError as exc:
        raise PreferenceValidationError(f"invalid stated preferences: {exc.error_count()} error(s)", exc.errors()) from exc


def infer_discovery_preference(
    preferences: MoviePreferences,
    policy: ScoringPolicy = DEFAULT_POLICY,
) -> DiscoveryPreference:
    """Guess safe / adventurous / mixed from quiz answers."""
    adventurous = 0
    safe = 0

    # High threshold means the user wants acclaimed, safe picks
    if preferences.rating_threshold >= 8.0:
        safe += 2
    elif preferences.rating_threshold <= 6.5:
        adventurous += 2

    for genre_id in preferences.favorite_genres:
        if genre_id in policy.adventurous_genres:
            adventurous += 1
        if genre_id in policy.safe_genres:
            safe += 1

    for mood in preferences.mood_preferences:
        if mood in policy.adventurous_moods:
            adventurous += 1
        if mood in policy.safe_moods:
            safe += 1

    if adventurous > safe + 1:
        return "adventurous"
    if safe > adventurous + 1:
        return "safe"
    return "mixed"


class ProfileStore:
    """In-memory profile map, injected into the engine."""

    def __init__(self, policy: ScoringPolicy = DEFAULT_POLICY) -> None:
        self.policy = policy
        self._profiles: Dict[str, UserProfile] = {}
        self._lock = threading.Lock()

    def get(self, user_id: str) -> Optional[UserProfile]:
        return self._profiles.get(user_id)

    def get_or_create(self, user_id: str) -> UserProfile:
        with self._lock:
            profile = self._profiles.get(user_id)
            if profile is None:
                profile = UserProfile(user_id=user_id)
                self._profiles[user_id] = profile
                logger.debug("Created profile for user %s", user_id)
            return profile

    def apply_preferences(
        self,
        profile: UserProfile,
        stated: Union[MoviePreferences, Mapping[str, Any]],
        viewing_history: Optional[Iterable[int]] = None,
    ) -> UserProfile:
        """
        Fold stated preferences (and any new viewing history) into the
        profile. Returns the stored replacement; ``profile`` is untouched.
        """
        preferences = coerce_preferences(stated)
        new_history = list(viewing_history or [])

        with self._lock:
            # build on the stored profile so concurrent updates are not lost
            current = self._profiles.get(profile.user_id, profile)
            history = list(current.viewing_history)
            for movie_id in new_history:
                if movie_id not in history:
                    history.append(movie_id)

            updated = current.model_copy(update={
                "preferences": preferences,
                "viewing_history": history,
                "genre_affinity": saturating_add(
                    current.genre_affinity, preferences.favorite_genres, self.policy.genre_affinity_step,
                ),
                "decade_affinity": saturating_add(
                    current.decade_affinity, preferences.preferred_decades, self.policy.decade_affinity_step,
                ),
            })
            self._profiles[profile.user_id] = updated
        return updated

    def __len__(self) -> int:
        return len(self._profiles)
