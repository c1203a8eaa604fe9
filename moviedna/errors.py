"""
MovieDNA - Error taxonomy

Source-level errors (``SourceTimeout``, ``SourceUnavailable``) are always
recovered inside the engine. ``EmptyCandidatePool`` and
``NoQualifyingRecommendations`` trigger the pipeline fallbacks.
``PreferenceValidationError`` is the only error surfaced to callers.
"""

from __future__ import annotations

from typing import Any, List, Optional


class MovieDNAError(Exception):
    """Base exception for the recommendation engine."""


class SourceError(MovieDNAError):
    """An external source failed to answer."""

    def __init__(self, source: str, message: str = "") -> None:
        self.source = source
        super().__init__(f"{source}: {message}" if message else source)


class SourceTimeout(SourceError):
    """The source did not answer within its deadline."""


class SourceUnavailable(SourceError):
    """Non-2xx response or connection failure."""

    def __init__(self, source: str, message: str = "", status_code: Optional[int] = None) -> None:
        self.status_code = status_code
        super().__init__(source, message)


class EmptyCandidatePool(MovieDNAError):
    """Every catalog query failed or nothing survived the quality filter."""


class NoQualifyingRecommendations(MovieDNAError):
    """Scoring produced no positive-score item."""


class PreferenceValidationError(MovieDNAError, ValueError):
    """Stated preferences violate the input contract."""

    def __init__(self, message: str, errors: Optional[List[Any]] = None) -> None:
        self.errors = errors or []
        super().__init__(message)
