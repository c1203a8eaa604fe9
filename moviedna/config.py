"""
MovieDNA - Application Settings

Design patterns:
  - Singleton: single Settings instance shared everywhere
  - Configuration Object: centralizes all env-based config

Scoring weights and thresholds are not here; see ``moviedna.policy``.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"


class Settings(BaseSettings):
    """Central configuration sourced from environment / .env."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── TMDB ──────────────────────────────────────────────
    tmdb_api_read_token: str = ""
    tmdb_base_url: str = "https://api.themoviedb.org/3"
    tmdb_country: str = "US"
    tmdb_max_concurrency: int = 8
    tmdb_max_retries: int = 3

    # ── Enrichment ────────────────────────────────────────
    enrichment_timeout_ms: int = 5000
    enrichment_batch_size: int = 5
    enrichment_batch_delay_ms: int = 200
    enrichment_cache_ttl_seconds: float = 30 * 60

    # ── Collection ────────────────────────────────────────
    collection_timeout_ms: int = 10_000
    candidate_cache_ttl_seconds: float = 60 * 60
    prefilter_cap: int = 200
    curated_limit: int = 120

    # ── Ranking ───────────────────────────────────────────
    max_recommendations: int = 12

    # ── App ───────────────────────────────────────────────
    log_level: str = "info"

    # ── Derived helpers ───────────────────────────────────
    @property
    def tmdb_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.tmdb_api_read_token}",
            "Accept": "application/json",
        }


# Singleton – import this everywhere
settings = Settings()


def configure_logging(level: Optional[str] = None) -> None:
    """Install the root handler with the project log format."""
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format=LOG_FORMAT,
    )
