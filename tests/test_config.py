"""
Tests for settings loading and logging setup.
"""

from __future__ import annotations

import logging

from moviedna.config import LOG_FORMAT, Settings, configure_logging


class TestSettings:

    def test_defaults(self):
        config = Settings(_env_file=None)
        assert config.enrichment_timeout_ms == 5000
        assert config.enrichment_batch_size == 5
        assert config.candidate_cache_ttl_seconds == 3600
        assert config.max_recommendations == 12

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("PREFILTER_CAP", "50")
        monkeypatch.setenv("TMDB_API_READ_TOKEN", "secret")
        config = Settings(_env_file=None)
        assert config.prefilter_cap == 50
        assert config.tmdb_headers["Authorization"] == "Bearer secret"


def test_configure_logging(monkeypatch):
    captured = {}
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: captured.update(kwargs))

    configure_logging("debug")

    assert captured == {"level": "DEBUG", "format": LOG_FORMAT}
