"""
Unit Tests — Settings
Environment parsing, defaults and validation bounds.
"""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from docextract.core.config import Settings


@pytest.mark.unit
class TestSettings:

    def test_defaults(self, monkeypatch):
        for var in ("PORT", "UPLOADS_ROOT", "POLL_INTERVAL_SECONDS", "UPLOAD_CONCURRENCY"):
            monkeypatch.delenv(var, raising=False)

        s = Settings(_env_file=None)

        assert s.port == 5000
        assert s.uploads_root == Path("uploads")
        assert s.gemini_model == "gemini-1.5-flash"
        assert s.poll_interval_seconds == 10.0
        assert s.poll_backoff_multiplier == 1.0
        assert s.poll_max_wait_seconds == 600.0
        assert s.upload_concurrency == 1
        assert s.cleanup_on_failure is True
        assert s.validate_extraction is True

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("PORT", "8080")
        monkeypatch.setenv("UPLOADS_ROOT", "/var/tmp/extract")
        monkeypatch.setenv("POLL_INTERVAL_SECONDS", "2.5")
        monkeypatch.setenv("CLEANUP_ON_FAILURE", "false")
        monkeypatch.setenv("CORS_ALLOW_ORIGINS", '["https://app.example.com"]')

        s = Settings(_env_file=None)

        assert s.port == 8080
        assert s.uploads_root == Path("/var/tmp/extract")
        assert s.poll_interval_seconds == 2.5
        assert s.cleanup_on_failure is False
        assert s.cors_allow_origins == ["https://app.example.com"]

    @pytest.mark.parametrize("field,value", [
        ("poll_interval_seconds",   0),
        ("poll_backoff_multiplier", 0.5),
        ("poll_max_wait_seconds",   -1),
        ("upload_concurrency",      0),
    ])
    def test_invalid_values_rejected(self, field, value):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, **{field: value})

    def test_is_production(self):
        assert Settings(_env_file=None, app_env="production").is_production
        assert not Settings(_env_file=None, app_env="development").is_production
