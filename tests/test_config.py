"""Tests for settings and logging setup."""

import logging

import pytest
from pydantic import ValidationError

from relaychess.config import Settings, configure_logging, get_settings
from relaychess.core.colors import ColorScheme


class TestSettings:
    def test_defaults(self) -> None:
        settings = Settings(_env_file=None)
        assert settings.broadcast_timeout == 5.0
        assert settings.poll_interval == 3.0
        assert settings.game_query_limit == 20
        assert settings.challenge_query_limit == 10
        assert settings.color_scheme == ColorScheme.DIGEST
        assert settings.log_level == "INFO"

    def test_environment_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RELAYCHESS_POLL_INTERVAL", "1.5")
        monkeypatch.setenv("RELAYCHESS_COLOR_SCHEME", "legacy")
        settings = Settings(_env_file=None)
        assert settings.poll_interval == 1.5
        assert settings.color_scheme == ColorScheme.LEGACY

    def test_rejects_non_positive_timeout(self) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, broadcast_timeout=0)

    def test_get_settings_is_cached(self) -> None:
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()


class TestConfigureLogging:
    def test_sets_package_level(self) -> None:
        logger = logging.getLogger("relaychess")
        previous = logger.level
        try:
            configure_logging("debug")
            assert logger.level == logging.DEBUG
        finally:
            logger.setLevel(previous)
