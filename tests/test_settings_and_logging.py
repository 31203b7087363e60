"""Tests for settings and logging setup."""

from unittest.mock import patch

from charmsync.config.settings import Settings, get_settings
from charmsync.logging import bind_context, configure_logging


class TestSettings:
    """Test defaults and environment overrides."""

    def test_defaults(self):
        settings = Settings()
        assert settings.retry_attempts == 30
        assert settings.retry_initial_delay == 1.0
        assert settings.repository_deploy_min_version == 19
        assert settings.default_lts_base == "ubuntu@22.04"
        assert settings.default_space == "alpha"

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("CHARMSYNC_DEFAULT_SPACE", "internal")
        monkeypatch.setenv("CHARMSYNC_RETRY_LOG_EVERY", "2")
        settings = Settings()
        assert settings.default_space == "internal"
        assert settings.retry_log_every == 2

    def test_get_settings_cached(self):
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()


class TestLogging:
    """Test logging configuration."""

    def test_configure_logging_level(self):
        with patch("charmsync.logging.structlog.configure") as configure, patch(
            "charmsync.logging.logging.basicConfig"
        ) as basic_config:
            configure_logging("DEBUG")

        configure.assert_called_once()
        basic_config.assert_called_once_with(level="DEBUG", format="%(message)s")

    def test_configure_logging_uses_settings(self, monkeypatch):
        monkeypatch.setenv("CHARMSYNC_LOG_LEVEL", "ERROR")
        get_settings.cache_clear()
        try:
            with patch("charmsync.logging.structlog.configure"), patch(
                "charmsync.logging.logging.basicConfig"
            ) as basic_config:
                configure_logging()
        finally:
            get_settings.cache_clear()

        assert basic_config.call_args.kwargs["level"] == "ERROR"

    def test_bind_context(self):
        log = bind_context(application="pg", model_id="m")
        assert log is not None
