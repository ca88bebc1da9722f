"""Tests for settings loading, validation and startup configuration."""

import logging
import os
from dataclasses import replace

import pytest

from watchsync.config.settings import WatchSyncSettings
from watchsync.config.validation import validate_sync_settings
from watchsync.startup import ConfigurationError, configure


@pytest.fixture
def clean_env(monkeypatch):
    """Environment without any WATCHSYNC_ variables."""
    for name in list(os.environ):
        if name.startswith("WATCHSYNC_"):
            monkeypatch.delenv(name)
    return monkeypatch


class TestFromEnvironment:
    """Tests for reading settings from environment variables."""

    def test_defaults(self, clean_env):
        """Unset variables fall back to the documented defaults."""
        settings = WatchSyncSettings.from_environment()

        assert settings.tolerance_good == 0.5
        assert settings.tolerance_poor == 3.0
        assert settings.sync_interval_max == 8.0
        assert settings.quality_confirmations == 2
        assert settings.liveness_window == 120.0
        assert settings.auto_assign_host is True
        assert settings.log_level == logging.INFO

    def test_overrides(self, clean_env):
        """Variables override defaults and are parsed to the right types."""
        clean_env.setenv("WATCHSYNC_TOLERANCE_GOOD", "0.25")
        clean_env.setenv("WATCHSYNC_QUALITY_CONFIRMATIONS", "4")
        clean_env.setenv("WATCHSYNC_AUTO_ASSIGN_HOST", "no")
        clean_env.setenv("WATCHSYNC_LOG_LEVEL", "debug")

        settings = WatchSyncSettings.from_environment()

        assert settings.tolerance_good == 0.25
        assert settings.quality_confirmations == 4
        assert settings.auto_assign_host is False
        assert settings.log_level == logging.DEBUG

    def test_bad_log_level(self, clean_env):
        """Unknown log level names are rejected."""
        clean_env.setenv("WATCHSYNC_LOG_LEVEL", "chatty")
        with pytest.raises(ValueError):
            WatchSyncSettings.from_environment()


class TestValidation:
    """Tests for hard errors and soft warnings."""

    def test_defaults_are_valid(self, settings):
        """The test settings pass validation."""
        assert validate_sync_settings(settings) == []

    def test_inverted_interval_bounds(self, settings):
        """Minimum above maximum is an error."""
        errors = validate_sync_settings(
            replace(settings, sync_interval_min=9.0, sync_interval_max=8.0)
        )
        assert any("Minimum sync interval" in error for error in errors)

    def test_shrinking_tolerances(self, settings):
        """Tolerances must grow as quality worsens."""
        errors = validate_sync_settings(replace(settings, tolerance_fair=0.1))
        assert errors == ["Sync tolerances must not shrink as quality worsens"]

    def test_single_quality_confirmation_rejected(self, settings):
        """One confirmation would let a repeated report cross two steps."""
        errors = validate_sync_settings(replace(settings, quality_confirmations=1))
        assert errors == ["At least two quality confirmations are required (got 1)"]

    def test_collects_every_error(self, settings):
        """All problems are reported at once."""
        broken = replace(
            settings,
            host_grace_period=-1.0,
            sweep_interval=0.0,
            sync_delta_weight=1.5,
            quality_confirmations=0,
        )
        assert len(validate_sync_settings(broken)) == 4

    def test_warnings_are_logged(self, settings, caplog):
        """Odd but legal combinations only warn."""
        odd = replace(settings, away_after=200.0, min_correction_interval=0.0)

        with caplog.at_level(logging.WARNING):
            odd.validate(logging.getLogger("test"))

        assert "WATCHSYNC_AWAY_AFTER" in caplog.text
        assert "WATCHSYNC_MIN_CORRECTION_INTERVAL" in caplog.text


class TestConfigure:
    """Tests for startup configuration."""

    def test_returns_valid_settings(self, settings):
        """Valid settings are returned unchanged."""
        assert configure(settings) is settings

    def test_raises_with_all_errors(self, settings):
        """Invalid settings raise ConfigurationError listing every problem."""
        broken = replace(settings, sync_delta_weight=0.0, quality_confirmations=0)

        with pytest.raises(ConfigurationError) as excinfo:
            configure(broken)

        assert len(excinfo.value.errors) == 2

    def test_logging_installed_once(self, settings):
        """Configuring twice does not stack colour handlers."""
        import colorlog

        configure(settings)
        configure(settings)

        colour_handlers = [
            handler
            for handler in logging.getLogger().handlers
            if isinstance(handler.formatter, colorlog.ColoredFormatter)
        ]
        assert len(colour_handlers) == 1
