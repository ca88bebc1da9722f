"""Load, check and apply watchsync settings at process start."""

import logging

from watchsync.config.settings import WatchSyncSettings
from watchsync.config.validation import validate_sync_settings
from watchsync.logs import setup_logging

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when the environment holds settings the coordinator cannot run with."""

    def __init__(self, errors: list[str]):
        super().__init__("; ".join(errors))
        self.errors = errors


def configure(settings: WatchSyncSettings | None = None) -> WatchSyncSettings:
    """Load settings, install logging and validate the configuration.

    Args:
        settings: Settings to use instead of reading the environment.

    Returns:
        The validated settings.

    Raises:
        ConfigurationError: If any setting is unusable.
    """
    if settings is None:
        settings = WatchSyncSettings.from_environment()

    setup_logging(settings.log_level)
    settings.validate(logger)

    errors = validate_sync_settings(settings)
    if errors:
        for error in errors:
            logger.error(f"Configuration error: {error}")
        raise ConfigurationError(errors)

    return settings
