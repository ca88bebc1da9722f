"""Runtime settings for watchsync.

Settings loaded from environment variables and provided to components via dependency injection.
"""

import logging
import os
from dataclasses import dataclass

from watchsync.config import constants


def _env_float(name: str, default: float) -> float:
    return float(os.environ.get(name, str(default)))


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_log_level(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None:
        return default
    if value.isdigit():
        return int(value)
    level = logging.getLevelName(value.upper())
    if not isinstance(level, int):
        raise ValueError(f"{name} is not a valid log level: {value}")
    return level


@dataclass(frozen=True)
class WatchSyncSettings:
    """Runtime settings for a watchsync deployment."""

    # Correction tolerances per connection quality, in seconds
    tolerance_good: float
    tolerance_fair: float
    tolerance_poor: float

    # Average sync delta boundaries used to classify quality
    quality_fair_threshold: float
    quality_poor_threshold: float

    # Weight of the newest sample in the running average delta
    sync_delta_weight: float

    # Minimum spacing between two corrections sent to the same viewer
    min_correction_interval: float

    # Broadcast cadence bounds
    sync_interval_min: float
    sync_interval_max: float

    # Consistent quality reports needed for each additional step
    quality_confirmations: int

    # Presence lifecycle
    inactive_after: float
    away_after: float
    liveness_window: float
    host_grace_period: float
    transfer_timeout: float
    sweep_interval: float
    auto_assign_host: bool

    log_level: int

    @staticmethod
    def from_environment() -> "WatchSyncSettings":
        """Load settings from environment variables.

        Returns:
            WatchSyncSettings instance with values from environment variables.
        """
        return WatchSyncSettings(
            tolerance_good=_env_float(
                "WATCHSYNC_TOLERANCE_GOOD", constants.DEFAULT_TOLERANCE_GOOD
            ),
            tolerance_fair=_env_float(
                "WATCHSYNC_TOLERANCE_FAIR", constants.DEFAULT_TOLERANCE_FAIR
            ),
            tolerance_poor=_env_float(
                "WATCHSYNC_TOLERANCE_POOR", constants.DEFAULT_TOLERANCE_POOR
            ),
            quality_fair_threshold=_env_float(
                "WATCHSYNC_QUALITY_FAIR_THRESHOLD",
                constants.DEFAULT_QUALITY_FAIR_THRESHOLD,
            ),
            quality_poor_threshold=_env_float(
                "WATCHSYNC_QUALITY_POOR_THRESHOLD",
                constants.DEFAULT_QUALITY_POOR_THRESHOLD,
            ),
            sync_delta_weight=_env_float(
                "WATCHSYNC_SYNC_DELTA_WEIGHT", constants.DEFAULT_SYNC_DELTA_WEIGHT
            ),
            min_correction_interval=_env_float(
                "WATCHSYNC_MIN_CORRECTION_INTERVAL",
                constants.DEFAULT_MIN_CORRECTION_INTERVAL,
            ),
            sync_interval_min=_env_float(
                "WATCHSYNC_SYNC_INTERVAL_MIN", constants.DEFAULT_SYNC_INTERVAL_MIN
            ),
            sync_interval_max=_env_float(
                "WATCHSYNC_SYNC_INTERVAL_MAX", constants.DEFAULT_SYNC_INTERVAL_MAX
            ),
            quality_confirmations=int(
                os.environ.get(
                    "WATCHSYNC_QUALITY_CONFIRMATIONS",
                    str(constants.DEFAULT_QUALITY_CONFIRMATIONS),
                )
            ),
            inactive_after=_env_float(
                "WATCHSYNC_INACTIVE_AFTER", constants.DEFAULT_INACTIVE_AFTER
            ),
            away_after=_env_float("WATCHSYNC_AWAY_AFTER", constants.DEFAULT_AWAY_AFTER),
            liveness_window=_env_float(
                "WATCHSYNC_LIVENESS_WINDOW", constants.DEFAULT_LIVENESS_WINDOW
            ),
            host_grace_period=_env_float(
                "WATCHSYNC_HOST_GRACE_PERIOD", constants.DEFAULT_HOST_GRACE_PERIOD
            ),
            transfer_timeout=_env_float(
                "WATCHSYNC_TRANSFER_TIMEOUT", constants.DEFAULT_TRANSFER_TIMEOUT
            ),
            sweep_interval=_env_float(
                "WATCHSYNC_SWEEP_INTERVAL", constants.DEFAULT_SWEEP_INTERVAL
            ),
            auto_assign_host=_env_bool("WATCHSYNC_AUTO_ASSIGN_HOST", True),
            log_level=_env_log_level("WATCHSYNC_LOG_LEVEL", logging.INFO),
        )

    def validate(self, logger: logging.Logger) -> None:
        """Log warnings for configuration that is legal but probably unintended.

        Args:
            logger: Logger instance to use for warnings.
        """
        if self.away_after >= self.liveness_window:
            logger.warning(
                "WATCHSYNC_AWAY_AFTER is not below WATCHSYNC_LIVENESS_WINDOW, "
                "viewers will be removed before they are ever shown as away"
            )

        if self.min_correction_interval == 0:
            logger.warning(
                "WATCHSYNC_MIN_CORRECTION_INTERVAL is 0, corrections will not be rate limited"
            )

        if self.transfer_timeout > self.liveness_window:
            logger.warning(
                "WATCHSYNC_TRANSFER_TIMEOUT exceeds WATCHSYNC_LIVENESS_WINDOW, "
                "a silent new host may be removed before its transfer settles"
            )
