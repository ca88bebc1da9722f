"""Startup validation for watchsync settings."""

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from watchsync.config.settings import WatchSyncSettings

logger = logging.getLogger(__name__)


def validate_sync_settings(settings: "WatchSyncSettings") -> list[str]:
    """Check that timing and threshold settings are usable together.

    Args:
        settings: WatchSyncSettings instance to check.

    Returns:
        List of error messages (empty if all OK).
    """
    errors = []

    # Durations that must not be negative
    durations = [
        (settings.tolerance_good, "good tolerance"),
        (settings.tolerance_fair, "fair tolerance"),
        (settings.tolerance_poor, "poor tolerance"),
        (settings.min_correction_interval, "minimum correction interval"),
        (settings.host_grace_period, "host grace period"),
        (settings.transfer_timeout, "transfer timeout"),
    ]
    for value, description in durations:
        if value < 0:
            errors.append(f"The {description} cannot be negative (got {value})")

    # Intervals that must be strictly positive
    intervals = [
        (settings.sync_interval_min, "minimum sync interval"),
        (settings.sync_interval_max, "maximum sync interval"),
        (settings.sweep_interval, "sweep interval"),
        (settings.inactive_after, "inactive timeout"),
        (settings.away_after, "away timeout"),
        (settings.liveness_window, "liveness window"),
    ]
    for value, description in intervals:
        if value <= 0:
            errors.append(f"The {description} must be positive (got {value})")

    if settings.sync_interval_min > settings.sync_interval_max:
        errors.append(
            f"Minimum sync interval ({settings.sync_interval_min}) is larger than "
            f"the maximum ({settings.sync_interval_max})"
        )

    if not (
        settings.tolerance_good <= settings.tolerance_fair <= settings.tolerance_poor
    ):
        errors.append("Sync tolerances must not shrink as quality worsens")

    if settings.quality_fair_threshold > settings.quality_poor_threshold:
        errors.append(
            "The fair quality threshold must not exceed the poor quality threshold"
        )

    if not 0 < settings.sync_delta_weight <= 1:
        errors.append(
            f"Sync delta weight must be in (0, 1] (got {settings.sync_delta_weight})"
        )

    # One confirmation would let a repeated report cross two steps
    if settings.quality_confirmations < 2:
        errors.append(
            f"At least two quality confirmations are required "
            f"(got {settings.quality_confirmations})"
        )

    if settings.inactive_after > settings.away_after:
        logger.warning("Inactive timeout is longer than the away timeout")

    return errors
