"""Network quality classification and the sync policies derived from it."""

from typing import Iterable

from watchsync.config.settings import WatchSyncSettings
from watchsync.sync.models import NetworkQuality, UserSyncMetrics


def classify_sync_delta(
    average_delta: float, fair_threshold: float, poor_threshold: float
) -> NetworkQuality:
    """Classify connection quality from a viewer's average sync delta.

    Args:
        average_delta: Running mean of absolute sync deltas, in seconds.
        fair_threshold: Averages at or above this are at best fair.
        poor_threshold: Averages at or above this are poor.

    Returns:
        The delta-derived quality.
    """
    if average_delta < fair_threshold:
        return NetworkQuality.GOOD
    if average_delta < poor_threshold:
        return NetworkQuality.FAIR
    return NetworkQuality.POOR


def sync_tolerance(quality: NetworkQuality, settings: WatchSyncSettings) -> float:
    """Drift allowed before a correction, looser on worse connections."""
    if quality == NetworkQuality.POOR:
        return settings.tolerance_poor
    if quality == NetworkQuality.FAIR:
        return settings.tolerance_fair
    return settings.tolerance_good


def broadcast_interval(
    qualities: Iterable[NetworkQuality], minimum: float, maximum: float
) -> float:
    """Seconds between proactive host-state pushes.

    The interval is ``maximum`` when every viewer is good (or nobody is
    watching) and falls linearly with the mean severity down to ``minimum``
    when every viewer is poor.

    Args:
        qualities: Classified quality of each viewer.
        minimum: Shortest interval, used when everyone is poor.
        maximum: Longest interval, used when everyone is good.
    """
    severities = [quality.severity for quality in qualities]
    if not severities:
        return maximum

    worst = NetworkQuality.POOR.severity
    mean_severity = sum(severities) / len(severities)
    return maximum - (maximum - minimum) * (mean_severity / worst)


def record_sync(
    metrics: UserSyncMetrics,
    abs_delta: float,
    success: bool,
    now: float,
    settings: WatchSyncSettings,
) -> NetworkQuality:
    """Fold one sync sample into a viewer's metrics.

    The average delta is an exponential moving average weighted by
    ``settings.sync_delta_weight`` and seeded with the first sample.

    Args:
        metrics: Metrics to update in place.
        abs_delta: Absolute sync delta of this sample, in seconds.
        success: Whether the sample was within tolerance.
        now: Time of the sample.
        settings: Supplies the weight and quality thresholds.

    Returns:
        The delta-derived quality after this sample.
    """
    if metrics.sync_attempts == 0:
        metrics.average_sync_delta = abs_delta
    else:
        weight = settings.sync_delta_weight
        metrics.average_sync_delta = (
            1 - weight
        ) * metrics.average_sync_delta + weight * abs_delta

    metrics.sync_attempts += 1
    if success:
        metrics.sync_successes += 1
    metrics.last_sync_time = now

    metrics.network_quality = classify_sync_delta(
        metrics.average_sync_delta,
        settings.quality_fair_threshold,
        settings.quality_poor_threshold,
    )
    return metrics.network_quality


class QualityTracker:
    """Hysteresis filter over reported network quality for one viewer.

    A report pointing away from the current classification moves it by one
    step at most. The first step of a run of consistent reports happens
    straight away, every further step needs ``confirmations`` more reports in
    the same direction. A report that agrees with the classification, or
    points the other way, starts a new run.

    At least two confirmations are always required, so one report delivered
    twice never moves the classification by two steps.
    """

    def __init__(
        self,
        confirmations: int,
        initial: NetworkQuality = NetworkQuality.GOOD,
    ):
        self._confirmations = max(2, confirmations)
        self._quality = initial
        self._run_direction = 0
        self._run_count = 0
        self._run_steps = 0
        self._last_report_time: float | None = None

    @property
    def quality(self) -> NetworkQuality:
        return self._quality

    def anchor(self, quality: NetworkQuality) -> None:
        """Adopt a delta-derived classification and drop any pending run."""
        self._quality = quality
        self._reset_run()

    def observe(
        self, reported: NetworkQuality, timestamp: float | None = None
    ) -> NetworkQuality:
        """Feed one reported quality sample.

        Args:
            reported: Quality the viewer claims to have.
            timestamp: When the report was produced. Reports that are not
                newer than the last timestamped report are duplicates or
                arrived out of order and are ignored.

        Returns:
            The classification after this report.
        """
        if timestamp is not None:
            if self._last_report_time is not None and timestamp <= self._last_report_time:
                return self._quality
            self._last_report_time = timestamp

        difference = reported.severity - self._quality.severity
        if difference == 0:
            self._reset_run()
            return self._quality

        direction = 1 if difference > 0 else -1
        if direction != self._run_direction:
            self._reset_run()
            self._run_direction = direction

        self._run_count += 1
        required = 1 if self._run_steps == 0 else self._confirmations
        if self._run_count >= required:
            self._quality = NetworkQuality.from_severity(
                self._quality.severity + direction
            )
            self._run_steps += 1
            self._run_count = 0

        return self._quality

    def _reset_run(self) -> None:
        self._run_direction = 0
        self._run_count = 0
        self._run_steps = 0
