"""Viewer-side follower that keeps a local player in step with the host."""

import logging
import time
from dataclasses import replace
from typing import Callable

from watchsync.config.settings import WatchSyncSettings
from watchsync.sync import quality
from watchsync.sync.messages import PlaybackReport, SyncRequest, SyncResponse
from watchsync.sync.models import NetworkQuality, UserSyncMetrics
from watchsync.sync.protocols import PlayerHandle

logger = logging.getLogger(__name__)


class PlaybackFollower:
    """Applies coordinator responses to a viewer's player.

    The follower never talks to a transport itself: callers send the
    requests and reports it builds, and feed it the responses they receive.
    """

    def __init__(
        self,
        user_id: str,
        player: PlayerHandle,
        settings: WatchSyncSettings,
        clock: Callable[[], float] = time.time,
    ):
        self.user_id = user_id
        self.player = player
        self.settings = settings
        self.host_id: str | None = None
        self._clock = clock
        self._metrics = UserSyncMetrics()
        self._pending_request: SyncRequest | None = None

    @property
    def is_host(self) -> bool:
        return self.host_id == self.user_id

    @property
    def network_quality(self) -> NetworkQuality:
        """Quality derived from this viewer's own drift history."""
        return self._metrics.network_quality

    @property
    def metrics(self) -> UserSyncMetrics:
        return replace(self._metrics)

    def request_sync(self) -> SyncRequest:
        """Build a sync request and remember when it was sent.

        The matching response is used to estimate transport latency.
        """
        request = SyncRequest(requester_id=self.user_id, timestamp=self._clock())
        self._pending_request = request
        return request

    def report(self) -> PlaybackReport:
        """Build a report of the local playback position."""
        return PlaybackReport(
            user_id=self.user_id,
            observed_time=self.player.get_current_time(),
            timestamp=self._clock(),
        )

    def target_time(self, response: SyncResponse) -> float | None:
        """Where the local player should be according to a response.

        When the response answers our own pending request, the host position
        is taken at the response timestamp plus half the round trip. Pushed
        responses are extrapolated to the local clock instead.

        Returns:
            Target position in seconds, or None if the response has no state.
        """
        state = response.playback_state
        if state is None:
            return None

        request = self._pending_request
        if (
            request is not None
            and request.timestamp is not None
            and response.timestamp >= request.timestamp
        ):
            one_way = (response.timestamp - request.timestamp) / 2
            target = state.position_at(response.timestamp)
            if state.is_advancing:
                target += one_way
            return target

        return state.position_at(self._clock())

    def apply(self, response: SyncResponse) -> bool:
        """Bring the local player in line with a coordinator response.

        Args:
            response: A sync response, correction or broadcast.

        Returns:
            True if the player was seeked.
        """
        if not response.success or response.playback_state is None:
            logger.warning(f"Ignoring unsuccessful sync response for {self.user_id}")
            return False

        state = response.playback_state
        if response.host_id is not None and state.host_id != response.host_id:
            logger.warning(
                f"Ignoring playback state from {state.host_id}, host is {response.host_id}"
            )
            return False

        self.host_id = response.host_id
        if self.is_host:
            # The host is the reference, nothing to follow
            self._pending_request = None
            return False

        target = self.target_time(response)
        self._pending_request = None
        if target is None:
            return False

        current = self.player.get_current_time()
        drift = abs(current - target)
        tolerance = quality.sync_tolerance(self._metrics.network_quality, self.settings)
        quality.record_sync(
            self._metrics, drift, drift <= tolerance, self._clock(), self.settings
        )

        seeked = False
        if drift > tolerance:
            logger.debug(
                f"Seeking to {target:.2f}s ({drift:.2f}s off, tolerance {tolerance:.2f}s)"
            )
            self.player.seek(target)
            seeked = True

        # Match play/pause state
        if state.is_playing and not self.player.is_playing():
            self.player.play()
        elif not state.is_playing and self.player.is_playing():
            self.player.pause()

        return seeked
