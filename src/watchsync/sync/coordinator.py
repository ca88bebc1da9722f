"""SyncCoordinator for keeping the viewers of a session in step."""

import logging
import threading
import time
from dataclasses import dataclass, field, replace
from typing import Callable

from watchsync.config.settings import WatchSyncSettings
from watchsync.sync import quality
from watchsync.sync.errors import (
    HostAlreadyAssigned,
    NoHostAssigned,
    NotCurrentHost,
    SessionClosed,
    StaleHost,
    UnknownUser,
)
from watchsync.sync.messages import (
    HostTransfer,
    Message,
    NetworkQualityUpdate,
    SyncRequest,
    SyncResponse,
)
from watchsync.sync.models import (
    NetworkQuality,
    PlaybackState,
    SessionPhase,
    SyncMetrics,
    UserPresence,
    UserStatus,
    UserSyncMetrics,
)
from watchsync.sync.presence import PresenceStore
from watchsync.sync.protocols import SyncOutput
from watchsync.sync.quality import QualityTracker

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


@dataclass
class _ViewerSync:
    """Coordinator-private bookkeeping for one viewer."""

    tracker: QualityTracker
    metrics: UserSyncMetrics = field(default_factory=UserSyncMetrics)
    delta_quality: NetworkQuality | None = None
    last_correction_at: float | None = None
    last_report_at: float | None = None


class SyncCoordinator:
    """Authoritative playback state and host arbitration for one session.

    Every public operation runs under a single lock, so state transitions are
    applied one at a time even when transports deliver messages from several
    threads. Outbound messages are collected while the lock is held and handed
    to the output only once it has been released.
    """

    def __init__(
        self,
        session_id: str,
        settings: WatchSyncSettings,
        output: SyncOutput | None = None,
        store: PresenceStore | None = None,
        clock: Clock = time.time,
    ):
        self.session_id = session_id
        self.settings = settings
        self.output = output
        self.store = store if store is not None else PresenceStore()
        self.phase = SessionPhase.UNSYNCED
        self._clock = clock
        self._lock = threading.RLock()

        self._host_id: str | None = None
        self._state: PlaybackState | None = None
        # False while the state is an estimate the current host has not confirmed
        self._authoritative = False
        self._transfer_started_at: float | None = None
        self._host_lost_at: float | None = None
        self._lost_host_id: str | None = None
        self._viewers: dict[str, _ViewerSync] = {}

    @property
    def host_id(self) -> str | None:
        """Id of the current host, if any."""
        return self._host_id

    @property
    def playback_state(self) -> PlaybackState | None:
        """Last playback state attributed to the current host."""
        return self._state

    @property
    def is_closed(self) -> bool:
        return self.phase == SessionPhase.CLOSED

    # ============== Presence lifecycle ==============

    def join(self, user_id: str, username: str) -> UserPresence:
        """Add a viewer to the session, or refresh one that is already here.

        The first viewer of a session without a host becomes host when
        auto_assign_host is enabled. Otherwise the host grace period starts,
        and a viewer is promoted by sweep() if nobody claims the role first.

        Args:
            user_id: Stable viewer id.
            username: Display name.

        Returns:
            The stored presence.
        """
        with self._lock:
            self._check_open()
            now = self._clock()

            existing = self.store.get(user_id)
            if existing is None:
                self.store.upsert(
                    UserPresence(id=user_id, username=username, last_active=now)
                )
                self._viewers[user_id] = self._new_viewer()
                logger.info(f"{username} ({user_id}) joined session {self.session_id}")
            else:
                self._touch(existing, now, username=username)

            if self._host_id is None and self._host_lost_at is None:
                if self.settings.auto_assign_host:
                    self._install_host(user_id, now)
                    logger.info(
                        f"{user_id} is the first host of session {self.session_id}"
                    )
                else:
                    # Nobody claimed the session, promote someone after the grace period
                    self._host_lost_at = now

            return self._require_presence(user_id)

    def leave(self, user_id: str) -> bool:
        """Remove a viewer that announced its departure.

        Returns:
            True if the viewer was present.
        """
        with self._lock:
            self._check_open()
            return self._remove_presence(user_id, self._clock())

    def touch(self, user_id: str, status: UserStatus | None = None) -> UserPresence:
        """Record activity from a viewer.

        Args:
            user_id: Viewer that sent a heartbeat or status change.
            status: Explicit status, or None to mark the viewer active.

        Raises:
            UnknownUser: If the viewer is not in the session.
        """
        with self._lock:
            self._check_open()
            presence = self._require_presence(user_id)
            self._touch(presence, self._clock(), status=status)
            return self._require_presence(user_id)

    def assign_host(self, user_id: str) -> None:
        """Make a viewer host of a session that has none.

        Raises:
            UnknownUser: If the viewer is not in the session.
            HostAlreadyAssigned: If the session already has a host.
        """
        with self._lock:
            self._check_open()
            self._require_presence(user_id)
            if self._host_id is not None:
                raise HostAlreadyAssigned(
                    f"Session {self.session_id} is already hosted by {self._host_id}"
                )
            self._install_host(user_id, self._clock())
            logger.info(f"{user_id} claimed host of session {self.session_id}")

    # ============== Sync protocol ==============

    def on_sync_request(self, request: SyncRequest) -> SyncResponse:
        """Answer a viewer asking for the current playback state.

        Raises:
            NoHostAssigned: If the session has no host yet.
        """
        with self._lock:
            self._check_open()
            if self._host_id is None or self._state is None:
                raise NoHostAssigned(f"Session {self.session_id} has no host yet")

            now = self._clock()
            requester = self.store.get(request.requester_id)
            if requester is not None:
                self._touch(requester, now)

            return SyncResponse(
                success=True,
                host_id=self._host_id,
                playback_state=self._state,
                timestamp=now,
            )

    def on_host_playback_update(self, host_id: str, state: PlaybackState) -> bool:
        """Replace the authoritative playback state with one pushed by the host.

        Args:
            host_id: Viewer the update came from.
            state: Playback state captured by that viewer.

        Returns:
            True if applied, False if absorbed as a duplicate or late delivery.

        Raises:
            StaleHost: If the sender (or the state's host_id) is not the host.
        """
        with self._lock:
            self._check_open()
            if self._host_id is None or host_id != self._host_id:
                raise StaleHost(
                    f"{host_id} is not the host of session {self.session_id}"
                )
            if state.host_id != host_id:
                raise StaleHost(
                    f"Playback state attributed to {state.host_id} was sent by {host_id}"
                )

            if (
                self._authoritative
                and self._state is not None
                and state.timestamp <= self._state.timestamp
            ):
                logger.debug(
                    f"Dropping out-of-order playback update from {host_id} "
                    f"in session {self.session_id}"
                )
                return False

            self._state = state
            self._authoritative = True

            if self.phase == SessionPhase.TRANSFERRING:
                self.phase = SessionPhase.HOSTED
                self._transfer_started_at = None
                logger.info(
                    f"New host {host_id} confirmed playback in session {self.session_id}"
                )

            host = self.store.get(host_id)
            if host is not None:
                self._touch(host, self._clock(), playback_state=state)
            return True

    def on_viewer_report(
        self, user_id: str, observed_time: float, timestamp: float
    ) -> SyncResponse | None:
        """Compare a viewer's position against the host and correct if needed.

        Args:
            user_id: Reporting viewer.
            observed_time: Viewer's playback position in seconds.
            timestamp: Wall-clock time the position was observed.

        Returns:
            The correction sent to the viewer, or None if none was needed.
            Reports from the host itself and reports no newer than the
            viewer's previous one are absorbed and also return None.

        Raises:
            NoHostAssigned: If the session has no host yet.
            UnknownUser: If the viewer is not in the session.
        """
        outbound: list[tuple[str | None, Message]] = []
        with self._lock:
            self._check_open()
            if self._host_id is None or self._state is None:
                raise NoHostAssigned(f"Session {self.session_id} has no host yet")
            presence = self._require_presence(user_id)
            now = self._clock()

            if user_id == self._host_id:
                self._touch(presence, now)
                return None

            viewer = self._viewer(user_id)
            if viewer.last_report_at is not None and timestamp <= viewer.last_report_at:
                logger.debug(
                    f"Dropping out-of-order report from {user_id} "
                    f"in session {self.session_id}"
                )
                return None
            viewer.last_report_at = timestamp

            delta = observed_time - self._state.position_at(timestamp)
            tolerance = quality.sync_tolerance(viewer.tracker.quality, self.settings)
            within_tolerance = abs(delta) <= tolerance
            self._record_sync(viewer, abs(delta), within_tolerance, now)

            correction = None
            if not within_tolerance and (
                viewer.last_correction_at is None
                or now - viewer.last_correction_at
                >= self.settings.min_correction_interval
            ):
                correction = SyncResponse(
                    success=True,
                    host_id=self._host_id,
                    playback_state=self._state.anchored_at(now),
                    timestamp=now,
                )
                viewer.last_correction_at = now
                outbound.append((user_id, correction))
                logger.debug(
                    f"Correcting {user_id} in session {self.session_id}: "
                    f"delta {delta:+.2f}s exceeds {tolerance:.2f}s"
                )

            viewer_state = PlaybackState(
                is_playing=self._state.is_playing,
                current_time=max(0.0, observed_time),
                timestamp=timestamp,
                host_id=self._host_id,
            )
            self._touch(
                presence,
                now,
                playback_state=viewer_state,
                network_quality=viewer.tracker.quality,
            )

        self._flush(outbound)
        return correction

    def request_host_transfer(self, transfer: HostTransfer) -> None:
        """Hand the host role to another viewer.

        The new host inherits the last known playback state as an estimate,
        so viewers can keep syncing while the session waits for its first
        authoritative update. Until then the old host's updates are rejected.

        Raises:
            UnknownUser: If the new host is not in the session.
            NotCurrentHost: If the previous host does not hold the role.
        """
        outbound: list[tuple[str | None, Message]] = []
        with self._lock:
            self._check_open()
            if transfer.new_host_id not in self.store:
                raise UnknownUser(
                    f"{transfer.new_host_id} is not in session {self.session_id}"
                )
            if self._host_id is None or transfer.previous_host_id != self._host_id:
                raise NotCurrentHost(
                    f"{transfer.previous_host_id} is not the host of session {self.session_id}"
                )
            if transfer.new_host_id == transfer.previous_host_id:
                return

            self._install_host(transfer.new_host_id, self._clock())
            outbound.append((None, transfer))
            logger.info(
                f"Host of session {self.session_id} transferred from "
                f"{transfer.previous_host_id} to {transfer.new_host_id}"
            )

        self._flush(outbound)

    def on_network_quality_update(self, update: NetworkQualityUpdate) -> NetworkQuality:
        """Feed a viewer's self-reported connection quality through hysteresis.

        Returns:
            The viewer's classified quality afterwards.

        Raises:
            UnknownUser: If the viewer is not in the session.
        """
        with self._lock:
            self._check_open()
            presence = self._require_presence(update.user_id)
            tracker = self._viewer(update.user_id).tracker

            before = tracker.quality
            after = tracker.observe(update.quality, update.timestamp)
            if after != before:
                logger.info(
                    f"Network quality of {update.user_id} in session {self.session_id} "
                    f"moved from {before.value} to {after.value}"
                )

            self._touch(presence, self._clock(), network_quality=after)
            return after

    # ============== Cadence and housekeeping ==============

    def broadcast_interval(self) -> float:
        """Seconds to wait before the next proactive push of host state."""
        with self._lock:
            qualities = [
                presence.network_quality
                for presence in self.store.list()
                if not presence.is_host
            ]
            return quality.broadcast_interval(
                qualities,
                self.settings.sync_interval_min,
                self.settings.sync_interval_max,
            )

    def build_broadcast(self) -> SyncResponse | None:
        """Host state re-anchored at the current time, for every viewer.

        Returns:
            None if the session is closed or has no host.
        """
        with self._lock:
            if self.is_closed or self._host_id is None or self._state is None:
                return None
            now = self._clock()
            return SyncResponse(
                success=True,
                host_id=self._host_id,
                playback_state=self._state.anchored_at(now),
                timestamp=now,
            )

    def extrapolated_time(self, at: float | None = None) -> float | None:
        """Estimated host position at a wall-clock time (defaults to now)."""
        with self._lock:
            if self._state is None:
                return None
            return self._state.position_at(self._clock() if at is None else at)

    def sweep(self, now: float | None = None) -> list[str]:
        """Apply idle timeouts, host grace and transfer timeout.

        Args:
            now: Time to evaluate against, defaults to the coordinator clock.

        Returns:
            Ids of viewers removed for exceeding the liveness window.
        """
        outbound: list[tuple[str | None, Message]] = []
        removed: list[str] = []
        with self._lock:
            if self.is_closed:
                return removed
            if now is None:
                now = self._clock()

            for presence in self.store.list():
                idle = now - presence.last_active
                if idle >= self.settings.liveness_window:
                    self._remove_presence(presence.id, now)
                    removed.append(presence.id)
                    continue

                status = presence.status
                if idle >= self.settings.away_after:
                    status = UserStatus.AWAY
                elif idle >= self.settings.inactive_after and status == UserStatus.ACTIVE:
                    status = UserStatus.INACTIVE
                if status != presence.status:
                    self.store.upsert(replace(presence, status=status))

            if (
                self.phase == SessionPhase.TRANSFERRING
                and self._transfer_started_at is not None
                and now - self._transfer_started_at >= self.settings.transfer_timeout
            ):
                self.phase = SessionPhase.HOSTED
                self._transfer_started_at = None
                logger.warning(
                    f"New host {self._host_id} of session {self.session_id} sent no "
                    "playback update in time, keeping the inherited estimate"
                )

            if (
                self._host_id is None
                and self._host_lost_at is not None
                and now - self._host_lost_at >= self.settings.host_grace_period
            ):
                successor = self._pick_successor()
                if successor is not None:
                    previous = self._lost_host_id
                    self._install_host(successor.id, now)
                    if previous is not None:
                        outbound.append((None, HostTransfer(previous, successor.id)))
                    else:
                        outbound.append(
                            (
                                None,
                                SyncResponse(
                                    success=True,
                                    host_id=successor.id,
                                    playback_state=self._state,
                                    timestamp=now,
                                ),
                            )
                        )
                    logger.info(
                        f"Promoted {successor.id} to host of session {self.session_id}"
                    )

            if removed:
                logger.info(
                    f"Removed {len(removed)} idle viewer(s) from session {self.session_id}"
                )

        self._flush(outbound)
        return removed

    def close(self) -> None:
        """End the session and discard all state."""
        with self._lock:
            if self.is_closed:
                return
            self.phase = SessionPhase.CLOSED
            self.store.clear()
            self._viewers.clear()
            self._host_id = None
            self._state = None
            self._authoritative = False
            self._transfer_started_at = None
            self._host_lost_at = None
            logger.info(f"Closed session {self.session_id}")

    # ============== Metrics ==============

    def user_metrics(self, user_id: str) -> UserSyncMetrics | None:
        """Copy of a viewer's sync metrics, or None if unknown."""
        with self._lock:
            viewer = self._viewers.get(user_id)
            return replace(viewer.metrics) if viewer is not None else None

    def metrics(self) -> SyncMetrics:
        """Sync metrics aggregated over every viewer in the session."""
        with self._lock:
            per_viewer = [viewer.metrics for viewer in self._viewers.values()]
            attempts = sum(m.sync_attempts for m in per_viewer)
            successes = sum(m.sync_successes for m in per_viewer)
            average = (
                sum(m.average_sync_delta * m.sync_attempts for m in per_viewer)
                / attempts
                if attempts
                else 0.0
            )
            sync_times = [
                m.last_sync_time for m in per_viewer if m.last_sync_time is not None
            ]

        return SyncMetrics(
            sync_attempts=attempts,
            sync_successes=successes,
            average_sync_delta=average,
            last_sync_time=max(sync_times) if sync_times else None,
            network_quality=quality.classify_sync_delta(
                average,
                self.settings.quality_fair_threshold,
                self.settings.quality_poor_threshold,
            ),
        )

    # ============== Internals (lock held) ==============

    def _check_open(self) -> None:
        if self.is_closed:
            raise SessionClosed(f"Session {self.session_id} is closed")

    def _new_viewer(self) -> _ViewerSync:
        return _ViewerSync(tracker=QualityTracker(self.settings.quality_confirmations))

    def _viewer(self, user_id: str) -> _ViewerSync:
        viewer = self._viewers.get(user_id)
        if viewer is None:
            viewer = self._viewers[user_id] = self._new_viewer()
        return viewer

    def _require_presence(self, user_id: str) -> UserPresence:
        presence = self.store.get(user_id)
        if presence is None:
            raise UnknownUser(f"{user_id} is not in session {self.session_id}")
        return presence

    def _touch(
        self,
        presence: UserPresence,
        now: float,
        status: UserStatus | None = None,
        **changes,
    ) -> None:
        self.store.upsert(
            replace(
                presence,
                last_active=max(now, presence.last_active),
                status=status or UserStatus.ACTIVE,
                **changes,
            )
        )

    def _install_host(self, user_id: str, now: float) -> None:
        self.store.set_host(user_id)
        self._host_id = user_id
        self._host_lost_at = None
        self._lost_host_id = None
        self._authoritative = False

        if self._state is None:
            self._state = PlaybackState(
                is_playing=False, current_time=0.0, timestamp=now, host_id=user_id
            )
            self.phase = SessionPhase.HOSTED
            self._transfer_started_at = None
        else:
            self._state = self._state.anchored_at(now, host_id=user_id)
            self.phase = SessionPhase.TRANSFERRING
            self._transfer_started_at = now

    def _remove_presence(self, user_id: str, now: float) -> bool:
        if self.store.remove(user_id) is None:
            return False
        self._viewers.pop(user_id, None)
        logger.info(f"{user_id} left session {self.session_id}")

        if user_id == self._host_id:
            self._host_id = None
            self._lost_host_id = user_id
            self._authoritative = False
            self._transfer_started_at = None
            self.phase = SessionPhase.UNSYNCED
            logger.info(f"Session {self.session_id} lost its host {user_id}")

            if len(self.store):
                self._host_lost_at = now
            else:
                # Nobody left to inherit the state
                self._host_lost_at = None
                self._lost_host_id = None
                self._state = None
        elif not len(self.store) and self._host_id is None:
            self._host_lost_at = None
            self._lost_host_id = None
            self._state = None

        return True

    def _pick_successor(self) -> UserPresence | None:
        presences = self.store.list()
        active = [p for p in presences if p.status == UserStatus.ACTIVE]
        candidates = active or presences
        return candidates[0] if candidates else None

    def _record_sync(
        self, viewer: _ViewerSync, abs_delta: float, success: bool, now: float
    ) -> None:
        derived = quality.record_sync(
            viewer.metrics, abs_delta, success, now, self.settings
        )
        # Only a change in the delta trend overrides reported quality
        if derived != viewer.delta_quality:
            viewer.delta_quality = derived
            viewer.tracker.anchor(derived)

    def _flush(self, outbound: list[tuple[str | None, Message]]) -> None:
        if self.output is None:
            return
        for recipient, message in outbound:
            self.output.enqueue(recipient, message)
