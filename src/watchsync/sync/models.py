"""Data models for viewing sessions."""

from dataclasses import dataclass, replace
from enum import Enum, auto


class SessionPhase(Enum):
    """Represents the current phase of a viewing session."""

    UNSYNCED = auto()  # No host, nothing authoritative to sync against
    HOSTED = auto()  # A host is assigned and pushing state
    TRANSFERRING = auto()  # Host changed, waiting for the new host's first update
    CLOSED = auto()  # Session ended, all state discarded


class UserStatus(Enum):
    """Presence status of a viewer."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    AWAY = "away"


class NetworkQuality(Enum):
    """Connection quality, ordered from best to worst."""

    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"

    @property
    def severity(self) -> int:
        """0 for good, 1 for fair, 2 for poor."""
        return _SEVERITY[self]

    @classmethod
    def from_severity(cls, severity: int) -> "NetworkQuality":
        """Map a severity back to a quality, clamping out-of-range values."""
        severity = max(0, min(severity, len(_BY_SEVERITY) - 1))
        return _BY_SEVERITY[severity]


_BY_SEVERITY = [NetworkQuality.GOOD, NetworkQuality.FAIR, NetworkQuality.POOR]
_SEVERITY = {quality: index for index, quality in enumerate(_BY_SEVERITY)}


@dataclass(frozen=True)
class PlaybackState:
    """Playback position captured at a wall-clock instant."""

    is_playing: bool
    current_time: float
    timestamp: float
    host_id: str
    buffering: bool = False
    seeking: bool = False

    def __post_init__(self) -> None:
        if self.current_time < 0:
            raise ValueError(f"current_time cannot be negative: {self.current_time}")

    @property
    def is_advancing(self) -> bool:
        """Whether the position moves with the wall clock."""
        return self.is_playing and not self.buffering and not self.seeking

    def position_at(self, at: float) -> float:
        """Linearly extrapolate the playback position to another instant.

        Args:
            at: Wall-clock time to extrapolate to, in seconds.

        Returns:
            Estimated position in seconds, never negative.
        """
        if not self.is_advancing:
            return self.current_time
        return max(0.0, self.current_time + (at - self.timestamp))

    def anchored_at(self, at: float, host_id: str | None = None) -> "PlaybackState":
        """Return a copy re-captured at another instant, optionally for a new host."""
        return replace(
            self,
            current_time=self.position_at(at),
            timestamp=at,
            host_id=host_id if host_id is not None else self.host_id,
        )


@dataclass(frozen=True)
class UserPresence:
    """A viewer connected to a session."""

    id: str
    username: str
    last_active: float
    is_host: bool = False
    status: UserStatus = UserStatus.ACTIVE
    playback_state: PlaybackState | None = None
    network_quality: NetworkQuality = NetworkQuality.GOOD


@dataclass
class UserSyncMetrics:
    """Sync statistics for a single viewer."""

    sync_attempts: int = 0
    sync_successes: int = 0
    average_sync_delta: float = 0.0
    last_sync_time: float | None = None
    network_quality: NetworkQuality = NetworkQuality.GOOD


@dataclass(frozen=True)
class SyncMetrics:
    """Sync statistics aggregated over a whole session."""

    sync_attempts: int
    sync_successes: int
    average_sync_delta: float
    last_sync_time: float | None
    network_quality: NetworkQuality
