"""Sync package for coordinating playback across the viewers of a session."""

from watchsync.sync.coordinator import SyncCoordinator
from watchsync.sync.follower import PlaybackFollower
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
from watchsync.sync.registry import SessionRegistry
from watchsync.sync.transport import SessionRunner

__all__ = [
    "NetworkQuality",
    "PlaybackFollower",
    "PlaybackState",
    "PresenceStore",
    "SessionPhase",
    "SessionRegistry",
    "SessionRunner",
    "SyncCoordinator",
    "SyncMetrics",
    "UserPresence",
    "UserStatus",
    "UserSyncMetrics",
]
