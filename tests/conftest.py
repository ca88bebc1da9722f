"""Shared test fixtures and utilities."""

import logging

import pytest

from watchsync.config.settings import WatchSyncSettings
from watchsync.sync.coordinator import SyncCoordinator
from watchsync.sync.models import PlaybackState
from tests.mocks.mock_output import MockPresenceSink, MockPublisher, MockSyncOutput
from tests.mocks.mock_player import MockPlayer

T0 = 1_000.0


class FakeClock:
    """Manually advanced clock, callable like time.time."""

    def __init__(self, now: float = T0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def settings() -> WatchSyncSettings:
    """WatchSyncSettings with default thresholds and a fast sweep for tests."""
    return WatchSyncSettings(
        tolerance_good=0.5,
        tolerance_fair=1.5,
        tolerance_poor=3.0,
        quality_fair_threshold=0.5,
        quality_poor_threshold=2.0,
        sync_delta_weight=0.3,
        min_correction_interval=2.0,
        sync_interval_min=2.0,
        sync_interval_max=8.0,
        quality_confirmations=2,
        inactive_after=20.0,
        away_after=60.0,
        liveness_window=120.0,
        host_grace_period=5.0,
        transfer_timeout=5.0,
        sweep_interval=0.01,  # Background sweeps run quickly in runner tests
        auto_assign_host=True,
        log_level=logging.INFO,
    )


@pytest.fixture
def clock() -> FakeClock:
    """Fresh FakeClock starting at T0."""
    return FakeClock()


@pytest.fixture
def mock_output() -> MockSyncOutput:
    """Fresh MockSyncOutput instance."""
    return MockSyncOutput()


@pytest.fixture
def mock_publisher() -> MockPublisher:
    """Fresh MockPublisher instance."""
    return MockPublisher()


@pytest.fixture
def mock_sink() -> MockPresenceSink:
    """Fresh MockPresenceSink instance."""
    return MockPresenceSink()


@pytest.fixture
def mock_player() -> MockPlayer:
    """MockPlayer paused at 0s."""
    return MockPlayer()


@pytest.fixture
def coordinator(settings, mock_output, clock) -> SyncCoordinator:
    """Coordinator for session "s1" with a recording output and a fake clock."""
    return SyncCoordinator("s1", settings, output=mock_output, clock=clock)


def make_state(
    host_id: str = "alice",
    current_time: float = 120.0,
    timestamp: float = T0,
    is_playing: bool = True,
    **kwargs,
) -> PlaybackState:
    """Helper to create PlaybackState instances."""
    return PlaybackState(
        is_playing=is_playing,
        current_time=current_time,
        timestamp=timestamp,
        host_id=host_id,
        **kwargs,
    )


@pytest.fixture
def hosted(coordinator, clock) -> SyncCoordinator:
    """Coordinator with host alice playing from 120s at T0 and viewer bob."""
    coordinator.join("alice", "Alice")
    coordinator.join("bob", "Bob")
    coordinator.on_host_playback_update("alice", make_state())
    return coordinator
