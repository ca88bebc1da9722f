"""Registry for managing SyncCoordinator instances per viewing session."""

import time
from typing import Callable

from watchsync.config.settings import WatchSyncSettings
from watchsync.sync.coordinator import SyncCoordinator
from watchsync.sync.protocols import SyncOutput


class SessionRegistry:
    """Manages one SyncCoordinator per session.

    Sessions share nothing; the registry only maps ids to coordinators.
    """

    def __init__(
        self,
        settings: WatchSyncSettings,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings
        self._clock = clock
        self._coordinators: dict[str, SyncCoordinator] = {}

    def __len__(self) -> int:
        return len(self._coordinators)

    def get(self, session_id: str) -> SyncCoordinator | None:
        """Get coordinator for a session, auto-removing closed ones.

        Args:
            session_id: Viewing session id (for example an activity instance id).

        Returns:
            Open coordinator, or None if none exists or it was closed.
        """
        coordinator = self._coordinators.get(session_id)

        # Auto-cleanup closed coordinators
        if coordinator and coordinator.is_closed:
            del self._coordinators[session_id]
            return None

        return coordinator

    def get_or_create(
        self, session_id: str, output: SyncOutput | None = None
    ) -> SyncCoordinator:
        """Get the open coordinator for a session, creating it if needed.

        Args:
            session_id: Viewing session id.
            output: Output for a newly created coordinator. Ignored when the
                session already exists.

        Returns:
            The session's coordinator.
        """
        coordinator = self.get(session_id)
        if coordinator is None:
            coordinator = SyncCoordinator(
                session_id, self.settings, output=output, clock=self._clock
            )
            self._coordinators[session_id] = coordinator
        return coordinator

    def register(self, session_id: str, coordinator: SyncCoordinator) -> None:
        """Register a coordinator for a session.

        Args:
            session_id: Viewing session id.
            coordinator: SyncCoordinator to register.
        """
        self._coordinators[session_id] = coordinator

    def remove(self, session_id: str) -> None:
        """Close and remove the coordinator for a session.

        Args:
            session_id: Viewing session id.
        """
        coordinator = self._coordinators.pop(session_id, None)
        if coordinator is not None:
            coordinator.close()
