"""Presence store holding the viewers of one session."""

import logging
import threading
from dataclasses import replace

from watchsync.sync.models import UserPresence

logger = logging.getLogger(__name__)


class PresenceStore:
    """Thread-safe mapping of user id to UserPresence, kept in join order.

    Presences are immutable, so a snapshot returned by ``list()`` never
    changes underneath its reader.
    """

    def __init__(self) -> None:
        self._presences: dict[str, UserPresence] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._presences)

    def __contains__(self, user_id: object) -> bool:
        with self._lock:
            return user_id in self._presences

    def upsert(self, presence: UserPresence) -> bool:
        """Insert a presence, or replace the stored one with the same id.

        A replacement keeps the viewer's original join position.

        Args:
            presence: The presence to store.

        Returns:
            True if stored, False if ignored because its last_active is older
            than the stored one (a late or duplicated delivery).
        """
        with self._lock:
            current = self._presences.get(presence.id)
            if current is not None and presence.last_active < current.last_active:
                logger.debug(
                    f"Ignoring out-of-order presence update for {presence.id} "
                    f"({presence.last_active} < {current.last_active})"
                )
                return False
            self._presences[presence.id] = presence
            return True

    def remove(self, user_id: str) -> UserPresence | None:
        """Remove a presence.

        Returns:
            The removed presence, or None if it was not present.
        """
        with self._lock:
            return self._presences.pop(user_id, None)

    def get(self, user_id: str) -> UserPresence | None:
        with self._lock:
            return self._presences.get(user_id)

    def list(self) -> tuple[UserPresence, ...]:
        """Snapshot of every presence, ordered by join time.

        The snapshot is a plain tuple, so it can be iterated any number of
        times and is unaffected by later writes.
        """
        with self._lock:
            return tuple(self._presences.values())

    def host(self) -> UserPresence | None:
        """Return the presence currently flagged as host, if any."""
        with self._lock:
            for presence in self._presences.values():
                if presence.is_host:
                    return presence
            return None

    def set_host(self, user_id: str | None) -> None:
        """Move the host flag to a single viewer in one step.

        Every other presence loses the flag under the same lock, so readers
        never observe two hosts. Passing None clears the flag everywhere.

        Raises:
            KeyError: If user_id is not present.
        """
        with self._lock:
            if user_id is not None and user_id not in self._presences:
                raise KeyError(user_id)

            for presence_id, presence in self._presences.items():
                should_host = presence_id == user_id
                if presence.is_host != should_host:
                    self._presences[presence_id] = replace(
                        presence, is_host=should_host
                    )

    def clear(self) -> None:
        with self._lock:
            self._presences.clear()
