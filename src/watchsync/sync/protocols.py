"""Protocol definitions for dependency injection around the SyncCoordinator."""

from typing import Any, Protocol, Sequence

from watchsync.sync.messages import Message
from watchsync.sync.models import UserPresence


class SyncOutput(Protocol):
    """Protocol for handing outbound messages to a transport.

    The coordinator calls this after its state change is complete and its
    lock is released. Implementations must not block.
    """

    def enqueue(self, recipient: str | None, message: Message) -> None:
        """Queue a message for delivery.

        Args:
            recipient: User id to deliver to, or None to deliver to every
                viewer in the session.
            message: The message to send.
        """
        ...


class Publisher(Protocol):
    """Protocol for the real-time channel that reaches viewers.

    Whether this is a websocket hub, the activity SDK relay or a message queue
    is up to the implementation.
    """

    async def send(self, recipient: str | None, payload: dict[str, Any]) -> None:
        """Deliver an encoded message.

        Args:
            recipient: User id to deliver to, or None to broadcast.
            payload: ``{"type", "data"}`` envelope.
        """
        ...


class PresenceSink(Protocol):
    """Protocol for presentation of the viewer list.

    Sinks only ever receive immutable snapshots and never talk back to the
    coordinator.
    """

    async def render(self, presences: Sequence[UserPresence]) -> None:
        """Show the current viewers.

        Args:
            presences: Snapshot of the session's presences in join order.
        """
        ...

    async def clear(self) -> None:
        """Remove whatever was rendered, called when the session ends."""
        ...


class PlayerHandle(Protocol):
    """Protocol for the playback engine a viewer is watching with.

    The follower interacts with this protocol without knowing which video
    player is plugged in.
    """

    def get_current_time(self) -> float:
        """Current playback position in seconds."""
        ...

    def seek(self, position: float) -> None:
        """Jump to a position in seconds."""
        ...

    def is_playing(self) -> bool:
        """Whether playback is currently running."""
        ...

    def play(self) -> None:
        """Resume playback. Safe to call while already playing."""
        ...

    def pause(self) -> None:
        """Pause playback. Safe to call while already paused."""
        ...
