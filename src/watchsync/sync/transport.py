"""Asyncio transport adapter that drives one SyncCoordinator."""

import asyncio
import logging
import time
from typing import Any, Callable, Mapping

from watchsync.config.settings import WatchSyncSettings
from watchsync.sync.coordinator import SyncCoordinator
from watchsync.sync.errors import SenderMismatch, SyncError
from watchsync.sync.messages import (
    ErrorMessage,
    Heartbeat,
    HostTransfer,
    Message,
    MessageDecodeError,
    NetworkQualityUpdate,
    PlaybackReport,
    StatusChange,
    SyncRequest,
    UserJoin,
    UserLeave,
    decode_message,
    encode_message,
    message_type,
)
from watchsync.sync.models import PlaybackState, UserPresence
from watchsync.sync.protocols import PresenceSink, Publisher

logger = logging.getLogger(__name__)


def _render_key(presences: tuple[UserPresence, ...]) -> tuple:
    # Only what a sink displays; heartbeats alone should not trigger a render
    return tuple(
        (p.id, p.username, p.is_host, p.status, p.network_quality) for p in presences
    )


def _check_sender(sender_id: str | None, user_id: str) -> None:
    if sender_id is not None and sender_id != user_id:
        raise SenderMismatch(f"{sender_id} cannot act on behalf of {user_id}")


class SessionRunner:
    """Moves messages between a Publisher and a SyncCoordinator.

    The runner decodes inbound payloads, answers the sender, delivers the
    coordinator's outbound messages on a sender task, pushes host state at
    the coordinator's cadence, runs the liveness sweep and keeps an optional
    presence sink up to date. It implements the SyncOutput protocol for its
    coordinator.
    """

    def __init__(
        self,
        session_id: str,
        settings: WatchSyncSettings,
        publisher: Publisher,
        sink: PresenceSink | None = None,
        clock: Callable[[], float] = time.time,
        coordinator: SyncCoordinator | None = None,
    ):
        self.session_id = session_id
        self.settings = settings
        self.publisher = publisher
        self.sink = sink
        if coordinator is None:
            coordinator = SyncCoordinator(session_id, settings, clock=clock)
        coordinator.output = self
        self.coordinator = coordinator

        self._queue: asyncio.Queue[tuple[str | None, Message]] = asyncio.Queue()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._tasks: list[asyncio.Task[None]] = []
        self._render_requested = asyncio.Event()
        self._last_render_key: tuple | None = None

        # message class -> handler returning the reply for the sender
        self._handlers: dict[type, Callable[[Any, str | None], Message | None]] = {
            UserJoin: self._on_join,
            UserLeave: self._on_leave,
            Heartbeat: self._on_heartbeat,
            StatusChange: self._on_status_change,
            SyncRequest: self._on_sync_request,
            PlaybackState: self._on_playback_sync,
            PlaybackReport: self._on_playback_report,
            HostTransfer: self._on_host_transfer,
            NetworkQualityUpdate: self._on_network_quality,
        }

    @property
    def is_running(self) -> bool:
        return bool(self._tasks)

    # ============== Lifecycle ==============

    async def start(self) -> None:
        """Start the sender, broadcast, sweep and render tasks."""
        if self._tasks:
            return
        self._loop = asyncio.get_running_loop()

        loops = [self._send_loop(), self._broadcast_loop(), self._sweep_loop()]
        if self.sink is not None:
            loops.append(self._render_loop())
        self._tasks = [asyncio.create_task(loop) for loop in loops]
        logger.info(f"Started session runner for {self.session_id}")

    async def stop(self) -> None:
        """Stop background tasks, flush pending messages and close the session."""
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

        # Deliver whatever the coordinator produced before stopping
        while not self._queue.empty():
            recipient, message = self._queue.get_nowait()
            await self._deliver(recipient, message)

        self.coordinator.close()

        if self.sink is not None:
            try:
                await self.sink.clear()
            except Exception as e:
                logger.error(f"Failed to clear presence display for {self.session_id}: {e}")

        logger.info(f"Stopped session runner for {self.session_id}")

    # ============== SyncOutput ==============

    def enqueue(self, recipient: str | None, message: Message) -> None:
        """Queue an outbound message. Safe to call from any thread."""
        item = (recipient, message)
        if self._loop is None:
            self._queue.put_nowait(item)
            return

        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is self._loop:
            self._queue.put_nowait(item)
        else:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, item)

    # ============== Inbound ==============

    async def handle(
        self, payload: Mapping[str, Any], sender_id: str | None = None
    ) -> dict[str, Any] | None:
        """Process one inbound payload.

        Args:
            payload: ``{"type", "data"}`` envelope received from a viewer.
            sender_id: Authenticated id of the sending viewer, if the
                transport knows it. Playback updates are attributed to it,
                and messages naming another viewer are rejected.

        Returns:
            Encoded reply for the sender, if any. Rejected operations and
            malformed payloads produce an ERROR reply.
        """
        try:
            message = decode_message(payload)
            handler = self._handlers.get(type(message))
            if handler is None:
                raise MessageDecodeError(
                    f"{message_type(message)} is not accepted from viewers"
                )
            reply = handler(message, sender_id)
        except MessageDecodeError as e:
            logger.warning(f"Rejected malformed message in session {self.session_id}: {e}")
            return encode_message(ErrorMessage(code=e.code, message=str(e)))
        except SyncError as e:
            logger.info(
                f"Rejected {payload.get('type')} in session {self.session_id}: {e}"
            )
            return encode_message(ErrorMessage(code=e.code, message=str(e)))

        self._render_requested.set()
        return encode_message(reply) if reply is not None else None

    def _on_join(self, message: UserJoin, sender_id: str | None) -> Message | None:
        _check_sender(sender_id, message.user_id)
        self.coordinator.join(message.user_id, message.username)
        if self.coordinator.host_id is None:
            return None
        return self.coordinator.on_sync_request(SyncRequest(message.user_id))

    def _on_leave(self, message: UserLeave, sender_id: str | None) -> Message | None:
        _check_sender(sender_id, message.user_id)
        self.coordinator.leave(message.user_id)
        return None

    def _on_heartbeat(self, message: Heartbeat, sender_id: str | None) -> Message | None:
        _check_sender(sender_id, message.user_id)
        self.coordinator.touch(message.user_id)
        return None

    def _on_status_change(
        self, message: StatusChange, sender_id: str | None
    ) -> Message | None:
        _check_sender(sender_id, message.user_id)
        self.coordinator.touch(message.user_id, status=message.status)
        return None

    def _on_sync_request(
        self, message: SyncRequest, sender_id: str | None
    ) -> Message | None:
        _check_sender(sender_id, message.requester_id)
        return self.coordinator.on_sync_request(message)

    def _on_playback_sync(
        self, message: PlaybackState, sender_id: str | None
    ) -> Message | None:
        host_id = sender_id if sender_id is not None else message.host_id
        self.coordinator.on_host_playback_update(host_id, message)
        return None

    def _on_playback_report(
        self, message: PlaybackReport, sender_id: str | None
    ) -> Message | None:
        _check_sender(sender_id, message.user_id)
        # Corrections reach the viewer through the outbound queue
        self.coordinator.on_viewer_report(
            message.user_id, message.observed_time, message.timestamp
        )
        return None

    def _on_host_transfer(
        self, message: HostTransfer, sender_id: str | None
    ) -> Message | None:
        _check_sender(sender_id, message.previous_host_id)
        self.coordinator.request_host_transfer(message)
        return None

    def _on_network_quality(
        self, message: NetworkQualityUpdate, sender_id: str | None
    ) -> Message | None:
        _check_sender(sender_id, message.user_id)
        self.coordinator.on_network_quality_update(message)
        return None

    # ============== Background tasks ==============

    async def _deliver(self, recipient: str | None, message: Message) -> None:
        try:
            await self.publisher.send(recipient, encode_message(message))
        except Exception as e:
            logger.error(
                f"Failed to deliver {message_type(message)} in session "
                f"{self.session_id} to {recipient or 'everyone'}: {e}"
            )

    async def _send_loop(self) -> None:
        while True:
            recipient, message = await self._queue.get()
            await self._deliver(recipient, message)

    async def _broadcast_loop(self) -> None:
        while True:
            await asyncio.sleep(self.coordinator.broadcast_interval())
            broadcast = self.coordinator.build_broadcast()
            if broadcast is not None:
                self.enqueue(None, broadcast)

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.settings.sweep_interval)
            self.coordinator.sweep()
            self._render_requested.set()

    async def _render_loop(self) -> None:
        assert self.sink is not None
        while True:
            await self._render_requested.wait()
            self._render_requested.clear()

            snapshot = self.coordinator.store.list()
            key = _render_key(snapshot)
            if key != self._last_render_key:
                try:
                    await self.sink.render(snapshot)
                    self._last_render_key = key
                except Exception as e:
                    logger.error(
                        f"Failed to render presence for session {self.session_id}: {e}"
                    )

            # Coalesce bursts of presence changes into one render
            await asyncio.sleep(self.settings.sweep_interval)
