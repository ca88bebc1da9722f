"""Discord implementation of the PresenceSink protocol."""

import logging
from typing import Sequence

from discord import Embed, Forbidden, HTTPException, Message, NotFound, TextChannel

from watchsync.config import constants
from watchsync.sync.models import NetworkQuality, UserPresence, UserStatus

logger = logging.getLogger(__name__)

_STATUS_EMOJI = {
    UserStatus.ACTIVE: "🟢",
    UserStatus.INACTIVE: "🟡",
    UserStatus.AWAY: "⚪",
}

_QUALITY_LABEL = {
    NetworkQuality.GOOD: "Good Connection",
    NetworkQuality.FAIR: "Fair Connection",
    NetworkQuality.POOR: "Poor Connection",
}

_QUALITY_COLOR = {
    NetworkQuality.GOOD: constants.GOOD_EMBED_COLOR,
    NetworkQuality.FAIR: constants.FAIR_EMBED_COLOR,
    NetworkQuality.POOR: constants.POOR_EMBED_COLOR,
}


def format_presence(presence: UserPresence) -> str:
    """One line of the viewer list, e.g. ``🟢 **Alice** `HOST` · Good Connection``."""
    line = f"{_STATUS_EMOJI[presence.status]} **{presence.username}**"
    if presence.is_host:
        line += " `HOST`"
    return f"{line} · {_QUALITY_LABEL[presence.network_quality]}"


def build_presence_embed(presences: Sequence[UserPresence]) -> Embed:
    """Build the embed listing everyone in a session.

    The colour follows the worst connection in the session. Lines that do not
    fit in an embed description are summarised as "…and N more".

    Args:
        presences: Snapshot of the session's presences in join order.

    Returns:
        Embed ready to send or edit into a message.
    """
    if not presences:
        return Embed(
            title=constants.PRESENCE_EMBED_TITLE,
            description="Nobody is watching right now.",
            color=constants.EMPTY_EMBED_COLOR,
        )

    worst = max((p.network_quality for p in presences), key=lambda q: q.severity)

    lines: list[str] = []
    length = 0
    for index, presence in enumerate(presences):
        line = format_presence(presence)
        remaining = len(presences) - index - 1
        # Leave room for the overflow line whenever more viewers follow
        reserve = len(f"\n…and {remaining} more") if remaining else 0
        added = len(line) + (1 if lines else 0)
        if length + added + reserve > constants.EMBED_DESCRIPTION_LIMIT:
            lines.append(f"…and {len(presences) - index} more")
            break
        lines.append(line)
        length += added

    return Embed(
        title=constants.PRESENCE_EMBED_TITLE,
        description="\n".join(lines),
        color=_QUALITY_COLOR[worst],
    )


class DiscordPresenceOutput:
    """Keeps a single Discord message showing who is watching.

    The first render sends the message, later renders edit it in place. If
    the message was deleted in the meantime it is sent again.
    """

    def __init__(self, channel: TextChannel):
        self.channel = channel
        self._message: Message | None = None

    async def render(self, presences: Sequence[UserPresence]) -> None:
        """Send or update the viewer list."""
        embed = build_presence_embed(presences)
        try:
            if self._message is not None:
                try:
                    await self._message.edit(embed=embed)
                    return
                except NotFound:
                    logger.info("Presence message was deleted, sending a new one")
                    self._message = None
            self._message = await self.channel.send(embed=embed)
        except Forbidden:
            logger.error(
                "Insufficient permission to post the viewer list. "
                'Please give me the "send_messages" and "embed_links" permissions'
            )
        except HTTPException as e:
            logger.error(f"Updating the viewer list failed: {e}")

    async def clear(self) -> None:
        """Delete the viewer list message."""
        if self._message is None:
            return
        message, self._message = self._message, None
        try:
            await message.delete()
        except NotFound:
            pass
        except (Forbidden, HTTPException) as e:
            logger.error(f"Deleting the viewer list failed: {e}")
