"""Tests for the Discord presence sink."""

from watchsync.config import constants
from watchsync.sync.discord_impl import (
    DiscordPresenceOutput,
    build_presence_embed,
    format_presence,
)
from watchsync.sync.models import NetworkQuality, UserPresence, UserStatus
from tests.mocks.mock_discord import FakeChannel


def make_presence(user_id: str, **kwargs) -> UserPresence:
    kwargs.setdefault("username", user_id.title())
    return UserPresence(id=user_id, last_active=0.0, **kwargs)


class TestEmbed:
    """Tests for embed formatting."""

    def test_host_line(self):
        """Host lines carry a badge, status emoji and quality label."""
        line = format_presence(make_presence("alice", is_host=True))
        assert line == "🟢 **Alice** `HOST` · Good Connection"

    def test_viewer_line(self):
        """Viewer lines reflect status and quality."""
        line = format_presence(
            make_presence(
                "bob", status=UserStatus.AWAY, network_quality=NetworkQuality.FAIR
            )
        )
        assert line == "⚪ **Bob** · Fair Connection"

    def test_colour_follows_worst_quality(self):
        """One poor viewer turns the embed red."""
        embed = build_presence_embed(
            [
                make_presence("alice", is_host=True),
                make_presence("bob", network_quality=NetworkQuality.POOR),
                make_presence("carol", network_quality=NetworkQuality.FAIR),
            ]
        )
        assert embed.title == constants.PRESENCE_EMBED_TITLE
        assert embed.colour.value == constants.POOR_EMBED_COLOR
        assert embed.description.splitlines()[0].startswith("🟢 **Alice**")

    def test_empty_session(self):
        """Nobody watching gets a neutral embed."""
        embed = build_presence_embed([])
        assert embed.colour.value == constants.EMPTY_EMBED_COLOR
        assert "Nobody" in embed.description

    def test_long_lists_are_truncated(self):
        """Descriptions never exceed Discord's limit."""
        presences = [make_presence(f"user{i}", username="x" * 60) for i in range(200)]

        embed = build_presence_embed(presences)

        assert len(embed.description) <= constants.EMBED_DESCRIPTION_LIMIT
        last = embed.description.splitlines()[-1]
        assert last.startswith("…and ")
        shown = len(embed.description.splitlines()) - 1
        assert last == f"…and {200 - shown} more"


class TestDiscordPresenceOutput:
    """Tests for sending and maintaining the presence message."""

    async def test_first_render_sends_then_edits(self):
        """The message is sent once and edited afterwards."""
        channel = FakeChannel()
        output = DiscordPresenceOutput(channel)

        await output.render([make_presence("alice", is_host=True)])
        await output.render([make_presence("alice", is_host=True), make_presence("bob")])

        assert len(channel.sent) == 1
        assert len(channel.sent[0].embeds) == 2
        assert "Bob" in channel.sent[0].embeds[-1].description

    async def test_deleted_message_is_resent(self):
        """If someone deleted the message a new one is posted."""
        channel = FakeChannel()
        output = DiscordPresenceOutput(channel)
        await output.render([make_presence("alice")])
        channel.sent[0].deleted = True

        await output.render([make_presence("bob")])

        assert len(channel.sent) == 2

    async def test_forbidden_is_logged(self, caplog):
        """Missing permissions are logged rather than raised."""
        output = DiscordPresenceOutput(FakeChannel(forbidden=True))

        await output.render([make_presence("alice")])

        assert "Insufficient permission" in caplog.text

    async def test_clear_deletes_message(self):
        """clear() removes the message and is safe to repeat."""
        channel = FakeChannel()
        output = DiscordPresenceOutput(channel)
        await output.render([make_presence("alice")])

        await output.clear()
        await output.clear()

        assert channel.sent[0].deleted

    async def test_clear_tolerates_deleted_message(self):
        """Clearing an already deleted message is silent."""
        channel = FakeChannel()
        output = DiscordPresenceOutput(channel)
        await output.render([make_presence("alice")])
        channel.sent[0].deleted = True

        await output.clear()
