"""Tests for PresenceStore."""

from dataclasses import replace

import pytest

from watchsync.sync.models import UserPresence
from watchsync.sync.presence import PresenceStore


def make_presence(user_id: str, last_active: float = 10.0, **kwargs) -> UserPresence:
    kwargs.setdefault("username", user_id.title())
    return UserPresence(id=user_id, last_active=last_active, **kwargs)


class TestUpsert:
    """Tests for insert and replace semantics."""

    def test_insert_and_get(self):
        """Inserted presence can be read back by id."""
        store = PresenceStore()
        assert store.upsert(make_presence("alice"))
        assert store.get("alice").username == "Alice"
        assert "alice" in store
        assert len(store) == 1

    def test_newer_update_replaces(self):
        """An update with a newer last_active replaces the stored presence."""
        store = PresenceStore()
        store.upsert(make_presence("alice", last_active=10.0))
        assert store.upsert(make_presence("alice", last_active=11.0, username="Al"))
        assert store.get("alice").username == "Al"

    def test_equal_last_active_replaces(self):
        """Same last_active is not older, so the update applies."""
        store = PresenceStore()
        store.upsert(make_presence("alice", last_active=10.0))
        assert store.upsert(make_presence("alice", last_active=10.0, is_host=True))
        assert store.get("alice").is_host

    def test_older_update_is_noop(self):
        """An update with an older last_active than stored is ignored."""
        store = PresenceStore()
        store.upsert(make_presence("alice", last_active=10.0))

        assert not store.upsert(make_presence("alice", last_active=9.0, username="Old"))
        assert store.get("alice").username == "Alice"
        assert store.get("alice").last_active == 10.0

    def test_replace_keeps_join_order(self):
        """Replacing a presence does not move it to the end of the list."""
        store = PresenceStore()
        for user_id in ("alice", "bob", "carol"):
            store.upsert(make_presence(user_id))

        store.upsert(make_presence("alice", last_active=20.0))

        assert [p.id for p in store.list()] == ["alice", "bob", "carol"]


class TestRemoveAndList:
    """Tests for removal and snapshots."""

    def test_remove_returns_presence(self):
        """remove() returns what it removed, None when absent."""
        store = PresenceStore()
        store.upsert(make_presence("alice"))

        assert store.remove("alice").id == "alice"
        assert store.remove("alice") is None
        assert store.get("alice") is None

    def test_snapshot_is_restartable(self):
        """A snapshot can be iterated more than once."""
        store = PresenceStore()
        store.upsert(make_presence("alice"))
        store.upsert(make_presence("bob"))

        snapshot = store.list()
        assert [p.id for p in snapshot] == [p.id for p in snapshot]

    def test_snapshot_unaffected_by_later_writes(self):
        """Writes after list() do not change the snapshot already taken."""
        store = PresenceStore()
        store.upsert(make_presence("alice"))
        snapshot = store.list()

        store.upsert(make_presence("bob"))
        store.remove("alice")

        assert [p.id for p in snapshot] == ["alice"]

    def test_clear(self):
        """clear() empties the store."""
        store = PresenceStore()
        store.upsert(make_presence("alice"))
        store.clear()
        assert len(store) == 0
        assert store.list() == ()


class TestHostFlag:
    """Tests for the single-host invariant."""

    def test_set_host_moves_flag(self):
        """Moving the host flag clears it on the previous host."""
        store = PresenceStore()
        store.upsert(make_presence("alice"))
        store.upsert(make_presence("bob"))

        store.set_host("alice")
        assert store.host().id == "alice"

        store.set_host("bob")
        assert store.host().id == "bob"
        assert [p.id for p in store.list() if p.is_host] == ["bob"]

    def test_set_host_none_clears(self):
        """set_host(None) leaves nobody flagged."""
        store = PresenceStore()
        store.upsert(make_presence("alice"))
        store.set_host("alice")

        store.set_host(None)

        assert store.host() is None

    def test_set_host_unknown_raises(self):
        """Flagging an absent id raises KeyError and changes nothing."""
        store = PresenceStore()
        store.upsert(make_presence("alice"))
        store.set_host("alice")

        with pytest.raises(KeyError):
            store.set_host("mallory")

        assert store.host().id == "alice"

    def test_set_host_keeps_last_active(self):
        """Moving the flag does not touch activity timestamps."""
        store = PresenceStore()
        presence = make_presence("alice", last_active=42.0)
        store.upsert(presence)

        store.set_host("alice")

        assert store.get("alice") == replace(presence, is_host=True)
