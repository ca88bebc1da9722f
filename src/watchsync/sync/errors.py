"""Errors raised by the sync coordinator.

Every error rejects a single operation. None of them leave the coordinator in
a broken state, so callers can log and carry on.
"""


class SyncError(Exception):
    """Base class for rejected coordinator operations."""

    code = "SYNC_ERROR"


class NoHostAssigned(SyncError):
    """No host is assigned yet. Retry after a backoff."""

    code = "NO_HOST_ASSIGNED"


class StaleHost(SyncError):
    """A playback update came from someone who is not the current host."""

    code = "STALE_HOST"


class UnknownUser(SyncError):
    """The referenced user is not present in the session."""

    code = "UNKNOWN_USER"


class NotCurrentHost(SyncError):
    """A host transfer named a previous host that does not hold the role."""

    code = "NOT_CURRENT_HOST"


class HostAlreadyAssigned(SyncError):
    """The session already has a host."""

    code = "HOST_ALREADY_ASSIGNED"


class SessionClosed(SyncError):
    """The session has ended."""

    code = "SESSION_CLOSED"


class SenderMismatch(SyncError):
    """A message acted on behalf of someone other than its sender."""

    code = "SENDER_MISMATCH"
