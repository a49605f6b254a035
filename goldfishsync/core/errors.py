"""Exceptions raised at the setup and batch level of a sync pass.

Failures scoped to a single note never surface as exceptions past the note
boundary; they are reported as :class:`~goldfishsync.core.models.SyncIssue`
values instead.
"""


class SyncError(Exception):
    """Base class for errors that abort a whole sync pass."""


class InvalidTemplate(SyncError):
    """The note template cannot produce an indexable file."""


class RemoteBatchError(SyncError):
    """Fetching the remote batch of notes failed."""


class NotAuthenticated(SyncError):
    """No owner id or access token is configured for the remote backend."""


class SyncInProgress(SyncError):
    """Another pass is already running against the managed folder."""


class AttachmentError(Exception):
    """Fetching or writing a single attachment failed."""

    def __init__(self, ref: str, message: str):
        super().__init__(message)
        self.ref = ref
