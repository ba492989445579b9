"""
Error taxonomy for sync, recording and proxy failures.

Every failure is caught at the intent boundary, logged, and turned into a
quiet failure; nothing here is retried.
"""


class SyncError(Exception):
    """Base class for all client-side sync errors."""
    kind = "sync-error"


class Unauthenticated(SyncError):
    """Raised when no user identity is available yet."""
    kind = "unauthenticated"


class ValidationFailed(SyncError):
    """Raised when an intent is rejected before any remote write."""
    kind = "validation-failed"


class RemoteWriteFailed(SyncError):
    """Raised when the document store rejects or drops a write."""
    kind = "remote-write-failed"


class RemoteReadFailed(SyncError):
    """Raised when a point read or subscription setup fails."""
    kind = "remote-read-failed"


class ProxyFailed(SyncError):
    """Raised when an AI proxy call errors or returns a malformed result."""
    kind = "proxy-failed"
