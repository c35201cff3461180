"""
Exceptions for sync operations.
"""


class SyncError(Exception):
    """Base exception for sync operations."""

    pass


class SyncAbortedError(SyncError):
    """Sync was aborted (e.g., credentials missing, configuration unusable)."""

    pass


class SourceUnavailable(SyncError):
    """Listing or transport failure for one configured FTP source."""

    def __init__(self, source: str, folder: str, reason: str = ""):
        self.source = source
        self.folder = folder
        self.reason = reason
        message = f"Source {source} unavailable while listing {folder}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class DownloadFailed(SyncError):
    """Fetch from the source finished with a non-success status."""

    pass


class UploadIncomplete(SyncError):
    """Upload to the sink did not reach the completed state."""

    pass


class HashMismatchAfterUpload(SyncError):
    """Sink-reported hash still differs from the local hash after re-upload."""

    pass


class LedgerPersistFailed(SyncError):
    """The confirmation ledger could not be written to the sink."""

    pass


class LocalCleanupFailed(SyncError):
    """A confirmed local artifact could not be deleted."""

    pass
