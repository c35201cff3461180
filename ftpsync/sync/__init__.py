"""
Sync engine moving files from FTP sources into Google Drive.
"""

from ftpsync.sync.context import RunContext
from ftpsync.sync.engine import PassResult, SyncEngine, SyncResult
from ftpsync.sync.exceptions import (
    DownloadFailed,
    HashMismatchAfterUpload,
    LedgerPersistFailed,
    LocalCleanupFailed,
    SourceUnavailable,
    SyncAbortedError,
    SyncError,
    UploadIncomplete,
)
from ftpsync.sync.hierarchy import HierarchyCache
from ftpsync.sync.ledger import ConfirmationLedger, LedgerEntry
from ftpsync.sync.models import SyncEvent, SyncRun
from ftpsync.sync.planner import TransferPlanner
from ftpsync.sync.transfer import TransferProcedure

__all__ = [
    "SyncEngine",
    "SyncResult",
    "PassResult",
    "RunContext",
    "SyncRun",
    "SyncEvent",
    "HierarchyCache",
    "ConfirmationLedger",
    "LedgerEntry",
    "TransferPlanner",
    "TransferProcedure",
    "SyncError",
    "SyncAbortedError",
    "SourceUnavailable",
    "DownloadFailed",
    "UploadIncomplete",
    "HashMismatchAfterUpload",
    "LedgerPersistFailed",
    "LocalCleanupFailed",
]
