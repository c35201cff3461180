"""
Per-item transfer decisions.

plan() runs on the enumerating thread against the pass snapshot of the
ledger; prepare() runs on a transfer worker and makes sure a local
artifact of the right size exists before upload.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ftpsync.providers.ftp import FtpSource, RemoteItem
    from ftpsync.sync.context import RunContext

from ftpsync.providers.ftp import DownloadStatus
from ftpsync.sync.exceptions import DownloadFailed, LocalCleanupFailed
from ftpsync.sync.ledger import LedgerKey, key_for

logger = logging.getLogger(__name__)


class ItemState(enum.Enum):
    CONFIRMED = "confirmed"
    ATTEMPTED = "attempted"
    UNRESOLVABLE = "unresolvable"
    READY_TO_UPLOAD = "ready_to_upload"


@dataclass(frozen=True)
class PlanDecision:
    item: RemoteItem
    key: LedgerKey
    state: ItemState
    local_path: Path


def artifact_matches(path: Path, size: int | None) -> bool:
    """True when a local artifact exists with exactly the remote size."""
    try:
        return path.stat().st_size == size
    except FileNotFoundError:
        return False


def discard_artifact(path: Path) -> bool:
    """
    Delete a local artifact if present.

    Returns:
        True if a file was deleted

    Raises:
        LocalCleanupFailed: If the file exists but could not be deleted
    """
    try:
        path.unlink()
        return True
    except FileNotFoundError:
        return False
    except OSError as e:
        raise LocalCleanupFailed(f"Could not delete {path}: {e}") from e


class TransferPlanner:
    """Decides, for each enumerated item, what the current pass does with it."""

    def __init__(self, context: RunContext):
        self.context = context

    def plan(self, item: RemoteItem) -> PlanDecision:
        """
        Classify an item as already confirmed, attempted, or unresolvable.

        Confirmed items get any stray local artifact removed. Unresolvable
        only happens with fetching disabled, when the local artifact is
        missing or has the wrong size.
        """
        key = key_for(item.name, item.modified_time)
        local_path = self.context.local_path_for(item)

        if self.context.ledger.contains(key):
            # A leftover copy violates nothing; a later pass retries the delete
            try:
                if discard_artifact(local_path):
                    logger.debug(f"{item.name}: removed local copy of confirmed file")
            except LocalCleanupFailed as e:
                logger.warning(str(e))
            return PlanDecision(item, key, ItemState.CONFIRMED, local_path)

        if self.context.settings.skip_fetch and not artifact_matches(local_path, item.size):
            logger.warning(
                f"{item.name}: fetching disabled and no local copy of {item.size} bytes, skipping"
            )
            return PlanDecision(item, key, ItemState.UNRESOLVABLE, local_path)

        return PlanDecision(item, key, ItemState.ATTEMPTED, local_path)

    def prepare(self, decision: PlanDecision, source: FtpSource) -> ItemState:
        """
        Fetch the item unless a same-size local artifact already exists.

        Returns:
            ItemState.READY_TO_UPLOAD

        Raises:
            DownloadFailed: If the download did not succeed or produced
                an artifact of the wrong size
        """
        item = decision.item
        path = decision.local_path

        if artifact_matches(path, item.size):
            return ItemState.READY_TO_UPLOAD

        notifier = self.context.notifier
        if path.exists():
            notifier.notify(
                f"{item.name}: redownloading due to mismatch in filesizes. "
                f"Remote: {item.size}bytes, Local: {path.stat().st_size}bytes"
            )
        else:
            notifier.notify(f"{item.name}: starting download")

        status = source.download(item.full_path, path)
        if status != DownloadStatus.SUCCESS:
            notifier.notify(f"{item.name}: ftp status: {status.value}")
            raise DownloadFailed(f"{item.full_path} on {item.source}: {status.value}")

        if not artifact_matches(path, item.size):
            # Still being written on the server; a later pass sees the new size
            raise DownloadFailed(
                f"{item.full_path} on {item.source}: downloaded "
                f"{path.stat().st_size} bytes, expected {item.size}"
            )

        return ItemState.READY_TO_UPLOAD
