"""
Upload of a ready local artifact followed by hash verification.

The procedure is two explicit phases, upload then verify, with a single
re-upload allowed when the stored copy's hash does not match. A ledger
entry is only written once Drive reports the same SHA-256 that was
computed locally.
"""

from __future__ import annotations

import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ftpsync.providers.ftp import RemoteItem
    from ftpsync.providers.google_drive import DriveFile, UploadResult
    from ftpsync.sync.context import RunContext

from ftpsync.sync.exceptions import (
    HashMismatchAfterUpload,
    LocalCleanupFailed,
    UploadIncomplete,
)
from ftpsync.sync.integrity import Verdict, hash_file, verify
from ftpsync.sync.ledger import LedgerEntry, date_components
from ftpsync.sync.planner import discard_artifact

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"

# Overwrites allowed within one pass after the first upload mismatches
REUPLOAD_ATTEMPTS = 1


def guess_mime_type(name: str) -> str:
    mime_type, _ = mimetypes.guess_type(name)
    return mime_type or DEFAULT_MIME_TYPE


@dataclass
class TransferResult:
    """A confirmed transfer."""

    item: RemoteItem
    entry: LedgerEntry
    uploads: int = 0
    bytes_uploaded: int = 0
    web_view_link: str | None = None


class TransferProcedure:
    """Uploads, verifies and confirms one item."""

    def __init__(self, context: RunContext):
        self.context = context

    def run(self, item: RemoteItem, local_path: Path) -> TransferResult:
        """
        Store local_path on Drive under root/YYYY/MM/DD and confirm it.

        Returns:
            TransferResult once the ledger entry is persisted

        Raises:
            UploadIncomplete: If an upload did not complete
            HashMismatchAfterUpload: If the stored copy never matched
            LedgerPersistFailed: If the confirmation could not be persisted
        """
        client = self.context.client
        notifier = self.context.notifier

        year, month, day = date_components(item.modified_time)
        day_folder_id = self.context.hierarchy.resolve_date_path(
            self.context.ensure_root_folder(), year, month, day
        )

        local_hash = hash_file(local_path)
        stored = client.find_file(item.name, day_folder_id)
        verdict = verify(local_hash, stored.sha256_checksum if stored else None)

        if verdict == Verdict.MATCH:
            return self._confirm(item, local_path, stored, (year, month, day), uploads=0)

        if stored is None:
            notifier.notify(f"{item.name}: starting upload")
        else:
            notifier.notify(
                f"{item.name}: reuploading due to hash mismatch. "
                f"Remote: {stored.sha256_checksum}, Local: {local_hash}"
            )

        mime_type = guess_mime_type(item.name)
        uploads = 0
        for attempt in range(1 + REUPLOAD_ATTEMPTS):
            # Upload phase
            result = self._upload(item.name, day_folder_id, local_path, mime_type, stored)
            uploads += 1
            if not result.completed:
                raise UploadIncomplete(f"{item.name}: upload did not complete: {result.error}")

            # Verify phase
            stored = client.get_file(result.file.id)
            verdict = verify(local_hash, stored.sha256_checksum)

            if verdict == Verdict.MATCH:
                return self._confirm(item, local_path, stored, (year, month, day), uploads=uploads)

            if verdict == Verdict.ABSENT:
                # Drive has not computed the checksum yet; next pass re-checks it
                raise HashMismatchAfterUpload(f"{item.name}: no checksum reported after upload")

            logger.warning(
                f"{item.name}: hash mismatch after upload {attempt + 1}. "
                f"Remote: {stored.sha256_checksum}, Local: {local_hash}"
            )

        raise HashMismatchAfterUpload(
            f"{item.name}: stored copy still differs after {uploads} upload(s)"
        )

    def _upload(
        self,
        name: str,
        parent_id: str,
        local_path: Path,
        mime_type: str,
        existing: DriveFile | None,
    ) -> UploadResult:
        client = self.context.client
        if existing is None:
            return client.create_file(name, parent_id, local_path, mime_type)
        return client.update_file(existing.id, local_path, mime_type)

    def _confirm(
        self,
        item: RemoteItem,
        local_path: Path,
        stored: DriveFile,
        date_parts: tuple[str, str, str],
        uploads: int,
    ) -> TransferResult:
        year, month, day = date_parts
        entry = LedgerEntry(
            file_name=item.name,
            year=year,
            month=month,
            day=day,
            hash=stored.sha256_checksum,
            file_size=stored.size if stored.size is not None else item.size,
        )
        self.context.ledger.confirm(entry)

        try:
            discard_artifact(local_path)
        except LocalCleanupFailed as e:
            logger.warning(f"{item.name}: confirmed but {e}")

        link = stored.web_view_link or stored.id
        self.context.notifier.notify(f"<{link}|{item.name}>: upload completed", force=True)

        return TransferResult(
            item=item,
            entry=entry,
            uploads=uploads,
            bytes_uploaded=uploads * (item.size or 0),
            web_view_link=stored.web_view_link,
        )
