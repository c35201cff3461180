"""
Confirmation ledger persisted in the Drive appDataFolder.

The ledger is a single JSON array of confirmed transfers. It is read in
full at the start of every pass and rewritten in full after every
confirmation; there is no delta format.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, NamedTuple

from django.utils import timezone

if TYPE_CHECKING:
    from ftpsync.providers.google_drive import GoogleDriveClient

from ftpsync.sync.exceptions import LedgerPersistFailed

logger = logging.getLogger(__name__)

LEDGER_MIME_TYPE = "application/json"


class LedgerKey(NamedTuple):
    file_name: str
    year: str
    month: str
    day: str


def date_components(moment: datetime) -> tuple[str, str, str]:
    """
    Split a timestamp into (year, month, day) strings in the active time zone.

    Month and day are zero-padded to two digits.
    """
    if timezone.is_aware(moment):
        moment = timezone.localtime(moment)
    return str(moment.year), f"{moment.month:02d}", f"{moment.day:02d}"


def key_for(file_name: str, moment: datetime) -> LedgerKey:
    return LedgerKey(file_name, *date_components(moment))


@dataclass(frozen=True)
class LedgerEntry:
    """Proof that a file was stored on Drive with a verified hash."""

    file_name: str
    year: str
    month: str
    day: str
    hash: str
    file_size: int

    @property
    def key(self) -> LedgerKey:
        return LedgerKey(self.file_name, self.year, self.month, self.day)

    def to_dict(self) -> dict:
        return {
            "fileName": self.file_name,
            "year": self.year,
            "month": self.month,
            "day": self.day,
            "hash": self.hash,
            "fileSize": self.file_size,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "LedgerEntry":
        return cls(
            file_name=data["fileName"],
            year=str(data["year"]),
            month=str(data["month"]).zfill(2),
            day=str(data["day"]).zfill(2),
            hash=data.get("hash") or "",
            file_size=int(data.get("fileSize") or 0),
        )


class ConfirmationLedger:
    """
    Read-modify-write access to the ledger document.

    Planning decisions only consult the snapshot taken by load(), so a
    confirmation made by a concurrent transfer never changes a decision
    within the same pass.
    """

    def __init__(self, client: GoogleDriveClient, document_name: str = "confirmations.json"):
        self.client = client
        self.document_name = document_name
        self._entries: list[LedgerEntry] = []
        self._snapshot: frozenset[LedgerKey] = frozenset()
        self._lock = threading.Lock()

    def load(self) -> list[LedgerEntry]:
        """
        Read the ledger document from Drive and take a new snapshot.

        A missing document is an empty ledger.

        Returns:
            All entries currently persisted
        """
        document = self.client.find_app_data_file(self.document_name)
        entries = []

        if document is not None:
            raw = self.client.download_bytes(document.id)
            if raw.strip():
                entries = [LedgerEntry.from_dict(item) for item in json.loads(raw)]

        with self._lock:
            self._entries = entries
            self._snapshot = frozenset(entry.key for entry in entries)

        logger.info(f"Loaded {len(entries)} confirmed transfer(s) from {self.document_name}")
        return list(entries)

    @property
    def entries(self) -> list[LedgerEntry]:
        with self._lock:
            return list(self._entries)

    def contains(self, key: LedgerKey) -> bool:
        """Check the pass snapshot for key."""
        return key in self._snapshot

    def confirm(self, entry: LedgerEntry) -> None:
        """
        Add an entry and persist the whole ledger.

        The entry is only kept if the document was written.

        Raises:
            LedgerPersistFailed: If the document could not be written
        """
        with self._lock:
            self._entries.append(entry)
            try:
                self._persist_locked()
            except LedgerPersistFailed:
                self._entries.remove(entry)
                raise

    def persist(self) -> None:
        """Write the current entries to Drive."""
        with self._lock:
            self._persist_locked()

    def _persist_locked(self) -> None:
        payload = json.dumps([entry.to_dict() for entry in self._entries]).encode("utf-8")

        try:
            document = self.client.find_app_data_file(self.document_name)
            if document is not None:
                result = self.client.update_file_bytes(document.id, payload, LEDGER_MIME_TYPE)
            else:
                result = self.client.create_app_data_file(
                    self.document_name, payload, LEDGER_MIME_TYPE
                )
        except Exception as e:
            raise LedgerPersistFailed(f"Failed to write {self.document_name}: {e}") from e

        if not result.completed:
            raise LedgerPersistFailed(f"Failed to write {self.document_name}: {result.error}")

        logger.debug(f"Persisted {len(self._entries)} ledger entries")
