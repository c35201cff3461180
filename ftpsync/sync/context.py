"""
Per-invocation state shared by every engine component.
"""

from __future__ import annotations

import threading
from concurrent.futures import Future
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ftpsync.conf import SyncSettings
    from ftpsync.notifier import Notifier
    from ftpsync.providers.ftp import RemoteItem
    from ftpsync.providers.google_drive import GoogleDriveClient

from ftpsync.sync.hierarchy import HierarchyCache
from ftpsync.sync.ledger import ConfirmationLedger, date_components


@dataclass
class RunContext:
    """
    Everything one run needs: settings, the Drive handle and root folder,
    the hierarchy cache, the ledger, the notifier and the cancellation flag.
    """

    settings: SyncSettings
    client: GoogleDriveClient
    hierarchy: HierarchyCache
    ledger: ConfirmationLedger
    notifier: Notifier
    root_folder_id: str = ""
    cancel_event: threading.Event = field(default_factory=threading.Event)
    in_flight: set[Future] = field(default_factory=set)
    _artifact_locks: dict[Path, threading.Lock] = field(default_factory=dict, repr=False)
    _artifact_locks_guard: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @classmethod
    def create(
        cls,
        settings: SyncSettings,
        client: GoogleDriveClient,
        notifier: Notifier,
    ) -> "RunContext":
        return cls(
            settings=settings,
            client=client,
            hierarchy=HierarchyCache(client),
            ledger=ConfirmationLedger(client, settings.ledger_file_name),
            notifier=notifier,
        )

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def cancel(self) -> None:
        self.cancel_event.set()

    def ensure_root_folder(self) -> str:
        """Resolve (creating if needed) the top-level Drive folder."""
        if not self.root_folder_id:
            self.root_folder_id = self.hierarchy.resolve(self.settings.drive.root_folder)
        return self.root_folder_id

    def local_path_for(self, item: RemoteItem) -> Path:
        """
        Local artifact path for an item.

        Laid out as <download path>/<source>/<yyyy>/<mm>/<dd>/<name> so
        same-named files from different sources or days never share a file.
        """
        year, month, day = date_components(item.modified_time)
        source_dir = item.source.replace(":", "_")
        return self.settings.download_path / source_dir / year / month / day / item.name

    def artifact_lock(self, path: Path) -> threading.Lock:
        """Lock serializing work on one local artifact across transfer workers."""
        with self._artifact_locks_guard:
            return self._artifact_locks.setdefault(path, threading.Lock())
