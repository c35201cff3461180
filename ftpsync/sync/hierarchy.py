"""
Resolution of the year/month/day folder hierarchy in Google Drive.

Drive does not enforce unique names among siblings, so the
look-up-then-create sequence is serialized process wide and its results
are cached for the rest of the run.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ftpsync.providers.google_drive import GoogleDriveClient

logger = logging.getLogger(__name__)


class HierarchyCache:
    """
    Maps (folder name, parent id) to a Drive folder id.

    Folders are never renamed or deleted during a run, so entries are
    never invalidated.
    """

    def __init__(self, client: GoogleDriveClient):
        self.client = client
        self._cache: dict[tuple[str, str], str] = {}
        self._lock = threading.Lock()

    def resolve(self, name: str, parent_id: str = "") -> str:
        """
        Get the id of folder name under parent_id, creating it if missing.

        Args:
            name: Folder name
            parent_id: Parent folder id, empty for top level

        Returns:
            Folder id
        """
        key = (name, parent_id)

        with self._lock:
            if key in self._cache:
                return self._cache[key]

            existing = self.client.list_folders(name, parent_id)
            if existing:
                if len(existing) > 1:
                    logger.warning(
                        f"Found {len(existing)} folders named {name!r} under "
                        f"{parent_id or 'top level'}, using {existing[0].id}"
                    )
                folder_id = existing[0].id
            else:
                folder_id = self.client.create_folder(name, parent_id).id
                logger.info(f"Created folder {name!r} under {parent_id or 'top level'}")

            self._cache[key] = folder_id
            return folder_id

    def resolve_date_path(self, root_id: str, year: str, month: str, day: str) -> str:
        """Resolve root/year/month/day and return the day folder id."""
        year_id = self.resolve(year, root_id)
        month_id = self.resolve(month, year_id)
        return self.resolve(day, month_id)

    def __len__(self) -> int:
        return len(self._cache)
