"""
FTP client used as the synchronization source.

Lists folders with MLSD, sizes files lazily with SIZE, and downloads to a
local path. Each thread gets its own control connection since an
ftplib.FTP session cannot be shared between concurrent transfers.
"""

from __future__ import annotations

import enum
import ftplib
import logging
import os
import posixpath
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from ftpsync.conf import FtpSourceConfig

logger = logging.getLogger(__name__)


class FtpSourceError(Exception):
    """Base exception for FTP source operations."""

    pass


class DownloadStatus(enum.Enum):
    SUCCESS = "success"
    FAILED = "failed"


class ItemType(str, enum.Enum):
    FILE = "file"
    DIRECTORY = "directory"
    LINK = "link"
    OTHER = "other"


MLSD_TYPES = {
    "file": ItemType.FILE,
    "dir": ItemType.DIRECTORY,
    "cdir": ItemType.OTHER,
    "pdir": ItemType.OTHER,
    "os.unix=symlink": ItemType.LINK,
    "os.unix=slink": ItemType.LINK,
}


@dataclass(frozen=True)
class RemoteItem:
    """A single entry of a source folder listing."""

    name: str
    full_path: str
    source: str
    item_type: ItemType
    modified_time: datetime | None
    size: int | None = None

    @property
    def is_file(self) -> bool:
        return self.item_type == ItemType.FILE

    def with_size(self, size: int) -> "RemoteItem":
        return replace(self, size=size)


def parse_ftp_time(value: str) -> datetime:
    """
    Parse an MLSD/MDTM timestamp (YYYYMMDDHHMMSS[.fff], always UTC).

    Raises:
        ValueError: If the value is not a valid timestamp
    """
    whole = value.strip().split(".", 1)[0]
    return datetime.strptime(whole, "%Y%m%d%H%M%S").replace(tzinfo=timezone.utc)


class FtpSource:
    """
    Client for one configured FTP server.

    Connections are opened lazily and reused per thread until close().
    """

    def __init__(self, config: FtpSourceConfig):
        self.config = config
        self._local = threading.local()
        self._connections: list[ftplib.FTP] = []
        self._connections_lock = threading.Lock()

    @property
    def label(self) -> str:
        return self.config.label

    @property
    def folders(self) -> tuple[str, ...]:
        return self.config.folders

    def _connect(self) -> ftplib.FTP:
        """Open and log in a new control connection."""
        ftp_class = ftplib.FTP_TLS if self.config.tls else ftplib.FTP
        ftp = ftp_class(timeout=self.config.timeout)
        ftp.connect(self.config.host, self.config.port)
        ftp.login(self.config.username or "anonymous", self.config.password)
        if self.config.tls:
            ftp.prot_p()
        logger.debug(f"Connected to {self.label}")
        return ftp

    def _connection(self) -> ftplib.FTP:
        """Get or open this thread's connection."""
        ftp = getattr(self._local, "ftp", None)
        if ftp is None:
            ftp = self._connect()
            self._local.ftp = ftp
            with self._connections_lock:
                self._connections.append(ftp)
        return ftp

    def _discard_connection(self) -> None:
        """Drop this thread's connection after a transport failure."""
        ftp = getattr(self._local, "ftp", None)
        if ftp is None:
            return
        self._local.ftp = None
        with self._connections_lock:
            if ftp in self._connections:
                self._connections.remove(ftp)
        ftp.close()

    def list(self, folder: str) -> Iterator[RemoteItem]:
        """
        List a folder with MLSD.

        Args:
            folder: Folder path on the server

        Yields:
            RemoteItem per entry (size is not populated)

        Raises:
            ftplib.all_errors: On transport or protocol failure
        """
        ftp = self._connection()
        try:
            entries = ftp.mlsd(folder, facts=["type", "modify", "size"])
            for name, facts in entries:
                item_type = MLSD_TYPES.get(facts.get("type", "").lower(), ItemType.OTHER)
                if item_type == ItemType.OTHER:
                    continue

                full_path = posixpath.join(folder, name)
                modify = facts.get("modify")
                if modify:
                    modified_time = parse_ftp_time(modify)
                elif item_type == ItemType.FILE:
                    modified_time = self._query_modified_time(full_path)
                else:
                    modified_time = None

                yield RemoteItem(
                    name=name,
                    full_path=full_path,
                    source=self.label,
                    item_type=item_type,
                    modified_time=modified_time,
                )
        except ftplib.all_errors:
            self._discard_connection()
            raise

    def get_size(self, full_path: str) -> int:
        """Query a file's size in bytes (binary mode SIZE)."""
        ftp = self._connection()
        ftp.voidcmd("TYPE I")
        size = ftp.size(full_path)
        return size or 0

    def get_modified_time(self, full_path: str) -> datetime:
        """Query a file's modification time with MDTM."""
        ftp = self._connection()
        response = ftp.voidcmd(f"MDTM {full_path}")
        # "213 YYYYMMDDHHMMSS"
        return parse_ftp_time(response.split(" ", 1)[1])

    def _query_modified_time(self, full_path: str) -> datetime | None:
        # A 5xx reply concerns this file only; the listing carries on
        try:
            return self.get_modified_time(full_path)
        except ftplib.error_perm as e:
            logger.warning(f"MDTM failed for {full_path} on {self.label}: {e}")
            return None

    def download(self, full_path: str, local_path: Path) -> DownloadStatus:
        """
        Download a file, replacing local_path only once the transfer finished.

        Args:
            full_path: File path on the server
            local_path: Destination on the local filesystem

        Returns:
            DownloadStatus.SUCCESS or DownloadStatus.FAILED
        """
        local_path = Path(local_path)
        tmp_path = local_path.with_name(f"{local_path.name}.part")

        try:
            local_path.parent.mkdir(parents=True, exist_ok=True)
            ftp = self._connection()
            with open(tmp_path, "wb") as f:
                ftp.retrbinary(f"RETR {full_path}", f.write)
            os.replace(tmp_path, local_path)
            return DownloadStatus.SUCCESS

        except ftplib.all_errors as e:
            logger.warning(f"{self.label}: download of {full_path} failed: {e}")
            self._discard_connection()
            try:
                tmp_path.unlink()
            except FileNotFoundError:
                pass
            return DownloadStatus.FAILED

    def close(self) -> None:
        """Close every connection opened by any thread."""
        with self._connections_lock:
            connections, self._connections = self._connections, []
            self._local = threading.local()

        for ftp in connections:
            try:
                ftp.quit()
            except ftplib.all_errors:
                ftp.close()
