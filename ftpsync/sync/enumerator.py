"""
Per-pass enumeration of source folders.
"""

from __future__ import annotations

import ftplib
import logging
from typing import TYPE_CHECKING, Callable, Iterator

if TYPE_CHECKING:
    from ftpsync.providers.ftp import FtpSource, RemoteItem

from ftpsync.sync.exceptions import SourceUnavailable

logger = logging.getLogger(__name__)

UnreadableCallback = Callable[["RemoteItem", str], None]


def enumerate_source(
    source: FtpSource,
    folder: str,
    skip_dot_files: bool = True,
    on_unreadable: UnreadableCallback | None = None,
) -> Iterator[RemoteItem]:
    """
    Lazily yield the qualifying files of one source folder.

    Non-file entries are dropped, dot-files are dropped before their size
    is queried when skip_dot_files is set, and zero-length files are
    treated as still being written and dropped.

    A file the server refuses to describe (a 5xx reply to SIZE, or no
    modification time) is skipped on its own and handed to on_unreadable;
    the rest of the folder is still enumerated.

    Args:
        source: The FTP source
        folder: Folder path on the source
        skip_dot_files: Drop names beginning with "."
        on_unreadable: Called with (item, reason) for each skipped file
            that qualifies but could not be described

    Yields:
        RemoteItem with size populated

    Raises:
        SourceUnavailable: On a transport failure, or when the folder
            listing itself is refused
    """
    try:
        for item in source.list(folder):
            if not item.is_file:
                continue

            if skip_dot_files and item.name.startswith("."):
                logger.debug(f"Skipping dot-file {item.full_path}")
                continue

            if item.modified_time is None:
                _unreadable(on_unreadable, item, "no modification time reported")
                continue

            try:
                size = source.get_size(item.full_path)
            except ftplib.error_perm as e:
                _unreadable(on_unreadable, item, f"SIZE refused: {e}")
                continue

            if size <= 0:
                logger.debug(f"Skipping empty file {item.full_path}")
                continue

            yield item.with_size(size)

    except ftplib.all_errors as e:
        raise SourceUnavailable(source.label, folder, str(e)) from e


def _unreadable(callback: UnreadableCallback | None, item: RemoteItem, reason: str) -> None:
    logger.warning(f"Skipping {item.full_path} on {item.source}: {reason}")
    if callback is not None:
        callback(item, reason)
