"""
Content hashing and verification of uploaded artifacts.
"""

from __future__ import annotations

import enum
import hashlib
from pathlib import Path

# Bounded read size so memory stays flat regardless of artifact size
BUFFER_SIZE = 32 * 1024


class Verdict(enum.Enum):
    MATCH = "match"
    MISMATCH = "mismatch"
    ABSENT = "absent"


def hash_file(path: Path | str, buffer_size: int = BUFFER_SIZE) -> str:
    """
    Compute the SHA-256 of a local file with buffered reads.

    Args:
        path: File to hash
        buffer_size: Read size in bytes

    Returns:
        Lowercase hex digest (the format Drive reports in sha256Checksum)
    """
    hasher = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(buffer_size), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


def verify(local_digest: str, sink_digest: str | None) -> Verdict:
    """Compare a local digest against the digest the sink reports."""
    if not sink_digest:
        return Verdict.ABSENT
    if local_digest.lower() == sink_digest.lower():
        return Verdict.MATCH
    return Verdict.MISMATCH
