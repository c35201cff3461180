"""
Token store for the Google Drive OAuth credentials.

Credentials are kept in a JSON file with restricted permissions (600),
outside the database, keyed by the application name so several
installations can share one store.
"""

from __future__ import annotations

import json
import logging
import os
import stat
import tempfile
from pathlib import Path

from google.oauth2.credentials import Credentials

from ftpsync.conf import get_drive_config

logger = logging.getLogger(__name__)


class SecretsError(Exception):
    """Base exception for secrets operations."""

    pass


class SecretsFileError(SecretsError):
    """Raised when token store file operations fail."""

    pass


def _get_secrets_path() -> Path:
    """Get the path to the token store file."""
    return get_drive_config().token_store_path


def _load_secrets() -> dict:
    """
    Load the token store.

    Returns:
        Dict of stored credentials, empty dict if file doesn't exist
    """
    path = _get_secrets_path()

    if not path.exists():
        return {}

    try:
        with open(path, "r") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        logger.error(f"Invalid JSON in token store: {e}")
        raise SecretsFileError(f"Invalid token store format: {e}") from e
    except OSError as e:
        logger.error(f"Failed to read token store: {e}")
        raise SecretsFileError(f"Failed to read token store: {e}") from e


def _save_secrets(data: dict) -> None:
    """
    Save the token store atomically.

    Uses atomic write (temp file + rename) and sets permissions to 600.
    """
    path = _get_secrets_path()

    try:
        path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(
            dir=path.parent,
            prefix=".tokens_",
            suffix=".tmp",
        )

        try:
            with os.fdopen(fd, "w") as f:
                json.dump(data, f, indent=2, default=str)

            os.chmod(tmp_path, stat.S_IRUSR | stat.S_IWUSR)  # 600

            os.replace(tmp_path, path)

        except Exception:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

    except OSError as e:
        logger.error(f"Failed to save token store: {e}")
        raise SecretsFileError(f"Failed to save token store: {e}") from e


def get_credentials(key: str, scopes: list[str]) -> Credentials | None:
    """
    Load stored credentials.

    Args:
        key: Store key (the application name)
        scopes: OAuth scopes the credentials were granted

    Returns:
        Credentials or None if nothing is stored under key
    """
    info = _load_secrets().get(key)
    if info is None:
        return None
    return Credentials.from_authorized_user_info(info, scopes)


def save_credentials(key: str, credentials: Credentials) -> None:
    """Store credentials under key, replacing any previous entry."""
    secrets = _load_secrets()
    secrets[key] = json.loads(credentials.to_json())
    _save_secrets(secrets)
    logger.info(f"Saved credentials for {key} to {_get_secrets_path()}")


def delete_credentials(key: str) -> bool:
    """
    Delete stored credentials.

    Returns:
        True if credentials were deleted, False if not found
    """
    secrets = _load_secrets()
    if key not in secrets:
        return False

    del secrets[key]
    _save_secrets(secrets)
    logger.info(f"Deleted credentials for {key}")
    return True


def has_credentials(key: str) -> bool:
    """Check if credentials exist for key."""
    return key in _load_secrets()
