"""
Typed view over the Django settings used by the sync engine.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured


@dataclass(frozen=True)
class FtpSourceConfig:
    host: str
    folders: tuple[str, ...]
    port: int = 21
    username: str = ""
    password: str = ""
    tls: bool = False
    # Socket timeout handed to ftplib; the engine itself never times out
    timeout: float = 60.0

    @property
    def label(self) -> str:
        return self.host if self.port == 21 else f"{self.host}:{self.port}"

    @classmethod
    def from_dict(cls, data: dict) -> "FtpSourceConfig":
        """Build from a settings entry, accepting PascalCase or snake_case keys."""

        def pick(*keys, default=None):
            for key in keys:
                if key in data:
                    return data[key]
            return default

        host = pick("Host", "host", default="")
        if not host:
            raise ImproperlyConfigured("FTP source is missing a host")

        folders = pick("Folders", "folders", default=["/"])
        if isinstance(folders, str):
            folders = [folders]

        return cls(
            host=host,
            folders=tuple(folders),
            port=int(pick("Port", "port", default=21)),
            username=pick("Username", "username", default="") or "",
            password=pick("Password", "password", default="") or "",
            tls=bool(pick("Tls", "tls", default=False)),
            timeout=float(pick("Timeout", "timeout", default=60.0)),
        )


@dataclass(frozen=True)
class DriveConfig:
    client_secrets_path: Path
    token_store_path: Path
    root_folder: str


@dataclass(frozen=True)
class SyncSettings:
    """Resolved configuration for one invocation."""

    sources: tuple[FtpSourceConfig, ...]
    drive: DriveConfig
    download_path: Path
    application_name: str = "ftp-drive-sync"
    ledger_file_name: str = "confirmations.json"
    slack_webhook_url: str = ""
    log_progress_to_slack: bool = False
    skip_dot_files: bool = True
    skip_fetch: bool = False
    max_workers: int = 4
    # 0 means keep passing until convergence
    max_passes: int = 0

    def with_overrides(self, **changes) -> "SyncSettings":
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


def get_drive_config() -> DriveConfig:
    gdrive = getattr(settings, "GDRIVE", {})
    return DriveConfig(
        client_secrets_path=Path(gdrive.get("CLIENT_SECRETS_PATH", "client_secrets.json")),
        token_store_path=Path(gdrive.get("TOKEN_STORE_PATH", ".tokens.json")),
        root_folder=gdrive.get("ROOT_FOLDER", ""),
    )


def get_sync_settings(require_sources: bool = True) -> SyncSettings:
    """
    Build SyncSettings from django.conf.settings.

    Raises:
        ImproperlyConfigured: If no sources or no Drive root folder are set
    """
    sources = tuple(FtpSourceConfig.from_dict(s) for s in getattr(settings, "FTP_SOURCES", []))
    if require_sources and not sources:
        raise ImproperlyConfigured("No FTP sources configured (FTP_SOURCES)")

    drive = get_drive_config()
    if require_sources and not drive.root_folder:
        raise ImproperlyConfigured("No Google Drive root folder configured (GDRIVE.ROOT_FOLDER)")

    max_workers = int(getattr(settings, "MAX_WORKERS", 4))
    if max_workers < 1:
        raise ImproperlyConfigured(f"MAX_WORKERS must be at least 1, got {max_workers}")

    return SyncSettings(
        sources=sources,
        drive=drive,
        download_path=Path(getattr(settings, "DOWNLOAD_PATH", "downloads")),
        application_name=getattr(settings, "APPLICATION_NAME", "ftp-drive-sync"),
        ledger_file_name=getattr(settings, "LEDGER_FILE_NAME", "confirmations.json"),
        slack_webhook_url=getattr(settings, "SLACK_WEBHOOK_URL", ""),
        log_progress_to_slack=bool(getattr(settings, "LOG_PROGRESS_TO_SLACK", False)),
        skip_dot_files=bool(getattr(settings, "SKIP_DOT_FILES", True)),
        max_workers=max_workers,
        max_passes=int(getattr(settings, "MAX_PASSES", 0)),
    )
