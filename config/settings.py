"""
Django settings for the ftp-drive-sync project.

Runtime configuration lives in a JSON settings file (``appsettings.json`` by
default, override with FTPSYNC_SETTINGS_FILE). Environment variables take
precedence over values from the file.
"""

import json
import os
from pathlib import Path

from django.core.exceptions import ImproperlyConfigured

BASE_DIR = Path(__file__).resolve().parent.parent


def _load_settings_file() -> dict:
    path = Path(os.environ.get("FTPSYNC_SETTINGS_FILE", "appsettings.json"))
    if not path.exists():
        return {}
    try:
        with open(path, "r") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise ImproperlyConfigured(f"Invalid settings file {path}: {e}") from e


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


_file = _load_settings_file()
_gdrive = _file.get("GDrive", {})
_slack = _file.get("Slack", {})

SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "ftpsync-local-only")
DEBUG = _env_bool("DJANGO_DEBUG", False)
ALLOWED_HOSTS: list[str] = []

INSTALLED_APPS = [
    "ftpsync.apps.FtpSyncConfig",
]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.environ.get("FTPSYNC_DB_PATH", str(BASE_DIR / "ftpsync.sqlite3")),
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

USE_TZ = True
TIME_ZONE = os.environ.get("FTPSYNC_TIME_ZONE", _file.get("TimeZone", "UTC"))

# Sync configuration

APPLICATION_NAME = os.environ.get(
    "FTPSYNC_APPLICATION_NAME", _file.get("ApplicationName", "ftp-drive-sync")
)
DOWNLOAD_PATH = os.environ.get(
    "FTPSYNC_DOWNLOAD_PATH", _file.get("DownloadPath", str(BASE_DIR / "downloads"))
)

# List of {"Host", "Port", "Username", "Password", "Tls", "Timeout", "Folders"}
FTP_SOURCES = _file.get("FtpSources", [])

GDRIVE = {
    "CLIENT_SECRETS_PATH": os.environ.get(
        "FTPSYNC_CLIENT_SECRETS_PATH", _gdrive.get("ClientSecretsPath", "client_secrets.json")
    ),
    "TOKEN_STORE_PATH": os.environ.get(
        "FTPSYNC_TOKEN_STORE_PATH", _gdrive.get("TokenDataStorePath", str(BASE_DIR / ".tokens.json"))
    ),
    "ROOT_FOLDER": os.environ.get("FTPSYNC_ROOT_FOLDER", _gdrive.get("RootFolder", "")),
}

LEDGER_FILE_NAME = os.environ.get(
    "FTPSYNC_LEDGER_FILE_NAME", _file.get("LedgerFileName", "confirmations.json")
)

SLACK_WEBHOOK_URL = os.environ.get("FTPSYNC_SLACK_WEBHOOK_URL", _slack.get("WebhookUrl", ""))
LOG_PROGRESS_TO_SLACK = _env_bool(
    "FTPSYNC_LOG_PROGRESS_TO_SLACK", bool(_file.get("LogProgressToSlack", False))
)

SKIP_DOT_FILES = _env_bool("FTPSYNC_SKIP_DOT_FILES", bool(_file.get("SkipDotFiles", True)))
MAX_WORKERS = int(os.environ.get("FTPSYNC_MAX_WORKERS", _file.get("MaxWorkers", 4)))
MAX_PASSES = int(os.environ.get("FTPSYNC_MAX_PASSES", _file.get("MaxPasses", 0)))

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {
            "format": "%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "simple",
        },
    },
    "loggers": {
        "ftpsync": {
            "handlers": ["console"],
            "level": os.environ.get("FTPSYNC_LOG_LEVEL", "INFO"),
            "propagate": False,
        },
    },
}
