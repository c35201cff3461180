"""Tests for typed settings."""

from pathlib import Path

from django.core.exceptions import ImproperlyConfigured
from django.test import SimpleTestCase, override_settings

from ftpsync.conf import FtpSourceConfig, get_drive_config, get_sync_settings

SOURCE = {"Host": "ftp.example.com", "Folders": ["/incoming"]}
GDRIVE = {
    "CLIENT_SECRETS_PATH": "/etc/ftpsync/client_secrets.json",
    "TOKEN_STORE_PATH": "/var/lib/ftpsync/.tokens.json",
    "ROOT_FOLDER": "Camera",
}


class FtpSourceConfigTests(SimpleTestCase):
    def test_from_dict_pascal_case(self):
        config = FtpSourceConfig.from_dict({
            "Host": "ftp.example.com",
            "Port": "2121",
            "Username": "cam",
            "Password": "secret",
            "Tls": True,
            "Folders": ["/a", "/b"],
        })

        self.assertEqual(config.host, "ftp.example.com")
        self.assertEqual(config.port, 2121)
        self.assertEqual(config.username, "cam")
        self.assertTrue(config.tls)
        self.assertEqual(config.folders, ("/a", "/b"))

    def test_from_dict_snake_case_and_defaults(self):
        config = FtpSourceConfig.from_dict({"host": "ftp.example.com", "folders": "/incoming"})

        self.assertEqual(config.port, 21)
        self.assertEqual(config.username, "")
        self.assertFalse(config.tls)
        self.assertEqual(config.folders, ("/incoming",))

    def test_missing_host(self):
        with self.assertRaises(ImproperlyConfigured):
            FtpSourceConfig.from_dict({"Folders": ["/"]})


class GetSyncSettingsTests(SimpleTestCase):
    @override_settings(
        FTP_SOURCES=[SOURCE],
        GDRIVE=GDRIVE,
        DOWNLOAD_PATH="/tmp/ftpsync",
        MAX_WORKERS=8,
        MAX_PASSES=5,
        SKIP_DOT_FILES=False,
        SLACK_WEBHOOK_URL="https://hooks.slack.com/x",
    )
    def test_builds_from_django_settings(self):
        settings = get_sync_settings()

        self.assertEqual(len(settings.sources), 1)
        self.assertEqual(settings.sources[0].host, "ftp.example.com")
        self.assertEqual(settings.drive.root_folder, "Camera")
        self.assertEqual(settings.drive.token_store_path, Path("/var/lib/ftpsync/.tokens.json"))
        self.assertEqual(settings.download_path, Path("/tmp/ftpsync"))
        self.assertEqual(settings.max_workers, 8)
        self.assertEqual(settings.max_passes, 5)
        self.assertFalse(settings.skip_dot_files)
        self.assertFalse(settings.skip_fetch)
        self.assertEqual(settings.slack_webhook_url, "https://hooks.slack.com/x")

    @override_settings(FTP_SOURCES=[], GDRIVE=GDRIVE)
    def test_no_sources(self):
        with self.assertRaises(ImproperlyConfigured):
            get_sync_settings()

    @override_settings(FTP_SOURCES=[], GDRIVE={})
    def test_sources_not_required(self):
        settings = get_sync_settings(require_sources=False)

        self.assertEqual(settings.sources, ())
        self.assertEqual(settings.drive.root_folder, "")

    @override_settings(FTP_SOURCES=[SOURCE], GDRIVE={**GDRIVE, "ROOT_FOLDER": ""})
    def test_no_root_folder(self):
        with self.assertRaises(ImproperlyConfigured):
            get_sync_settings()

    @override_settings(FTP_SOURCES=[SOURCE], GDRIVE=GDRIVE, MAX_WORKERS=0)
    def test_invalid_workers(self):
        with self.assertRaises(ImproperlyConfigured):
            get_sync_settings()

    @override_settings(FTP_SOURCES=[SOURCE], GDRIVE=GDRIVE, MAX_WORKERS=4)
    def test_with_overrides_ignores_none(self):
        settings = get_sync_settings().with_overrides(max_workers=None, skip_fetch=True)

        self.assertEqual(settings.max_workers, 4)
        self.assertTrue(settings.skip_fetch)

    @override_settings(GDRIVE={})
    def test_drive_config_defaults(self):
        drive = get_drive_config()

        self.assertEqual(drive.client_secrets_path, Path("client_secrets.json"))
        self.assertEqual(drive.root_folder, "")
