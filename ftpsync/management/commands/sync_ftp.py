"""
Django management command to sync the configured FTP sources to Google Drive.
"""

import signal

from django.core.exceptions import ImproperlyConfigured
from django.core.management.base import BaseCommand, CommandError

from ftpsync.conf import get_drive_config, get_sync_settings
from ftpsync.notifier import Notifier
from ftpsync.providers.ftp import FtpSource
from ftpsync.providers.google_drive import GoogleDriveClient, TokenExpiredError, authorize
from ftpsync.sync import RunContext, SyncAbortedError, SyncEngine


class Command(BaseCommand):
    help = "Copy new files from the FTP sources into Google Drive until nothing is left to do"

    def add_arguments(self, parser):
        mode = parser.add_mutually_exclusive_group()
        mode.add_argument(
            "--auth-only",
            action="store_true",
            help="Authorize against Google Drive, store the token and exit",
        )
        mode.add_argument(
            "--skip-fetch",
            action="store_true",
            help="Do not download; only upload files already in the download path",
        )
        parser.add_argument(
            "--max-passes",
            type=int,
            help="Stop after this many passes even if not converged (default: unlimited)",
        )
        parser.add_argument(
            "--workers",
            type=int,
            help="Number of concurrent transfers (default: MAX_WORKERS setting)",
        )

    def handle(self, *args, **options):
        if options["auth_only"]:
            self._authorize()
            return

        try:
            settings = get_sync_settings().with_overrides(
                skip_fetch=options["skip_fetch"] or None,
                max_passes=options["max_passes"],
                max_workers=options["workers"],
            )
        except ImproperlyConfigured as e:
            raise CommandError(str(e))

        if settings.max_workers < 1:
            raise CommandError("--workers must be at least 1")

        notifier = Notifier(settings.slack_webhook_url, settings.log_progress_to_slack)
        notifier.send("🤖 starting...", force=True)

        sources = [FtpSource(config) for config in settings.sources]
        try:
            result = self._run(settings, notifier, sources)
        except Exception as e:
            self.stdout.write(self.style.ERROR(f"\n✗ Sync failed: {e}"))
            notifier.send(f"🤖 exception! {e}", force=True)
            raise CommandError(f"Sync failed: {e}")
        finally:
            for source in sources:
                source.close()
            notifier.send("🤖 exiting...", force=True)
            notifier.close()

        if result.cancelled:
            self.stdout.write(self.style.WARNING(f"\n⚠ Sync cancelled after {result.passes} pass(es)"))
        elif result.unavailable_sources:
            self.stdout.write(
                self.style.WARNING(
                    f"\n⚠ Not converged, unreachable source(s): {', '.join(result.unavailable_sources)}"
                )
            )
        elif not result.converged:
            self.stdout.write(
                self.style.WARNING(f"\n⚠ Stopped after {result.passes} pass(es) without converging")
            )

        self.stdout.write(
            self.style.SUCCESS(
                f"\n✓ Sync finished:\n"
                f"  - Passes: {result.passes}\n"
                f"  - Files attempted: {result.files_attempted}\n"
                f"  - Files confirmed: {result.files_confirmed}\n"
                f"  - Files failed: {result.files_failed}\n"
                f"  - Files without local copy: {result.files_unresolvable}\n"
                f"  - Bytes uploaded: {result.bytes_uploaded:,}"
            )
        )

    def _run(self, settings, notifier, sources):
        client = GoogleDriveClient(settings.application_name)
        try:
            client.refresh_token_if_needed()
        except TokenExpiredError as e:
            raise SyncAbortedError(str(e)) from e

        context = RunContext.create(settings, client, notifier)
        engine = SyncEngine(context, sources)

        previous = signal.signal(signal.SIGINT, lambda signum, frame: self._cancel(context))
        try:
            return engine.run()
        finally:
            signal.signal(signal.SIGINT, previous)

    def _cancel(self, context):
        self.stderr.write(self.style.WARNING("\nInterrupted, finishing up..."))
        context.cancel()

    def _authorize(self):
        drive = get_drive_config()
        settings = get_sync_settings(require_sources=False)

        if not drive.client_secrets_path.exists():
            raise CommandError(f"Client secrets file not found: {drive.client_secrets_path}")

        self.stdout.write("Authorizing with Google Drive, follow the instructions in your browser...")
        authorize(drive.client_secrets_path, settings.application_name)
        self.stdout.write(self.style.SUCCESS(f"✓ Token stored in {drive.token_store_path}"))
