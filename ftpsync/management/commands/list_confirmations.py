"""
Django management command to print the confirmation ledger stored in Drive.
"""

import json

from django.core.management.base import BaseCommand, CommandError

from ftpsync.conf import get_sync_settings
from ftpsync.providers.google_drive import GoogleDriveClient, GoogleDriveError
from ftpsync.sync import ConfirmationLedger


class Command(BaseCommand):
    help = "List the files confirmed as stored in Google Drive"

    def add_arguments(self, parser):
        parser.add_argument(
            "--json",
            action="store_true",
            help="Output the ledger document as JSON",
        )

    def handle(self, *args, **options):
        settings = get_sync_settings(require_sources=False)
        client = GoogleDriveClient(settings.application_name)
        ledger = ConfirmationLedger(client, settings.ledger_file_name)

        try:
            entries = ledger.load()
        except GoogleDriveError as e:
            raise CommandError(f"Could not read {settings.ledger_file_name}: {e}")

        if options["json"]:
            self.stdout.write(json.dumps([entry.to_dict() for entry in entries], indent=2))
            return

        if not entries:
            self.stdout.write(self.style.WARNING("No confirmed transfers."))
            return

        entries.sort(key=lambda e: (e.year, e.month, e.day, e.file_name))

        self.stdout.write("\n" + "=" * 80)
        self.stdout.write(f"{'Date':<11} {'Size':>14}  {'Name':<30} {'SHA-256':<20}")
        self.stdout.write("=" * 80)

        for entry in entries:
            date = f"{entry.year}-{entry.month}-{entry.day}"
            self.stdout.write(
                f"{date:<11} {entry.file_size:>14,}  {entry.file_name:<30} {entry.hash[:16]}..."
            )

        self.stdout.write("=" * 80)
        total = sum(entry.file_size for entry in entries)
        self.stdout.write(f"Total: {len(entries)} file(s), {total:,} bytes\n")
