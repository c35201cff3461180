"""
Django management command to verify the stored Google Drive token.
"""

from django.core.management.base import BaseCommand

from ftpsync import secrets
from ftpsync.conf import get_sync_settings
from ftpsync.providers.google_drive import GoogleDriveClient, TokenExpiredError


class Command(BaseCommand):
    help = "Verify OAuth token validity by testing the Drive API connection"

    def add_arguments(self, parser):
        parser.add_argument(
            "--refresh",
            action="store_true",
            help="Attempt to refresh an expired token",
        )

    def handle(self, *args, **options):
        settings = get_sync_settings(require_sources=False)
        key = settings.application_name

        if not secrets.has_credentials(key):
            self.stdout.write(f"{key}: " + self.style.ERROR("NO TOKENS"))
            self.stdout.write("\nRun 'python manage.py sync_ftp --auth-only' to authorize")
            return

        client = GoogleDriveClient(key)

        try:
            if options["refresh"]:
                if client.refresh_token_if_needed():
                    self.stdout.write(f"{key}: " + self.style.SUCCESS("REFRESHED"))
                    return

            user_info = client.get_user_info()
            email = user_info.get("email") or "unknown"
            self.stdout.write(f"{key}: " + self.style.SUCCESS(f"VALID (verified as {email})"))

        except TokenExpiredError as e:
            self.stdout.write(f"{key}: " + self.style.ERROR(f"EXPIRED - {e}"))

        except Exception as e:
            self.stdout.write(f"{key}: " + self.style.ERROR(f"ERROR - {e}"))
