"""
Django management command to list recent sync runs.
"""

import json

from django.core.management.base import BaseCommand

from ftpsync.models import RunStatus, SyncRun


class Command(BaseCommand):
    help = "List recent sync runs with their outcome"

    def add_arguments(self, parser):
        parser.add_argument(
            "--limit",
            type=int,
            default=20,
            help="Number of runs to show (default: 20)",
        )
        parser.add_argument(
            "--json",
            action="store_true",
            help="Output as JSON",
        )

    def handle(self, *args, **options):
        runs = list(SyncRun.objects.order_by("-started_at")[: options["limit"]])

        if not runs:
            self.stdout.write(self.style.WARNING("No sync runs found."))
            self.stdout.write("\nRun 'python manage.py sync_ftp' to start one")
            return

        if options["json"]:
            self._output_json(runs)
        else:
            self._output_table(runs)

    def _style_status(self, run: SyncRun) -> str:
        if run.status == RunStatus.COMPLETED:
            return self.style.SUCCESS(run.status)
        if run.status in (RunStatus.RUNNING, RunStatus.CANCELLED):
            return self.style.WARNING(run.status)
        return self.style.ERROR(run.status)

    def _output_table(self, runs):
        """Output runs as formatted table."""
        self.stdout.write("\n" + "=" * 80)
        self.stdout.write(
            f"{'ID':<6} {'Started':<17} {'Status':<10} {'Passes':>6} "
            f"{'Confirmed':>9} {'Failed':>7} {'Bytes':>15}"
        )
        self.stdout.write("=" * 80)

        for run in runs:
            started = run.started_at.strftime("%Y-%m-%d %H:%M")
            status = self._style_status(run)
            # Pad on the raw value; style codes are not printable width
            padding = " " * max(0, 10 - len(run.status))
            self.stdout.write(
                f"{run.id:<6} {started:<17} {status}{padding} {run.passes:>6} "
                f"{run.files_confirmed:>9} {run.files_failed:>7} {run.bytes_uploaded:>15,}"
            )
            if run.error_message:
                self.stdout.write(f"       {self.style.ERROR(run.error_message)}")

        self.stdout.write("=" * 80)
        self.stdout.write(f"Total: {len(runs)} run(s)\n")

    def _output_json(self, runs):
        """Output runs as JSON."""
        data = []
        for run in runs:
            data.append({
                "id": run.id,
                "started_at": run.started_at.isoformat(),
                "completed_at": run.completed_at.isoformat() if run.completed_at else None,
                "status": run.status,
                "skip_fetch": run.skip_fetch,
                "passes": run.passes,
                "files_attempted": run.files_attempted,
                "files_confirmed": run.files_confirmed,
                "files_failed": run.files_failed,
                "files_unresolvable": run.files_unresolvable,
                "bytes_uploaded": run.bytes_uploaded,
                "converged": run.converged,
                "error_message": run.error_message,
                "events": run.events.count(),
            })

        self.stdout.write(json.dumps(data, indent=2))
