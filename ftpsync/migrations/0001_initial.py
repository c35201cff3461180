import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="SyncRun",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("started_at", models.DateTimeField(auto_now_add=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("skip_fetch", models.BooleanField(default=False)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("running", "Running"),
                            ("completed", "Completed"),
                            ("cancelled", "Cancelled"),
                            ("failed", "Failed"),
                        ],
                        default="running",
                        max_length=20,
                    ),
                ),
                ("passes", models.PositiveIntegerField(default=0)),
                ("files_attempted", models.PositiveIntegerField(default=0)),
                ("files_confirmed", models.PositiveIntegerField(default=0)),
                ("files_failed", models.PositiveIntegerField(default=0)),
                ("bytes_uploaded", models.BigIntegerField(default=0)),
                ("error_message", models.TextField(blank=True)),
            ],
            options={
                "ordering": ["-started_at"],
                "indexes": [
                    models.Index(fields=["-started_at"], name="ftpsync_run_started_idx"),
                    models.Index(fields=["status"], name="ftpsync_run_status_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="SyncEvent",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("timestamp", models.DateTimeField(auto_now_add=True)),
                ("pass_number", models.PositiveIntegerField(default=0)),
                (
                    "event_type",
                    models.CharField(
                        choices=[
                            ("confirmed", "Confirmed"),
                            ("download_failed", "Download Failed"),
                            ("upload_incomplete", "Upload Incomplete"),
                            ("hash_mismatch", "Hash Mismatch"),
                            ("unresolvable", "Unresolvable"),
                            ("source_unavailable", "Source Unavailable"),
                            ("error", "Error"),
                        ],
                        max_length=20,
                    ),
                ),
                ("source", models.CharField(blank=True, max_length=255)),
                ("file_path", models.TextField(blank=True)),
                ("message", models.TextField(blank=True)),
                (
                    "run",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="events",
                        to="ftpsync.syncrun",
                    ),
                ),
            ],
            options={
                "ordering": ["timestamp"],
                "indexes": [
                    models.Index(fields=["run", "timestamp"], name="ftpsync_event_run_ts_idx"),
                    models.Index(fields=["event_type"], name="ftpsync_event_type_idx"),
                ],
            },
        ),
    ]
