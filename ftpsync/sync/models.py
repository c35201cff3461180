"""
Models for tracking sync runs and their notable events.
"""

from django.db import models


class RunStatus(models.TextChoices):
    RUNNING = "running", "Running"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"
    FAILED = "failed", "Failed"


class EventType(models.TextChoices):
    CONFIRMED = "confirmed", "Confirmed"
    DOWNLOAD_FAILED = "download_failed", "Download Failed"
    UPLOAD_INCOMPLETE = "upload_incomplete", "Upload Incomplete"
    HASH_MISMATCH = "hash_mismatch", "Hash Mismatch"
    UNRESOLVABLE = "unresolvable", "Unresolvable"
    UNREADABLE = "unreadable", "Unreadable"
    SOURCE_UNAVAILABLE = "source_unavailable", "Source Unavailable"
    ERROR = "error", "Error"


class SyncRun(models.Model):
    """
    Records each invocation of the sync engine for audit and debugging.

    Tracks the number of passes it took to converge and per-item outcomes
    summed over all passes.
    """

    started_at = models.DateTimeField(auto_now_add=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    skip_fetch = models.BooleanField(default=False)

    status = models.CharField(
        max_length=20,
        choices=RunStatus.choices,
        default=RunStatus.RUNNING,
    )

    # Statistics
    passes = models.PositiveIntegerField(default=0)
    files_attempted = models.PositiveIntegerField(default=0)
    files_confirmed = models.PositiveIntegerField(default=0)
    files_failed = models.PositiveIntegerField(default=0)
    files_unresolvable = models.PositiveIntegerField(default=0)
    bytes_uploaded = models.BigIntegerField(default=0)

    # False when the run stopped with work left or sources unreachable
    converged = models.BooleanField(default=False)

    error_message = models.TextField(blank=True)

    class Meta:
        indexes = [
            models.Index(fields=["-started_at"], name="ftpsync_run_started_idx"),
            models.Index(fields=["status"], name="ftpsync_run_status_idx"),
        ]
        ordering = ["-started_at"]

    def __str__(self):
        return f"Sync run {self.pk} ({self.get_status_display()}, {self.passes} passes)"


class SyncEvent(models.Model):
    """
    Individual outcomes during a sync run.

    Every item-level failure is recorded here so nothing is dropped
    silently, alongside every confirmed transfer.
    """

    run = models.ForeignKey(SyncRun, on_delete=models.CASCADE, related_name="events")
    timestamp = models.DateTimeField(auto_now_add=True)
    pass_number = models.PositiveIntegerField(default=0)

    event_type = models.CharField(max_length=20, choices=EventType.choices)

    source = models.CharField(max_length=255, blank=True)
    file_path = models.TextField(blank=True)
    message = models.TextField(blank=True)

    class Meta:
        indexes = [
            models.Index(fields=["run", "timestamp"], name="ftpsync_event_run_ts_idx"),
            models.Index(fields=["event_type"], name="ftpsync_event_type_idx"),
        ]
        ordering = ["timestamp"]

    def __str__(self):
        return f"{self.get_event_type_display()}: {self.file_path or self.source or 'N/A'}"
