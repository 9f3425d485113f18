from django.db import models
from django.utils import timezone


class TranscodeJob(models.Model):
    class Status(models.TextChoices):
        PENDING = "pending"
        PROCESSING = "processing"
        COMPLETED = "completed"
        FAILED = "failed"

    # Base file name of the source object, without extension
    job_id = models.CharField(max_length=255, primary_key=True)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.PENDING)
    bucket = models.CharField(max_length=255, blank=True, default="")
    source_path = models.CharField(max_length=1024, blank=True, default="")   # S3 key of the upload
    output_path = models.CharField(max_length=1024, blank=True, default="")   # S3 key of the encoded mp4
    error = models.TextField(blank=True, default="")

    original_size = models.BigIntegerField(null=True, blank=True)   # bytes
    encoded_size = models.BigIntegerField(null=True, blank=True)    # bytes
    compression_ratio = models.FloatField(null=True, blank=True)    # percent saved
    encoding_duration = models.FloatField(null=True, blank=True)    # seconds

    created_at = models.DateTimeField(auto_now_add=True)
    # Set explicitly by the tracker; used to reject out-of-order writes
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-updated_at"]

    def __str__(self):
        return f"{self.job_id} ({self.status})"

    def accepts(self, status: str, stamped_at) -> bool:
        """Return True if a write of ``status`` stamped at ``stamped_at`` may be applied.

        A completed job never moves back to processing or failed, and a write
        older than the stored one is stale.
        """
        if self.status == self.Status.COMPLETED and status != self.Status.COMPLETED:
            return False
        if self.updated_at and stamped_at < self.updated_at:
            return False
        return True


class ActivityLog(models.Model):
    class Level(models.TextChoices):
        INFO = "info"
        WARNING = "warning"
        ERROR = "error"
        SUCCESS = "success"

    action = models.CharField(max_length=64)
    level = models.CharField(max_length=16, choices=Level.choices, default=Level.INFO)
    message = models.TextField()
    details = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"[{self.level}] {self.action}: {self.message}"
