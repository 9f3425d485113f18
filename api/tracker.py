import logging

from django.db import DatabaseError, transaction
from django.utils import timezone

from .exceptions import StatusWriteFailed
from .models import TranscodeJob

logger = logging.getLogger(__name__)


class JobStateTracker:
    """
    Upserts TranscodeJob status records.

    Every write is stamped with the current time and applied under a row lock.
    A completed job is never downgraded, and a write older than the stored
    ``updated_at`` is dropped, so duplicate or racing deliveries of the same
    event cannot clobber a finished job. Each mark_* returns True if applied.
    """

    def __init__(self, *, create_missing: bool = True):
        self.create_missing = create_missing

    def mark_processing(self, job_id: str, *, bucket: str = "", source_path: str = "") -> bool:
        fields = {"error": ""}
        if bucket:
            fields["bucket"] = bucket
        if source_path:
            fields["source_path"] = source_path
        return self._write(job_id, TranscodeJob.Status.PROCESSING, **fields)

    def mark_completed(self, job_id: str, output_path: str, *, stats: dict | None = None) -> bool:
        return self._write(
            job_id, TranscodeJob.Status.COMPLETED, output_path=output_path, error="", **(stats or {})
        )

    def mark_failed(self, job_id: str, error_message: str, *, elapsed_seconds: float | None = None) -> bool:
        fields = {"error": error_message[:4000]}
        if elapsed_seconds is not None:
            fields["encoding_duration"] = round(elapsed_seconds, 2)
        return self._write(job_id, TranscodeJob.Status.FAILED, **fields)

    def get(self, job_id: str) -> TranscodeJob | None:
        return TranscodeJob.objects.filter(pk=job_id).first()

    def _write(self, job_id: str, status: str, **fields) -> bool:
        stamped_at = timezone.now()
        try:
            with transaction.atomic():
                qs = TranscodeJob.objects.select_for_update()
                if self.create_missing:
                    job, created = qs.get_or_create(
                        job_id=job_id,
                        defaults={"status": status, "updated_at": stamped_at, **fields},
                    )
                    if created:
                        logger.info("Job %s created as %s", job_id, status)
                        return True
                else:
                    job = qs.filter(job_id=job_id).first()
                    if job is None:
                        logger.info("Job %s has no status record; %s not recorded", job_id, status)
                        return False

                if not job.accepts(status, stamped_at):
                    logger.info(
                        "Job %s: ignoring %s write, record is %s as of %s",
                        job_id, status, job.status, job.updated_at.isoformat(),
                    )
                    return False

                job.status = status
                job.updated_at = stamped_at
                for name, value in fields.items():
                    setattr(job, name, value)
                job.save(update_fields=["status", "updated_at", *fields])
        except DatabaseError as exc:
            raise StatusWriteFailed(f"Could not record {status} for job {job_id}: {exc}") from exc

        logger.info("Job %s -> %s", job_id, status)
        return True
