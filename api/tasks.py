import logging

from celery import shared_task
from celery.exceptions import SoftTimeLimitExceeded
from django.conf import settings

from .activity import purge_activity_logs
from .exceptions import StorageUnavailable
from .pipeline import UploadEvent
from .services import get_orchestrator

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=None)
def transcode_upload(self, bucket: str, object_path: str, size_bytes: int = 0):
    """
    One invocation per finalized upload. Transient storage errors are handed
    back to Celery for redelivery; every other outcome is already recorded on
    the job, so the task returns normally. Hitting the soft time limit marks
    the job failed instead of leaving it in processing.
    """
    event = UploadEvent(bucket=bucket, object_path=object_path, size_bytes=int(size_bytes or 0))
    try:
        outcome = get_orchestrator().handle_upload(event)
    except StorageUnavailable as exc:
        logger.warning(
            "Storage unavailable for s3://%s/%s (attempt %d): %s",
            bucket, object_path, self.request.retries + 1, exc,
        )
        raise self.retry(
            exc=exc,
            countdown=settings.TRANSCODE_REDELIVERY_DELAY_SECONDS,
            max_retries=settings.TRANSCODE_MAX_REDELIVERIES,
        )
    except SoftTimeLimitExceeded:
        logger.error("Soft time limit hit for s3://%s/%s", bucket, object_path)
        outcome = get_orchestrator().abort(event, "Timeout: task exceeded its soft time limit")
    return {
        "state": outcome.state.value,
        "job_id": outcome.job_id,
        "output_path": outcome.output_path,
        "error": outcome.error,
    }


@shared_task
def cleanup_activity_logs(retention_days: int | None = None) -> int:
    days = retention_days if retention_days is not None else settings.ACTIVITY_LOG_RETENTION_DAYS
    return purge_activity_logs(days)
