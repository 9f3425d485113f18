import logging
from datetime import timedelta

from django.db import DatabaseError
from django.utils import timezone

from .models import ActivityLog

logger = logging.getLogger(__name__)

CLEANUP_BATCH_SIZE = 500


def log_activity(action: str, level: str, message: str, details: dict | None = None):
    """Record an audit entry. Failures are logged and otherwise ignored."""
    try:
        ActivityLog.objects.create(action=action, level=level, message=message, details=details or {})
    except DatabaseError as exc:
        logger.error("Failed to log activity %s: %s", action, exc)


def purge_activity_logs(retention_days: int, *, now=None) -> int:
    """Delete entries older than ``retention_days``; returns how many were removed."""
    cutoff = (now or timezone.now()) - timedelta(days=retention_days)
    deleted = 0
    while True:
        batch = list(
            ActivityLog.objects.filter(created_at__lt=cutoff)
            .order_by("created_at")
            .values_list("pk", flat=True)[:CLEANUP_BATCH_SIZE]
        )
        if not batch:
            break
        count, _ = ActivityLog.objects.filter(pk__in=batch).delete()
        deleted += count
    logger.info("Deleted %d activity log entries older than %d days", deleted, retention_days)
    return deleted
