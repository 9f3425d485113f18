import os
from celery import Celery
from celery.schedules import crontab

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "media_pipeline.settings")

celery_app = Celery("media_pipeline")
celery_app.config_from_object("django.conf:settings", namespace="CELERY")
celery_app.autodiscover_tasks()

# Daily at 02:00 UTC, run by `celery -A media_pipeline beat`
celery_app.conf.beat_schedule = {
    "cleanup-activity-logs": {
        "task": "api.tasks.cleanup_activity_logs",
        "schedule": crontab(hour=2, minute=0),
    },
}
