"""
Delete activity log entries older than the retention window.
"""
from django.conf import settings
from django.core.management.base import BaseCommand

from api.activity import purge_activity_logs


class Command(BaseCommand):
    help = 'Delete activity log entries older than ACTIVITY_LOG_RETENTION_DAYS'

    def add_arguments(self, parser):
        parser.add_argument(
            '--days',
            type=int,
            default=None,
            help='Retention window in days (default: ACTIVITY_LOG_RETENTION_DAYS)'
        )

    def handle(self, *args, **options):
        days = options['days'] if options['days'] is not None else settings.ACTIVITY_LOG_RETENTION_DAYS
        deleted = purge_activity_logs(days)
        self.stdout.write(self.style.SUCCESS(f'Deleted {deleted} entries older than {days} days'))
