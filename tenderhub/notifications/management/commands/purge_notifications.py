"""
Django management command to delete stale notifications.
"""
import logging

from django.core.management.base import BaseCommand

from tenderhub.notifications.models import Notification, retention_days

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Delete read notifications older than the retention window and any past their expiry'

    def add_arguments(self, parser):
        parser.add_argument('--days', type=int, default=None,
                            help='Keep read notifications for this many days (default NOTIFICATION_RETENTION_DAYS)')

    def handle(self, *args, **options):
        days = options['days'] if options['days'] is not None else retention_days()
        deleted = Notification.purge(days=days)
        logger.info(f"Purged {deleted} notification(s) older than {days} day(s)")
        self.stdout.write(self.style.SUCCESS(f"Purged {deleted} notification(s)"))
