"""
Django management command to expire security instruments and warn providers
about those close to expiry.
"""
import logging

from django.core.management.base import BaseCommand

from tenderhub.core.utils import create_audit_log
from tenderhub.notifications.events import security_event
from tenderhub.security.models import SecurityInstrument, expiry_alert_days

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Mark security instruments past their expiry date as expired and notify providers of upcoming expiries'

    def add_arguments(self, parser):
        parser.add_argument('--days', type=int, default=None,
                            help='Warn about instruments expiring within this many days (default SECURITY_EXPIRY_ALERT_DAYS)')
        parser.add_argument('--no-alerts', action='store_true', help='Only expire, do not send expiry warnings')

    def handle(self, *args, **options):
        expired = 0
        for instrument in SecurityInstrument.due_to_expire():
            old_status = instrument.status
            instrument.status = SecurityInstrument.STATUS_EXPIRED
            instrument.save(update_fields=['status', 'updated_at'])
            create_audit_log(
                action='expire',
                model_name='SecurityInstrument',
                object_id=str(instrument.id),
                object_reference=instrument.reference_number,
                changes={'status': {'old': old_status, 'new': SecurityInstrument.STATUS_EXPIRED}}
            )
            expired += 1

        alerted = 0
        if not options['no_alerts']:
            days = options['days'] if options['days'] is not None else expiry_alert_days()
            for instrument in SecurityInstrument.expiring_within(days).select_related('organization'):
                security_event(instrument, 'expiring')
                alerted += 1

        logger.info(f"Expired {expired} security instrument(s), sent {alerted} expiry alert(s)")
        self.stdout.write(self.style.SUCCESS(f"Expired {expired} security instrument(s), sent {alerted} expiry alert(s)"))
