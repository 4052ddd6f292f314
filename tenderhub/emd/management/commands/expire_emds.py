"""
Django management command to expire EMDs that outlived their validity.
"""
import logging

from django.core.management.base import BaseCommand
from django.utils import timezone

from tenderhub.core.utils import create_audit_log
from tenderhub.emd.models import Emd

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Mark pending or paid EMDs past their validity date as expired'

    def handle(self, *args, **options):
        stale = Emd.objects.filter(
            status__in=[Emd.STATUS_PENDING, Emd.STATUS_PAID],
            valid_upto__isnull=False,
            valid_upto__lt=timezone.now(),
        )
        expired = 0
        for emd in stale:
            old_status = emd.status
            emd.status = Emd.STATUS_EXPIRED
            emd.save(update_fields=['status', 'updated_at'])
            create_audit_log(
                action='expire',
                model_name='EMD',
                object_id=str(emd.id),
                object_reference=emd.reference_number,
                changes={'status': {'old': old_status, 'new': Emd.STATUS_EXPIRED}}
            )
            expired += 1

        logger.info(f"Expired {expired} EMD(s)")
        self.stdout.write(self.style.SUCCESS(f"Expired {expired} EMD(s)"))
