"""
Django management command to expire active contracts past their end date.
Intended to run daily from cron.
"""
import logging

from django.core.management.base import BaseCommand
from django.utils import timezone

from tenderhub.contracts.models import Contract
from tenderhub.core.utils import create_audit_log

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Mark active contracts whose end date has passed as expired'

    def handle(self, *args, **options):
        today = timezone.localdate()
        overdue = Contract.objects.filter(status=Contract.STATUS_ACTIVE, end_date__lt=today)

        expired = 0
        for contract in overdue:
            contract.expire()
            create_audit_log(
                action='expire',
                model_name='Contract',
                object_id=str(contract.id),
                object_name=contract.title,
                object_reference=contract.contract_number,
                changes={'status': {'old': Contract.STATUS_ACTIVE, 'new': Contract.STATUS_EXPIRED}}
            )
            logger.info(f"Contract {contract.contract_number} expired (ended {contract.end_date})")
            expired += 1

        self.stdout.write(self.style.SUCCESS(f"Expired {expired} contract(s)"))
