"""
Django management command to report active contracts that end soon.
"""
import logging

from django.core.management.base import BaseCommand

from tenderhub.contracts.models import Contract

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'List active contracts that end within the given number of days'

    def add_arguments(self, parser):
        parser.add_argument(
            '--days',
            type=int,
            default=30,
            help='Look-ahead window in days (default: 30)',
        )

    def handle(self, *args, **options):
        days = options['days']
        expiring = Contract.objects.select_related('vendor_organization').filter(
            pk__in=Contract.expiring(days).values('pk')
        ).order_by('end_date')

        if not expiring.exists():
            self.stdout.write(self.style.SUCCESS(f"No contracts expiring in the next {days} days"))
            return

        for contract in expiring:
            message = (
                f"{contract.contract_number} ({contract.title}) with {contract.vendor_organization.name} "
                f"ends {contract.end_date} in {contract.days_until_expiry()} day(s)"
            )
            logger.warning(f"Contract expiring: {message}")
            self.stdout.write(self.style.WARNING(message))

        self.stdout.write(self.style.SUCCESS(f"{expiring.count()} contract(s) expiring in the next {days} days"))
