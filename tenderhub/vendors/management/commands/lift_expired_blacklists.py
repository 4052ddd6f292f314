"""
Django management command to lift blacklists whose expiry date has passed.
Intended to run daily from cron.
"""
import logging

from django.core.management.base import BaseCommand
from django.utils import timezone

from tenderhub.core.utils import create_audit_log
from tenderhub.vendors.models import Vendor

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Restore blacklisted vendors whose blacklist period has expired'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='List the vendors that would be restored without changing them',
        )

    def handle(self, *args, **options):
        dry_run = options.get('dry_run', False)
        now = timezone.now()
        expired = Vendor.objects.filter(
            status=Vendor.STATUS_BLACKLISTED,
            blacklist_expiry_date__isnull=False,
            blacklist_expiry_date__lte=now,
        )

        self.stdout.write(f"Vendors with expired blacklist: {expired.count()}")

        restored = 0
        for vendor in expired:
            if dry_run:
                self.stdout.write(f"  would restore {vendor.registration_number} ({vendor.legal_name})")
                continue
            vendor.remove_from_blacklist('Blacklist period expired')
            create_audit_log(
                action='unblacklist',
                model_name='Vendor',
                object_id=str(vendor.id),
                object_name=vendor.legal_name,
                object_reference=vendor.registration_number,
                changes={'reason': 'Blacklist period expired'}
            )
            logger.info(f"Blacklist lifted for vendor {vendor.registration_number}")
            restored += 1

        if dry_run:
            self.stdout.write(self.style.WARNING('Dry run, no changes made'))
        else:
            self.stdout.write(self.style.SUCCESS(f"Restored {restored} vendor(s)"))
