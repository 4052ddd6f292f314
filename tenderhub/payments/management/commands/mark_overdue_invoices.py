"""
Django management command to flag unpaid invoices past their due date.
"""
import logging

from django.core.management.base import BaseCommand

from tenderhub.payments.models import Invoice

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Mark sent or viewed invoices past their due date as overdue'

    def handle(self, *args, **options):
        updated = Invoice.mark_overdue()
        logger.info(f"Marked {updated} invoice(s) overdue")
        self.stdout.write(self.style.SUCCESS(f"Marked {updated} invoice(s) overdue"))
