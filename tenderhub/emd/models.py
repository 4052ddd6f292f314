import os
from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.db import models, transaction
from django.db.models import Sum
from django.utils import timezone

from tenderhub.core.exceptions import WorkflowError
from tenderhub.core.utils import generate_reference
from tenderhub.tenders.models import default_currency


def emd_validity_days():
    return int(getattr(settings, 'EMD_VALIDITY_DAYS', os.getenv('EMD_VALIDITY_DAYS', 180)))


class Emd(models.Model):
    """Earnest money deposit placed by a vendor against a tender"""
    STATUS_PENDING = 'pending'
    STATUS_PAID = 'paid'
    STATUS_VERIFIED = 'verified'
    STATUS_REFUNDED = 'refunded'
    STATUS_FORFEITED = 'forfeited'
    STATUS_EXPIRED = 'expired'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_PAID, 'Paid'),
        (STATUS_VERIFIED, 'Verified'),
        (STATUS_REFUNDED, 'Refunded'),
        (STATUS_FORFEITED, 'Forfeited'),
        (STATUS_EXPIRED, 'Expired'),
    ]

    TYPE_CHOICES = [
        ('bank_guarantee', 'Bank Guarantee'),
        ('fixed_deposit', 'Fixed Deposit'),
        ('demand_draft', 'Demand Draft'),
        ('online_payment', 'Online Payment'),
    ]

    reference_number = models.CharField(max_length=50, unique=True, editable=False)
    tender = models.ForeignKey('tenders.Tender', on_delete=models.CASCADE, related_name='emds')
    vendor = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='emds')
    bid = models.ForeignKey('bids.Bid', on_delete=models.SET_NULL, null=True, blank=True, related_name='emds')
    amount = models.DecimalField(max_digits=15, decimal_places=2)
    currency = models.CharField(max_length=3, default=default_currency)
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='online_payment')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    transaction_id = models.CharField(max_length=100, blank=True)
    bank_name = models.CharField(max_length=255, blank=True)
    bank_branch = models.CharField(max_length=255, blank=True)
    ifsc_code = models.CharField(max_length=20, blank=True)
    instrument_number = models.CharField(max_length=100, blank=True)
    instrument_date = models.DateField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    verified_at = models.DateTimeField(null=True, blank=True)
    verified_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='verified_emds'
    )
    refunded_at = models.DateTimeField(null=True, blank=True)
    refund_transaction_id = models.CharField(max_length=100, blank=True)
    refund_reason = models.TextField(blank=True)
    forfeited_at = models.DateTimeField(null=True, blank=True)
    forfeiture_reason = models.TextField(blank=True)
    valid_upto = models.DateTimeField(null=True, blank=True)
    documents = models.JSONField(default=list, blank=True)
    remarks = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.reference_number

    def save(self, *args, **kwargs):
        if not self.reference_number:
            self.reference_number = generate_reference('EMD', Emd)
        if self.valid_upto is None and self.tender_id:
            self.valid_upto = self.tender.bid_end_date + timedelta(days=emd_validity_days())
        super().save(*args, **kwargs)

    def is_owner(self, user):
        return bool(user and user.is_authenticated and self.vendor_id == user.id)

    def _require(self, expected, action):
        if self.status != expected:
            raise WorkflowError(f'Only {expected} EMDs can be {action}')

    def linked_bid(self):
        if self.bid_id:
            return self.bid
        from tenderhub.bids.models import Bid
        return Bid.objects.filter(tender_id=self.tender_id, vendor_id=self.vendor_id).first()

    def mark_paid(self, transaction_id, paid_at=None):
        self._require(self.STATUS_PENDING, 'marked as paid')
        paid_at = paid_at or timezone.now()
        with transaction.atomic():
            self.status = self.STATUS_PAID
            self.transaction_id = transaction_id
            self.paid_at = paid_at
            bid = self.linked_bid()
            if bid is not None:
                self.bid = bid
                bid.is_emd_paid = True
                bid.emd_transaction_id = transaction_id
                bid.emd_paid_at = paid_at
                bid.emd_amount = self.amount
                bid.save(update_fields=['is_emd_paid', 'emd_transaction_id', 'emd_paid_at', 'emd_amount', 'updated_at'])
            self.save()

    def verify(self, user):
        self._require(self.STATUS_PAID, 'verified')
        self.status = self.STATUS_VERIFIED
        self.verified_at = timezone.now()
        self.verified_by = user
        self.save(update_fields=['status', 'verified_at', 'verified_by', 'updated_at'])

    def refund(self, reason='', refund_transaction_id=''):
        self._require(self.STATUS_VERIFIED, 'refunded')
        self.status = self.STATUS_REFUNDED
        self.refunded_at = timezone.now()
        self.refund_reason = reason or ''
        self.refund_transaction_id = refund_transaction_id or ''
        self.save(update_fields=['status', 'refunded_at', 'refund_reason', 'refund_transaction_id', 'updated_at'])

    def forfeit(self, reason):
        self._require(self.STATUS_VERIFIED, 'forfeited')
        self.status = self.STATUS_FORFEITED
        self.forfeited_at = timezone.now()
        self.forfeiture_reason = reason
        self.save(update_fields=['status', 'forfeited_at', 'forfeiture_reason', 'updated_at'])

    @classmethod
    def summary(cls, tender):
        emds = cls.objects.select_related('vendor').filter(tender=tender)
        counts = {code: 0 for code, _ in cls.STATUS_CHOICES}
        for emd_status in emds.values_list('status', flat=True):
            counts[emd_status] += 1
        total_amount = emds.exclude(
            status__in=[cls.STATUS_PENDING, cls.STATUS_EXPIRED]
        ).aggregate(total=Sum('amount'))['total'] or Decimal('0.00')
        return {
            'tender_id': tender.id,
            'total': emds.count(),
            'pending': counts[cls.STATUS_PENDING],
            'paid': counts[cls.STATUS_PAID],
            'verified': counts[cls.STATUS_VERIFIED],
            'refunded': counts[cls.STATUS_REFUNDED],
            'forfeited': counts[cls.STATUS_FORFEITED],
            'expired': counts[cls.STATUS_EXPIRED],
            'total_amount': total_amount,
            'vendors': [
                {
                    'emd_id': emd.id,
                    'vendor': emd.vendor.username,
                    'amount': emd.amount,
                    'status': emd.status,
                    'paid_at': emd.paid_at,
                }
                for emd in emds.order_by('created_at')
            ],
        }

    class Meta:
        db_table = 'emds'
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(fields=['tender', 'vendor'], name='uniq_emd_tender_vendor'),
        ]
        indexes = [
            models.Index(fields=['status'], name='idx_emd_status'),
            models.Index(fields=['valid_upto'], name='idx_emd_valid_upto'),
        ]
