from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings
from django.db import models
from django.db.models import Avg, Max, Min
from django.utils import timezone

from tenderhub.core.exceptions import WorkflowError
from tenderhub.core.utils import generate_reference
from tenderhub.tenders.models import default_currency

TWO_PLACES = Decimal('0.01')


def percentage_from(value, base):
    if not base:
        return Decimal('0.00')
    return ((value - base) / base * Decimal('100')).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


class Bid(models.Model):
    """A vendor's offer against a published tender"""
    STATUS_DRAFT = 'draft'
    STATUS_SUBMITTED = 'submitted'
    STATUS_UNDER_EVALUATION = 'under_evaluation'
    STATUS_SHORTLISTED = 'shortlisted'
    STATUS_ACCEPTED = 'accepted'
    STATUS_REJECTED = 'rejected'
    STATUS_WITHDRAWN = 'withdrawn'
    STATUS_DISQUALIFIED = 'disqualified'

    STATUS_CHOICES = [
        (STATUS_DRAFT, 'Draft'),
        (STATUS_SUBMITTED, 'Submitted'),
        (STATUS_UNDER_EVALUATION, 'Under Evaluation'),
        (STATUS_SHORTLISTED, 'Shortlisted'),
        (STATUS_ACCEPTED, 'Accepted'),
        (STATUS_REJECTED, 'Rejected'),
        (STATUS_WITHDRAWN, 'Withdrawn'),
        (STATUS_DISQUALIFIED, 'Disqualified'),
    ]

    # Bids that count as competing offers in comparisons
    COMPETING_STATUSES = [STATUS_SUBMITTED, STATUS_UNDER_EVALUATION, STATUS_SHORTLISTED]

    TYPE_CHOICES = [
        ('technical', 'Technical'),
        ('financial', 'Financial'),
        ('combined', 'Combined'),
    ]

    reference_number = models.CharField(max_length=50, unique=True, editable=False)
    tender = models.ForeignKey('tenders.Tender', on_delete=models.CASCADE, related_name='bids')
    vendor = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='bids')
    organization = models.ForeignKey(
        'organizations.Organization', on_delete=models.SET_NULL, null=True, blank=True, related_name='received_bids'
    )
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='combined')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_DRAFT)
    quoted_amount = models.DecimalField(max_digits=15, decimal_places=2, null=True, blank=True)
    currency = models.CharField(max_length=3, default=default_currency)
    delivery_period = models.CharField(max_length=255, blank=True)
    technical_proposal = models.TextField(blank=True)
    commercial_proposal = models.JSONField(default=dict, blank=True)
    technical_score = models.JSONField(default=dict, blank=True)
    financial_score = models.JSONField(default=dict, blank=True)
    overall_score = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)
    ranking = models.PositiveIntegerField(null=True, blank=True)
    submitted_documents = models.JSONField(default=list, blank=True)
    submitted_at = models.DateTimeField(null=True, blank=True)
    evaluated_at = models.DateTimeField(null=True, blank=True)
    evaluated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='evaluated_bids'
    )
    evaluation_remarks = models.TextField(blank=True)
    deviations = models.JSONField(default=list, blank=True)
    is_emd_paid = models.BooleanField(default=False)
    emd_transaction_id = models.CharField(max_length=100, blank=True)
    emd_paid_at = models.DateTimeField(null=True, blank=True)
    emd_amount = models.DecimalField(max_digits=15, decimal_places=2, null=True, blank=True)
    notes = models.TextField(blank=True)
    withdrawn_at = models.DateTimeField(null=True, blank=True)
    withdrawal_reason = models.TextField(blank=True)
    disqualified_at = models.DateTimeField(null=True, blank=True)
    disqualification_reason = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.reference_number

    def save(self, *args, **kwargs):
        if not self.reference_number:
            self.reference_number = generate_reference('BID', Bid)
        super().save(*args, **kwargs)

    def is_owner(self, user):
        return bool(user and user.is_authenticated and self.vendor_id == user.id)

    def ensure_bidding_open(self):
        if self.tender.status != self.tender.STATUS_PUBLISHED:
            raise WorkflowError('Tender is not open for bidding')
        if timezone.now() > self.tender.bid_end_date:
            raise WorkflowError('Bid submission period has ended')

    def has_paid_emd(self):
        if self.is_emd_paid:
            return True
        from tenderhub.emd.models import Emd
        return Emd.objects.filter(
            tender_id=self.tender_id, vendor_id=self.vendor_id,
            status__in=[Emd.STATUS_PAID, Emd.STATUS_VERIFIED]
        ).exists()

    def submit(self):
        if self.status != self.STATUS_DRAFT:
            raise WorkflowError('Only draft bids can be submitted')
        self.ensure_bidding_open()
        if not self.quoted_amount or self.quoted_amount <= 0:
            raise WorkflowError('Quoted amount is required to submit a bid')
        if not self.delivery_period:
            raise WorkflowError('Delivery period is required to submit a bid')
        tender = self.tender
        if tender.is_emd_required and tender.emd_amount and not self.has_paid_emd():
            raise WorkflowError('EMD payment is required before submitting this bid')
        self.status = self.STATUS_SUBMITTED
        self.submitted_at = timezone.now()
        self.save(update_fields=['status', 'submitted_at', 'updated_at'])

    def withdraw(self, reason=''):
        if self.status != self.STATUS_SUBMITTED:
            raise WorkflowError('Only submitted bids can be withdrawn')
        self.status = self.STATUS_WITHDRAWN
        self.withdrawn_at = timezone.now()
        self.withdrawal_reason = reason or ''
        self.save(update_fields=['status', 'withdrawn_at', 'withdrawal_reason', 'updated_at'])

    def disqualify(self, reason):
        if self.status in (self.STATUS_WITHDRAWN, self.STATUS_ACCEPTED, self.STATUS_DISQUALIFIED):
            raise WorkflowError(f'Cannot disqualify a bid with status {self.status}')
        self.status = self.STATUS_DISQUALIFIED
        self.disqualified_at = timezone.now()
        self.disqualification_reason = reason
        self.save(update_fields=['status', 'disqualified_at', 'disqualification_reason', 'updated_at'])

    def shortlist(self):
        if self.status not in (self.STATUS_SUBMITTED, self.STATUS_UNDER_EVALUATION):
            raise WorkflowError(f'Cannot shortlist a bid with status {self.status}')
        self.status = self.STATUS_SHORTLISTED
        self.save(update_fields=['status', 'updated_at'])

    def evaluate(self, user, technical_score=None, financial_score=None, overall_score=None, remarks=''):
        if self.status not in (self.STATUS_SUBMITTED, self.STATUS_UNDER_EVALUATION):
            raise WorkflowError('Only submitted bids can be evaluated')
        self.status = self.STATUS_UNDER_EVALUATION
        if technical_score is not None:
            self.technical_score = technical_score
        if financial_score is not None:
            self.financial_score = financial_score
        if overall_score is not None:
            self.overall_score = overall_score
        self.evaluation_remarks = remarks or ''
        self.evaluated_at = timezone.now()
        self.evaluated_by = user
        self.save()

    @classmethod
    def compare(cls, tender):
        bids = list(
            cls.objects.select_related('vendor').filter(
                tender=tender, status__in=cls.COMPETING_STATUSES, quoted_amount__isnull=False
            ).order_by('quoted_amount', 'submitted_at')
        )
        if not bids:
            return None
        lowest = bids[0].quoted_amount
        total = sum((bid.quoted_amount for bid in bids), Decimal('0'))
        return {
            'tender_id': tender.id,
            'total_bids': len(bids),
            'lowest_bid': lowest,
            'highest_bid': bids[-1].quoted_amount,
            'average_amount': (total / len(bids)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP),
            'bids': [
                {
                    'id': bid.id,
                    'reference_number': bid.reference_number,
                    'vendor': bid.vendor.username,
                    'quoted_amount': bid.quoted_amount,
                    'delivery_period': bid.delivery_period,
                    'status': bid.status,
                    'percentage_from_lowest': percentage_from(bid.quoted_amount, lowest),
                }
                for bid in bids
            ],
        }

    def analytics(self):
        competing = Bid.objects.filter(
            tender_id=self.tender_id, status__in=self.COMPETING_STATUSES, quoted_amount__isnull=False
        )
        stats = competing.aggregate(lowest=Min('quoted_amount'), highest=Max('quoted_amount'), average=Avg('quoted_amount'))
        position = None
        if self.status in self.COMPETING_STATUSES and self.quoted_amount is not None:
            position = competing.filter(quoted_amount__lt=self.quoted_amount).count() + 1
        average = stats['average']
        if average is not None:
            average = Decimal(average).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
        return {
            'bid_id': self.id,
            'reference_number': self.reference_number,
            'position': position,
            'total_bids': competing.count(),
            'lowest_bid': stats['lowest'],
            'highest_bid': stats['highest'],
            'average_bid': average,
            'your_bid': self.quoted_amount,
            'percentage_from_lowest': (
                percentage_from(self.quoted_amount, stats['lowest'])
                if self.quoted_amount is not None and stats['lowest'] else None
            ),
        }

    class Meta:
        db_table = 'bids'
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(fields=['vendor', 'tender'], name='uniq_bid_vendor_tender'),
        ]
        indexes = [
            models.Index(fields=['status'], name='idx_bid_status'),
            models.Index(fields=['tender', 'quoted_amount'], name='idx_bid_tender_amount'),
        ]
