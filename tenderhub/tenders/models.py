from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings
from django.db import models, transaction
from django.db.models import Avg, Max, Min
from django.utils import timezone

from tenderhub.core.exceptions import WorkflowError


def default_currency():
    return getattr(settings, 'DEFAULT_CURRENCY', 'INR')


class Tender(models.Model):
    """A call for bids published by a buyer organization"""
    STATUS_DRAFT = 'draft'
    STATUS_PUBLISHED = 'published'
    STATUS_EVALUATION = 'evaluation'
    STATUS_AWARDED = 'awarded'
    STATUS_CANCELLED = 'cancelled'
    STATUS_COMPLETED = 'completed'

    STATUS_CHOICES = [
        (STATUS_DRAFT, 'Draft'),
        (STATUS_PUBLISHED, 'Published'),
        (STATUS_EVALUATION, 'Under Evaluation'),
        (STATUS_AWARDED, 'Awarded'),
        (STATUS_CANCELLED, 'Cancelled'),
        (STATUS_COMPLETED, 'Completed'),
    ]

    TYPE_CHOICES = [
        ('open', 'Open'),
        ('limited', 'Limited'),
        ('single', 'Single Source'),
        ('two_stage', 'Two Stage'),
        ('expression_of_interest', 'Expression of Interest'),
    ]

    CATEGORY_CHOICES = [
        ('goods', 'Goods'),
        ('services', 'Services'),
        ('works', 'Works'),
        ('consultancy', 'Consultancy'),
        ('other', 'Other'),
    ]

    reference_number = models.CharField(max_length=100, unique=True)
    title = models.CharField(max_length=500)
    description = models.TextField()
    type = models.CharField(max_length=30, choices=TYPE_CHOICES, default='open')
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES, default='goods')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_DRAFT)
    estimated_value = models.DecimalField(max_digits=15, decimal_places=2, null=True, blank=True)
    currency = models.CharField(max_length=3, default=default_currency)
    emd_amount = models.DecimalField(max_digits=15, decimal_places=2, null=True, blank=True)
    emd_percentage = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)
    is_emd_required = models.BooleanField(default=True)
    publish_date = models.DateTimeField(null=True, blank=True)
    bid_start_date = models.DateTimeField(null=True, blank=True)
    bid_end_date = models.DateTimeField()
    opening_date = models.DateTimeField(null=True, blank=True)
    clarification_deadline = models.DateTimeField(null=True, blank=True)
    location = models.CharField(max_length=255, blank=True)
    delivery_period = models.CharField(max_length=255, blank=True)
    payment_terms = models.TextField(blank=True)
    eligibility_criteria = models.JSONField(default=list, blank=True)
    technical_requirements = models.JSONField(default=dict, blank=True)
    evaluation_criteria = models.JSONField(default=dict, blank=True)
    required_documents = models.JSONField(default=list, blank=True)
    contact_details = models.JSONField(default=dict, blank=True)
    is_multiple_winners_allowed = models.BooleanField(default=False)
    max_winners = models.PositiveIntegerField(default=1)
    is_public = models.BooleanField(default=True)
    invited_vendors = models.JSONField(default=list, blank=True, help_text="User IDs invited to a non-public tender")
    view_count = models.PositiveIntegerField(default=0)
    bid_count = models.PositiveIntegerField(default=0)
    attachments = models.JSONField(default=list, blank=True)
    amendments = models.JSONField(default=list, blank=True)
    clarifications = models.JSONField(default=list, blank=True)
    cancellation_reason = models.TextField(blank=True)
    cancellation_date = models.DateTimeField(null=True, blank=True)
    awarded_to = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
        related_name='awarded_tenders'
    )
    awarded_date = models.DateTimeField(null=True, blank=True)
    awarded_amount = models.DecimalField(max_digits=15, decimal_places=2, null=True, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    organization = models.ForeignKey(
        'organizations.Organization', on_delete=models.SET_NULL, null=True, blank=True,
        related_name='tenders'
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='tenders'
    )
    favorited_by = models.ManyToManyField(
        settings.AUTH_USER_MODEL, blank=True, related_name='favorite_tenders'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.reference_number} - {self.title}"

    def is_owner(self, user):
        return bool(user and user.is_authenticated and self.created_by_id == user.id)

    def can_view(self, user):
        from tenderhub.core.utils import is_admin_user
        if self.is_owner(user) or is_admin_user(user):
            return True
        if self.status == self.STATUS_DRAFT:
            return False
        return self.is_public or user.id in (self.invited_vendors or [])

    def is_bidding_open(self, at=None):
        at = at or timezone.now()
        return self.status == self.STATUS_PUBLISHED and at <= self.bid_end_date

    def ensure_status(self, *allowed, message=None):
        if self.status not in allowed:
            raise WorkflowError(
                message or f"Cannot perform this action on a tender with status {self.status}"
            )

    def publish(self):
        self.ensure_status(self.STATUS_DRAFT, message='Only draft tenders can be published')
        if self.bid_end_date <= timezone.now():
            raise WorkflowError('Bid end date must be in the future to publish')
        self.status = self.STATUS_PUBLISHED
        self.publish_date = timezone.now()
        self.save(update_fields=['status', 'publish_date', 'updated_at'])

    def close(self):
        self.ensure_status(self.STATUS_PUBLISHED, message='Only published tenders can be closed')
        self.status = self.STATUS_EVALUATION
        self.save(update_fields=['status', 'updated_at'])

    def cancel(self, reason=''):
        if self.status in (self.STATUS_AWARDED, self.STATUS_COMPLETED, self.STATUS_CANCELLED):
            raise WorkflowError(f'Cannot cancel a tender with status {self.status}')
        self.status = self.STATUS_CANCELLED
        self.cancellation_reason = reason or ''
        self.cancellation_date = timezone.now()
        self.save(update_fields=['status', 'cancellation_reason', 'cancellation_date', 'updated_at'])

    def extend_deadline(self, new_deadline, reason='', user=None):
        self.ensure_status(self.STATUS_PUBLISHED, message='Only published tenders can have their deadline extended')
        if new_deadline <= self.bid_end_date:
            raise WorkflowError('New deadline must be after the current bid end date')
        previous = self.bid_end_date
        self.bid_end_date = new_deadline
        self.amendments = list(self.amendments or []) + [{
            'type': 'deadline_extension',
            'previous_deadline': previous.isoformat(),
            'new_deadline': new_deadline.isoformat(),
            'reason': reason,
            'amended_by': user.id if user else None,
            'amended_at': timezone.now().isoformat(),
        }]
        self.save(update_fields=['bid_end_date', 'amendments', 'updated_at'])
        return previous

    def award(self, bid):
        from tenderhub.bids.models import Bid

        self.ensure_status(self.STATUS_EVALUATION, message='Only tenders under evaluation can be awarded')
        if bid.tender_id != self.id:
            raise WorkflowError('Bid does not belong to this tender')
        if bid.status not in (Bid.STATUS_SUBMITTED, Bid.STATUS_UNDER_EVALUATION, Bid.STATUS_SHORTLISTED):
            raise WorkflowError(f'Cannot award a bid with status {bid.status}')

        with transaction.atomic():
            now = timezone.now()
            bid.status = Bid.STATUS_ACCEPTED
            bid.save(update_fields=['status', 'updated_at'])
            self.bids.exclude(pk=bid.pk).filter(
                status__in=[Bid.STATUS_SUBMITTED, Bid.STATUS_UNDER_EVALUATION, Bid.STATUS_SHORTLISTED]
            ).update(status=Bid.STATUS_REJECTED, updated_at=now)
            self.status = self.STATUS_AWARDED
            self.awarded_to_id = bid.vendor_id
            self.awarded_amount = bid.quoted_amount
            self.awarded_date = now
            self.save(update_fields=['status', 'awarded_to', 'awarded_amount', 'awarded_date', 'updated_at'])

    def complete(self):
        self.ensure_status(self.STATUS_AWARDED, message='Only awarded tenders can be completed')
        self.status = self.STATUS_COMPLETED
        self.save(update_fields=['status', 'updated_at'])

    def days_remaining(self, at=None):
        at = at or timezone.now()
        return max(0, (self.bid_end_date - at).days)

    def analytics(self):
        from tenderhub.bids.models import Bid

        bids = self.bids.exclude(status=Bid.STATUS_DRAFT).filter(quoted_amount__isnull=False)
        stats = bids.aggregate(lowest=Min('quoted_amount'), highest=Max('quoted_amount'), average=Avg('quoted_amount'))
        average = stats['average']
        if average is not None:
            average = Decimal(average).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)
        return {
            'tender_id': self.id,
            'reference_number': self.reference_number,
            'status': self.status,
            'total_bids': bids.count(),
            'lowest_bid': stats['lowest'],
            'highest_bid': stats['highest'],
            'average_bid': average,
            'view_count': self.view_count,
            'favorite_count': self.favorited_by.count(),
            'days_remaining': self.days_remaining(),
        }

    class Meta:
        db_table = 'tenders'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status'], name='idx_tender_status'),
            models.Index(fields=['category'], name='idx_tender_category'),
            models.Index(fields=['bid_end_date'], name='idx_tender_bid_end'),
            models.Index(fields=['-created_at'], name='idx_tender_created'),
        ]
