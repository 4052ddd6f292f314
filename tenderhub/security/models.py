import os
from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import Count, Sum
from django.utils import timezone

from tenderhub.core.exceptions import WorkflowError
from tenderhub.core.models import User
from tenderhub.core.utils import generate_reference, is_admin_user
from tenderhub.tenders.models import default_currency


def expiry_alert_days():
    return int(getattr(settings, 'SECURITY_EXPIRY_ALERT_DAYS', os.getenv('SECURITY_EXPIRY_ALERT_DAYS', 30)))


class SecurityInstrument(models.Model):
    """
    Bank guarantee, security deposit or insurance policy furnished by a
    supplier organization to secure a tender or contract.

    The provider (creator or members of its organization) drafts and submits
    the instrument; the beneficiary (tender owner, buyer side of the contract
    or an administrator) verifies, activates, claims and releases it.
    """
    KIND_BANK_GUARANTEE = 'bank_guarantee'
    KIND_SECURITY_DEPOSIT = 'security_deposit'
    KIND_INSURANCE_POLICY = 'insurance_policy'

    KIND_CHOICES = [
        (KIND_BANK_GUARANTEE, 'Bank Guarantee'),
        (KIND_SECURITY_DEPOSIT, 'Security Deposit'),
        (KIND_INSURANCE_POLICY, 'Insurance Policy'),
    ]

    PURPOSE_CHOICES = [
        ('emd', 'Earnest Money'),
        ('performance', 'Performance Security'),
        ('advance_payment', 'Advance Payment'),
        ('retention', 'Retention Money'),
        ('warranty', 'Warranty'),
        ('other', 'Other'),
    ]

    STATUS_DRAFT = 'draft'
    STATUS_SUBMITTED = 'submitted'
    STATUS_VERIFIED = 'verified'
    STATUS_ACTIVE = 'active'
    STATUS_CLAIMED = 'claimed'
    STATUS_RELEASED = 'released'
    STATUS_REFUNDED = 'refunded'
    STATUS_FORFEITED = 'forfeited'
    STATUS_EXPIRED = 'expired'
    STATUS_CANCELLED = 'cancelled'

    STATUS_CHOICES = [
        (STATUS_DRAFT, 'Draft'),
        (STATUS_SUBMITTED, 'Submitted'),
        (STATUS_VERIFIED, 'Verified'),
        (STATUS_ACTIVE, 'Active'),
        (STATUS_CLAIMED, 'Claimed'),
        (STATUS_RELEASED, 'Released'),
        (STATUS_REFUNDED, 'Refunded'),
        (STATUS_FORFEITED, 'Forfeited'),
        (STATUS_EXPIRED, 'Expired'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    # Statuses in which the beneficiary still holds the instrument
    HELD_STATUSES = [STATUS_VERIFIED, STATUS_ACTIVE]
    LIVE_STATUSES = [STATUS_SUBMITTED, STATUS_VERIFIED, STATUS_ACTIVE]

    reference_number = models.CharField(max_length=50, unique=True, editable=False)
    kind = models.CharField(max_length=20, choices=KIND_CHOICES)
    purpose = models.CharField(max_length=20, choices=PURPOSE_CHOICES, default='performance')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_DRAFT)
    amount = models.DecimalField(max_digits=15, decimal_places=2)
    currency = models.CharField(max_length=3, default=default_currency)
    claimed_amount = models.DecimalField(max_digits=15, decimal_places=2, default=Decimal('0.00'))
    instrument_number = models.CharField(max_length=100, blank=True, help_text="Guarantee, receipt or policy number")
    issuer_name = models.CharField(max_length=255, blank=True, help_text="Issuing bank or insurer")
    issuer_branch = models.CharField(max_length=255, blank=True)
    issue_date = models.DateField(null=True, blank=True)
    expiry_date = models.DateField(null=True, blank=True)
    organization = models.ForeignKey(
        'organizations.Organization', on_delete=models.CASCADE, related_name='security_instruments'
    )
    tender = models.ForeignKey(
        'tenders.Tender', on_delete=models.SET_NULL, null=True, blank=True, related_name='security_instruments'
    )
    bid = models.ForeignKey(
        'bids.Bid', on_delete=models.SET_NULL, null=True, blank=True, related_name='security_instruments'
    )
    contract = models.ForeignKey(
        'contracts.Contract', on_delete=models.SET_NULL, null=True, blank=True, related_name='security_instruments'
    )
    submitted_at = models.DateTimeField(null=True, blank=True)
    verified_at = models.DateTimeField(null=True, blank=True)
    verified_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
        related_name='verified_security_instruments'
    )
    verification_remarks = models.TextField(blank=True)
    activated_at = models.DateTimeField(null=True, blank=True)
    claimed_at = models.DateTimeField(null=True, blank=True)
    claim_reason = models.TextField(blank=True)
    released_at = models.DateTimeField(null=True, blank=True)
    release_remarks = models.TextField(blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    documents = models.JSONField(default=list, blank=True)
    remarks = models.TextField(blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='created_security_instruments'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.reference_number} ({self.get_kind_display()})"

    def save(self, *args, **kwargs):
        if not self.reference_number:
            self.reference_number = generate_reference('SEC', SecurityInstrument)
        super().save(*args, **kwargs)

    # Access

    def is_provider(self, user):
        if not user or not user.is_authenticated:
            return False
        if self.created_by_id == user.id:
            return True
        return user.organization_id is not None and user.organization_id == self.organization_id

    def is_beneficiary(self, user):
        if is_admin_user(user):
            return True
        if self.tender_id and self.tender.is_owner(user):
            return True
        return bool(self.contract_id and self.contract.is_buyer_side(user))

    def can_view(self, user):
        if self.is_provider(user) or self.is_beneficiary(user):
            return True
        return getattr(user, 'role', None) == User.ROLE_AUDITOR

    def beneficiaries(self):
        users = []
        if self.tender_id:
            users.append(self.tender.created_by)
        if self.contract_id:
            users.append(self.contract.created_by)
        return users

    def is_expired(self, today=None):
        today = today or timezone.localdate()
        return self.expiry_date is not None and self.expiry_date < today

    def _require(self, allowed, action):
        if self.status not in allowed:
            raise WorkflowError(f'Cannot {action} a security instrument with status {self.status}')

    # Lifecycle

    def submit(self):
        self._require([self.STATUS_DRAFT], 'submit')
        if self.is_expired():
            raise WorkflowError('Expiry date must not be in the past')
        self.status = self.STATUS_SUBMITTED
        self.submitted_at = timezone.now()
        self.save(update_fields=['status', 'submitted_at', 'updated_at'])

    def verify(self, approved, user, remarks=''):
        """Accept a submitted instrument, or send it back to draft with remarks"""
        self._require([self.STATUS_SUBMITTED], 'verify')
        if approved:
            self.status = self.STATUS_VERIFIED
            self.verified_at = timezone.now()
            self.verified_by = user
        else:
            if not remarks:
                raise WorkflowError('Remarks are required when rejecting a security instrument')
            self.status = self.STATUS_DRAFT
        self.verification_remarks = remarks or ''
        self.save(update_fields=['status', 'verified_at', 'verified_by', 'verification_remarks', 'updated_at'])

    def activate(self):
        self._require([self.STATUS_VERIFIED], 'activate')
        self.status = self.STATUS_ACTIVE
        self.activated_at = timezone.now()
        self.save(update_fields=['status', 'activated_at', 'updated_at'])

    def claim(self, amount, reason):
        """Invoke the instrument; deposits are forfeited, guarantees and policies claimed"""
        self._require(self.HELD_STATUSES, 'claim')
        if self.is_expired():
            raise WorkflowError('An expired security instrument cannot be claimed')
        if amount is None or amount <= 0:
            raise WorkflowError('Claim amount must be greater than zero')
        if amount > self.amount:
            raise WorkflowError(f'Claim amount exceeds the instrument amount of {self.amount}')
        self.status = self.STATUS_FORFEITED if self.kind == self.KIND_SECURITY_DEPOSIT else self.STATUS_CLAIMED
        self.claimed_amount = amount
        self.claimed_at = timezone.now()
        self.claim_reason = reason
        self.save(update_fields=['status', 'claimed_amount', 'claimed_at', 'claim_reason', 'updated_at'])

    def release(self, remarks=''):
        """Hand the instrument back; deposits are refunded"""
        self._require(self.HELD_STATUSES, 'release')
        if self.kind == self.KIND_INSURANCE_POLICY:
            raise WorkflowError('Insurance policies cannot be released, they lapse at expiry')
        self.status = self.STATUS_REFUNDED if self.kind == self.KIND_SECURITY_DEPOSIT else self.STATUS_RELEASED
        self.released_at = timezone.now()
        self.release_remarks = remarks or ''
        self.save(update_fields=['status', 'released_at', 'release_remarks', 'updated_at'])

    def cancel(self):
        self._require([self.STATUS_DRAFT, self.STATUS_SUBMITTED], 'cancel')
        self.status = self.STATUS_CANCELLED
        self.cancelled_at = timezone.now()
        self.save(update_fields=['status', 'cancelled_at', 'updated_at'])

    # Queries

    @classmethod
    def due_to_expire(cls, today=None):
        today = today or timezone.localdate()
        return cls.objects.filter(status__in=cls.LIVE_STATUSES, expiry_date__isnull=False, expiry_date__lt=today)

    @classmethod
    def expiring_within(cls, days, today=None):
        today = today or timezone.localdate()
        return cls.objects.filter(
            status__in=cls.HELD_STATUSES,
            expiry_date__gte=today,
            expiry_date__lte=today + timedelta(days=days),
        )

    @classmethod
    def statistics(cls, queryset=None):
        queryset = cls.objects.all() if queryset is None else queryset
        by_status = {code: 0 for code, _ in cls.STATUS_CHOICES}
        for row in queryset.values('status').annotate(count=Count('id')):
            by_status[row['status']] = row['count']
        by_kind = {code: 0 for code, _ in cls.KIND_CHOICES}
        for row in queryset.values('kind').annotate(count=Count('id')):
            by_kind[row['kind']] = row['count']
        held = queryset.filter(status__in=cls.HELD_STATUSES).aggregate(total=Sum('amount'))['total']
        claimed = queryset.filter(
            status__in=[cls.STATUS_CLAIMED, cls.STATUS_FORFEITED]
        ).aggregate(total=Sum('claimed_amount'))['total']
        return {
            'total': queryset.count(),
            'by_status': by_status,
            'by_kind': by_kind,
            'held_amount': held or Decimal('0.00'),
            'claimed_amount': claimed or Decimal('0.00'),
            'expiring_soon': queryset.filter(
                pk__in=cls.expiring_within(expiry_alert_days()).values('pk')
            ).count(),
        }

    class Meta:
        db_table = 'security_instruments'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status'], name='idx_security_status'),
            models.Index(fields=['kind', 'status'], name='idx_security_kind_status'),
            models.Index(fields=['expiry_date'], name='idx_security_expiry'),
        ]
