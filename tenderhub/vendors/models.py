import random
from decimal import Decimal, ROUND_HALF_UP
from datetime import timedelta

from django.conf import settings
from django.db import models
from django.utils import timezone

from tenderhub.core.exceptions import WorkflowError

TWO_PLACES = Decimal('0.01')

BASE_REQUIRED_DOCUMENTS = ['business_registration', 'tax_certificate', 'bank_details', 'address_proof']

CATEGORY_REQUIRED_DOCUMENTS = {
    'manufacturer': ['manufacturing_license', 'quality_certification'],
    'distributor': ['distribution_license', 'warehouse_certificate'],
    'service_provider': ['service_license', 'professional_certification'],
    'contractor': ['contractor_license', 'insurance_certificate'],
    'consultant': ['professional_certification', 'experience_certificate'],
    'supplier': ['supply_license', 'product_certification'],
    'other': [],
}


class Vendor(models.Model):
    """Supplier profile of an organization, with verification and performance tracking"""
    STATUS_PENDING = 'pending_verification'
    STATUS_VERIFIED = 'verified'
    STATUS_SUSPENDED = 'suspended'
    STATUS_BLACKLISTED = 'blacklisted'
    STATUS_INACTIVE = 'inactive'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending Verification'),
        (STATUS_VERIFIED, 'Verified'),
        (STATUS_SUSPENDED, 'Suspended'),
        (STATUS_BLACKLISTED, 'Blacklisted'),
        (STATUS_INACTIVE, 'Inactive'),
    ]

    STATUS_TRANSITIONS = {
        STATUS_PENDING: [STATUS_VERIFIED, STATUS_INACTIVE],
        STATUS_VERIFIED: [STATUS_SUSPENDED, STATUS_BLACKLISTED, STATUS_INACTIVE],
        STATUS_SUSPENDED: [STATUS_VERIFIED, STATUS_BLACKLISTED, STATUS_INACTIVE],
        STATUS_BLACKLISTED: [STATUS_VERIFIED, STATUS_INACTIVE],
        STATUS_INACTIVE: [STATUS_PENDING],
    }

    CATEGORY_CHOICES = [
        ('manufacturer', 'Manufacturer'),
        ('distributor', 'Distributor'),
        ('service_provider', 'Service Provider'),
        ('contractor', 'Contractor'),
        ('consultant', 'Consultant'),
        ('supplier', 'Supplier'),
        ('other', 'Other'),
    ]

    VERIFICATION_NOT_STARTED = 'not_started'
    VERIFICATION_IN_PROGRESS = 'in_progress'
    VERIFICATION_PENDING_DOCUMENTS = 'pending_documents'
    VERIFICATION_UNDER_REVIEW = 'under_review'
    VERIFICATION_APPROVED = 'approved'
    VERIFICATION_REJECTED = 'rejected'

    VERIFICATION_CHOICES = [
        (VERIFICATION_NOT_STARTED, 'Not Started'),
        (VERIFICATION_IN_PROGRESS, 'In Progress'),
        (VERIFICATION_PENDING_DOCUMENTS, 'Pending Documents'),
        (VERIFICATION_UNDER_REVIEW, 'Under Review'),
        (VERIFICATION_APPROVED, 'Approved'),
        (VERIFICATION_REJECTED, 'Rejected'),
    ]

    organization = models.OneToOneField(
        'organizations.Organization', on_delete=models.CASCADE, related_name='vendor_profile'
    )
    registration_number = models.CharField(max_length=50, unique=True, editable=False)
    legal_name = models.CharField(max_length=255)
    trade_name = models.CharField(max_length=255, blank=True)
    category = models.CharField(max_length=30, choices=CATEGORY_CHOICES, default='supplier')
    status = models.CharField(max_length=30, choices=STATUS_CHOICES, default=STATUS_PENDING)
    verification_status = models.CharField(max_length=30, choices=VERIFICATION_CHOICES, default=VERIFICATION_NOT_STARTED)
    tax_id = models.CharField(max_length=100, blank=True)
    primary_contact_name = models.CharField(max_length=255, blank=True)
    primary_contact_email = models.EmailField(blank=True)
    primary_contact_phone = models.CharField(max_length=20, blank=True)
    business_address = models.JSONField(default=dict, blank=True)
    website = models.URLField(blank=True)
    bank_details = models.JSONField(default=dict, blank=True)
    certifications = models.JSONField(default=list, blank=True)
    documents = models.JSONField(default=list, blank=True)
    overall_rating = models.DecimalField(max_digits=3, decimal_places=2, default=Decimal('0.00'))
    total_contracts_completed = models.PositiveIntegerField(default=0)
    total_contracts_in_progress = models.PositiveIntegerField(default=0)
    on_time_delivery_rate = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('100.00'))
    quality_score = models.DecimalField(max_digits=3, decimal_places=2, default=Decimal('0.00'))
    compliance_score = models.DecimalField(max_digits=3, decimal_places=2, default=Decimal('0.00'))
    total_disputes = models.PositiveIntegerField(default=0)
    resolved_disputes = models.PositiveIntegerField(default=0)
    blacklist_date = models.DateTimeField(null=True, blank=True)
    blacklist_reason = models.TextField(blank=True)
    blacklist_expiry_date = models.DateTimeField(null=True, blank=True)
    blacklist_history = models.JSONField(default=list, blank=True)
    product_categories = models.JSONField(default=list, blank=True)
    service_categories = models.JSONField(default=list, blank=True)
    notes = models.TextField(blank=True)
    verified_at = models.DateTimeField(null=True, blank=True)
    verified_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='verified_vendors'
    )
    verification_remarks = models.TextField(blank=True)
    last_activity_at = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='registered_vendors'
    )
    account_manager = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='managed_vendors'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.registration_number} - {self.legal_name}"

    def save(self, *args, **kwargs):
        if not self.registration_number:
            self.registration_number = self.generate_registration_number()
        super().save(*args, **kwargs)

    @classmethod
    def generate_registration_number(cls):
        year = timezone.now().year
        value = f"VND-{year}-{random.randint(0, 9999):04d}"
        while cls.objects.filter(registration_number=value).exists():
            value = f"VND-{year}-{random.randint(0, 9999):04d}"
        return value

    # Computed metrics

    @property
    def performance_rating(self):
        rating = (
            self.overall_rating * Decimal('0.3') +
            (self.on_time_delivery_rate * Decimal('0.25') / Decimal('100')) * Decimal('5') +
            self.quality_score * Decimal('0.25') +
            self.compliance_score * Decimal('0.2')
        )
        return rating.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)

    @property
    def dispute_resolution_rate(self):
        if self.total_disputes == 0:
            return Decimal('100.00')
        rate = Decimal(self.resolved_disputes) / Decimal(self.total_disputes) * Decimal('100')
        return rate.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)

    @property
    def is_blacklisted(self):
        return self.status == self.STATUS_BLACKLISTED

    # Verification workflow

    def required_documents(self):
        return BASE_REQUIRED_DOCUMENTS + CATEGORY_REQUIRED_DOCUMENTS.get(self.category, [])

    def missing_documents(self):
        submitted = {
            doc.get('type') for doc in (self.documents or [])
            if doc.get('status') != 'rejected'
        }
        return [doc_type for doc_type in self.required_documents() if doc_type not in submitted]

    def touch(self):
        self.last_activity_at = timezone.now()

    def initiate_verification(self):
        if self.verification_status != self.VERIFICATION_NOT_STARTED:
            raise WorkflowError('Verification already initiated')
        self.verification_status = self.VERIFICATION_IN_PROGRESS
        missing = self.missing_documents()
        if missing:
            self.verification_status = self.VERIFICATION_PENDING_DOCUMENTS
            self.verification_remarks = f"Missing documents: {', '.join(missing)}"
        self.touch()
        self.save()
        return missing

    def submit_documents(self, documents):
        now = timezone.now().isoformat()
        added = []
        for document in documents:
            added.append({
                'type': document['type'],
                'name': document.get('name') or document['type'],
                'url': document.get('url', ''),
                'uploaded_at': now,
                'status': 'pending_verification',
            })
        self.documents = list(self.documents or []) + added
        missing = self.missing_documents()
        if not missing and self.verification_status == self.VERIFICATION_PENDING_DOCUMENTS:
            self.verification_status = self.VERIFICATION_UNDER_REVIEW
            self.verification_remarks = 'All required documents submitted'
        elif missing and self.verification_status == self.VERIFICATION_PENDING_DOCUMENTS:
            self.verification_remarks = f"Missing documents: {', '.join(missing)}"
        self.touch()
        self.save()
        return missing

    def verify(self, approved, remarks='', user=None):
        if self.verification_status == self.VERIFICATION_APPROVED:
            raise WorkflowError('Vendor is already verified')
        if approved:
            self.verification_status = self.VERIFICATION_APPROVED
            self.status = self.STATUS_VERIFIED
            self.verified_at = timezone.now()
            self.verified_by = user
            self.documents = [dict(doc, status='verified') for doc in (self.documents or [])]
        else:
            self.verification_status = self.VERIFICATION_REJECTED
            self.status = self.STATUS_PENDING
        self.verification_remarks = remarks or ''
        self.touch()
        self.save()

    # Status workflow

    def change_status(self, new_status):
        allowed = self.STATUS_TRANSITIONS.get(self.status, [])
        if new_status not in allowed:
            raise WorkflowError(f'Invalid status transition from {self.status} to {new_status}')
        self.status = new_status
        self.touch()

    def suspend(self, reason=''):
        self.change_status(self.STATUS_SUSPENDED)
        if reason:
            stamp = timezone.now().date().isoformat()
            self.notes = f"{self.notes}\n[{stamp}] Suspended: {reason}".strip()
        self.save()

    def activate(self):
        self.change_status(self.STATUS_VERIFIED)
        self.save()

    def deactivate(self):
        self.change_status(self.STATUS_INACTIVE)
        self.save()

    def blacklist(self, reason, duration_days=0, user=None):
        if self.is_blacklisted:
            raise WorkflowError('Vendor is already blacklisted')
        now = timezone.now()
        self.status = self.STATUS_BLACKLISTED
        self.blacklist_date = now
        self.blacklist_reason = reason
        self.blacklist_expiry_date = now + timedelta(days=duration_days) if duration_days and duration_days > 0 else None
        self.blacklist_history = list(self.blacklist_history or []) + [{
            'date': now.isoformat(),
            'reason': reason,
            'duration': duration_days or 0,
            'blacklisted_by': user.id if user else None,
        }]
        self.touch()
        self.save()

    def remove_from_blacklist(self, remarks='', user=None):
        if not self.is_blacklisted:
            raise WorkflowError('Vendor is not blacklisted')
        self.status = self.STATUS_VERIFIED
        self.blacklist_expiry_date = None
        history = list(self.blacklist_history or [])
        if history:
            history[-1] = dict(
                history[-1],
                removed_date=timezone.now().isoformat(),
                removed_by=user.id if user else None,
                remarks=remarks or 'Removed from blacklist',
            )
        self.blacklist_history = history
        self.touch()
        self.save()

    # Performance

    def update_performance(self, metrics):
        for field in ('on_time_delivery_rate', 'quality_score', 'compliance_score',
                      'total_disputes', 'resolved_disputes', 'total_contracts_in_progress'):
            if field in metrics and metrics[field] is not None:
                setattr(self, field, metrics[field])
        self.overall_rating = min(self.performance_rating, Decimal('5.00'))
        self.touch()
        self.save()

    def rate(self, score):
        score = Decimal(str(score))
        count = self.total_contracts_completed or 1
        new_rating = (self.overall_rating * count + score) / (count + 1)
        self.overall_rating = new_rating.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
        self.touch()
        self.save(update_fields=['overall_rating', 'last_activity_at', 'updated_at'])
        return self.overall_rating

    def record_contract_completion(self, on_time=True):
        completed_before = self.total_contracts_completed
        on_time_before = (self.on_time_delivery_rate * completed_before / Decimal('100')).quantize(
            Decimal('1'), rounding=ROUND_HALF_UP
        )
        self.total_contracts_completed = completed_before + 1
        self.total_contracts_in_progress = max(0, self.total_contracts_in_progress - 1)
        on_time_count = on_time_before + (1 if on_time else 0)
        self.on_time_delivery_rate = (
            Decimal(on_time_count) / Decimal(self.total_contracts_completed) * Decimal('100')
        ).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
        self.touch()
        self.save()

    class Meta:
        db_table = 'vendors'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status'], name='idx_vendor_status'),
            models.Index(fields=['category'], name='idx_vendor_category'),
            models.Index(fields=['verification_status'], name='idx_vendor_verification'),
            models.Index(fields=['-overall_rating'], name='idx_vendor_rating'),
        ]
