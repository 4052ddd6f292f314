import hashlib
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings
from django.core.exceptions import ObjectDoesNotExist
from django.db import models, transaction
from django.db.models import Count, Sum
from django.utils import timezone

from tenderhub.core.exceptions import WorkflowError
from tenderhub.core.utils import next_sequence_number
from tenderhub.tenders.models import default_currency

CONTRACT_TEMPLATES = [
    {
        'id': 'standard-purchase',
        'name': 'Standard Purchase Agreement',
        'description': 'Purchase of goods against an awarded tender',
        'type': 'supply',
    },
    {
        'id': 'service-level',
        'name': 'Service Level Agreement',
        'description': 'Recurring services with measurable service levels',
        'type': 'service',
    },
    {
        'id': 'works',
        'name': 'Works Contract',
        'description': 'Construction and civil works executed in milestones',
        'type': 'works',
    },
    {
        'id': 'annual-maintenance',
        'name': 'Annual Maintenance Contract',
        'description': 'Yearly maintenance with an optional renewal',
        'type': 'maintenance',
    },
]

# Fields an amendment may change on an active contract
AMENDABLE_FIELDS = ['end_date', 'contract_value', 'deliverables', 'terms_and_conditions', 'special_conditions']

MILESTONE_STATUSES = ['pending', 'in_progress', 'completed']


class Contract(models.Model):
    STATUS_DRAFT = 'draft'
    STATUS_PENDING_APPROVAL = 'pending_approval'
    STATUS_APPROVED = 'approved'
    STATUS_ACTIVE = 'active'
    STATUS_SUSPENDED = 'suspended'
    STATUS_TERMINATED = 'terminated'
    STATUS_COMPLETED = 'completed'
    STATUS_EXPIRED = 'expired'
    STATUS_CANCELLED = 'cancelled'

    STATUS_CHOICES = [
        (STATUS_DRAFT, 'Draft'),
        (STATUS_PENDING_APPROVAL, 'Pending Approval'),
        (STATUS_APPROVED, 'Approved'),
        (STATUS_ACTIVE, 'Active'),
        (STATUS_SUSPENDED, 'Suspended'),
        (STATUS_TERMINATED, 'Terminated'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_EXPIRED, 'Expired'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    TRANSITIONS = {
        STATUS_DRAFT: [STATUS_PENDING_APPROVAL, STATUS_CANCELLED],
        STATUS_PENDING_APPROVAL: [STATUS_APPROVED, STATUS_DRAFT, STATUS_CANCELLED],
        STATUS_APPROVED: [STATUS_ACTIVE, STATUS_CANCELLED],
        STATUS_ACTIVE: [STATUS_SUSPENDED, STATUS_TERMINATED, STATUS_COMPLETED, STATUS_EXPIRED],
        STATUS_SUSPENDED: [STATUS_ACTIVE, STATUS_TERMINATED],
    }

    TYPE_CHOICES = [
        ('service', 'Service'),
        ('supply', 'Supply'),
        ('works', 'Works'),
        ('consultancy', 'Consultancy'),
        ('framework', 'Framework'),
        ('maintenance', 'Maintenance'),
        ('license', 'License'),
        ('other', 'Other'),
    ]

    PAYMENT_TERMS_CHOICES = [
        ('advance', 'Advance'),
        ('on_delivery', 'On Delivery'),
        ('net_30', 'Net 30'),
        ('net_60', 'Net 60'),
        ('net_90', 'Net 90'),
        ('milestone', 'Milestone Based'),
        ('custom', 'Custom'),
    ]

    contract_number = models.CharField(max_length=50, unique=True, editable=False)
    title = models.CharField(max_length=500)
    description = models.TextField(blank=True)
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='supply')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_DRAFT)
    contract_value = models.DecimalField(max_digits=15, decimal_places=2)
    currency = models.CharField(max_length=3, default=default_currency)
    start_date = models.DateField()
    end_date = models.DateField()
    payment_terms = models.CharField(max_length=20, choices=PAYMENT_TERMS_CHOICES, default='net_30')
    payment_terms_details = models.TextField(blank=True)
    milestones = models.JSONField(default=list, blank=True)
    deliverables = models.JSONField(default=list, blank=True)
    terms_and_conditions = models.TextField(blank=True)
    special_conditions = models.TextField(blank=True)
    signatures = models.JSONField(default=list, blank=True)
    approved_at = models.DateTimeField(null=True, blank=True)
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='approved_contracts'
    )
    approval_remarks = models.TextField(blank=True)
    signed_at = models.DateTimeField(null=True, blank=True)
    activated_at = models.DateTimeField(null=True, blank=True)
    suspended_at = models.DateTimeField(null=True, blank=True)
    suspension_reason = models.TextField(blank=True)
    terminated_at = models.DateTimeField(null=True, blank=True)
    termination_reason = models.TextField(blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    is_renewable = models.BooleanField(default=False)
    renewal_notice_period_days = models.PositiveIntegerField(default=30)
    parent_contract = models.ForeignKey(
        'self', on_delete=models.SET_NULL, null=True, blank=True, related_name='renewals'
    )
    amendments = models.JSONField(default=list, blank=True)
    performance_score = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)
    performance_metrics = models.JSONField(default=list, blank=True)
    vendor_organization = models.ForeignKey(
        'organizations.Organization', on_delete=models.PROTECT, related_name='vendor_contracts'
    )
    buyer_organization = models.ForeignKey(
        'organizations.Organization', on_delete=models.PROTECT, null=True, blank=True, related_name='buyer_contracts'
    )
    tender = models.ForeignKey(
        'tenders.Tender', on_delete=models.SET_NULL, null=True, blank=True, related_name='contracts'
    )
    bid = models.ForeignKey('bids.Bid', on_delete=models.SET_NULL, null=True, blank=True, related_name='contracts')
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='created_contracts'
    )
    contract_manager = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='managed_contracts'
    )
    documents = models.JSONField(default=list, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.contract_number} - {self.title}"

    def save(self, *args, **kwargs):
        if not self.contract_number:
            self.contract_number = next_sequence_number(
                Contract, 'contract_number', f"CONT-{timezone.now().year}"
            )
        super().save(*args, **kwargs)

    # Access

    def is_party(self, user):
        if not user or not user.is_authenticated:
            return False
        if self.created_by_id == user.id:
            return True
        return user.organization_id is not None and user.organization_id in (
            self.vendor_organization_id, self.buyer_organization_id
        )

    def is_buyer_side(self, user):
        if not user or not user.is_authenticated:
            return False
        return self.created_by_id == user.id or (
            user.organization_id is not None and user.organization_id == self.buyer_organization_id
        )

    # Lifecycle

    def can_transition(self, target):
        return target in self.TRANSITIONS.get(self.status, [])

    def transition_to(self, target):
        if not self.can_transition(target):
            raise WorkflowError(f'Cannot change contract status from {self.status} to {target}')
        self.status = target

    def submit_for_approval(self):
        if self.status != self.STATUS_DRAFT:
            raise WorkflowError('Only draft contracts can be submitted for approval')
        self.transition_to(self.STATUS_PENDING_APPROVAL)
        self.save(update_fields=['status', 'updated_at'])

    def approve(self, user, remarks=''):
        if self.status != self.STATUS_PENDING_APPROVAL:
            raise WorkflowError('Only contracts pending approval can be approved')
        self.transition_to(self.STATUS_APPROVED)
        self.approved_at = timezone.now()
        self.approved_by = user
        self.approval_remarks = remarks or ''
        self.save(update_fields=['status', 'approved_at', 'approved_by', 'approval_remarks', 'updated_at'])

    def reject(self, reason):
        if self.status != self.STATUS_PENDING_APPROVAL:
            raise WorkflowError('Only contracts pending approval can be rejected')
        self.transition_to(self.STATUS_DRAFT)
        self.approval_remarks = f"Rejected: {reason}"
        self.save(update_fields=['status', 'approval_remarks', 'updated_at'])

    def cancel(self):
        self.transition_to(self.STATUS_CANCELLED)
        self.save(update_fields=['status', 'updated_at'])

    def sign(self, user, party_name, party_role, ip_address=None):
        if self.status != self.STATUS_APPROVED:
            raise WorkflowError('Only approved contracts can be signed')
        if any(signature.get('signed_by') == user.id for signature in self.signatures):
            raise WorkflowError('You have already signed this contract')
        signed_at = timezone.now()
        payload = f"{self.contract_number}:{user.id}:{signed_at.isoformat()}"
        signature = {
            'party_name': party_name,
            'party_role': party_role,
            'signed_by': user.id,
            'signed_at': signed_at.isoformat(),
            'signature_hash': hashlib.sha256(payload.encode('utf-8')).hexdigest(),
            'ip_address': ip_address,
        }
        self.signatures = list(self.signatures) + [signature]
        if len(self.signatures) >= 2 and self.signed_at is None:
            self.signed_at = signed_at
        self.save(update_fields=['signatures', 'signed_at', 'updated_at'])
        return signature

    def vendor_profile(self):
        try:
            return self.vendor_organization.vendor_profile
        except ObjectDoesNotExist:
            return None

    def activate(self):
        if self.status != self.STATUS_APPROVED:
            raise WorkflowError('Only approved contracts can be activated')
        if len(self.signatures) < 2:
            raise WorkflowError('Contract must be signed by both parties before activation')
        with transaction.atomic():
            self.transition_to(self.STATUS_ACTIVE)
            self.activated_at = timezone.now()
            self.save(update_fields=['status', 'activated_at', 'updated_at'])
            vendor = self.vendor_profile()
            if vendor is not None:
                vendor.total_contracts_in_progress += 1
                vendor.touch()
                vendor.save(update_fields=['total_contracts_in_progress', 'last_activity_at', 'updated_at'])

    def suspend(self, reason):
        if self.status != self.STATUS_ACTIVE:
            raise WorkflowError('Only active contracts can be suspended')
        self.transition_to(self.STATUS_SUSPENDED)
        self.suspended_at = timezone.now()
        self.suspension_reason = reason
        self.save(update_fields=['status', 'suspended_at', 'suspension_reason', 'updated_at'])

    def resume(self):
        if self.status != self.STATUS_SUSPENDED:
            raise WorkflowError('Only suspended contracts can be resumed')
        self.transition_to(self.STATUS_ACTIVE)
        self.save(update_fields=['status', 'updated_at'])

    def terminate(self, reason):
        if self.status not in (self.STATUS_ACTIVE, self.STATUS_SUSPENDED):
            raise WorkflowError('Only active or suspended contracts can be terminated')
        self.transition_to(self.STATUS_TERMINATED)
        self.terminated_at = timezone.now()
        self.termination_reason = reason
        self.save(update_fields=['status', 'terminated_at', 'termination_reason', 'updated_at'])

    def complete(self):
        if self.status != self.STATUS_ACTIVE:
            raise WorkflowError('Only active contracts can be completed')
        incomplete = [m for m in self.milestones if m.get('status') != 'completed']
        if incomplete:
            raise WorkflowError('All milestones must be completed before marking contract as complete')
        with transaction.atomic():
            self.transition_to(self.STATUS_COMPLETED)
            self.completed_at = timezone.now()
            self.save(update_fields=['status', 'completed_at', 'updated_at'])
            vendor = self.vendor_profile()
            if vendor is not None:
                vendor.record_contract_completion(on_time=timezone.localdate() <= self.end_date)

    def expire(self):
        self.transition_to(self.STATUS_EXPIRED)
        self.save(update_fields=['status', 'updated_at'])

    def update_milestone(self, index, milestone_status):
        if milestone_status not in MILESTONE_STATUSES:
            raise WorkflowError(f'Invalid milestone status: {milestone_status}')
        if index < 0 or index >= len(self.milestones):
            raise WorkflowError('Milestone not found')
        milestones = [dict(m) for m in self.milestones]
        milestones[index]['status'] = milestone_status
        if milestone_status == 'completed':
            milestones[index]['completed_at'] = timezone.now().isoformat()
        self.milestones = milestones
        self.save(update_fields=['milestones', 'updated_at'])
        return milestones[index]

    def amend(self, user, description, changes):
        if self.status != self.STATUS_ACTIVE:
            raise WorkflowError('Only active contracts can be amended')
        applied = {key: value for key, value in (changes or {}).items() if key in AMENDABLE_FIELDS}
        amendment = {
            'amendment_number': len(self.amendments) + 1,
            'description': description,
            'changes': {
                key: str(value) if isinstance(value, (Decimal, date)) else value for key, value in applied.items()
            },
            'amended_by': user.id,
            'amended_at': timezone.now().isoformat(),
        }
        for key, value in applied.items():
            setattr(self, key, value)
        if self.end_date <= self.start_date:
            raise WorkflowError('End date must be after start date')
        self.amendments = list(self.amendments) + [amendment]
        self.save()
        return amendment

    def renew(self, user, start_date, end_date, contract_value=None):
        if self.status not in (self.STATUS_ACTIVE, self.STATUS_EXPIRED):
            raise WorkflowError('Only active or expired contracts can be renewed')
        if end_date <= start_date:
            raise WorkflowError('End date must be after start date')
        with transaction.atomic():
            renewal = Contract.objects.create(
                title=f"{self.title} (Renewed)",
                description=self.description,
                type=self.type,
                contract_value=contract_value if contract_value is not None else self.contract_value,
                currency=self.currency,
                start_date=start_date,
                end_date=end_date,
                payment_terms=self.payment_terms,
                payment_terms_details=self.payment_terms_details,
                deliverables=self.deliverables,
                terms_and_conditions=self.terms_and_conditions,
                special_conditions=self.special_conditions,
                is_renewable=self.is_renewable,
                renewal_notice_period_days=self.renewal_notice_period_days,
                parent_contract=self,
                vendor_organization=self.vendor_organization,
                buyer_organization=self.buyer_organization,
                tender=self.tender,
                bid=self.bid,
                created_by=user,
                contract_manager=self.contract_manager,
            )
            self.metadata = dict(self.metadata or {}, superseded_by=renewal.id)
            self.save(update_fields=['metadata', 'updated_at'])
        return renewal

    def record_performance(self, metrics):
        """Append evaluated metrics and recompute the average score"""
        now = timezone.now().isoformat()
        entries = list(self.performance_metrics)
        for metric in metrics:
            entries.append(dict(metric, evaluated_at=now))
        total = sum(Decimal(str(entry['score'])) for entry in entries)
        self.performance_metrics = entries
        self.performance_score = (total / len(entries)).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)
        self.save(update_fields=['performance_metrics', 'performance_score', 'updated_at'])

    def add_document(self, document, user):
        entry = dict(document, uploaded_by=user.id, uploaded_at=timezone.now().isoformat())
        entry.setdefault('id', f"DOC-{len(self.documents) + 1}-{int(timezone.now().timestamp())}")
        self.documents = list(self.documents) + [entry]
        self.save(update_fields=['documents', 'updated_at'])
        return entry

    def remove_document(self, document_id):
        remaining = [d for d in self.documents if str(d.get('id')) != str(document_id)]
        if len(remaining) == len(self.documents):
            raise WorkflowError('Document not found', status_code=404)
        self.documents = remaining
        self.save(update_fields=['documents', 'updated_at'])

    # Reporting

    def days_until_expiry(self):
        return (self.end_date - timezone.localdate()).days

    @classmethod
    def expiring(cls, days=30, queryset=None):
        today = timezone.localdate()
        queryset = cls.objects.all() if queryset is None else queryset
        return queryset.filter(
            status=cls.STATUS_ACTIVE, end_date__gte=today, end_date__lte=today + timedelta(days=days)
        ).order_by('end_date')

    @classmethod
    def statistics(cls, queryset=None):
        queryset = cls.objects.all() if queryset is None else queryset
        by_status = {row['status']: row['count'] for row in queryset.values('status').annotate(count=Count('id'))}
        by_type = {row['type']: row['count'] for row in queryset.values('type').annotate(count=Count('id'))}
        return {
            'total': queryset.count(),
            'by_status': by_status,
            'by_type': by_type,
            'total_value': queryset.aggregate(total=Sum('contract_value'))['total'] or Decimal('0.00'),
            'active_value': queryset.filter(status=cls.STATUS_ACTIVE).aggregate(
                total=Sum('contract_value')
            )['total'] or Decimal('0.00'),
        }

    class Meta:
        db_table = 'contracts'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status'], name='idx_contract_status'),
            models.Index(fields=['end_date'], name='idx_contract_end_date'),
            models.Index(fields=['vendor_organization', 'status'], name='idx_contract_vendor_status'),
        ]
