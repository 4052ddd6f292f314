from decimal import Decimal, ROUND_HALF_UP
import logging

from django.conf import settings
from django.db import models, transaction
from django.db.models import Sum
from django.utils import timezone

from tenderhub.core.exceptions import WorkflowError
from tenderhub.core.utils import generate_reference, next_sequence_number
from tenderhub.notifications.events import payment_event
from tenderhub.tenders.models import default_currency

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal('0.01')


def money(value):
    return Decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


class Invoice(models.Model):
    STATUS_DRAFT = 'draft'
    STATUS_SENT = 'sent'
    STATUS_VIEWED = 'viewed'
    STATUS_PAID = 'paid'
    STATUS_PARTIAL_PAID = 'partial_paid'
    STATUS_OVERDUE = 'overdue'
    STATUS_CANCELLED = 'cancelled'

    STATUS_CHOICES = [
        (STATUS_DRAFT, 'Draft'),
        (STATUS_SENT, 'Sent'),
        (STATUS_VIEWED, 'Viewed'),
        (STATUS_PAID, 'Paid'),
        (STATUS_PARTIAL_PAID, 'Partially Paid'),
        (STATUS_OVERDUE, 'Overdue'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    # Issued and still awaiting money
    UNPAID_STATUSES = [STATUS_SENT, STATUS_VIEWED, STATUS_PARTIAL_PAID]

    invoice_number = models.CharField(max_length=50, unique=True, editable=False)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_DRAFT)
    line_items = models.JSONField(default=list, blank=True)
    subtotal = models.DecimalField(max_digits=15, decimal_places=2, default=Decimal('0.00'))
    tax_rate = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('0.00'))
    tax_amount = models.DecimalField(max_digits=15, decimal_places=2, default=Decimal('0.00'))
    discount_amount = models.DecimalField(max_digits=15, decimal_places=2, default=Decimal('0.00'))
    total_amount = models.DecimalField(max_digits=15, decimal_places=2, default=Decimal('0.00'))
    currency = models.CharField(max_length=3, default=default_currency)
    due_date = models.DateField(null=True, blank=True)
    billing_address = models.TextField(blank=True)
    shipping_address = models.TextField(blank=True)
    notes = models.TextField(blank=True)
    organization = models.ForeignKey(
        'organizations.Organization', on_delete=models.SET_NULL, null=True, blank=True, related_name='invoices'
    )
    contract = models.ForeignKey(
        'contracts.Contract', on_delete=models.SET_NULL, null=True, blank=True, related_name='invoices'
    )
    tender = models.ForeignKey('tenders.Tender', on_delete=models.SET_NULL, null=True, blank=True, related_name='invoices')
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='created_invoices'
    )
    sent_at = models.DateTimeField(null=True, blank=True)
    viewed_at = models.DateTimeField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancellation_reason = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.invoice_number

    def save(self, *args, **kwargs):
        if not self.invoice_number:
            self.invoice_number = next_sequence_number(
                Invoice, 'invoice_number', f"INV-{timezone.now().year}"
            )
        super().save(*args, **kwargs)

    def compute_totals(self):
        subtotal = sum(
            (Decimal(str(item['quantity'])) * Decimal(str(item['unit_price'])) for item in self.line_items),
            Decimal('0')
        )
        self.subtotal = money(subtotal)
        self.tax_amount = money(self.subtotal * Decimal(self.tax_rate or 0) / Decimal('100'))
        self.total_amount = money(self.subtotal + self.tax_amount - Decimal(self.discount_amount or 0))

    def send(self):
        if self.status != self.STATUS_DRAFT:
            raise WorkflowError('Only draft invoices can be sent')
        self.status = self.STATUS_SENT
        self.sent_at = timezone.now()
        self.save(update_fields=['status', 'sent_at', 'updated_at'])

    def mark_viewed(self):
        if self.status != self.STATUS_SENT:
            raise WorkflowError('Only sent invoices can be marked as viewed')
        self.status = self.STATUS_VIEWED
        self.viewed_at = timezone.now()
        self.save(update_fields=['status', 'viewed_at', 'updated_at'])

    def cancel(self, reason=''):
        if self.status in (self.STATUS_PAID, self.STATUS_CANCELLED):
            raise WorkflowError(f'Cannot cancel an invoice with status {self.status}')
        self.status = self.STATUS_CANCELLED
        self.cancelled_at = timezone.now()
        self.cancellation_reason = reason or ''
        self.save(update_fields=['status', 'cancelled_at', 'cancellation_reason', 'updated_at'])

    def mark_paid(self, paid_at=None):
        if self.status in (self.STATUS_PAID, self.STATUS_CANCELLED):
            return
        self.status = self.STATUS_PAID
        self.paid_at = paid_at or timezone.now()
        self.save(update_fields=['status', 'paid_at', 'updated_at'])

    def is_overdue(self, today=None):
        today = today or timezone.localdate()
        return bool(self.due_date and self.due_date < today and self.status in self.UNPAID_STATUSES)

    @classmethod
    def mark_overdue(cls, queryset=None):
        """Flip unpaid invoices past their due date to overdue; returns the count"""
        queryset = cls.objects.all() if queryset is None else queryset
        return queryset.filter(
            status__in=cls.UNPAID_STATUSES, due_date__isnull=False, due_date__lt=timezone.localdate()
        ).update(status=cls.STATUS_OVERDUE, updated_at=timezone.now())

    class Meta:
        db_table = 'invoices'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status'], name='idx_invoice_status'),
            models.Index(fields=['due_date'], name='idx_invoice_due_date'),
        ]


class Payment(models.Model):
    STATUS_PENDING = 'pending'
    STATUS_PROCESSING = 'processing'
    STATUS_COMPLETED = 'completed'
    STATUS_FAILED = 'failed'
    STATUS_CANCELLED = 'cancelled'
    STATUS_REFUNDED = 'refunded'
    STATUS_PARTIAL_REFUND = 'partial_refund'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_PROCESSING, 'Processing'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_FAILED, 'Failed'),
        (STATUS_CANCELLED, 'Cancelled'),
        (STATUS_REFUNDED, 'Refunded'),
        (STATUS_PARTIAL_REFUND, 'Partially Refunded'),
    ]

    METHOD_CHOICES = [
        ('credit_card', 'Credit Card'),
        ('debit_card', 'Debit Card'),
        ('bank_transfer', 'Bank Transfer'),
        ('upi', 'UPI'),
        ('net_banking', 'Net Banking'),
        ('wallet', 'Wallet'),
        ('cash', 'Cash'),
        ('cheque', 'Cheque'),
        ('demand_draft', 'Demand Draft'),
    ]

    TYPE_CHOICES = [
        ('tender_fee', 'Tender Fee'),
        ('emd', 'EMD'),
        ('performance_guarantee', 'Performance Guarantee'),
        ('security_deposit', 'Security Deposit'),
        ('contract_payment', 'Contract Payment'),
        ('milestone_payment', 'Milestone Payment'),
        ('advance_payment', 'Advance Payment'),
        ('final_payment', 'Final Payment'),
        ('other', 'Other'),
    ]

    payment_number = models.CharField(max_length=50, unique=True, editable=False)
    amount = models.DecimalField(max_digits=15, decimal_places=2)
    currency = models.CharField(max_length=3, default=default_currency)
    type = models.CharField(max_length=30, choices=TYPE_CHOICES, default='other')
    method = models.CharField(max_length=20, choices=METHOD_CHOICES, default='bank_transfer')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    description = models.TextField(blank=True)
    gateway = models.CharField(max_length=50, blank=True)
    gateway_transaction_id = models.CharField(max_length=100, blank=True, db_index=True)
    gateway_response = models.JSONField(default=dict, blank=True)
    failure_reason = models.TextField(blank=True)
    payer_details = models.JSONField(default=dict, blank=True)
    payee_details = models.JSONField(default=dict, blank=True)
    organization = models.ForeignKey(
        'organizations.Organization', on_delete=models.SET_NULL, null=True, blank=True, related_name='payments'
    )
    tender = models.ForeignKey('tenders.Tender', on_delete=models.SET_NULL, null=True, blank=True, related_name='payments')
    contract = models.ForeignKey(
        'contracts.Contract', on_delete=models.SET_NULL, null=True, blank=True, related_name='payments'
    )
    invoice = models.ForeignKey(Invoice, on_delete=models.SET_NULL, null=True, blank=True, related_name='payments')
    emd = models.ForeignKey('emd.Emd', on_delete=models.SET_NULL, null=True, blank=True, related_name='payments')
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='created_payments'
    )
    verified_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='verified_payments'
    )
    verified_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)
    refunded_amount = models.DecimalField(max_digits=15, decimal_places=2, default=Decimal('0.00'))
    due_date = models.DateField(null=True, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.payment_number

    def save(self, *args, **kwargs):
        if not self.payment_number:
            self.payment_number = next_sequence_number(
                Payment, 'payment_number', f"PAY-{timezone.now():%Y%m}"
            )
        super().save(*args, **kwargs)

    def open_transaction(self, type='payment', amount=None, gateway=''):
        return Transaction.objects.create(
            payment=self,
            type=type,
            amount=self.amount if amount is None else amount,
            currency=self.currency,
            gateway=gateway,
        )

    def pending_transaction(self):
        return self.transactions.filter(
            type=Transaction.TYPE_PAYMENT, status__in=[Transaction.STATUS_PENDING, Transaction.STATUS_PROCESSING]
        ).order_by('-created_at').first()

    def complete(self, transaction_id, response=None):
        """Record a confirmed charge and settle whatever the payment was for"""
        now = timezone.now()
        with transaction.atomic():
            self.status = self.STATUS_COMPLETED
            self.completed_at = now
            self.gateway_transaction_id = transaction_id or self.gateway_transaction_id
            if response is not None:
                self.gateway_response = response
            self.failure_reason = ''
            self.save()

            txn = self.pending_transaction() or self.open_transaction(gateway=self.gateway)
            txn.succeed(self.gateway_transaction_id, response)

            if self.invoice_id:
                self.invoice.mark_paid(now)
            if self.emd_id and self.emd.status == self.emd.STATUS_PENDING:
                self.emd.mark_paid(self.gateway_transaction_id, now)
        payment_event(self, 'complete')

    def fail(self, reason, response=None):
        with transaction.atomic():
            self.status = self.STATUS_FAILED
            self.failure_reason = reason
            if response is not None:
                self.gateway_response = response
            self.save()
            txn = self.pending_transaction()
            if txn is not None:
                txn.fail(reason, response)
        payment_event(self, 'fail')

    def process(self, gateway):
        if self.status != self.STATUS_PENDING:
            raise WorkflowError('Only pending payments can be processed')
        self.status = self.STATUS_PROCESSING
        self.gateway = gateway.name
        self.save(update_fields=['status', 'gateway', 'updated_at'])
        txn = self.pending_transaction() or self.open_transaction(gateway=gateway.name)
        txn.mark_processing(gateway.name)

        try:
            response = gateway.charge(self)
        except Exception as e:
            logger.error(f"Gateway error while processing {self.payment_number}: {str(e)}")
            self.fail(f"Gateway error: {str(e)}")
            return False

        if response['success']:
            self.complete(response['transaction_id'], response)
            return True
        self.fail(response['message'] or 'Payment failed', response)
        return False

    def total_refunded(self):
        return self.transactions.filter(
            type__in=[Transaction.TYPE_REFUND, Transaction.TYPE_PARTIAL_REFUND],
            status=Transaction.STATUS_SUCCESS,
        ).aggregate(total=Sum('amount'))['total'] or Decimal('0.00')

    def refundable_amount(self):
        return self.amount - self.total_refunded()

    def apply_refund_totals(self):
        refunded = self.total_refunded()
        self.refunded_amount = refunded
        self.refunded_at = timezone.now()
        self.status = self.STATUS_REFUNDED if refunded >= self.amount else self.STATUS_PARTIAL_REFUND
        self.save(update_fields=['refunded_amount', 'refunded_at', 'status', 'updated_at'])

    def refund(self, amount, reason, gateway):
        if self.status not in (self.STATUS_COMPLETED, self.STATUS_PARTIAL_REFUND):
            raise WorkflowError('Only completed payments can be refunded')
        amount = money(amount)
        if amount <= 0:
            raise WorkflowError('Refund amount must be greater than zero')
        remaining = self.refundable_amount()
        if amount > remaining:
            raise WorkflowError(f'Refund amount exceeds the refundable balance of {remaining}')

        refund_type = Transaction.TYPE_REFUND if amount == remaining else Transaction.TYPE_PARTIAL_REFUND
        txn = self.open_transaction(type=refund_type, amount=amount, gateway=gateway.name)
        txn.metadata = {'reason': reason, 'original_transaction_id': self.gateway_transaction_id}
        txn.mark_processing(gateway.name)

        try:
            response = gateway.refund(self, amount)
        except Exception as e:
            logger.error(f"Gateway error while refunding {self.payment_number}: {str(e)}")
            txn.fail(f"Gateway error: {str(e)}")
            raise WorkflowError('Refund failed at the payment gateway')

        if not response['success']:
            txn.fail(response['message'] or 'Refund failed', response)
            raise WorkflowError(response['message'] or 'Refund failed at the payment gateway')

        with transaction.atomic():
            txn.succeed(response['transaction_id'], response)
            self.apply_refund_totals()
        return txn

    def verify_with_gateway(self, gateway, user=None):
        if self.status not in (self.STATUS_PENDING, self.STATUS_PROCESSING):
            return self.status == self.STATUS_COMPLETED
        try:
            response = gateway.verify(self)
        except Exception as e:
            logger.warning(f"Gateway verification failed for {self.payment_number}: {str(e)}")
            return False
        if not response['success']:
            return False
        self.gateway = self.gateway or gateway.name
        self.verified_by = user
        self.verified_at = timezone.now()
        self.complete(response['transaction_id'], response)
        return True

    def cancel(self):
        if self.status != self.STATUS_PENDING:
            raise WorkflowError('Only pending payments can be cancelled')
        with transaction.atomic():
            self.status = self.STATUS_CANCELLED
            self.save(update_fields=['status', 'updated_at'])
            self.transactions.filter(status=Transaction.STATUS_PENDING).update(
                status=Transaction.STATUS_CANCELLED, updated_at=timezone.now()
            )

    def receipt(self):
        if self.status not in (self.STATUS_COMPLETED, self.STATUS_REFUNDED, self.STATUS_PARTIAL_REFUND):
            raise WorkflowError('Receipts are only available for completed payments')
        return {
            'receipt_number': f"RCP-{self.payment_number}",
            'payment_number': self.payment_number,
            'amount': self.amount,
            'currency': self.currency,
            'method': self.method,
            'paid_at': self.completed_at,
            'payer': self.payer_details,
            'payee': self.payee_details,
            'transaction_id': self.gateway_transaction_id,
            'description': self.description,
        }

    class Meta:
        db_table = 'payments'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status'], name='idx_payment_status'),
            models.Index(fields=['type'], name='idx_payment_type'),
            models.Index(fields=['-created_at'], name='idx_payment_created'),
        ]


class Transaction(models.Model):
    TYPE_PAYMENT = 'payment'
    TYPE_REFUND = 'refund'
    TYPE_PARTIAL_REFUND = 'partial_refund'
    TYPE_REVERSAL = 'reversal'
    TYPE_ADJUSTMENT = 'adjustment'

    TYPE_CHOICES = [
        (TYPE_PAYMENT, 'Payment'),
        (TYPE_REFUND, 'Refund'),
        (TYPE_PARTIAL_REFUND, 'Partial Refund'),
        (TYPE_REVERSAL, 'Reversal'),
        (TYPE_ADJUSTMENT, 'Adjustment'),
    ]

    STATUS_PENDING = 'pending'
    STATUS_PROCESSING = 'processing'
    STATUS_SUCCESS = 'success'
    STATUS_FAILED = 'failed'
    STATUS_CANCELLED = 'cancelled'
    STATUS_EXPIRED = 'expired'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_PROCESSING, 'Processing'),
        (STATUS_SUCCESS, 'Success'),
        (STATUS_FAILED, 'Failed'),
        (STATUS_CANCELLED, 'Cancelled'),
        (STATUS_EXPIRED, 'Expired'),
    ]

    transaction_number = models.CharField(max_length=50, unique=True, editable=False)
    payment = models.ForeignKey(Payment, on_delete=models.CASCADE, related_name='transactions')
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, default=TYPE_PAYMENT)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    amount = models.DecimalField(max_digits=15, decimal_places=2)
    currency = models.CharField(max_length=3, default=default_currency)
    gateway = models.CharField(max_length=50, blank=True)
    gateway_transaction_id = models.CharField(max_length=100, blank=True, db_index=True)
    gateway_response = models.JSONField(default=dict, blank=True)
    failure_reason = models.TextField(blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    processed_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    failed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.transaction_number

    def save(self, *args, **kwargs):
        if not self.transaction_number:
            self.transaction_number = generate_reference('TXN', Transaction, field='transaction_number')
        super().save(*args, **kwargs)

    def mark_processing(self, gateway_name):
        self.status = self.STATUS_PROCESSING
        self.gateway = gateway_name
        self.processed_at = timezone.now()
        self.save()

    def succeed(self, gateway_transaction_id, response=None):
        self.status = self.STATUS_SUCCESS
        self.gateway_transaction_id = gateway_transaction_id or ''
        if response is not None:
            self.gateway_response = response
        self.completed_at = timezone.now()
        self.save()

    def fail(self, reason, response=None):
        self.status = self.STATUS_FAILED
        self.failure_reason = reason
        if response is not None:
            self.gateway_response = response
        self.failed_at = timezone.now()
        self.save()

    class Meta:
        db_table = 'transactions'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['payment', 'type', 'status'], name='idx_txn_payment_type_status'),
        ]
