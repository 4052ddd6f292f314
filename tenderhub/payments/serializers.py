from decimal import Decimal

from rest_framework import serializers

from tenderhub.core.utils import is_admin_user
from .models import Payment, Transaction, Invoice


class TransactionSerializer(serializers.ModelSerializer):
    class Meta:
        model = Transaction
        fields = [
            'id', 'transaction_number', 'payment', 'type', 'status', 'amount', 'currency', 'gateway',
            'gateway_transaction_id', 'gateway_response', 'failure_reason', 'metadata', 'processed_at',
            'completed_at', 'failed_at', 'created_at',
        ]
        read_only_fields = fields


class PaymentSerializer(serializers.ModelSerializer):
    organization_name = serializers.CharField(source='organization.name', read_only=True)
    created_by_username = serializers.CharField(source='created_by.username', read_only=True)
    process_immediately = serializers.BooleanField(write_only=True, required=False, default=False)

    class Meta:
        model = Payment
        fields = [
            'id', 'payment_number', 'amount', 'currency', 'type', 'method', 'status', 'description',
            'gateway', 'gateway_transaction_id', 'gateway_response', 'failure_reason', 'payer_details',
            'payee_details', 'organization', 'organization_name', 'tender', 'contract', 'invoice', 'emd',
            'created_by', 'created_by_username', 'verified_by', 'verified_at', 'completed_at',
            'refunded_at', 'refunded_amount', 'due_date', 'metadata', 'process_immediately',
            'created_at', 'updated_at',
        ]
        read_only_fields = [
            'payment_number', 'status', 'gateway', 'gateway_transaction_id', 'gateway_response',
            'failure_reason', 'created_by', 'verified_by', 'verified_at', 'completed_at', 'refunded_at',
            'refunded_amount', 'created_at', 'updated_at',
        ]

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError('Amount must be greater than zero.')
        return value

    def validate(self, attrs):
        contract = attrs.get('contract')
        amount = attrs.get('amount')
        if contract is not None and amount is not None and amount > contract.contract_value:
            raise serializers.ValidationError({'amount': 'Payment amount cannot exceed the contract value.'})

        user = getattr(self.context.get('request'), 'user', None)
        if user is not None and not is_admin_user(user):
            self._check_ownership(user, attrs)

        invoice = attrs.get('invoice')
        if invoice is not None:
            if invoice.status in (Invoice.STATUS_PAID, Invoice.STATUS_CANCELLED):
                raise serializers.ValidationError({'invoice': f'Invoice is already {invoice.status}.'})
            if amount is not None and amount < invoice.total_amount:
                raise serializers.ValidationError(
                    {'amount': f'Payment amount must cover the invoice total of {invoice.total_amount}.'}
                )

        emd = attrs.get('emd')
        if emd is not None:
            if emd.status != emd.STATUS_PENDING:
                raise serializers.ValidationError({'emd': f'EMD is already {emd.status}.'})
            if amount is not None and amount != emd.amount:
                raise serializers.ValidationError({'amount': f'Payment amount must equal the EMD amount of {emd.amount}.'})
        return attrs

    def _check_ownership(self, user, attrs):
        """Non-admins pay only for their own organization, invoices and deposits"""
        organization = attrs.get('organization')
        if organization is not None and organization.id != user.organization_id:
            raise serializers.ValidationError({'organization': 'You can only create payments for your own organization.'})

        invoice = attrs.get('invoice')
        if invoice is not None:
            same_org = user.organization_id and invoice.organization_id == user.organization_id
            if invoice.created_by_id != user.id and not same_org:
                raise serializers.ValidationError({'invoice': 'You do not have access to this invoice.'})

        emd = attrs.get('emd')
        if emd is not None and emd.vendor_id != user.id:
            raise serializers.ValidationError({'emd': 'You can only pay your own EMD.'})

    def create(self, validated_data):
        validated_data.pop('process_immediately', None)
        return super().create(validated_data)


class PaymentDetailSerializer(PaymentSerializer):
    transactions = TransactionSerializer(many=True, read_only=True)

    class Meta(PaymentSerializer.Meta):
        fields = PaymentSerializer.Meta.fields + ['transactions']


class PaymentRefundSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=15, decimal_places=2, min_value=Decimal('0.01'))
    reason = serializers.CharField()


class LineItemSerializer(serializers.Serializer):
    description = serializers.CharField(max_length=500)
    quantity = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0.01'))
    unit_price = serializers.DecimalField(max_digits=15, decimal_places=2, min_value=Decimal('0'))


class InvoiceSerializer(serializers.ModelSerializer):
    line_items = LineItemSerializer(many=True, allow_empty=False)
    organization_name = serializers.CharField(source='organization.name', read_only=True)

    class Meta:
        model = Invoice
        fields = [
            'id', 'invoice_number', 'status', 'line_items', 'subtotal', 'tax_rate', 'tax_amount',
            'discount_amount', 'total_amount', 'currency', 'due_date', 'billing_address', 'shipping_address',
            'notes', 'organization', 'organization_name', 'contract', 'tender', 'created_by', 'sent_at',
            'viewed_at', 'paid_at', 'cancelled_at', 'cancellation_reason', 'created_at', 'updated_at',
        ]
        read_only_fields = [
            'invoice_number', 'status', 'subtotal', 'tax_amount', 'total_amount', 'created_by', 'sent_at',
            'viewed_at', 'paid_at', 'cancelled_at', 'cancellation_reason', 'created_at', 'updated_at',
        ]

    def validate_tax_rate(self, value):
        if value < 0 or value > 100:
            raise serializers.ValidationError('Tax rate must be between 0 and 100.')
        return value

    def validate_discount_amount(self, value):
        if value < 0:
            raise serializers.ValidationError('Discount cannot be negative.')
        return value

    def _save_with_totals(self, invoice, validated_data):
        line_items = validated_data.pop('line_items', None)
        for attr, value in validated_data.items():
            setattr(invoice, attr, value)
        if line_items is not None:
            invoice.line_items = [
                {
                    'description': item['description'],
                    'quantity': str(item['quantity']),
                    'unit_price': str(item['unit_price']),
                }
                for item in line_items
            ]
        invoice.compute_totals()
        if invoice.total_amount < 0:
            raise serializers.ValidationError({'discount_amount': 'Discount cannot exceed the invoice amount.'})
        invoice.save()
        return invoice

    def create(self, validated_data):
        return self._save_with_totals(Invoice(), validated_data)

    def update(self, instance, validated_data):
        return self._save_with_totals(instance, validated_data)


class InvoiceCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default='')
