from rest_framework import serializers
from .models import Emd


class EmdSerializer(serializers.ModelSerializer):
    tender_reference = serializers.CharField(source='tender.reference_number', read_only=True)
    vendor_username = serializers.CharField(source='vendor.username', read_only=True)

    class Meta:
        model = Emd
        fields = [
            'id', 'reference_number', 'tender', 'tender_reference', 'vendor', 'vendor_username', 'bid',
            'amount', 'currency', 'type', 'status', 'transaction_id', 'bank_name', 'bank_branch',
            'ifsc_code', 'instrument_number', 'instrument_date', 'paid_at', 'verified_at', 'verified_by',
            'refunded_at', 'refund_transaction_id', 'refund_reason', 'forfeited_at', 'forfeiture_reason',
            'valid_upto', 'documents', 'remarks', 'created_at', 'updated_at',
        ]
        read_only_fields = [
            'reference_number', 'vendor', 'bid', 'status', 'transaction_id', 'paid_at', 'verified_at',
            'verified_by', 'refunded_at', 'refund_transaction_id', 'refund_reason', 'forfeited_at',
            'forfeiture_reason', 'valid_upto', 'created_at', 'updated_at',
        ]
        extra_kwargs = {'amount': {'required': False}}

    def validate_amount(self, value):
        if value is not None and value <= 0:
            raise serializers.ValidationError('Amount must be greater than zero.')
        return value

    def validate_tender(self, value):
        if self.instance is not None and value.pk != self.instance.tender_id:
            raise serializers.ValidationError('The tender of an EMD cannot be changed.')
        return value


class EmdMarkPaidSerializer(serializers.Serializer):
    transaction_id = serializers.CharField(max_length=100)
    paid_at = serializers.DateTimeField(required=False)


class EmdRefundSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default='')
    refund_transaction_id = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')


class EmdForfeitSerializer(serializers.Serializer):
    reason = serializers.CharField()
