from decimal import Decimal

from rest_framework import serializers
from .models import Bid

DEFAULT_DEVIATION_IMPACT = 'To be assessed'


class BidSerializer(serializers.ModelSerializer):
    tender_reference = serializers.CharField(source='tender.reference_number', read_only=True)
    tender_title = serializers.CharField(source='tender.title', read_only=True)
    vendor_username = serializers.CharField(source='vendor.username', read_only=True)
    deviations = serializers.ListField(child=serializers.DictField(), required=False)

    class Meta:
        model = Bid
        fields = [
            'id', 'reference_number', 'tender', 'tender_reference', 'tender_title', 'vendor',
            'vendor_username', 'organization', 'type', 'status', 'quoted_amount', 'currency',
            'delivery_period', 'technical_proposal', 'commercial_proposal', 'technical_score',
            'financial_score', 'overall_score', 'ranking', 'submitted_documents', 'submitted_at',
            'evaluated_at', 'evaluated_by', 'evaluation_remarks', 'deviations', 'is_emd_paid',
            'emd_transaction_id', 'emd_paid_at', 'emd_amount', 'notes', 'withdrawn_at',
            'withdrawal_reason', 'disqualified_at', 'disqualification_reason', 'created_at', 'updated_at',
        ]
        read_only_fields = [
            'reference_number', 'vendor', 'organization', 'status', 'technical_score', 'financial_score',
            'overall_score', 'ranking', 'submitted_at', 'evaluated_at', 'evaluated_by',
            'evaluation_remarks', 'is_emd_paid', 'emd_transaction_id', 'emd_paid_at', 'emd_amount',
            'withdrawn_at', 'withdrawal_reason', 'disqualified_at', 'disqualification_reason',
            'created_at', 'updated_at',
        ]

    def validate_quoted_amount(self, value):
        if value is not None and value <= 0:
            raise serializers.ValidationError('Quoted amount must be greater than zero.')
        return value

    def validate_deviations(self, value):
        normalized = []
        for deviation in value:
            if not deviation.get('clause') or not deviation.get('description'):
                raise serializers.ValidationError('Each deviation needs a clause and a description.')
            normalized.append({
                'clause': str(deviation['clause']),
                'description': str(deviation['description']),
                'impact': deviation.get('impact') or DEFAULT_DEVIATION_IMPACT,
            })
        return normalized

    def validate_tender(self, value):
        # The tender of an existing bid cannot be switched
        if self.instance is not None and value.pk != self.instance.tender_id:
            raise serializers.ValidationError('The tender of a bid cannot be changed.')
        return value


class BidReasonSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class BidDisqualifySerializer(serializers.Serializer):
    reason = serializers.CharField()


class BidEvaluateSerializer(serializers.Serializer):
    technical_score = serializers.JSONField(required=False)
    financial_score = serializers.JSONField(required=False)
    overall_score = serializers.DecimalField(max_digits=5, decimal_places=2, min_value=Decimal('0'), max_value=Decimal('100'), required=False)
    remarks = serializers.CharField(required=False, allow_blank=True, default='')
