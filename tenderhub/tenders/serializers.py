from decimal import Decimal, ROUND_HALF_UP

from rest_framework import serializers
from .models import Tender


class TenderSerializer(serializers.ModelSerializer):
    organization_name = serializers.CharField(source='organization.name', read_only=True, default=None)
    created_by_username = serializers.CharField(source='created_by.username', read_only=True, default=None)
    awarded_to_username = serializers.CharField(source='awarded_to.username', read_only=True, default=None)
    is_bidding_open = serializers.SerializerMethodField()
    days_remaining = serializers.SerializerMethodField()
    is_favorite = serializers.SerializerMethodField()

    class Meta:
        model = Tender
        fields = [
            'id', 'reference_number', 'title', 'description', 'type', 'category', 'status',
            'estimated_value', 'currency', 'emd_amount', 'emd_percentage', 'is_emd_required',
            'publish_date', 'bid_start_date', 'bid_end_date', 'opening_date', 'clarification_deadline',
            'location', 'delivery_period', 'payment_terms', 'eligibility_criteria',
            'technical_requirements', 'evaluation_criteria', 'required_documents', 'contact_details',
            'is_multiple_winners_allowed', 'max_winners', 'is_public', 'invited_vendors',
            'view_count', 'bid_count', 'attachments', 'amendments', 'clarifications',
            'cancellation_reason', 'cancellation_date', 'awarded_to', 'awarded_to_username',
            'awarded_date', 'awarded_amount', 'metadata', 'organization', 'organization_name',
            'created_by', 'created_by_username', 'is_bidding_open', 'days_remaining', 'is_favorite',
            'created_at', 'updated_at',
        ]
        read_only_fields = [
            'status', 'publish_date', 'view_count', 'bid_count', 'amendments',
            'cancellation_reason', 'cancellation_date', 'awarded_to', 'awarded_date', 'awarded_amount',
            'organization', 'created_by', 'created_at', 'updated_at',
        ]

    def get_is_bidding_open(self, obj):
        return obj.is_bidding_open()

    def get_days_remaining(self, obj):
        return obj.days_remaining()

    def get_is_favorite(self, obj):
        request = self.context.get('request')
        if not request or not request.user.is_authenticated:
            return False
        return obj.favorited_by.filter(pk=request.user.pk).exists()

    def validate_estimated_value(self, value):
        if value is not None and value < 0:
            raise serializers.ValidationError('Estimated value cannot be negative.')
        return value

    def validate_emd_percentage(self, value):
        if value is not None and not (Decimal('0') <= value <= Decimal('100')):
            raise serializers.ValidationError('EMD percentage must be between 0 and 100.')
        return value

    def validate(self, attrs):
        start = attrs.get('bid_start_date', getattr(self.instance, 'bid_start_date', None))
        end = attrs.get('bid_end_date', getattr(self.instance, 'bid_end_date', None))
        if start and end and end <= start:
            raise serializers.ValidationError({'bid_end_date': 'Bid end date must be after bid start date.'})

        max_winners = attrs.get('max_winners', getattr(self.instance, 'max_winners', 1))
        multiple = attrs.get('is_multiple_winners_allowed', getattr(self.instance, 'is_multiple_winners_allowed', False))
        if max_winners and max_winners > 1 and not multiple:
            raise serializers.ValidationError({'max_winners': 'Multiple winners are not allowed for this tender.'})

        # Derive the EMD amount from the percentage when only the percentage is given
        estimated = attrs.get('estimated_value', getattr(self.instance, 'estimated_value', None))
        percentage = attrs.get('emd_percentage')
        if percentage is not None and attrs.get('emd_amount') is None and estimated is not None:
            attrs['emd_amount'] = (estimated * percentage / Decimal('100')).quantize(
                Decimal('0.01'), rounding=ROUND_HALF_UP
            )
        return attrs


class TenderListSerializer(serializers.ModelSerializer):
    organization_name = serializers.CharField(source='organization.name', read_only=True, default=None)
    days_remaining = serializers.SerializerMethodField()

    class Meta:
        model = Tender
        fields = ['id', 'reference_number', 'title', 'type', 'category', 'status', 'estimated_value',
                  'currency', 'emd_amount', 'is_emd_required', 'bid_end_date', 'publish_date',
                  'location', 'bid_count', 'view_count', 'organization', 'organization_name',
                  'days_remaining', 'created_at']

    def get_days_remaining(self, obj):
        return obj.days_remaining()


class TenderCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class TenderExtendSerializer(serializers.Serializer):
    new_deadline = serializers.DateTimeField()
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class TenderAwardSerializer(serializers.Serializer):
    bid_id = serializers.IntegerField()
