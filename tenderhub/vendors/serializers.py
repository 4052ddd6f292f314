from decimal import Decimal

from rest_framework import serializers
from .models import Vendor


class VendorSerializer(serializers.ModelSerializer):
    organization_name = serializers.CharField(source='organization.name', read_only=True)
    performance_rating = serializers.DecimalField(max_digits=4, decimal_places=2, read_only=True)
    dispute_resolution_rate = serializers.DecimalField(max_digits=5, decimal_places=2, read_only=True)
    is_blacklisted = serializers.BooleanField(read_only=True)
    missing_documents = serializers.SerializerMethodField()

    class Meta:
        model = Vendor
        fields = [
            'id', 'organization', 'organization_name', 'registration_number', 'legal_name', 'trade_name',
            'category', 'status', 'verification_status', 'tax_id', 'primary_contact_name',
            'primary_contact_email', 'primary_contact_phone', 'business_address', 'website',
            'bank_details', 'certifications', 'documents', 'missing_documents', 'overall_rating',
            'total_contracts_completed', 'total_contracts_in_progress', 'on_time_delivery_rate',
            'quality_score', 'compliance_score', 'total_disputes', 'resolved_disputes',
            'performance_rating', 'dispute_resolution_rate', 'is_blacklisted', 'blacklist_date',
            'blacklist_reason', 'blacklist_expiry_date', 'blacklist_history', 'product_categories',
            'service_categories', 'notes', 'verified_at', 'verified_by', 'verification_remarks',
            'last_activity_at', 'created_by', 'account_manager', 'created_at', 'updated_at',
        ]
        read_only_fields = [
            'organization', 'registration_number', 'status', 'verification_status', 'documents', 'overall_rating',
            'total_contracts_completed', 'total_contracts_in_progress', 'on_time_delivery_rate',
            'quality_score', 'compliance_score', 'total_disputes', 'resolved_disputes',
            'blacklist_date', 'blacklist_reason', 'blacklist_expiry_date', 'blacklist_history',
            'verified_at', 'verified_by', 'verification_remarks', 'last_activity_at', 'created_by',
            'created_at', 'updated_at',
        ]

    def get_missing_documents(self, obj):
        return obj.missing_documents()


class VendorListSerializer(serializers.ModelSerializer):
    organization_name = serializers.CharField(source='organization.name', read_only=True)

    class Meta:
        model = Vendor
        fields = ['id', 'registration_number', 'legal_name', 'trade_name', 'category', 'status',
                  'verification_status', 'overall_rating', 'total_contracts_completed',
                  'organization', 'organization_name', 'created_at']


class VendorRegistrationSerializer(serializers.Serializer):
    organization = serializers.IntegerField(required=False, allow_null=True, min_value=1)


class VendorDocumentSerializer(serializers.Serializer):
    type = serializers.CharField(max_length=100)
    name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    url = serializers.CharField(max_length=1000, required=False, allow_blank=True)


class VendorDocumentsSubmitSerializer(serializers.Serializer):
    documents = VendorDocumentSerializer(many=True, allow_empty=False)


class VendorVerifySerializer(serializers.Serializer):
    approved = serializers.BooleanField()
    remarks = serializers.CharField(required=False, allow_blank=True, default='')


class VendorRemarksSerializer(serializers.Serializer):
    remarks = serializers.CharField(required=False, allow_blank=True, default='')


class VendorSuspendSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class VendorBlacklistSerializer(serializers.Serializer):
    reason = serializers.CharField()
    duration_days = serializers.IntegerField(min_value=0, required=False, default=0)


class VendorPerformanceSerializer(serializers.Serializer):
    on_time_delivery_rate = serializers.DecimalField(max_digits=5, decimal_places=2, min_value=Decimal('0'), max_value=Decimal('100'), required=False)
    quality_score = serializers.DecimalField(max_digits=3, decimal_places=2, min_value=Decimal('0'), max_value=Decimal('5'), required=False)
    compliance_score = serializers.DecimalField(max_digits=3, decimal_places=2, min_value=Decimal('0'), max_value=Decimal('5'), required=False)
    total_disputes = serializers.IntegerField(min_value=0, required=False)
    resolved_disputes = serializers.IntegerField(min_value=0, required=False)
    total_contracts_in_progress = serializers.IntegerField(min_value=0, required=False)

    def validate(self, attrs):
        total = attrs.get('total_disputes')
        resolved = attrs.get('resolved_disputes')
        if total is not None and resolved is not None and resolved > total:
            raise serializers.ValidationError({'resolved_disputes': 'Resolved disputes cannot exceed total disputes.'})
        return attrs


class VendorRatingSerializer(serializers.Serializer):
    score = serializers.DecimalField(max_digits=3, decimal_places=2, min_value=Decimal('0'), max_value=Decimal('5'))
    comment = serializers.CharField(required=False, allow_blank=True, default='')


class VendorStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Vendor.STATUS_CHOICES)
