from rest_framework import serializers
from .models import Contract, MILESTONE_STATUSES


class MilestoneSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True, default='')
    due_date = serializers.DateField(required=False, allow_null=True)
    amount = serializers.DecimalField(max_digits=15, decimal_places=2, required=False, allow_null=True)
    status = serializers.ChoiceField(choices=MILESTONE_STATUSES, default='pending')


class ContractSerializer(serializers.ModelSerializer):
    vendor_organization_name = serializers.CharField(source='vendor_organization.name', read_only=True)
    buyer_organization_name = serializers.CharField(source='buyer_organization.name', read_only=True)
    tender_reference = serializers.CharField(source='tender.reference_number', read_only=True)
    milestones = serializers.ListField(child=serializers.DictField(), required=False)
    days_until_expiry = serializers.SerializerMethodField()

    class Meta:
        model = Contract
        fields = [
            'id', 'contract_number', 'title', 'description', 'type', 'status', 'contract_value', 'currency',
            'start_date', 'end_date', 'days_until_expiry', 'payment_terms', 'payment_terms_details',
            'milestones', 'deliverables', 'terms_and_conditions', 'special_conditions', 'signatures',
            'approved_at', 'approved_by', 'approval_remarks', 'signed_at', 'activated_at', 'suspended_at',
            'suspension_reason', 'terminated_at', 'termination_reason', 'completed_at', 'is_renewable',
            'renewal_notice_period_days', 'parent_contract', 'amendments', 'performance_score',
            'performance_metrics', 'vendor_organization', 'vendor_organization_name', 'buyer_organization',
            'buyer_organization_name', 'tender', 'tender_reference', 'bid', 'created_by', 'contract_manager',
            'documents', 'metadata', 'created_at', 'updated_at',
        ]
        read_only_fields = [
            'contract_number', 'status', 'signatures', 'approved_at', 'approved_by', 'approval_remarks',
            'signed_at', 'activated_at', 'suspended_at', 'suspension_reason', 'terminated_at',
            'termination_reason', 'completed_at', 'parent_contract', 'amendments', 'performance_score',
            'performance_metrics', 'created_by', 'documents', 'created_at', 'updated_at',
        ]
        extra_kwargs = {
            'vendor_organization': {'required': False},
            'contract_value': {'required': False},
        }

    def get_days_until_expiry(self, obj):
        return obj.days_until_expiry() if obj.status == Contract.STATUS_ACTIVE else None

    def validate_milestones(self, value):
        milestones = []
        for milestone in value:
            serializer = MilestoneSerializer(data=milestone)
            serializer.is_valid(raise_exception=True)
            data = serializer.validated_data
            milestones.append({
                'name': data['name'],
                'description': data['description'],
                'due_date': data['due_date'].isoformat() if data.get('due_date') else None,
                'amount': str(data['amount']) if data.get('amount') is not None else None,
                'status': data['status'],
            })
        return milestones

    def validate_contract_value(self, value):
        if value is not None and value <= 0:
            raise serializers.ValidationError('Contract value must be greater than zero.')
        return value

    def validate(self, attrs):
        start_date = attrs.get('start_date', getattr(self.instance, 'start_date', None))
        end_date = attrs.get('end_date', getattr(self.instance, 'end_date', None))
        if start_date and end_date and end_date <= start_date:
            raise serializers.ValidationError({'end_date': 'End date must be after start date.'})

        bid = attrs.get('bid')
        if self.instance is None and bid is None:
            if not attrs.get('vendor_organization'):
                raise serializers.ValidationError({'vendor_organization': 'This field is required.'})
            if attrs.get('contract_value') is None:
                raise serializers.ValidationError({'contract_value': 'This field is required.'})
        return attrs


class ContractListSerializer(serializers.ModelSerializer):
    vendor_organization_name = serializers.CharField(source='vendor_organization.name', read_only=True)
    buyer_organization_name = serializers.CharField(source='buyer_organization.name', read_only=True)

    class Meta:
        model = Contract
        fields = ['id', 'contract_number', 'title', 'type', 'status', 'contract_value', 'currency',
                  'start_date', 'end_date', 'vendor_organization', 'vendor_organization_name',
                  'buyer_organization', 'buyer_organization_name', 'created_at']


class ContractRemarksSerializer(serializers.Serializer):
    remarks = serializers.CharField(required=False, allow_blank=True, default='')


class ContractReasonSerializer(serializers.Serializer):
    reason = serializers.CharField()


class ContractSignSerializer(serializers.Serializer):
    party_name = serializers.CharField(max_length=255)
    party_role = serializers.CharField(max_length=100)


class MilestoneUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=MILESTONE_STATUSES)


class ContractAmendSerializer(serializers.Serializer):
    description = serializers.CharField()
    changes = serializers.DictField(required=False, default=dict)

    def validate_changes(self, value):
        # Typed through the model serializer so dates and decimals arrive parsed
        fields = ContractSerializer().fields
        parsed = {}
        for key, raw in value.items():
            if key not in ('end_date', 'contract_value', 'deliverables', 'terms_and_conditions', 'special_conditions'):
                continue
            try:
                parsed[key] = fields[key].to_internal_value(raw)
            except serializers.ValidationError as e:
                raise serializers.ValidationError({key: e.detail})
        return parsed


class ContractRenewSerializer(serializers.Serializer):
    start_date = serializers.DateField()
    end_date = serializers.DateField()
    contract_value = serializers.DecimalField(max_digits=15, decimal_places=2, required=False)

    def validate(self, attrs):
        if attrs['end_date'] <= attrs['start_date']:
            raise serializers.ValidationError({'end_date': 'End date must be after start date.'})
        return attrs


class PerformanceMetricSerializer(serializers.Serializer):
    metric = serializers.CharField(max_length=255)
    target = serializers.FloatField()
    actual = serializers.FloatField()
    score = serializers.FloatField(min_value=0, max_value=100)


class ContractPerformanceSerializer(serializers.Serializer):
    metrics = PerformanceMetricSerializer(many=True, allow_empty=False)


class ContractDocumentSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    url = serializers.CharField(max_length=1000, required=False, allow_blank=True)
    type = serializers.CharField(max_length=100, required=False, allow_blank=True)
