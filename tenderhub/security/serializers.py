from decimal import Decimal

from rest_framework import serializers

from tenderhub.core.utils import is_admin_user
from .models import SecurityInstrument


class SecurityInstrumentSerializer(serializers.ModelSerializer):
    organization_name = serializers.CharField(source='organization.name', read_only=True)
    tender_reference = serializers.CharField(source='tender.reference_number', read_only=True, default=None)
    contract_number = serializers.CharField(source='contract.contract_number', read_only=True, default=None)
    kind_display = serializers.CharField(source='get_kind_display', read_only=True)

    class Meta:
        model = SecurityInstrument
        fields = [
            'id', 'reference_number', 'kind', 'kind_display', 'purpose', 'status', 'amount', 'currency',
            'claimed_amount', 'instrument_number', 'issuer_name', 'issuer_branch', 'issue_date', 'expiry_date',
            'organization', 'organization_name', 'tender', 'tender_reference', 'bid', 'contract',
            'contract_number', 'submitted_at', 'verified_at', 'verified_by', 'verification_remarks',
            'activated_at', 'claimed_at', 'claim_reason', 'released_at', 'release_remarks', 'cancelled_at',
            'documents', 'remarks', 'created_by', 'created_at', 'updated_at',
        ]
        read_only_fields = [
            'reference_number', 'status', 'claimed_amount', 'submitted_at', 'verified_at', 'verified_by',
            'verification_remarks', 'activated_at', 'claimed_at', 'claim_reason', 'released_at',
            'release_remarks', 'cancelled_at', 'created_by', 'created_at', 'updated_at',
        ]
        extra_kwargs = {'organization': {'required': False}}

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError('Amount must be greater than zero.')
        return value

    def validate_documents(self, value):
        if not isinstance(value, list):
            raise serializers.ValidationError('Documents must be a list.')
        return value

    def validate(self, attrs):
        issue_date = attrs.get('issue_date', getattr(self.instance, 'issue_date', None))
        expiry_date = attrs.get('expiry_date', getattr(self.instance, 'expiry_date', None))
        if issue_date and expiry_date and expiry_date <= issue_date:
            raise serializers.ValidationError({'expiry_date': 'Expiry date must be after the issue date.'})

        tender = attrs.get('tender', getattr(self.instance, 'tender', None))
        bid = attrs.get('bid', getattr(self.instance, 'bid', None))
        contract = attrs.get('contract', getattr(self.instance, 'contract', None))
        if tender is None and contract is None:
            raise serializers.ValidationError('A security instrument must secure a tender or a contract.')
        if bid is not None and tender is not None and bid.tender_id != tender.id:
            raise serializers.ValidationError({'bid': 'Bid does not belong to this tender.'})
        if bid is not None and tender is None:
            attrs['tender'] = tender = bid.tender

        user = getattr(self.context.get('request'), 'user', None)
        if user is not None and not is_admin_user(user):
            self._check_ownership(user, attrs, tender, bid, contract)
        return attrs

    def _check_ownership(self, user, attrs, tender, bid, contract):
        """Non-admins furnish security only for their own organization, bids and contracts"""
        organization = attrs.get('organization')
        if organization is not None and organization.id != user.organization_id:
            raise serializers.ValidationError(
                {'organization': 'You can only furnish security for your own organization.'}
            )
        if 'tender' in attrs and tender is not None and not tender.can_view(user):
            raise serializers.ValidationError({'tender': 'Tender not found.'})
        if 'bid' in attrs and bid is not None and bid.vendor_id != user.id:
            raise serializers.ValidationError({'bid': 'You can only secure your own bid.'})
        if 'contract' in attrs and contract is not None and not contract.is_party(user):
            raise serializers.ValidationError({'contract': 'You are not a party to this contract.'})


class SecurityVerifySerializer(serializers.Serializer):
    approved = serializers.BooleanField()
    remarks = serializers.CharField(required=False, allow_blank=True, default='')


class SecurityClaimSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=15, decimal_places=2, min_value=Decimal('0.01'))
    reason = serializers.CharField()


class SecurityRemarksSerializer(serializers.Serializer):
    remarks = serializers.CharField(required=False, allow_blank=True, default='')


class SecurityExpiringSerializer(serializers.Serializer):
    days = serializers.IntegerField(min_value=1, max_value=365, required=False)
