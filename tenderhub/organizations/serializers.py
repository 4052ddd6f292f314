from rest_framework import serializers
from .models import Organization


class OrganizationSerializer(serializers.ModelSerializer):
    user_count = serializers.SerializerMethodField()

    class Meta:
        model = Organization
        fields = ['id', 'name', 'type', 'status', 'registration_number', 'tax_id', 'description',
                  'email', 'phone', 'alternate_phone', 'website', 'address', 'city', 'state',
                  'country', 'postal_code', 'bank_details', 'metadata', 'user_count',
                  'created_at', 'updated_at']
        read_only_fields = ['status', 'metadata', 'created_at', 'updated_at']

    def get_user_count(self, obj):
        return obj.users.count()
