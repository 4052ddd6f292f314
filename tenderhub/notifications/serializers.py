from rest_framework import serializers
from .models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    recipient_username = serializers.CharField(source='recipient.username', read_only=True)

    class Meta:
        model = Notification
        fields = [
            'id', 'recipient', 'recipient_username', 'type', 'priority', 'title', 'message', 'data',
            'link', 'is_read', 'read_at', 'expires_at', 'created_at',
        ]
        read_only_fields = ['is_read', 'read_at', 'created_at']

    def validate_data(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError('Data must be a JSON object.')
        return value


class NotificationCleanupSerializer(serializers.Serializer):
    days_to_keep = serializers.IntegerField(min_value=0, required=False)
