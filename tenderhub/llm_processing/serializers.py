import string
from decimal import Decimal

from rest_framework import serializers
from .models import ProcessingJob, KnowledgeBase, PromptTemplate
from .analysis import DOCUMENT_TEMPLATES


class ProcessingJobSerializer(serializers.ModelSerializer):
    defer = serializers.BooleanField(write_only=True, required=False, default=False)

    class Meta:
        model = ProcessingJob
        fields = ['id', 'type', 'priority', 'status', 'input', 'result', 'error', 'attempts', 'started_at',
                  'completed_at', 'created_by', 'defer', 'created_at', 'updated_at']
        read_only_fields = ['status', 'result', 'error', 'attempts', 'started_at', 'completed_at',
                            'created_by', 'created_at', 'updated_at']

    def create(self, validated_data):
        validated_data.pop('defer', None)
        return super().create(validated_data)


class KnowledgeBaseSerializer(serializers.ModelSerializer):
    document_count = serializers.SerializerMethodField()

    class Meta:
        model = KnowledgeBase
        fields = ['id', 'name', 'description', 'documents', 'document_count', 'is_active',
                  'last_refreshed_at', 'created_by', 'created_at', 'updated_at']
        read_only_fields = ['documents', 'last_refreshed_at', 'created_by', 'created_at', 'updated_at']

    def get_document_count(self, obj):
        return len(obj.documents or [])


class KnowledgeDocumentSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255, required=False, allow_blank=True)
    content = serializers.CharField(required=False, allow_blank=True)
    file = serializers.FileField(required=False)

    def validate(self, attrs):
        if not attrs.get('content') and not attrs.get('file'):
            raise serializers.ValidationError('Provide either content or a file.')
        return attrs


class KnowledgeQuerySerializer(serializers.Serializer):
    question = serializers.CharField()
    max_results = serializers.IntegerField(min_value=1, max_value=20, default=5)


class PromptTemplateSerializer(serializers.ModelSerializer):
    class Meta:
        model = PromptTemplate
        fields = ['id', 'name', 'category', 'description', 'template', 'variables', 'is_active',
                  'created_by', 'created_at', 'updated_at']
        read_only_fields = ['created_by', 'created_at', 'updated_at']

    def validate_template(self, value):
        try:
            list(string.Formatter().parse(value))
        except ValueError as e:
            raise serializers.ValidationError(f'Invalid template: {e}')
        return value


class TemplateTestSerializer(serializers.Serializer):
    variables = serializers.DictField(required=False, default=dict)


class TemplateCloneSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)


class DocumentUploadSerializer(serializers.Serializer):
    file = serializers.FileField()


class ProposalSerializer(serializers.Serializer):
    tender_id = serializers.IntegerField()
    company_profile = serializers.DictField(required=False, default=dict)


class ComplianceSerializer(serializers.Serializer):
    tender_id = serializers.IntegerField()
    bid_id = serializers.IntegerField(required=False)
    vendor_id = serializers.IntegerField(required=False)
    content = serializers.CharField(required=False, allow_blank=True)
    requirements = serializers.ListField(child=serializers.CharField(), required=False)

    def validate(self, attrs):
        if not (attrs.get('bid_id') or attrs.get('vendor_id') or attrs.get('content')):
            raise serializers.ValidationError('Provide a bid_id, a vendor_id or document content to assess.')
        return attrs


class GenerateDocumentSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=sorted(DOCUMENT_TEMPLATES))
    tender_id = serializers.IntegerField(required=False)
    data = serializers.DictField(required=False, default=dict)


class PricingSerializer(serializers.Serializer):
    tender_id = serializers.IntegerField()
    cost_estimate = serializers.DecimalField(max_digits=15, decimal_places=2, min_value=Decimal('0.01'))


class ChatSerializer(serializers.Serializer):
    message = serializers.CharField()
    context = serializers.DictField(required=False, default=dict)
    history = serializers.ListField(child=serializers.DictField(), required=False, default=list)
