import string
import uuid
from collections import Counter

from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from django.utils import timezone

from tenderhub.core.exceptions import ConflictError, WorkflowError
from .analysis import keywords


class ProcessingJob(models.Model):
    """A unit of document-intelligence work and its stored result"""
    TYPE_DOCUMENT_ANALYSIS = 'document_analysis'
    TYPE_TENDER_EXTRACTION = 'tender_extraction'
    TYPE_BID_EVALUATION = 'bid_evaluation'
    TYPE_COMPLIANCE_CHECK = 'compliance_check'
    TYPE_RISK_ASSESSMENT = 'risk_assessment'
    TYPE_SUMMARY_GENERATION = 'summary_generation'
    TYPE_COMPARISON = 'comparison'
    TYPE_TRANSLATION = 'translation'

    TYPE_CHOICES = [
        (TYPE_DOCUMENT_ANALYSIS, 'Document Analysis'),
        (TYPE_TENDER_EXTRACTION, 'Tender Extraction'),
        (TYPE_BID_EVALUATION, 'Bid Evaluation'),
        (TYPE_COMPLIANCE_CHECK, 'Compliance Check'),
        (TYPE_RISK_ASSESSMENT, 'Risk Assessment'),
        (TYPE_SUMMARY_GENERATION, 'Summary Generation'),
        (TYPE_COMPARISON, 'Comparison'),
        (TYPE_TRANSLATION, 'Translation'),
    ]

    PRIORITY_CHOICES = [
        ('low', 'Low'),
        ('normal', 'Normal'),
        ('high', 'High'),
        ('urgent', 'Urgent'),
    ]

    STATUS_PENDING = 'pending'
    STATUS_PROCESSING = 'processing'
    STATUS_COMPLETED = 'completed'
    STATUS_FAILED = 'failed'
    STATUS_CANCELLED = 'cancelled'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_PROCESSING, 'Processing'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_FAILED, 'Failed'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    type = models.CharField(max_length=30, choices=TYPE_CHOICES)
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default='normal')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    input = models.JSONField(default=dict, blank=True)
    result = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    error = models.TextField(blank=True)
    attempts = models.PositiveIntegerField(default=0)
    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='processing_jobs'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.get_type_display()} #{self.pk} ({self.status})"

    def cancel(self):
        if self.status not in (self.STATUS_PENDING, self.STATUS_PROCESSING):
            raise WorkflowError('Only pending or processing jobs can be cancelled')
        self.status = self.STATUS_CANCELLED
        self.completed_at = timezone.now()
        self.save(update_fields=['status', 'completed_at', 'updated_at'])

    def reset_for_retry(self):
        if self.status not in (self.STATUS_FAILED, self.STATUS_CANCELLED):
            raise WorkflowError('Only failed or cancelled jobs can be retried')
        self.status = self.STATUS_PENDING
        self.error = ''
        self.result = None
        self.started_at = None
        self.completed_at = None
        self.save()

    class Meta:
        db_table = 'processing_jobs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status'], name='idx_job_status'),
            models.Index(fields=['type'], name='idx_job_type'),
        ]


class KnowledgeBase(models.Model):
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    documents = models.JSONField(default=list, blank=True)
    is_active = models.BooleanField(default=True)
    last_refreshed_at = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='knowledge_bases'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    def add_document(self, title, content, source='text'):
        document = {
            'id': uuid.uuid4().hex[:12],
            'title': title,
            'content': content,
            'source': source,
            'word_count': len(content.split()),
            'added_at': timezone.now().isoformat(),
        }
        self.documents = list(self.documents) + [document]
        self.save(update_fields=['documents', 'updated_at'])
        return document

    def remove_document(self, document_id):
        remaining = [doc for doc in self.documents if doc.get('id') != document_id]
        if len(remaining) == len(self.documents):
            raise WorkflowError('Document not found', status_code=404)
        self.documents = remaining
        self.save(update_fields=['documents', 'updated_at'])

    def query(self, question, max_results=5):
        """Rank documents by how often they use the question's keywords"""
        terms = set(keywords(question))
        if not terms:
            return []
        matches = []
        for doc in self.documents:
            counts = Counter(keywords(f"{doc.get('title', '')} {doc.get('content', '')}"))
            score = sum(counts[term] for term in terms)
            if score:
                matches.append({
                    'document_id': doc.get('id'),
                    'title': doc.get('title'),
                    'score': score,
                    'matched_terms': sorted(term for term in terms if counts[term]),
                    'snippet': doc.get('content', '')[:300],
                })
        matches.sort(key=lambda match: match['score'], reverse=True)
        return matches[:max_results]

    def refresh(self):
        documents = []
        for doc in self.documents:
            documents.append(dict(doc, word_count=len(doc.get('content', '').split())))
        self.documents = documents
        self.last_refreshed_at = timezone.now()
        self.save(update_fields=['documents', 'last_refreshed_at', 'updated_at'])

    class Meta:
        db_table = 'knowledge_bases'
        ordering = ['-created_at']


class PromptTemplate(models.Model):
    name = models.CharField(max_length=255, unique=True)
    category = models.CharField(max_length=100, blank=True)
    description = models.TextField(blank=True)
    template = models.TextField(help_text="Text with {placeholders}")
    variables = models.JSONField(default=list, blank=True)
    is_active = models.BooleanField(default=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='prompt_templates'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    def placeholders(self):
        return [field for _, field, _, _ in string.Formatter().parse(self.template) if field]

    def save(self, *args, **kwargs):
        if not self.variables:
            self.variables = list(dict.fromkeys(self.placeholders()))
        super().save(*args, **kwargs)

    def render(self, values):
        missing = [name for name in dict.fromkeys(self.placeholders()) if name not in values]
        if missing:
            raise WorkflowError(f"Missing template variables: {', '.join(missing)}")
        try:
            return self.template.format(**values)
        except (IndexError, KeyError, ValueError) as e:
            raise WorkflowError(f'Template could not be rendered: {str(e)}')

    def clone(self, name, user):
        if PromptTemplate.objects.filter(name=name).exists():
            raise ConflictError(f'A template named {name} already exists')
        return PromptTemplate.objects.create(
            name=name,
            category=self.category,
            description=self.description,
            template=self.template,
            variables=list(self.variables),
            is_active=self.is_active,
            created_by=user,
        )

    class Meta:
        db_table = 'prompt_templates'
        ordering = ['name']
