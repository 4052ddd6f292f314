import logging

from django.db.models import Count, Q
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, parser_classes
from rest_framework.parsers import MultiPartParser, FormParser, JSONParser
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from tenderhub.bids.models import Bid
from tenderhub.core.exceptions import WorkflowError
from tenderhub.core.utils import ADMIN_ROLES, create_audit_log, is_admin_user, forbidden, paginate, workflow_error_response
from tenderhub.tenders.models import Tender
from tenderhub.vendors.models import Vendor
from . import analysis
from .client import LLMClient
from .extractors import extract_text
from .jobs import run_job, is_supported, bid_text, can_access_bid
from .models import ProcessingJob, KnowledgeBase, PromptTemplate
from .serializers import (
    ProcessingJobSerializer, KnowledgeBaseSerializer, KnowledgeDocumentSerializer, KnowledgeQuerySerializer,
    PromptTemplateSerializer, TemplateTestSerializer, TemplateCloneSerializer, DocumentUploadSerializer,
    ProposalSerializer, ComplianceSerializer, GenerateDocumentSerializer, PricingSerializer, ChatSerializer
)

logger = logging.getLogger(__name__)


def _visible_tender(user, tender_id):
    tender = get_object_or_404(Tender.objects.select_related('organization'), pk=tender_id)
    if not tender.can_view(user):
        return None
    return tender


def _document_template(user, document_type):
    """Active override for a document type, honoured only when the requester or an admin wrote it"""
    return PromptTemplate.objects.filter(name=document_type, is_active=True).filter(
        Q(created_by=user) | Q(created_by__is_superuser=True) | Q(created_by__role__in=ADMIN_ROLES)
    ).first()


def vendor_text(vendor):
    parts = [vendor.legal_name, vendor.trade_name, vendor.get_category_display(), vendor.notes]
    parts.extend(analysis.requirement_text(item) for item in vendor.certifications or [])
    parts.extend(analysis.requirement_text(item) for item in vendor.documents or [])
    parts.extend(str(item) for item in (vendor.product_categories or []) + (vendor.service_categories or []))
    return '\n'.join(part for part in parts if part)


def _owned(user, obj):
    return obj.created_by_id == user.id or is_admin_user(user)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
@parser_classes([MultiPartParser, FormParser])
def extract_tender(request):
    """Upload a PDF, DOCX or TXT tender document and pull structured fields out of it"""
    serializer = DocumentUploadSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    uploaded = serializer.validated_data['file']
    try:
        text = extract_text(uploaded)
    except WorkflowError as e:
        return workflow_error_response(e)

    fields = analysis.extract_tender_fields(text)
    logger.info(f"Extracted tender fields from {uploaded.name} ({fields['word_count']} words) for {request.user.username}")
    return Response({'file_name': uploaded.name, 'extracted': fields})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def analyze_tender(request, tender_id):
    tender = _visible_tender(request.user, tender_id)
    if tender is None:
        return forbidden('You do not have access to this tender')
    return Response(analysis.analyze_tender(tender))


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def generate_proposal(request):
    serializer = ProposalSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    tender = _visible_tender(request.user, serializer.validated_data['tender_id'])
    if tender is None:
        return forbidden('You do not have access to this tender')
    return Response(analysis.generate_proposal(tender, serializer.validated_data['company_profile']))


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def assess_compliance(request):
    serializer = ComplianceSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    tender = _visible_tender(request.user, data['tender_id'])
    if tender is None:
        return forbidden('You do not have access to this tender')

    if data.get('bid_id'):
        bid = get_object_or_404(Bid.objects.select_related('tender'), pk=data['bid_id'], tender=tender)
        if not can_access_bid(request.user, bid):
            return forbidden('You do not have access to this bid')
        text = bid_text(bid)
        subject = {'bid_id': bid.id}
    elif data.get('vendor_id'):
        vendor = get_object_or_404(Vendor, pk=data['vendor_id'])
        text = vendor_text(vendor)
        subject = {'vendor_id': vendor.id}
    else:
        text = data['content']
        subject = {}

    requirements = data.get('requirements') or analysis.tender_requirements(tender)
    if not requirements:
        return Response({'error': 'Tender has no requirements to assess against'}, status=status.HTTP_400_BAD_REQUEST)
    result = analysis.assess_compliance(requirements, text)
    return Response(dict(result, tender_id=tender.id, **subject))


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def generate_document(request):
    serializer = GenerateDocumentSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    document_type = serializer.validated_data['type']

    context = {}
    if serializer.validated_data.get('tender_id'):
        tender = _visible_tender(request.user, serializer.validated_data['tender_id'])
        if tender is None:
            return forbidden('You do not have access to this tender')
        context.update(analysis.tender_context(tender))
    context.update(serializer.validated_data['data'])

    override = _document_template(request.user, document_type)
    try:
        document = analysis.generate_document(
            document_type, context, template_text=override.template if override else None
        )
    except WorkflowError as e:
        return workflow_error_response(e)
    document['template'] = override.name if override else 'default'
    return Response(document)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def optimize_pricing(request):
    serializer = PricingSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    tender = _visible_tender(request.user, serializer.validated_data['tender_id'])
    if tender is None:
        return forbidden('You do not have access to this tender')
    try:
        return Response(analysis.optimize_pricing(tender, serializer.validated_data['cost_estimate']))
    except WorkflowError as e:
        return workflow_error_response(e)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def chat(request):
    serializer = ChatSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    reply = LLMClient().chat(data['message'], context=data['context'], history=data['history'])
    return Response(reply)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def providers(request):
    return Response(LLMClient().providers())


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def usage_statistics(request):
    jobs = ProcessingJob.objects.all()
    if not is_admin_user(request.user):
        jobs = jobs.filter(created_by=request.user)
    by_type = {row['type']: row['count'] for row in jobs.values('type').annotate(count=Count('id')).order_by()}
    by_status = {row['status']: row['count'] for row in jobs.values('status').annotate(count=Count('id')).order_by()}
    return Response({
        'total_jobs': jobs.count(),
        'jobs_by_type': by_type,
        'jobs_by_status': by_status,
        'templates': PromptTemplate.objects.count(),
        'active_templates': PromptTemplate.objects.filter(is_active=True).count(),
        'knowledge_bases': KnowledgeBase.objects.count(),
        'provider': LLMClient().provider,
    })


# Processing jobs

@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def job_list_create(request):
    if request.method == 'GET':
        queryset = ProcessingJob.objects.select_related('created_by')
        if not is_admin_user(request.user):
            queryset = queryset.filter(created_by=request.user)
        for field in ('type', 'status', 'priority'):
            value = request.query_params.get(field)
            if value:
                queryset = queryset.filter(**{field: value})
        return paginate(request, queryset, ProcessingJobSerializer)

    serializer = ProcessingJobSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    defer = serializer.validated_data.get('defer', False)
    job = serializer.save(created_by=request.user)
    logger.info(f"Processing job {job.id} ({job.type}) created by {request.user.username}")

    if not defer and is_supported(job.type):
        run_job(job)
    return Response(ProcessingJobSerializer(job).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'DELETE'])
@permission_classes([IsAuthenticated])
def job_detail(request, pk):
    job = get_object_or_404(ProcessingJob, pk=pk)
    if not _owned(request.user, job):
        return forbidden('You do not have access to this job')

    if request.method == 'GET':
        return Response(ProcessingJobSerializer(job).data)

    if job.status == ProcessingJob.STATUS_PROCESSING:
        return Response({'error': 'Cancel a running job before deleting it'}, status=status.HTTP_400_BAD_REQUEST)
    job.delete()
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def job_result(request, pk):
    job = get_object_or_404(ProcessingJob, pk=pk)
    if not _owned(request.user, job):
        return forbidden('You do not have access to this job')
    if job.status != ProcessingJob.STATUS_COMPLETED:
        return Response(
            {'error': f'Job is {job.status}; no result available', 'status': job.status, 'job_error': job.error},
            status=status.HTTP_400_BAD_REQUEST
        )
    return Response({'id': job.id, 'type': job.type, 'result': job.result, 'completed_at': job.completed_at})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def job_cancel(request, pk):
    job = get_object_or_404(ProcessingJob, pk=pk)
    if not _owned(request.user, job):
        return forbidden('You do not have access to this job')
    try:
        job.cancel()
    except WorkflowError as e:
        return workflow_error_response(e)
    logger.info(f"Processing job {job.id} cancelled by {request.user.username}")
    return Response(ProcessingJobSerializer(job).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def job_retry(request, pk):
    job = get_object_or_404(ProcessingJob, pk=pk)
    if not _owned(request.user, job):
        return forbidden('You do not have access to this job')
    try:
        job.reset_for_retry()
    except WorkflowError as e:
        return workflow_error_response(e)
    if is_supported(job.type):
        run_job(job)
    logger.info(f"Processing job {job.id} retried by {request.user.username}: {job.status}")
    return Response(ProcessingJobSerializer(job).data)


# Knowledge bases

@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def knowledge_base_list_create(request):
    if request.method == 'GET':
        queryset = KnowledgeBase.objects.all()
        is_active = request.query_params.get('is_active')
        if is_active is not None:
            queryset = queryset.filter(is_active=is_active.lower() == 'true')
        return paginate(request, queryset, KnowledgeBaseSerializer)

    serializer = KnowledgeBaseSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    knowledge_base = serializer.save(created_by=request.user)
    create_audit_log(
        request=request, action='create', model_name='KnowledgeBase',
        object_id=str(knowledge_base.id), object_name=knowledge_base.name
    )
    return Response(KnowledgeBaseSerializer(knowledge_base).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def knowledge_base_detail(request, pk):
    knowledge_base = get_object_or_404(KnowledgeBase, pk=pk)

    if request.method == 'GET':
        return Response(KnowledgeBaseSerializer(knowledge_base).data)

    if not _owned(request.user, knowledge_base):
        return forbidden('Only the creator can modify this knowledge base')

    if request.method == 'DELETE':
        create_audit_log(
            request=request, action='delete', model_name='KnowledgeBase',
            object_id=str(knowledge_base.id), object_name=knowledge_base.name
        )
        knowledge_base.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)

    serializer = KnowledgeBaseSerializer(knowledge_base, data=request.data, partial=request.method == 'PATCH')
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    serializer.save()
    return Response(serializer.data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
@parser_classes([JSONParser, MultiPartParser, FormParser])
def knowledge_base_add_document(request, pk):
    knowledge_base = get_object_or_404(KnowledgeBase, pk=pk)
    if not _owned(request.user, knowledge_base):
        return forbidden('Only the creator can add documents to this knowledge base')

    serializer = KnowledgeDocumentSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    uploaded = serializer.validated_data.get('file')
    if uploaded:
        try:
            content = extract_text(uploaded)
        except WorkflowError as e:
            return workflow_error_response(e)
        title = serializer.validated_data.get('title') or uploaded.name
        source = 'upload'
    else:
        content = serializer.validated_data['content']
        title = serializer.validated_data.get('title') or 'Untitled'
        source = 'text'

    document = knowledge_base.add_document(title, content, source=source)
    logger.info(f"Document {document['id']} added to knowledge base {knowledge_base.id} by {request.user.username}")
    return Response(document, status=status.HTTP_201_CREATED)


@api_view(['DELETE'])
@permission_classes([IsAuthenticated])
def knowledge_base_remove_document(request, pk, document_id):
    knowledge_base = get_object_or_404(KnowledgeBase, pk=pk)
    if not _owned(request.user, knowledge_base):
        return forbidden('Only the creator can remove documents from this knowledge base')
    try:
        knowledge_base.remove_document(document_id)
    except WorkflowError as e:
        return workflow_error_response(e)
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def knowledge_base_query(request, pk):
    knowledge_base = get_object_or_404(KnowledgeBase, pk=pk)
    if not knowledge_base.is_active:
        return Response({'error': 'Knowledge base is inactive'}, status=status.HTTP_400_BAD_REQUEST)
    serializer = KnowledgeQuerySerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    question = serializer.validated_data['question']
    matches = knowledge_base.query(question, serializer.validated_data['max_results'])
    return Response({'question': question, 'matches': matches, 'count': len(matches)})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def knowledge_base_refresh(request, pk):
    knowledge_base = get_object_or_404(KnowledgeBase, pk=pk)
    if not _owned(request.user, knowledge_base):
        return forbidden('Only the creator can refresh this knowledge base')
    knowledge_base.refresh()
    return Response(KnowledgeBaseSerializer(knowledge_base).data)


# Prompt templates

@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def template_list_create(request):
    if request.method == 'GET':
        queryset = PromptTemplate.objects.all()
        category = request.query_params.get('category')
        if category:
            queryset = queryset.filter(category=category)
        is_active = request.query_params.get('is_active')
        if is_active is not None:
            queryset = queryset.filter(is_active=is_active.lower() == 'true')
        return paginate(request, queryset, PromptTemplateSerializer)

    serializer = PromptTemplateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    template = serializer.save(created_by=request.user)
    create_audit_log(
        request=request, action='create', model_name='PromptTemplate',
        object_id=str(template.id), object_name=template.name
    )
    return Response(PromptTemplateSerializer(template).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def template_detail(request, pk):
    template = get_object_or_404(PromptTemplate, pk=pk)

    if request.method == 'GET':
        return Response(PromptTemplateSerializer(template).data)

    if not _owned(request.user, template):
        return forbidden('Only the creator can modify this template')

    if request.method == 'DELETE':
        create_audit_log(
            request=request, action='delete', model_name='PromptTemplate',
            object_id=str(template.id), object_name=template.name
        )
        template.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)

    serializer = PromptTemplateSerializer(template, data=request.data, partial=request.method == 'PATCH')
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    if 'template' in serializer.validated_data and 'variables' not in serializer.validated_data:
        template.variables = []
    serializer.save()
    return Response(serializer.data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def template_test(request, pk):
    template = get_object_or_404(PromptTemplate, pk=pk)
    serializer = TemplateTestSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    try:
        rendered = template.render(serializer.validated_data['variables'])
    except WorkflowError as e:
        return workflow_error_response(e)
    return Response({'template': template.name, 'rendered': rendered})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def template_clone(request, pk):
    template = get_object_or_404(PromptTemplate, pk=pk)
    serializer = TemplateCloneSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    try:
        clone = template.clone(serializer.validated_data['name'], request.user)
    except WorkflowError as e:
        return workflow_error_response(e)
    logger.info(f"Prompt template {template.name} cloned as {clone.name} by {request.user.username}")
    return Response(PromptTemplateSerializer(clone).data, status=status.HTTP_201_CREATED)
