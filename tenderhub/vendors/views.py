import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db import transaction
from django.db.models import Count, Q
from django.shortcuts import get_object_or_404

from tenderhub.core.cache_utils import (
    get_or_set, VENDOR_STATS_KEY, VENDOR_STATS_CACHE_TTL,
    VENDOR_CATEGORIES_KEY, VENDOR_CATEGORIES_CACHE_TTL
)
from tenderhub.core.exceptions import WorkflowError
from tenderhub.core.models import User
from tenderhub.core.utils import (
    create_audit_log, is_admin_user, has_role, forbidden, paginate, workflow_error_response
)
from tenderhub.organizations.models import Organization
from tenderhub.notifications.events import vendor_verified
from .filters import VendorFilter
from .models import Vendor
from .serializers import (
    VendorSerializer, VendorListSerializer, VendorDocumentsSubmitSerializer,
    VendorVerifySerializer, VendorRemarksSerializer, VendorSuspendSerializer,
    VendorBlacklistSerializer, VendorPerformanceSerializer, VendorRatingSerializer,
    VendorStatusSerializer, VendorRegistrationSerializer
)

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = ['created_at', 'legal_name', 'overall_rating', 'registration_number',
                   'total_contracts_completed', 'on_time_delivery_rate']

PRODUCT_CATEGORIES = [
    'Electronics', 'Construction Materials', 'Office Supplies', 'Medical Equipment', 'IT Hardware',
    'Industrial Equipment', 'Safety Equipment', 'Furniture', 'Vehicles', 'Other',
]

SERVICE_CATEGORIES = [
    'IT Services', 'Consulting', 'Maintenance', 'Construction', 'Transportation',
    'Security Services', 'Cleaning Services', 'Catering', 'Training', 'Other',
]


def can_review(user):
    """Verification, suspension and blacklisting are for managers and admins"""
    return has_role(user, User.ROLE_MANAGER)


def can_edit(user, vendor):
    return is_admin_user(user) or vendor.created_by_id == user.id or vendor.organization_id == user.organization_id


def _audit(request, vendor, action, changes):
    create_audit_log(
        request=request,
        action=action,
        model_name='Vendor',
        object_id=str(vendor.id),
        object_name=vendor.legal_name,
        object_reference=vendor.registration_number,
        changes=changes
    )


def _vendor_response(request, vendor, status_code=status.HTTP_200_OK):
    return Response(VendorSerializer(vendor, context={'request': request}).data, status=status_code)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def vendor_list_create(request):
    """List vendors (blacklisted excluded unless asked for) or register a vendor profile"""
    if request.method == 'GET':
        queryset = Vendor.objects.select_related('organization')

        include_blacklisted = request.query_params.get('include_blacklisted', 'false').lower() in ('true', '1', 'yes')
        if not include_blacklisted and request.query_params.get('status') != Vendor.STATUS_BLACKLISTED:
            queryset = queryset.exclude(status=Vendor.STATUS_BLACKLISTED)

        vendor_filter = VendorFilter(request.query_params, queryset=queryset)
        if not vendor_filter.is_valid():
            return Response(vendor_filter.errors, status=status.HTTP_400_BAD_REQUEST)
        queryset = vendor_filter.qs

        sort_by = request.query_params.get('sort_by', 'created_at')
        if sort_by not in SORTABLE_FIELDS:
            sort_by = 'created_at'
        sort_order = request.query_params.get('sort_order', 'desc').lower()
        ordering = sort_by if sort_order == 'asc' else f'-{sort_by}'
        return paginate(request, queryset.order_by(ordering, '-id'), VendorListSerializer)

    # POST: register a vendor profile for an organization
    if not has_role(request.user, User.ROLE_VENDOR, User.ROLE_USER):
        return forbidden('Only vendor accounts can register a vendor profile')

    target = VendorRegistrationSerializer(data=request.data)
    if not target.is_valid():
        return Response(target.errors, status=status.HTTP_400_BAD_REQUEST)
    organization_id = target.validated_data.get('organization') or request.user.organization_id
    if not organization_id:
        return Response({'error': 'organization is required'}, status=status.HTTP_400_BAD_REQUEST)
    organization = get_object_or_404(Organization, pk=organization_id)
    if not is_admin_user(request.user) and request.user.organization_id not in (None, organization.id):
        return forbidden('You can only register a vendor for your own organization')
    if Vendor.objects.filter(organization=organization).exists():
        return Response({'error': 'Vendor already registered for this organization'}, status=status.HTTP_409_CONFLICT)

    serializer = VendorSerializer(data=request.data, context={'request': request})
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    with transaction.atomic():
        vendor = serializer.save(organization=organization, created_by=request.user)
        if request.user.organization_id is None:
            request.user.organization = organization
            request.user.save(update_fields=['organization', 'updated_at'])
        missing = vendor.initiate_verification()

    _audit(request, vendor, 'create', {
        'registration_number': vendor.registration_number,
        'organization': organization.name,
        'missing_documents': missing,
    })
    logger.info(f"Vendor {vendor.registration_number} registered for {organization.name}")
    return _vendor_response(request, vendor, status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def vendor_search(request):
    query = request.query_params.get('q', '').strip()
    if not query:
        return Response([])
    vendors = Vendor.objects.select_related('organization').exclude(status=Vendor.STATUS_BLACKLISTED).filter(
        Q(legal_name__icontains=query) |
        Q(trade_name__icontains=query) |
        Q(registration_number__icontains=query)
    ).order_by('-overall_rating')[:20]
    return Response(VendorListSerializer(vendors, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def vendor_categories(request):
    def build():
        return {
            'categories': [value for value, _ in Vendor.CATEGORY_CHOICES],
            'product_categories': PRODUCT_CATEGORIES,
            'service_categories': SERVICE_CATEGORIES,
        }
    return Response(get_or_set(VENDOR_CATEGORIES_KEY, build, VENDOR_CATEGORIES_CACHE_TTL))


def build_vendor_statistics():
    status_counts = {value: 0 for value, _ in Vendor.STATUS_CHOICES}
    for row in Vendor.objects.values('status').annotate(count=Count('id')):
        status_counts[row['status']] = row['count']

    category_counts = {value: 0 for value, _ in Vendor.CATEGORY_CHOICES}
    for row in Vendor.objects.values('category').annotate(count=Count('id')):
        category_counts[row['category']] = row['count']

    top_vendors = Vendor.objects.select_related('organization').filter(
        status=Vendor.STATUS_VERIFIED
    ).order_by('-overall_rating', 'legal_name')[:10]

    return {
        'total': Vendor.objects.count(),
        'by_status': status_counts,
        'by_category': category_counts,
        'top_rated': VendorListSerializer(top_vendors, many=True).data,
        'blacklisted': status_counts[Vendor.STATUS_BLACKLISTED],
        'pending_verification': Vendor.objects.filter(
            verification_status__in=[
                Vendor.VERIFICATION_IN_PROGRESS,
                Vendor.VERIFICATION_PENDING_DOCUMENTS,
                Vendor.VERIFICATION_UNDER_REVIEW,
            ]
        ).count(),
    }


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def vendor_statistics(request):
    return Response(get_or_set(VENDOR_STATS_KEY, build_vendor_statistics, VENDOR_STATS_CACHE_TTL))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def my_vendor(request):
    vendor = Vendor.objects.filter(organization_id=request.user.organization_id).first() if request.user.organization_id else None
    if not vendor:
        return Response({'error': 'No vendor profile for your organization'}, status=status.HTTP_404_NOT_FOUND)
    return _vendor_response(request, vendor)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def vendor_detail(request, pk):
    """Retrieve, update or (soft) delete a vendor"""
    vendor = get_object_or_404(Vendor.objects.select_related('organization'), pk=pk)

    if request.method == 'GET':
        return _vendor_response(request, vendor)

    if not can_edit(request.user, vendor):
        return forbidden('You can only modify your own vendor profile')

    if request.method == 'DELETE':
        # Soft delete: vendors stay referenced by bids and contracts
        old_status = vendor.status
        vendor.status = Vendor.STATUS_INACTIVE
        vendor.touch()
        vendor.save()
        _audit(request, vendor, 'delete', {'status': {'old': old_status, 'new': vendor.status}})
        return Response(status=status.HTTP_204_NO_CONTENT)

    serializer = VendorSerializer(vendor, data=request.data, partial=request.method == 'PATCH', context={'request': request})
    if serializer.is_valid():
        vendor = serializer.save()
        _audit(request, vendor, 'update', {'fields': sorted(request.data.keys())})
        return Response(serializer.data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def vendor_documents(request, pk):
    """Submit verification documents"""
    vendor = get_object_or_404(Vendor, pk=pk)
    if not can_edit(request.user, vendor):
        return forbidden('You can only submit documents for your own vendor profile')
    serializer = VendorDocumentsSubmitSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    missing = vendor.submit_documents(serializer.validated_data['documents'])
    _audit(request, vendor, 'update', {
        'documents_added': [doc['type'] for doc in serializer.validated_data['documents']],
        'missing_documents': missing,
    })
    data = VendorSerializer(vendor, context={'request': request}).data
    return Response(data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def vendor_initiate_verification(request, pk):
    vendor = get_object_or_404(Vendor, pk=pk)
    if not (can_edit(request.user, vendor) or can_review(request.user)):
        return forbidden()
    try:
        missing = vendor.initiate_verification()
    except WorkflowError as e:
        return workflow_error_response(e)
    _audit(request, vendor, 'verify', {'verification_status': vendor.verification_status, 'missing_documents': missing})
    return _vendor_response(request, vendor)


def _verify(request, pk, approved, remarks):
    if not can_review(request.user):
        return forbidden('Only managers and administrators can verify vendors')
    vendor = get_object_or_404(Vendor, pk=pk)
    try:
        vendor.verify(approved, remarks, request.user)
    except WorkflowError as e:
        return workflow_error_response(e)
    _audit(request, vendor, 'approve' if approved else 'reject', {
        'verification_status': vendor.verification_status,
        'status': vendor.status,
        'remarks': remarks,
    })
    logger.info(f"Vendor {vendor.registration_number} verification {'approved' if approved else 'rejected'} by {request.user.username}")
    vendor_verified(vendor, approved, actor=request.user)
    return _vendor_response(request, vendor)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def vendor_verify(request, pk):
    serializer = VendorVerifySerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    return _verify(request, pk, serializer.validated_data['approved'], serializer.validated_data['remarks'])


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def vendor_approve(request, pk):
    serializer = VendorRemarksSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    return _verify(request, pk, True, serializer.validated_data['remarks'])


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def vendor_reject(request, pk):
    serializer = VendorRemarksSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    return _verify(request, pk, False, serializer.validated_data['remarks'])


def _status_action(request, pk, action, operation):
    if not can_review(request.user):
        return forbidden('Only managers and administrators can change vendor status')
    vendor = get_object_or_404(Vendor, pk=pk)
    old_status = vendor.status
    try:
        operation(vendor)
    except WorkflowError as e:
        return workflow_error_response(e)
    _audit(request, vendor, action, {'status': {'old': old_status, 'new': vendor.status}})
    logger.info(f"Vendor {vendor.registration_number}: {old_status} -> {vendor.status}")
    return _vendor_response(request, vendor)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def vendor_suspend(request, pk):
    serializer = VendorSuspendSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    reason = serializer.validated_data['reason']
    return _status_action(request, pk, 'suspend', lambda vendor: vendor.suspend(reason))


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def vendor_activate(request, pk):
    return _status_action(request, pk, 'activate', lambda vendor: vendor.activate())


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def vendor_change_status(request, pk):
    """Generic status change constrained by the vendor transition table"""
    serializer = VendorStatusSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    new_status = serializer.validated_data['status']

    def operation(vendor):
        vendor.change_status(new_status)
        vendor.save()
    return _status_action(request, pk, 'status_change', operation)


@api_view(['POST', 'DELETE'])
@permission_classes([IsAuthenticated])
def vendor_blacklist(request, pk):
    """POST blacklists the vendor, DELETE lifts the blacklist"""
    if request.method == 'POST':
        serializer = VendorBlacklistSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        reason = serializer.validated_data['reason']
        duration = serializer.validated_data['duration_days']
        return _status_action(
            request, pk, 'blacklist',
            lambda vendor: vendor.blacklist(reason, duration, request.user)
        )

    serializer = VendorRemarksSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    remarks = serializer.validated_data['remarks']
    return _status_action(
        request, pk, 'unblacklist',
        lambda vendor: vendor.remove_from_blacklist(remarks, request.user)
    )


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated])
def vendor_performance(request, pk):
    """Performance metrics; PATCH updates them and recomputes the overall rating"""
    vendor = get_object_or_404(Vendor, pk=pk)

    if request.method == 'PATCH':
        if not can_review(request.user):
            return forbidden('Only managers and administrators can update performance metrics')
        serializer = VendorPerformanceSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        vendor.update_performance(serializer.validated_data)
        _audit(request, vendor, 'update', {
            'performance': {key: str(value) for key, value in serializer.validated_data.items()},
            'overall_rating': str(vendor.overall_rating),
        })

    return Response({
        'vendor': {
            'id': vendor.id,
            'name': vendor.legal_name,
            'registration_number': vendor.registration_number,
        },
        'metrics': {
            'overall_rating': vendor.overall_rating,
            'on_time_delivery_rate': vendor.on_time_delivery_rate,
            'quality_score': vendor.quality_score,
            'compliance_score': vendor.compliance_score,
            'total_contracts_completed': vendor.total_contracts_completed,
            'total_contracts_in_progress': vendor.total_contracts_in_progress,
            'performance_rating': vendor.performance_rating,
            'dispute_resolution_rate': vendor.dispute_resolution_rate,
        },
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def vendor_rate(request, pk):
    vendor = get_object_or_404(Vendor, pk=pk)
    if vendor.organization_id and vendor.organization_id == request.user.organization_id:
        return forbidden('You cannot rate your own vendor profile')
    serializer = VendorRatingSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    old_rating = vendor.overall_rating
    new_rating = vendor.rate(serializer.validated_data['score'])
    _audit(request, vendor, 'update', {
        'rating': {'old': str(old_rating), 'new': str(new_rating), 'score': str(serializer.validated_data['score'])},
        'comment': serializer.validated_data['comment'],
    })
    return Response({'id': vendor.id, 'overall_rating': new_rating})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def vendor_bids(request, pk):
    from tenderhub.bids.models import Bid
    from tenderhub.bids.serializers import BidSerializer

    vendor = get_object_or_404(Vendor, pk=pk)
    if not (can_edit(request.user, vendor) or can_review(request.user)):
        return forbidden()
    queryset = Bid.objects.select_related('tender').filter(vendor__organization=vendor.organization)
    status_filter = request.query_params.get('status')
    if status_filter:
        queryset = queryset.filter(status=status_filter)
    return paginate(request, queryset.order_by('-created_at'), BidSerializer)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def vendor_contracts(request, pk):
    from tenderhub.contracts.models import Contract
    from tenderhub.contracts.serializers import ContractListSerializer

    vendor = get_object_or_404(Vendor, pk=pk)
    if not (can_edit(request.user, vendor) or can_review(request.user)):
        return forbidden()
    queryset = Contract.objects.filter(vendor_organization=vendor.organization)
    return paginate(request, queryset.order_by('-created_at'), ContractListSerializer)
