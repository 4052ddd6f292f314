import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db.models import ProtectedError, Q, Sum
from django.shortcuts import get_object_or_404

from tenderhub.core.serializers import UserSerializer
from tenderhub.core.utils import create_audit_log, is_admin_user, forbidden, paginate
from .models import Organization
from .serializers import OrganizationSerializer

logger = logging.getLogger(__name__)


def is_member(user, organization):
    return user.organization_id == organization.id


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def organization_list_create(request):
    """List organizations or create one (admins only)"""
    if request.method == 'GET':
        queryset = Organization.objects.all()

        type_filter = request.query_params.get('type', None)
        if type_filter:
            queryset = queryset.filter(type=type_filter)
        status_filter = request.query_params.get('status', None)
        if status_filter:
            queryset = queryset.filter(status=status_filter)
        search = request.query_params.get('search', None)
        if search:
            queryset = queryset.filter(Q(name__icontains=search) | Q(registration_number__icontains=search))

        return paginate(request, queryset.order_by('name'), OrganizationSerializer)

    if not is_admin_user(request.user):
        return forbidden('Only administrators can create organizations')
    serializer = OrganizationSerializer(data=request.data)
    if serializer.is_valid():
        organization = serializer.save()
        create_audit_log(
            request=request,
            action='create',
            model_name='Organization',
            object_id=str(organization.id),
            object_name=organization.name,
            changes={'name': organization.name, 'type': organization.type}
        )
        return Response(OrganizationSerializer(organization).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def my_organization(request):
    if not request.user.organization_id:
        return Response({'error': 'You are not associated with an organization'}, status=status.HTTP_404_NOT_FOUND)
    return Response(OrganizationSerializer(request.user.organization).data)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def organization_detail(request, pk):
    """Retrieve, update or delete an organization"""
    organization = get_object_or_404(Organization, pk=pk)

    if request.method == 'GET':
        return Response(OrganizationSerializer(organization).data)

    if request.method == 'DELETE':
        if not is_admin_user(request.user):
            return forbidden('Only administrators can delete organizations')
        name = organization.name
        organization_id = organization.id
        try:
            organization.delete()
        except ProtectedError:
            return Response(
                {'error': 'Organization has contracts and cannot be deleted'}, status=status.HTTP_409_CONFLICT
            )
        create_audit_log(
            request=request,
            action='delete',
            model_name='Organization',
            object_id=str(organization_id),
            object_name=name,
            changes={'name': name}
        )
        return Response(status=status.HTTP_204_NO_CONTENT)

    if not (is_admin_user(request.user) or is_member(request.user, organization)):
        return forbidden('You can only update your own organization')
    serializer = OrganizationSerializer(organization, data=request.data, partial=request.method == 'PATCH')
    if serializer.is_valid():
        serializer.save()
        create_audit_log(
            request=request,
            action='update',
            model_name='Organization',
            object_id=str(organization.id),
            object_name=organization.name,
            changes=dict(request.data)
        )
        return Response(serializer.data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


def _set_status(request, pk, new_status, action):
    if not is_admin_user(request.user):
        return forbidden('Only administrators can change organization status')
    organization = get_object_or_404(Organization, pk=pk)
    old_status = organization.status
    organization.status = new_status
    organization.save(update_fields=['status', 'updated_at'])
    create_audit_log(
        request=request,
        action=action,
        model_name='Organization',
        object_id=str(organization.id),
        object_name=organization.name,
        changes={'status': {'old': old_status, 'new': new_status}}
    )
    logger.info(f"Organization {organization.name} status {old_status} -> {new_status}")
    return Response(OrganizationSerializer(organization).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def organization_activate(request, pk):
    return _set_status(request, pk, Organization.STATUS_ACTIVE, 'activate')


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def organization_deactivate(request, pk):
    return _set_status(request, pk, Organization.STATUS_INACTIVE, 'status_change')


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def organization_users(request, pk):
    organization = get_object_or_404(Organization, pk=pk)
    if not (is_admin_user(request.user) or is_member(request.user, organization)):
        return forbidden()
    return paginate(request, organization.users.order_by('username'), UserSerializer)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def organization_tenders(request, pk):
    from tenderhub.tenders.models import Tender
    from tenderhub.tenders.serializers import TenderListSerializer

    organization = get_object_or_404(Organization, pk=pk)
    queryset = Tender.objects.filter(organization=organization)
    if not (is_admin_user(request.user) or is_member(request.user, organization)):
        queryset = queryset.exclude(status=Tender.STATUS_DRAFT)
    return paginate(request, queryset.order_by('-created_at'), TenderListSerializer)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def organization_statistics(request, pk):
    from tenderhub.tenders.models import Tender

    organization = get_object_or_404(Organization, pk=pk)
    tenders = Tender.objects.filter(organization=organization)
    total_value = tenders.aggregate(total=Sum('estimated_value'))['total'] or 0

    return Response({
        'organization': {
            'id': organization.id,
            'name': organization.name,
            'type': organization.type,
        },
        'statistics': {
            'total_users': organization.users.count(),
            'total_tenders': tenders.count(),
            'active_tenders': tenders.filter(status=Tender.STATUS_PUBLISHED).count(),
            'total_tender_value': total_value,
        },
    })


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def organization_settings(request, pk):
    organization = get_object_or_404(Organization, pk=pk)
    if not (is_admin_user(request.user) or is_member(request.user, organization)):
        return forbidden()

    if request.method == 'GET':
        return Response(organization.get_settings())

    if not isinstance(request.data, dict):
        return Response({'error': 'Settings must be an object'}, status=status.HTTP_400_BAD_REQUEST)
    settings = organization.update_settings(dict(request.data), request.user)
    create_audit_log(
        request=request,
        action='update',
        model_name='Organization',
        object_id=str(organization.id),
        object_name=organization.name,
        changes={'settings': list(request.data.keys())}
    )
    return Response(settings)
