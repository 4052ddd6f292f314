import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db.models import F, Q
from django.shortcuts import get_object_or_404

from tenderhub.core.exceptions import WorkflowError
from tenderhub.core.models import User
from tenderhub.core.utils import (
    create_audit_log, is_admin_user, has_role, forbidden, paginate, workflow_error_response
)
from tenderhub.notifications.events import tender_event
from .filters import TenderFilter
from .models import Tender
from .serializers import (
    TenderSerializer, TenderListSerializer,
    TenderCancelSerializer, TenderExtendSerializer, TenderAwardSerializer
)

logger = logging.getLogger(__name__)

BUYER_ROLES = (User.ROLE_BUYER, User.ROLE_MANAGER)
BIDDER_ROLES = (User.ROLE_VENDOR, User.ROLE_USER)


def can_manage(user, tender):
    return tender.is_owner(user) or is_admin_user(user)


def _audit(request, tender, action, changes):
    create_audit_log(
        request=request,
        action=action,
        model_name='Tender',
        object_id=str(tender.id),
        object_name=tender.title,
        object_reference=tender.reference_number,
        changes=changes
    )


def _filtered(request, queryset):
    tender_filter = TenderFilter(request.query_params, queryset=queryset)
    if not tender_filter.is_valid():
        return None, Response(tender_filter.errors, status=status.HTTP_400_BAD_REQUEST)
    return tender_filter.qs, None


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def tender_list_create(request):
    """Public tender feed (drafts excluded) or create a draft tender"""
    if request.method == 'GET':
        queryset = Tender.objects.select_related('organization').exclude(status=Tender.STATUS_DRAFT)
        if not is_admin_user(request.user):
            queryset = queryset.filter(Q(is_public=True) | Q(created_by=request.user))
        queryset, error = _filtered(request, queryset)
        if error:
            return error
        return paginate(request, queryset.order_by('-created_at'), TenderListSerializer)

    if not has_role(request.user, *BUYER_ROLES):
        return forbidden('Only buyers can create tenders')
    serializer = TenderSerializer(data=request.data, context={'request': request})
    if serializer.is_valid():
        tender = serializer.save(
            created_by=request.user,
            organization=request.user.organization,
            status=Tender.STATUS_DRAFT
        )
        _audit(request, tender, 'create', {
            'reference_number': tender.reference_number,
            'title': tender.title,
            'estimated_value': str(tender.estimated_value) if tender.estimated_value is not None else None,
        })
        logger.info(f"Tender {tender.reference_number} created by {request.user.username}")
        return Response(TenderSerializer(tender, context={'request': request}).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def my_tenders(request):
    """Tenders created by the current user, all statuses"""
    queryset = Tender.objects.select_related('organization').filter(created_by=request.user)
    queryset, error = _filtered(request, queryset)
    if error:
        return error
    return paginate(request, queryset.order_by('-created_at'), TenderListSerializer)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def favorite_tenders(request):
    queryset = request.user.favorite_tenders.select_related('organization').order_by('-created_at')
    return paginate(request, queryset, TenderListSerializer)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def tender_detail(request, pk):
    """Retrieve, update or delete a tender"""
    tender = get_object_or_404(Tender.objects.select_related('organization', 'created_by'), pk=pk)

    if request.method == 'GET':
        if not tender.can_view(request.user):
            return Response({'error': 'Tender not found'}, status=status.HTTP_404_NOT_FOUND)
        if not tender.is_owner(request.user):
            Tender.objects.filter(pk=tender.pk).update(view_count=F('view_count') + 1)
            tender.refresh_from_db(fields=['view_count'])
        return Response(TenderSerializer(tender, context={'request': request}).data)

    if not can_manage(request.user, tender):
        return forbidden('You can only modify your own tenders')

    if request.method == 'DELETE':
        if tender.status != Tender.STATUS_DRAFT:
            return Response({'error': 'Only draft tenders can be deleted'}, status=status.HTTP_400_BAD_REQUEST)
        _audit(request, tender, 'delete', {'reference_number': tender.reference_number})
        tender.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)

    if tender.status != Tender.STATUS_DRAFT:
        return Response({'error': 'Only draft tenders can be updated'}, status=status.HTTP_400_BAD_REQUEST)
    serializer = TenderSerializer(tender, data=request.data, partial=request.method == 'PATCH', context={'request': request})
    if serializer.is_valid():
        serializer.save()
        _audit(request, tender, 'update', {'fields': sorted(request.data.keys())})
        return Response(serializer.data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


def _transition(request, pk, action, operation, changes=None):
    tender = get_object_or_404(Tender, pk=pk)
    if not can_manage(request.user, tender):
        return forbidden(f'Only the tender owner can {action} this tender')
    old_status = tender.status
    try:
        operation(tender)
    except WorkflowError as e:
        return workflow_error_response(e)
    audit_changes = {'status': {'old': old_status, 'new': tender.status}}
    audit_changes.update(changes or {})
    _audit(request, tender, action, audit_changes)
    logger.info(f"Tender {tender.reference_number}: {action} ({old_status} -> {tender.status})")
    tender_event(tender, action, actor=request.user)
    return Response(TenderSerializer(tender, context={'request': request}).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def tender_publish(request, pk):
    return _transition(request, pk, 'publish', lambda tender: tender.publish())


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def tender_close(request, pk):
    """Close bidding and move the tender to evaluation"""
    return _transition(request, pk, 'close', lambda tender: tender.close())


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def tender_cancel(request, pk):
    serializer = TenderCancelSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    reason = serializer.validated_data['reason']
    return _transition(request, pk, 'cancel', lambda tender: tender.cancel(reason), {'reason': reason})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def tender_extend(request, pk):
    """Extend the bid end date of a published tender"""
    serializer = TenderExtendSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    new_deadline = serializer.validated_data['new_deadline']
    reason = serializer.validated_data['reason']
    return _transition(
        request, pk, 'extend',
        lambda tender: tender.extend_deadline(new_deadline, reason, request.user),
        {'new_deadline': new_deadline.isoformat(), 'reason': reason}
    )


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def tender_award(request, pk):
    """Award the tender to one of its bids"""
    from tenderhub.bids.models import Bid

    serializer = TenderAwardSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    bid = get_object_or_404(Bid, pk=serializer.validated_data['bid_id'])
    return _transition(
        request, pk, 'award', lambda tender: tender.award(bid),
        {'bid': bid.reference_number, 'amount': str(bid.quoted_amount)}
    )


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def tender_complete(request, pk):
    return _transition(request, pk, 'complete', lambda tender: tender.complete())


@api_view(['POST', 'DELETE'])
@permission_classes([IsAuthenticated])
def tender_favorite(request, pk):
    """Add (POST) or remove (DELETE) a tender from the current user's favorites"""
    if not has_role(request.user, *BIDDER_ROLES):
        return forbidden('Only vendors can favorite tenders')
    tender = get_object_or_404(Tender, pk=pk)
    if not tender.can_view(request.user):
        return Response({'error': 'Tender not found'}, status=status.HTTP_404_NOT_FOUND)

    if request.method == 'POST':
        tender.favorited_by.add(request.user)
        return Response({'message': 'Tender added to favorites', 'is_favorite': True})
    tender.favorited_by.remove(request.user)
    return Response({'message': 'Tender removed from favorites', 'is_favorite': False})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def tender_analytics(request, pk):
    tender = get_object_or_404(Tender, pk=pk)
    if not can_manage(request.user, tender):
        return forbidden('Only the tender owner can view analytics')
    return Response(tender.analytics())
