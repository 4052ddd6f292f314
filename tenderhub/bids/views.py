import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db import transaction
from django.db.models import F, Q
from django.shortcuts import get_object_or_404

from tenderhub.core.exceptions import WorkflowError
from tenderhub.core.models import User
from tenderhub.core.utils import (
    create_audit_log, is_admin_user, has_role, forbidden, paginate, workflow_error_response
)
from tenderhub.tenders.models import Tender
from tenderhub.notifications.events import bid_event
from .filters import BidFilter
from .models import Bid
from .serializers import BidSerializer, BidReasonSerializer, BidDisqualifySerializer, BidEvaluateSerializer

logger = logging.getLogger(__name__)

BIDDER_ROLES = (User.ROLE_VENDOR, User.ROLE_USER)


def manages_tender(user, tender):
    return tender.is_owner(user) or is_admin_user(user)


def _audit(request, bid, action, changes):
    create_audit_log(
        request=request,
        action=action,
        model_name='Bid',
        object_id=str(bid.id),
        object_name=f"Bid {bid.reference_number} on {bid.tender.reference_number}",
        object_reference=bid.reference_number,
        changes=changes
    )


def _filtered(request, queryset):
    bid_filter = BidFilter(request.query_params, queryset=queryset)
    if not bid_filter.is_valid():
        return None, Response(bid_filter.errors, status=status.HTTP_400_BAD_REQUEST)
    return bid_filter.qs, None


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def bid_list_create(request):
    """List visible bids or create a draft bid on a published tender"""
    if request.method == 'GET':
        queryset = Bid.objects.select_related('tender', 'vendor')
        if not is_admin_user(request.user):
            queryset = queryset.filter(Q(vendor=request.user) | Q(tender__created_by=request.user))
        queryset, error = _filtered(request, queryset)
        if error:
            return error
        return paginate(request, queryset.order_by('-created_at'), BidSerializer)

    if not has_role(request.user, *BIDDER_ROLES):
        return forbidden('Only vendors can submit bids')

    serializer = BidSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    tender = serializer.validated_data['tender']
    if tender.is_owner(request.user):
        return forbidden('You cannot bid on your own tender')
    if not tender.is_bidding_open():
        message = 'Tender is not open for bidding' if tender.status != Tender.STATUS_PUBLISHED else 'Bid submission period has ended'
        return Response({'error': message}, status=status.HTTP_400_BAD_REQUEST)
    if Bid.objects.filter(tender=tender, vendor=request.user).exists():
        return Response({'error': 'You have already placed a bid for this tender'}, status=status.HTTP_409_CONFLICT)

    with transaction.atomic():
        bid = serializer.save(
            vendor=request.user,
            organization=tender.organization,
            status=Bid.STATUS_DRAFT,
            emd_amount=tender.emd_amount
        )
        Tender.objects.filter(pk=tender.pk).update(bid_count=F('bid_count') + 1)

    _audit(request, bid, 'create', {
        'tender': tender.reference_number,
        'quoted_amount': str(bid.quoted_amount) if bid.quoted_amount is not None else None,
    })
    logger.info(f"Bid {bid.reference_number} created on tender {tender.reference_number} by {request.user.username}")
    return Response(BidSerializer(bid).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def my_bids(request):
    queryset = Bid.objects.select_related('tender', 'vendor').filter(vendor=request.user)
    queryset, error = _filtered(request, queryset)
    if error:
        return error
    return paginate(request, queryset.order_by('-created_at'), BidSerializer)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def tender_bids(request, tender_id):
    """All bids on a tender, cheapest first (tender owner or admin)"""
    tender = get_object_or_404(Tender, pk=tender_id)
    if not manages_tender(request.user, tender):
        return forbidden('Only the tender owner can view its bids')
    queryset = Bid.objects.select_related('tender', 'vendor').filter(tender=tender)
    status_filter = request.query_params.get('status')
    if status_filter:
        queryset = queryset.filter(status=status_filter)
    return paginate(request, queryset.order_by(F('quoted_amount').asc(nulls_last=True), 'submitted_at'), BidSerializer)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def bid_detail(request, pk):
    """Retrieve, update or delete a bid"""
    bid = get_object_or_404(Bid.objects.select_related('tender', 'vendor'), pk=pk)

    if request.method == 'GET':
        if not (bid.is_owner(request.user) or manages_tender(request.user, bid.tender)):
            return forbidden('You do not have access to this bid')
        return Response(BidSerializer(bid).data)

    if not bid.is_owner(request.user):
        return forbidden('You can only modify your own bids')

    if request.method == 'DELETE':
        if bid.status != Bid.STATUS_DRAFT:
            return Response({'error': 'Only draft bids can be deleted'}, status=status.HTTP_400_BAD_REQUEST)
        with transaction.atomic():
            _audit(request, bid, 'delete', {'tender': bid.tender.reference_number})
            tender_id = bid.tender_id
            bid.delete()
            Tender.objects.filter(pk=tender_id, bid_count__gt=0).update(bid_count=F('bid_count') - 1)
        return Response(status=status.HTTP_204_NO_CONTENT)

    if bid.status != Bid.STATUS_DRAFT:
        return Response({'error': 'Only draft bids can be updated'}, status=status.HTTP_400_BAD_REQUEST)
    try:
        bid.ensure_bidding_open()
    except WorkflowError as e:
        return workflow_error_response(e)

    serializer = BidSerializer(bid, data=request.data, partial=request.method == 'PATCH')
    if serializer.is_valid():
        serializer.save()
        _audit(request, bid, 'update', {'fields': sorted(request.data.keys())})
        return Response(serializer.data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


def _bid_action(request, pk, action, operation, allowed, changes=None):
    bid = get_object_or_404(Bid.objects.select_related('tender', 'vendor'), pk=pk)
    if not allowed(request.user, bid):
        return forbidden(f'You are not allowed to {action} this bid')
    old_status = bid.status
    try:
        operation(bid)
    except WorkflowError as e:
        return workflow_error_response(e)
    audit_changes = {'status': {'old': old_status, 'new': bid.status}}
    audit_changes.update(changes or {})
    _audit(request, bid, action, audit_changes)
    logger.info(f"Bid {bid.reference_number}: {action} ({old_status} -> {bid.status})")
    bid_event(bid, action, actor=request.user)
    return Response(BidSerializer(bid).data)


def _is_bidder(user, bid):
    return bid.is_owner(user)


def _is_evaluator(user, bid):
    return manages_tender(user, bid.tender)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def bid_submit(request, pk):
    return _bid_action(request, pk, 'submit', lambda bid: bid.submit(), _is_bidder)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def bid_withdraw(request, pk):
    serializer = BidReasonSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    reason = serializer.validated_data['reason']
    return _bid_action(request, pk, 'withdraw', lambda bid: bid.withdraw(reason), _is_bidder, {'reason': reason})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def bid_disqualify(request, pk):
    serializer = BidDisqualifySerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    reason = serializer.validated_data['reason']
    return _bid_action(request, pk, 'disqualify', lambda bid: bid.disqualify(reason), _is_evaluator, {'reason': reason})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def bid_shortlist(request, pk):
    return _bid_action(request, pk, 'shortlist', lambda bid: bid.shortlist(), _is_evaluator)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def bid_evaluate(request, pk):
    serializer = BidEvaluateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    return _bid_action(
        request, pk, 'evaluate',
        lambda bid: bid.evaluate(
            request.user,
            technical_score=data.get('technical_score'),
            financial_score=data.get('financial_score'),
            overall_score=data.get('overall_score'),
            remarks=data['remarks'],
        ),
        _is_evaluator,
        {'overall_score': str(data['overall_score']) if data.get('overall_score') is not None else None}
    )


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def bid_compare(request, tender_id):
    """Side-by-side comparison of the competing bids on a tender"""
    tender = get_object_or_404(Tender, pk=tender_id)
    if not manages_tender(request.user, tender):
        return forbidden('Only the tender owner can compare bids')
    comparison = Bid.compare(tender)
    if comparison is None:
        return Response({'error': 'No submitted bids found for this tender'}, status=status.HTTP_404_NOT_FOUND)
    return Response(comparison)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def bid_analytics(request, pk):
    """Where the current vendor's bid stands among the competing bids"""
    bid = get_object_or_404(Bid.objects.select_related('tender'), pk=pk)
    if not bid.is_owner(request.user):
        return forbidden('You can only view analytics for your own bids')
    return Response(bid.analytics())
