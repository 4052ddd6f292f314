import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404

from tenderhub.core.exceptions import WorkflowError
from tenderhub.core.models import User
from tenderhub.core.utils import (
    create_audit_log, is_admin_user, has_role, forbidden, paginate, workflow_error_response
)
from tenderhub.bids.models import Bid
from tenderhub.tenders.models import Tender
from tenderhub.notifications.events import emd_event
from .filters import EmdFilter
from .models import Emd
from .serializers import EmdSerializer, EmdMarkPaidSerializer, EmdRefundSerializer, EmdForfeitSerializer

logger = logging.getLogger(__name__)


def manages_tender(user, tender):
    return tender.is_owner(user) or is_admin_user(user)


def _audit(request, emd, action, changes):
    create_audit_log(
        request=request,
        action=action,
        model_name='EMD',
        object_id=str(emd.id),
        object_name=f"EMD for {emd.tender.reference_number}",
        object_reference=emd.reference_number,
        changes=changes
    )


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def emd_list_create(request):
    if request.method == 'GET':
        if not is_admin_user(request.user):
            return forbidden('Only administrators can list all EMDs')
        emd_filter = EmdFilter(request.query_params, queryset=Emd.objects.select_related('tender', 'vendor'))
        if not emd_filter.is_valid():
            return Response(emd_filter.errors, status=status.HTTP_400_BAD_REQUEST)
        return paginate(request, emd_filter.qs.order_by('-created_at'), EmdSerializer)

    if not has_role(request.user, User.ROLE_VENDOR, User.ROLE_USER):
        return forbidden('Only vendors can deposit EMD')

    serializer = EmdSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    tender = serializer.validated_data['tender']
    if not tender.is_emd_required:
        return Response({'error': 'EMD is not required for this tender'}, status=status.HTTP_400_BAD_REQUEST)
    amount = tender.emd_amount or serializer.validated_data.get('amount')
    if not amount:
        return Response({'error': 'EMD amount could not be determined'}, status=status.HTTP_400_BAD_REQUEST)
    if Emd.objects.filter(tender=tender, vendor=request.user).exists():
        return Response({'error': 'EMD already exists for this tender'}, status=status.HTTP_409_CONFLICT)

    bid = Bid.objects.filter(tender=tender, vendor=request.user).first()
    emd = serializer.save(vendor=request.user, amount=amount, bid=bid, currency=tender.currency)
    _audit(request, emd, 'create', {'tender': tender.reference_number, 'amount': str(emd.amount)})
    logger.info(f"EMD {emd.reference_number} created for tender {tender.reference_number} by {request.user.username}")
    return Response(EmdSerializer(emd).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def my_emds(request):
    queryset = Emd.objects.select_related('tender', 'vendor').filter(vendor=request.user)
    status_filter = request.query_params.get('status')
    if status_filter:
        queryset = queryset.filter(status=status_filter)
    return paginate(request, queryset.order_by('-created_at'), EmdSerializer)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def tender_emds(request, tender_id):
    tender = get_object_or_404(Tender, pk=tender_id)
    if not manages_tender(request.user, tender):
        return forbidden('Only the tender owner can view its EMDs')
    queryset = Emd.objects.select_related('tender', 'vendor').filter(tender=tender)
    return paginate(request, queryset.order_by('-created_at'), EmdSerializer)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def tender_emd_summary(request, tender_id):
    tender = get_object_or_404(Tender, pk=tender_id)
    if not manages_tender(request.user, tender):
        return forbidden('Only the tender owner can view the EMD summary')
    return Response(Emd.summary(tender))


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def emd_detail(request, pk):
    emd = get_object_or_404(Emd.objects.select_related('tender', 'vendor'), pk=pk)

    if request.method == 'GET':
        if not (emd.is_owner(request.user) or manages_tender(request.user, emd.tender)):
            return forbidden('You do not have access to this EMD')
        return Response(EmdSerializer(emd).data)

    if not (emd.is_owner(request.user) or (request.method == 'DELETE' and is_admin_user(request.user))):
        return forbidden('You can only modify your own EMDs')
    if emd.status != Emd.STATUS_PENDING:
        verb = 'deleted' if request.method == 'DELETE' else 'updated'
        return Response({'error': f'Only pending EMDs can be {verb}'}, status=status.HTTP_400_BAD_REQUEST)

    if request.method == 'DELETE':
        _audit(request, emd, 'delete', {'tender': emd.tender.reference_number})
        emd.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)

    serializer = EmdSerializer(emd, data=request.data, partial=request.method == 'PATCH')
    if serializer.is_valid():
        serializer.save()
        _audit(request, emd, 'update', {'fields': sorted(request.data.keys())})
        return Response(serializer.data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


def _emd_action(request, pk, action, operation, vendor_side=False, changes=None):
    emd = get_object_or_404(Emd.objects.select_related('tender', 'vendor'), pk=pk)
    allowed = emd.is_owner(request.user) if vendor_side else manages_tender(request.user, emd.tender)
    if not allowed:
        return forbidden(f'You are not allowed to {action} this EMD')
    old_status = emd.status
    try:
        operation(emd)
    except WorkflowError as e:
        return workflow_error_response(e)
    audit_changes = {'status': {'old': old_status, 'new': emd.status}}
    audit_changes.update(changes or {})
    _audit(request, emd, action, audit_changes)
    logger.info(f"EMD {emd.reference_number}: {action} ({old_status} -> {emd.status})")
    emd_event(emd, action, actor=request.user)
    return Response(EmdSerializer(emd).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def emd_mark_paid(request, pk):
    serializer = EmdMarkPaidSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    return _emd_action(
        request, pk, 'mark_paid',
        lambda emd: emd.mark_paid(data['transaction_id'], data.get('paid_at')),
        vendor_side=True,
        changes={'transaction_id': data['transaction_id']}
    )


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def emd_verify(request, pk):
    return _emd_action(request, pk, 'verify', lambda emd: emd.verify(request.user))


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def emd_refund(request, pk):
    serializer = EmdRefundSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    return _emd_action(
        request, pk, 'refund',
        lambda emd: emd.refund(data['reason'], data['refund_transaction_id']),
        changes={'reason': data['reason']}
    )


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def emd_forfeit(request, pk):
    serializer = EmdForfeitSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    reason = serializer.validated_data['reason']
    return _emd_action(request, pk, 'forfeit', lambda emd: emd.forfeit(reason), changes={'reason': reason})
