import logging

from django.db.models import Q
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from tenderhub.core.exceptions import WorkflowError
from tenderhub.core.models import User
from tenderhub.core.utils import (
    create_audit_log, is_admin_user, has_role, forbidden, paginate, workflow_error_response
)
from tenderhub.notifications.events import security_event
from tenderhub.tenders.models import Tender
from .filters import SecurityInstrumentFilter
from .models import SecurityInstrument, expiry_alert_days
from .serializers import (
    SecurityInstrumentSerializer, SecurityVerifySerializer, SecurityClaimSerializer,
    SecurityRemarksSerializer, SecurityExpiringSerializer
)

logger = logging.getLogger(__name__)


def visible_instruments(user):
    """Instruments the user furnished, holds as beneficiary, or may audit"""
    queryset = SecurityInstrument.objects.select_related('organization', 'tender', 'contract', 'created_by')
    if has_role(user, User.ROLE_AUDITOR):
        return queryset
    scope = Q(created_by=user) | Q(tender__created_by=user) | Q(contract__created_by=user)
    if user.organization_id:
        scope |= Q(organization_id=user.organization_id) | Q(contract__buyer_organization_id=user.organization_id)
    return queryset.filter(scope)


def _audit(request, instrument, action, changes):
    create_audit_log(
        request=request,
        action=action,
        model_name='SecurityInstrument',
        object_id=str(instrument.id),
        object_name=f"{instrument.get_kind_display()} {instrument.instrument_number}".strip(),
        object_reference=instrument.reference_number,
        changes=changes
    )


def _get_instrument(pk):
    return get_object_or_404(
        SecurityInstrument.objects.select_related('organization', 'tender', 'contract', 'created_by'), pk=pk
    )


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def instrument_list_create(request):
    """List visible security instruments or furnish a new one"""
    if request.method == 'GET':
        instrument_filter = SecurityInstrumentFilter(request.query_params, queryset=visible_instruments(request.user))
        if not instrument_filter.is_valid():
            return Response(instrument_filter.errors, status=status.HTTP_400_BAD_REQUEST)
        return paginate(request, instrument_filter.qs.order_by('-created_at'), SecurityInstrumentSerializer)

    if request.user.role == User.ROLE_AUDITOR:
        return forbidden('Auditors cannot furnish security instruments')

    serializer = SecurityInstrumentSerializer(data=request.data, context={'request': request})
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    extra = {'created_by': request.user}
    if not serializer.validated_data.get('organization'):
        if request.user.organization is None:
            return Response({'organization': ['An organization is required.']}, status=status.HTTP_400_BAD_REQUEST)
        extra['organization'] = request.user.organization
    tender = serializer.validated_data.get('tender')
    contract = serializer.validated_data.get('contract')
    if 'currency' not in serializer.validated_data and (tender or contract):
        extra['currency'] = (contract or tender).currency

    instrument = serializer.save(**extra)
    _audit(request, instrument, 'create', {
        'kind': instrument.kind,
        'amount': str(instrument.amount),
        'tender': tender.reference_number if tender else None,
        'contract': contract.contract_number if contract else None,
    })
    logger.info(f"Security instrument {instrument.reference_number} created by {request.user.username}")
    return Response(SecurityInstrumentSerializer(instrument).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def instrument_detail(request, pk):
    instrument = _get_instrument(pk)

    if request.method == 'GET':
        if not instrument.can_view(request.user):
            return forbidden('You do not have access to this security instrument')
        return Response(SecurityInstrumentSerializer(instrument).data)

    if not instrument.is_provider(request.user):
        return forbidden('Only the provider can modify this security instrument')
    if instrument.status != SecurityInstrument.STATUS_DRAFT:
        verb = 'deleted' if request.method == 'DELETE' else 'updated'
        return Response(
            {'error': f'Only draft security instruments can be {verb}'}, status=status.HTTP_400_BAD_REQUEST
        )

    if request.method == 'DELETE':
        _audit(request, instrument, 'delete', {'kind': instrument.kind})
        instrument.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)

    serializer = SecurityInstrumentSerializer(
        instrument, data=request.data, partial=request.method == 'PATCH', context={'request': request}
    )
    if serializer.is_valid():
        serializer.save()
        _audit(request, instrument, 'update', {'fields': sorted(request.data.keys())})
        return Response(serializer.data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


def _instrument_action(request, pk, action, operation, provider_side=False, changes=None, claimed=None):
    instrument = _get_instrument(pk)
    if provider_side:
        allowed = instrument.is_provider(request.user)
    else:
        allowed = instrument.is_beneficiary(request.user)
    if not allowed:
        return forbidden(f'You are not allowed to {action} this security instrument')
    old_status = instrument.status
    try:
        operation(instrument)
    except WorkflowError as e:
        return workflow_error_response(e)
    audit_changes = {'status': {'old': old_status, 'new': instrument.status}}
    audit_changes.update(changes or {})
    _audit(request, instrument, action, audit_changes)
    logger.info(f"Security instrument {instrument.reference_number}: {action} ({old_status} -> {instrument.status})")
    if action != 'verify' or instrument.status == SecurityInstrument.STATUS_VERIFIED:
        security_event(instrument, action, actor=request.user, claimed=claimed)
    return Response(SecurityInstrumentSerializer(instrument).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def instrument_submit(request, pk):
    return _instrument_action(request, pk, 'submit', lambda i: i.submit(), provider_side=True)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def instrument_cancel(request, pk):
    return _instrument_action(request, pk, 'cancel', lambda i: i.cancel(), provider_side=True)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def instrument_verify(request, pk):
    """Approve a submitted instrument, or return it to the provider with remarks"""
    serializer = SecurityVerifySerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    approved = serializer.validated_data['approved']
    remarks = serializer.validated_data['remarks']
    return _instrument_action(
        request, pk, 'verify', lambda i: i.verify(approved, request.user, remarks),
        changes={'approved': approved, 'remarks': remarks}
    )


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def instrument_activate(request, pk):
    return _instrument_action(request, pk, 'activate', lambda i: i.activate())


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def instrument_claim(request, pk):
    serializer = SecurityClaimSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    amount = serializer.validated_data['amount']
    reason = serializer.validated_data['reason']
    return _instrument_action(
        request, pk, 'claim', lambda i: i.claim(amount, reason),
        changes={'amount': str(amount), 'reason': reason}, claimed=amount
    )


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def instrument_release(request, pk):
    serializer = SecurityRemarksSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    remarks = serializer.validated_data['remarks']
    return _instrument_action(request, pk, 'release', lambda i: i.release(remarks), changes={'remarks': remarks})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def instrument_expiring(request):
    """Held instruments expiring within ``days`` (default SECURITY_EXPIRY_ALERT_DAYS)"""
    serializer = SecurityExpiringSerializer(data=request.query_params)
    serializer.is_valid(raise_exception=True)
    days = serializer.validated_data.get('days') or expiry_alert_days()
    expiring = SecurityInstrument.expiring_within(days).values('pk')
    queryset = visible_instruments(request.user).filter(pk__in=expiring).order_by('expiry_date')
    return paginate(request, queryset, SecurityInstrumentSerializer)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def instrument_statistics(request):
    return Response(SecurityInstrument.statistics(visible_instruments(request.user)))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def tender_instruments(request, tender_id):
    tender = get_object_or_404(Tender, pk=tender_id)
    if not (tender.is_owner(request.user) or is_admin_user(request.user)):
        return forbidden('Only the tender owner can view its security instruments')
    queryset = SecurityInstrument.objects.select_related('organization', 'tender', 'contract').filter(tender=tender)
    return paginate(request, queryset.order_by('-created_at'), SecurityInstrumentSerializer)
