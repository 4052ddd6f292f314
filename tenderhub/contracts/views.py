import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db.models import Q
from django.shortcuts import get_object_or_404

from tenderhub.core.cache_utils import get_or_set, CONTRACT_STATS_KEY, CONTRACT_STATS_CACHE_TTL
from tenderhub.core.exceptions import WorkflowError
from tenderhub.core.models import AuditLog, User
from tenderhub.core.serializers import AuditLogSerializer
from tenderhub.core.utils import (
    create_audit_log, get_client_ip, is_admin_user, has_role, forbidden, paginate, workflow_error_response
)
from tenderhub.notifications.events import contract_event
from .filters import ContractFilter
from .models import Contract, CONTRACT_TEMPLATES
from .serializers import (
    ContractSerializer, ContractListSerializer, ContractRemarksSerializer, ContractReasonSerializer,
    ContractSignSerializer, MilestoneUpdateSerializer, ContractAmendSerializer, ContractRenewSerializer,
    ContractPerformanceSerializer, ContractDocumentSerializer
)

logger = logging.getLogger(__name__)

BUYER_ROLES = (User.ROLE_BUYER, User.ROLE_MANAGER)


def visible_contracts(user):
    queryset = Contract.objects.select_related('vendor_organization', 'buyer_organization', 'tender')
    if is_admin_user(user) or has_role(user, User.ROLE_AUDITOR):
        return queryset
    party = Q(created_by=user)
    if user.organization_id:
        party |= Q(vendor_organization_id=user.organization_id) | Q(buyer_organization_id=user.organization_id)
    return queryset.filter(party)


def can_view(user, contract):
    return has_role(user, User.ROLE_AUDITOR) or can_participate(user, contract)


def can_participate(user, contract):
    """Parties and admins; auditors read contracts but never act on them"""
    return is_admin_user(user) or contract.is_party(user)


def can_manage(user, contract):
    return is_admin_user(user) or contract.is_buyer_side(user)


def _audit(request, contract, action, changes):
    create_audit_log(
        request=request,
        action=action,
        model_name='Contract',
        object_id=str(contract.id),
        object_name=contract.title,
        object_reference=contract.contract_number,
        changes=changes
    )


def _contract_response(contract, status_code=status.HTTP_200_OK):
    return Response(ContractSerializer(contract).data, status=status_code)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def contract_list_create(request):
    """List contracts visible to the user or draft a new contract"""
    if request.method == 'GET':
        contract_filter = ContractFilter(request.query_params, queryset=visible_contracts(request.user))
        if not contract_filter.is_valid():
            return Response(contract_filter.errors, status=status.HTTP_400_BAD_REQUEST)
        return paginate(request, contract_filter.qs.order_by('-created_at'), ContractListSerializer)

    if not has_role(request.user, *BUYER_ROLES):
        return forbidden('Only buyers can create contracts')

    serializer = ContractSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    extra = {'created_by': request.user}
    if not serializer.validated_data.get('buyer_organization'):
        extra['buyer_organization'] = request.user.organization

    bid = serializer.validated_data.get('bid')
    if bid is not None:
        vendor_organization = bid.vendor.organization
        if vendor_organization is None:
            return Response({'error': 'The bidding vendor has no organization'}, status=status.HTTP_400_BAD_REQUEST)
        if bid.quoted_amount is None:
            return Response({'error': 'The bid has no quoted amount'}, status=status.HTTP_400_BAD_REQUEST)
        extra.update(vendor_organization=vendor_organization, contract_value=bid.quoted_amount, tender=bid.tender)

    contract = serializer.save(**extra)
    _audit(request, contract, 'create', {
        'contract_value': str(contract.contract_value),
        'vendor_organization': contract.vendor_organization.name,
    })
    logger.info(f"Contract {contract.contract_number} created by {request.user.username}")
    return _contract_response(contract, status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def contract_detail(request, pk):
    contract = get_object_or_404(Contract, pk=pk)

    if request.method == 'GET':
        if not can_view(request.user, contract):
            return forbidden('You do not have access to this contract')
        return _contract_response(contract)

    if not can_manage(request.user, contract):
        return forbidden('Only the buying organization can modify this contract')
    if contract.status != Contract.STATUS_DRAFT:
        verb = 'deleted' if request.method == 'DELETE' else 'updated'
        return Response({'error': f'Only draft contracts can be {verb}'}, status=status.HTTP_400_BAD_REQUEST)

    if request.method == 'DELETE':
        _audit(request, contract, 'delete', {'title': contract.title})
        contract.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)

    serializer = ContractSerializer(contract, data=request.data, partial=request.method == 'PATCH')
    if serializer.is_valid():
        serializer.save()
        _audit(request, contract, 'update', {'fields': sorted(request.data.keys())})
        return Response(serializer.data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


def _contract_action(request, pk, action, operation, changes=None, party_action=False):
    contract = get_object_or_404(Contract, pk=pk)
    allowed = can_participate(request.user, contract) if party_action else can_manage(request.user, contract)
    if not allowed:
        return forbidden(f'You are not allowed to {action} this contract')
    old_status = contract.status
    try:
        operation(contract)
    except WorkflowError as e:
        return workflow_error_response(e)
    audit_changes = {'status': {'old': old_status, 'new': contract.status}} if old_status != contract.status else {}
    audit_changes.update(changes or {})
    _audit(request, contract, action, audit_changes)
    logger.info(f"Contract {contract.contract_number}: {action} ({old_status} -> {contract.status})")
    contract_event(contract, action, actor=request.user)
    return _contract_response(contract)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def contract_submit(request, pk):
    return _contract_action(request, pk, 'submit', lambda c: c.submit_for_approval())


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def contract_approve(request, pk):
    serializer = ContractRemarksSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    remarks = serializer.validated_data['remarks']
    return _contract_action(request, pk, 'approve', lambda c: c.approve(request.user, remarks), {'remarks': remarks})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def contract_reject(request, pk):
    serializer = ContractReasonSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    reason = serializer.validated_data['reason']
    return _contract_action(request, pk, 'reject', lambda c: c.reject(reason), {'reason': reason})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def contract_cancel(request, pk):
    return _contract_action(request, pk, 'cancel', lambda c: c.cancel())


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def contract_sign(request, pk):
    """Either party signs an approved contract; each user signs once"""
    serializer = ContractSignSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    ip_address = get_client_ip(request)
    return _contract_action(
        request, pk, 'sign',
        lambda c: c.sign(request.user, data['party_name'], data['party_role'], ip_address),
        {'party_name': data['party_name'], 'party_role': data['party_role']},
        party_action=True
    )


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def contract_activate(request, pk):
    return _contract_action(request, pk, 'activate', lambda c: c.activate())


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def contract_suspend(request, pk):
    serializer = ContractReasonSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    reason = serializer.validated_data['reason']
    return _contract_action(request, pk, 'suspend', lambda c: c.suspend(reason), {'reason': reason})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def contract_resume(request, pk):
    return _contract_action(request, pk, 'resume', lambda c: c.resume())


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def contract_terminate(request, pk):
    serializer = ContractReasonSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    reason = serializer.validated_data['reason']
    return _contract_action(request, pk, 'terminate', lambda c: c.terminate(reason), {'reason': reason})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def contract_complete(request, pk):
    return _contract_action(request, pk, 'complete', lambda c: c.complete())


@api_view(['PATCH'])
@permission_classes([IsAuthenticated])
def contract_milestone(request, pk, index):
    serializer = MilestoneUpdateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    milestone_status = serializer.validated_data['status']
    return _contract_action(
        request, pk, 'update',
        lambda c: c.update_milestone(index, milestone_status),
        {'milestone': index, 'milestone_status': milestone_status}
    )


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def contract_amend(request, pk):
    serializer = ContractAmendSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    return _contract_action(
        request, pk, 'amend',
        lambda c: c.amend(request.user, data['description'], data['changes']),
        {'description': data['description'], 'fields': sorted(data['changes'].keys())}
    )


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def contract_renew(request, pk):
    """Draft a follow-on contract with the same parties"""
    contract = get_object_or_404(Contract, pk=pk)
    if not can_manage(request.user, contract):
        return forbidden('Only the buying organization can renew this contract')
    serializer = ContractRenewSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    try:
        renewal = contract.renew(request.user, data['start_date'], data['end_date'], data.get('contract_value'))
    except WorkflowError as e:
        return workflow_error_response(e)
    _audit(request, contract, 'renew', {'renewal': renewal.contract_number})
    _audit(request, renewal, 'create', {'parent_contract': contract.contract_number})
    logger.info(f"Contract {contract.contract_number} renewed as {renewal.contract_number}")
    return _contract_response(renewal, status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def contract_performance(request, pk):
    serializer = ContractPerformanceSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    metrics = serializer.validated_data['metrics']
    return _contract_action(
        request, pk, 'update',
        lambda c: c.record_performance(metrics),
        {'performance_metrics': len(metrics)}
    )


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def contract_documents(request, pk):
    serializer = ContractDocumentSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    document = serializer.validated_data
    contract = get_object_or_404(Contract, pk=pk)
    if not can_participate(request.user, contract):
        return forbidden('You do not have access to this contract')
    entry = contract.add_document(document, request.user)
    _audit(request, contract, 'update', {'document_added': entry['name']})
    return Response(entry, status=status.HTTP_201_CREATED)


@api_view(['DELETE'])
@permission_classes([IsAuthenticated])
def contract_document_delete(request, pk, document_id):
    return _contract_action(
        request, pk, 'update',
        lambda c: c.remove_document(document_id),
        {'document_removed': document_id}
    )


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def contract_history(request, pk):
    contract = get_object_or_404(Contract, pk=pk)
    if not can_view(request.user, contract):
        return forbidden('You do not have access to this contract')
    logs = AuditLog.objects.select_related('user').filter(
        model_name='Contract', object_id=str(contract.id)
    ).order_by('-created_at')
    return Response(AuditLogSerializer(logs, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def contract_expiring(request):
    try:
        days = max(int(request.query_params.get('days', 30)), 0)
    except (TypeError, ValueError):
        return Response({'error': 'days must be an integer'}, status=status.HTTP_400_BAD_REQUEST)
    contracts = Contract.expiring(days, visible_contracts(request.user))
    return Response(ContractListSerializer(contracts, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def contract_statistics(request):
    if is_admin_user(request.user):
        return Response(get_or_set(CONTRACT_STATS_KEY, Contract.statistics, CONTRACT_STATS_CACHE_TTL))
    return Response(Contract.statistics(visible_contracts(request.user)))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def contract_templates(request):
    return Response({'templates': CONTRACT_TEMPLATES})
