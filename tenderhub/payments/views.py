import json
import logging
from datetime import datetime

from rest_framework import status
from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated, AllowAny
from django.db.models import Count, Q, Sum
from django.shortcuts import get_object_or_404

from tenderhub.core.exceptions import WorkflowError
from tenderhub.core.models import User
from tenderhub.core.utils import (
    create_audit_log, is_admin_user, has_role, forbidden, paginate, workflow_error_response
)
from tenderhub.organizations.models import Organization
from tenderhub.tenders.models import Tender
from .filters import PaymentFilter, InvoiceFilter
from .gateways import GatewayError, get_gateway, verify_webhook_signature
from .models import Payment, Transaction, Invoice
from .serializers import (
    PaymentSerializer, PaymentDetailSerializer, PaymentRefundSerializer,
    InvoiceSerializer, InvoiceCancelSerializer
)

logger = logging.getLogger(__name__)


def can_see_everything(user):
    return is_admin_user(user) or has_role(user, User.ROLE_AUDITOR)


def visible_payments(user):
    queryset = Payment.objects.select_related('organization', 'created_by')
    if can_see_everything(user):
        return queryset
    scope = Q(created_by=user)
    if user.organization_id:
        scope |= Q(organization_id=user.organization_id)
    return queryset.filter(scope)


def visible_invoices(user):
    queryset = Invoice.objects.select_related('organization')
    if can_see_everything(user):
        return queryset
    scope = Q(created_by=user)
    if user.organization_id:
        scope |= Q(organization_id=user.organization_id)
    return queryset.filter(scope)


def _audit(request, payment, action, changes, user=None):
    create_audit_log(
        request=request,
        action=action,
        model_name='Payment',
        object_id=str(payment.id),
        object_name=payment.description or payment.payment_number,
        object_reference=payment.payment_number,
        changes=changes,
        user=user
    )


def _gateway_or_error():
    try:
        return get_gateway(), None
    except GatewayError as e:
        logger.error(str(e))
        return None, Response({'error': str(e)}, status=status.HTTP_503_SERVICE_UNAVAILABLE)


def _process(request, payment, gateway):
    succeeded = payment.process(gateway)
    _audit(request, payment, 'payment_process', {
        'status': payment.status,
        'gateway': gateway.name,
        'gateway_transaction_id': payment.gateway_transaction_id,
        'failure_reason': payment.failure_reason,
    })
    if succeeded:
        logger.info(f"Payment {payment.payment_number} completed via {gateway.name}")
    else:
        logger.warning(f"Payment {payment.payment_number} failed: {payment.failure_reason}")
    return succeeded


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def payment_list_create(request):
    """List visible payments or create one (optionally processing it at once)"""
    if request.method == 'GET':
        payment_filter = PaymentFilter(request.query_params, queryset=visible_payments(request.user))
        if not payment_filter.is_valid():
            return Response(payment_filter.errors, status=status.HTTP_400_BAD_REQUEST)
        return paginate(request, payment_filter.qs.order_by('-created_at'), PaymentSerializer)

    serializer = PaymentSerializer(data=request.data, context={'request': request})
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    process_immediately = serializer.validated_data.get('process_immediately', False)

    extra = {'created_by': request.user}
    if not serializer.validated_data.get('organization'):
        extra['organization'] = request.user.organization
    payment = serializer.save(**extra)
    payment.open_transaction()
    _audit(request, payment, 'create', {'amount': str(payment.amount), 'type': payment.type, 'method': payment.method})
    logger.info(f"Payment {payment.payment_number} created for {payment.amount} {payment.currency}")

    if process_immediately:
        gateway, error = _gateway_or_error()
        if error:
            return error
        _process(request, payment, gateway)
        payment.refresh_from_db()

    return Response(PaymentDetailSerializer(payment).data, status=status.HTTP_201_CREATED)


def _get_visible_payment(request, pk, write=False):
    payment = get_object_or_404(Payment, pk=pk)
    if not visible_payments(request.user).filter(pk=payment.pk).exists():
        return payment, forbidden('You do not have access to this payment')
    if write and request.user.role == User.ROLE_AUDITOR and not is_admin_user(request.user):
        return payment, forbidden('Auditors have read-only access to payments')
    return payment, None


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def payment_detail(request, pk):
    payment, error = _get_visible_payment(request, pk)
    if error:
        return error
    return Response(PaymentDetailSerializer(payment).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def payment_process(request, pk):
    payment, error = _get_visible_payment(request, pk, write=True)
    if error:
        return error
    gateway, error = _gateway_or_error()
    if error:
        return error
    try:
        _process(request, payment, gateway)
    except WorkflowError as e:
        return workflow_error_response(e)
    payment.refresh_from_db()
    return Response(PaymentDetailSerializer(payment).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def payment_refund(request, pk):
    """Refund all or part of a completed payment"""
    payment, error = _get_visible_payment(request, pk, write=True)
    if error:
        return error
    if not (is_admin_user(request.user) or payment.created_by_id == request.user.id or has_role(request.user, User.ROLE_MANAGER)):
        return forbidden('You are not allowed to refund this payment')
    serializer = PaymentRefundSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    gateway, error = _gateway_or_error()
    if error:
        return error
    try:
        refund = payment.refund(data['amount'], data['reason'], gateway)
    except WorkflowError as e:
        return workflow_error_response(e)
    _audit(request, payment, 'refund', {
        'amount': str(data['amount']),
        'reason': data['reason'],
        'transaction': refund.transaction_number,
        'status': payment.status,
    })
    logger.info(f"Refunded {data['amount']} on payment {payment.payment_number}")
    payment.refresh_from_db()
    return Response(PaymentDetailSerializer(payment).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def payment_verify(request, pk):
    payment, error = _get_visible_payment(request, pk, write=True)
    if error:
        return error
    gateway, error = _gateway_or_error()
    if error:
        return error
    old_status = payment.status
    verified = payment.verify_with_gateway(gateway, request.user)
    if payment.status != old_status:
        _audit(request, payment, 'verify', {'status': {'old': old_status, 'new': payment.status}})
    payment.refresh_from_db()
    return Response({'verified': verified, 'payment': PaymentDetailSerializer(payment).data})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def payment_cancel(request, pk):
    payment, error = _get_visible_payment(request, pk, write=True)
    if error:
        return error
    try:
        payment.cancel()
    except WorkflowError as e:
        return workflow_error_response(e)
    _audit(request, payment, 'cancel_payment', {'status': payment.status})
    return Response(PaymentDetailSerializer(payment).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def payment_receipt(request, pk):
    payment, error = _get_visible_payment(request, pk)
    if error:
        return error
    try:
        return Response(payment.receipt())
    except WorkflowError as e:
        return workflow_error_response(e)


def _grouped(queryset, field):
    return {
        row[field]: {'count': row['count'], 'amount': row['amount'] or 0}
        for row in queryset.values(field).annotate(count=Count('id'), amount=Sum('amount')).order_by(field)
    }


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def payment_statistics(request):
    payments = visible_payments(request.user)
    return Response({
        'total_payments': payments.count(),
        'by_status': _grouped(payments, 'status'),
        'by_method': _grouped(payments, 'method'),
        'by_type': _grouped(payments, 'type'),
        'total_completed_amount': payments.filter(status=Payment.STATUS_COMPLETED).aggregate(
            total=Sum('amount')
        )['total'] or 0,
        'total_refunded_amount': payments.aggregate(total=Sum('refunded_amount'))['total'] or 0,
    })


def _parse_date(value):
    return datetime.strptime(value, '%Y-%m-%d').date()


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def payment_reconciliation(request):
    """Counts and amounts by status and gateway for a date range"""
    if not can_see_everything(request.user):
        return forbidden('Only administrators and auditors can run reconciliation')
    try:
        start = _parse_date(request.query_params['start_date']) if request.query_params.get('start_date') else None
        end = _parse_date(request.query_params['end_date']) if request.query_params.get('end_date') else None
    except ValueError:
        return Response({'error': 'Dates must use the YYYY-MM-DD format'}, status=status.HTTP_400_BAD_REQUEST)
    if start and end and end < start:
        return Response({'error': 'end_date must not be before start_date'}, status=status.HTTP_400_BAD_REQUEST)

    payments = Payment.objects.all()
    if start:
        payments = payments.filter(created_at__date__gte=start)
    if end:
        payments = payments.filter(created_at__date__lte=end)

    refunds = Transaction.objects.filter(
        payment__in=payments,
        type__in=[Transaction.TYPE_REFUND, Transaction.TYPE_PARTIAL_REFUND],
        status=Transaction.STATUS_SUCCESS,
    )
    return Response({
        'period': {'start_date': start, 'end_date': end},
        'total_payments': payments.count(),
        'total_amount': payments.aggregate(total=Sum('amount'))['total'] or 0,
        'by_status': _grouped(payments, 'status'),
        'by_gateway': _grouped(payments.exclude(gateway=''), 'gateway'),
        'total_refunded': refunds.aggregate(total=Sum('amount'))['total'] or 0,
        'refund_count': refunds.count(),
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def organization_payments(request, organization_id):
    organization = get_object_or_404(Organization, pk=organization_id)
    if not (can_see_everything(request.user) or request.user.organization_id == organization.id):
        return forbidden('You can only view payments of your own organization')
    queryset = Payment.objects.filter(organization=organization).order_by('-created_at')
    return paginate(request, queryset, PaymentSerializer)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def tender_payments(request, tender_id):
    tender = get_object_or_404(Tender, pk=tender_id)
    queryset = visible_payments(request.user)
    if not (can_see_everything(request.user) or tender.is_owner(request.user)):
        queryset = queryset.filter(created_by=request.user)
    return paginate(request, queryset.filter(tender=tender).order_by('-created_at'), PaymentSerializer)


def _find_payment(payload):
    reference = payload.get('gateway_transaction_id') or payload.get('transaction_id')
    payment_number = payload.get('payment_number')
    if reference:
        payment = Payment.objects.filter(gateway_transaction_id=reference).first()
        if payment is not None:
            return payment
    if payment_number:
        return Payment.objects.filter(payment_number=payment_number).first()
    return None


def _find_refund(payload):
    refunds = Transaction.objects.select_related('payment').filter(
        type__in=[Transaction.TYPE_REFUND, Transaction.TYPE_PARTIAL_REFUND]
    )
    if payload.get('transaction_number'):
        refund = refunds.filter(transaction_number=payload['transaction_number']).first()
        if refund is not None:
            return refund
    reference = payload.get('gateway_transaction_id')
    if reference:
        return refunds.filter(gateway_transaction_id=reference).first()
    return None


@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
def payment_webhook(request, provider):
    """Gateway callback, authenticated by an HMAC-SHA256 signature of the raw body"""
    body = request.body
    signature = request.headers.get('X-Webhook-Signature', '')
    if not verify_webhook_signature(body, signature):
        logger.warning(f"Rejected {provider} webhook with an invalid signature")
        return Response({'error': 'Invalid webhook signature'}, status=status.HTTP_401_UNAUTHORIZED)

    try:
        event = json.loads(body or b'{}')
    except ValueError:
        return Response({'error': 'Malformed webhook payload'}, status=status.HTTP_400_BAD_REQUEST)
    if not isinstance(event, dict):
        return Response({'error': 'Webhook payload must be a JSON object'}, status=status.HTTP_400_BAD_REQUEST)

    event_type = event.get('event')
    payload = event.get('data') or {}
    if not isinstance(payload, dict):
        return Response({'error': 'Webhook data must be a JSON object'}, status=status.HTTP_400_BAD_REQUEST)
    logger.info(f"Webhook {event_type} received from {provider}")

    if event_type in ('payment.success', 'payment.failed'):
        payment = _find_payment(payload)
        if payment is None:
            return Response({'error': 'Payment not found'}, status=status.HTTP_404_NOT_FOUND)
        if payment.status in (Payment.STATUS_PENDING, Payment.STATUS_PROCESSING):
            if event_type == 'payment.success':
                payment.gateway = payment.gateway or provider
                payment.complete(payload.get('gateway_transaction_id') or payload.get('transaction_id'), event)
            else:
                payment.fail(payload.get('reason') or 'Payment failed at gateway', event)
            _audit(None, payment, 'webhook', {'event': event_type, 'provider': provider, 'status': payment.status})
    elif event_type == 'refund.success':
        refund = _find_refund(payload)
        if refund is None:
            return Response({'error': 'Refund transaction not found'}, status=status.HTTP_404_NOT_FOUND)
        if refund.status != Transaction.STATUS_SUCCESS:
            refund.succeed(payload.get('gateway_transaction_id') or refund.gateway_transaction_id, event)
            refund.payment.apply_refund_totals()
            _audit(None, refund.payment, 'webhook', {'event': event_type, 'provider': provider,
                                                     'transaction': refund.transaction_number})
    else:
        logger.info(f"Ignoring unhandled webhook event {event_type} from {provider}")

    return Response({'received': True})


# Invoices

@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def invoice_list_create(request):
    if request.method == 'GET':
        Invoice.mark_overdue()
        invoice_filter = InvoiceFilter(request.query_params, queryset=visible_invoices(request.user))
        if not invoice_filter.is_valid():
            return Response(invoice_filter.errors, status=status.HTTP_400_BAD_REQUEST)
        return paginate(request, invoice_filter.qs.order_by('-created_at'), InvoiceSerializer)

    serializer = InvoiceSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    extra = {'created_by': request.user}
    if not serializer.validated_data.get('organization'):
        extra['organization'] = request.user.organization
    invoice = serializer.save(**extra)
    create_audit_log(
        request=request,
        action='create',
        model_name='Invoice',
        object_id=str(invoice.id),
        object_reference=invoice.invoice_number,
        changes={'total_amount': str(invoice.total_amount)}
    )
    logger.info(f"Invoice {invoice.invoice_number} created for {invoice.total_amount}")
    return Response(InvoiceSerializer(invoice).data, status=status.HTTP_201_CREATED)


def _get_invoice(request, pk, manage=False):
    invoice = get_object_or_404(Invoice, pk=pk)
    if manage:
        allowed = is_admin_user(request.user) or invoice.created_by_id == request.user.id
    else:
        allowed = visible_invoices(request.user).filter(pk=invoice.pk).exists()
    if not allowed:
        return invoice, forbidden('You do not have access to this invoice')
    return invoice, None


@api_view(['GET', 'PUT', 'PATCH'])
@permission_classes([IsAuthenticated])
def invoice_detail(request, pk):
    invoice, error = _get_invoice(request, pk, manage=request.method != 'GET')
    if error:
        return error

    if request.method == 'GET':
        if invoice.is_overdue():
            Invoice.mark_overdue(Invoice.objects.filter(pk=invoice.pk))
            invoice.refresh_from_db()
        return Response(InvoiceSerializer(invoice).data)

    if invoice.status != Invoice.STATUS_DRAFT:
        return Response({'error': 'Only draft invoices can be updated'}, status=status.HTTP_400_BAD_REQUEST)
    serializer = InvoiceSerializer(invoice, data=request.data, partial=request.method == 'PATCH')
    if serializer.is_valid():
        serializer.save()
        return Response(serializer.data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


def _invoice_action(request, pk, action, operation, manage=True):
    invoice, error = _get_invoice(request, pk, manage=manage)
    if error:
        return error
    old_status = invoice.status
    try:
        operation(invoice)
    except WorkflowError as e:
        return workflow_error_response(e)
    create_audit_log(
        request=request,
        action=action,
        model_name='Invoice',
        object_id=str(invoice.id),
        object_reference=invoice.invoice_number,
        changes={'status': {'old': old_status, 'new': invoice.status}}
    )
    return Response(InvoiceSerializer(invoice).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def invoice_send(request, pk):
    return _invoice_action(request, pk, 'send', lambda invoice: invoice.send())


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def invoice_mark_viewed(request, pk):
    return _invoice_action(request, pk, 'status_change', lambda invoice: invoice.mark_viewed(), manage=False)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def invoice_cancel(request, pk):
    serializer = InvoiceCancelSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    reason = serializer.validated_data['reason']
    return _invoice_action(request, pk, 'cancel', lambda invoice: invoice.cancel(reason))
