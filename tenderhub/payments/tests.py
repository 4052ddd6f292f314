"""
Test suite for the payments module
Tests: payment processing, refunds, gateway verification, webhooks and invoices
"""
import json
from datetime import timedelta
from decimal import Decimal
from io import StringIO

from django.core.management import call_command
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient

from tenderhub.core.exceptions import WorkflowError
from tenderhub.core.models import User
from tenderhub.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from tenderhub.emd.models import Emd
from tenderhub.payments.gateways import SimulatedGateway, webhook_signature, verify_webhook_signature
from tenderhub.payments.models import Payment, Transaction, Invoice


class PaymentModelTests(TestCase):
    """Payment state machine against the simulated gateway"""

    def setUp(self):
        self.payment = TestDataFactory.create_payment(amount=Decimal('1000.00'))

    def test_payment_number_format(self):
        self.assertTrue(self.payment.payment_number.startswith(f"PAY-{timezone.now():%Y%m}-"))
        self.assertEqual(self.payment.transactions.count(), 1)

    def test_successful_charge(self):
        self.assertTrue(self.payment.process(SimulatedGateway(success_rate=1.0)))
        self.assertEqual(self.payment.status, Payment.STATUS_COMPLETED)
        self.assertTrue(self.payment.gateway_transaction_id.startswith('TXN-'))
        txn = self.payment.transactions.get()
        self.assertEqual(txn.status, Transaction.STATUS_SUCCESS)
        with self.assertRaises(WorkflowError):
            self.payment.process(SimulatedGateway(success_rate=1.0))

    def test_declined_charge(self):
        self.assertFalse(self.payment.process(SimulatedGateway(success_rate=0.0)))
        self.assertEqual(self.payment.status, Payment.STATUS_FAILED)
        self.assertEqual(self.payment.failure_reason, 'Payment declined by gateway')
        self.assertEqual(self.payment.transactions.get().status, Transaction.STATUS_FAILED)

    def test_partial_then_full_refund(self):
        gateway = SimulatedGateway(success_rate=1.0)
        self.payment.process(gateway)

        refund = self.payment.refund(Decimal('400.00'), 'Short delivery', gateway)
        self.assertEqual(refund.type, Transaction.TYPE_PARTIAL_REFUND)
        self.assertEqual(self.payment.status, Payment.STATUS_PARTIAL_REFUND)
        self.assertEqual(self.payment.refundable_amount(), Decimal('600.00'))

        with self.assertRaisesMessage(WorkflowError, 'exceeds the refundable balance'):
            self.payment.refund(Decimal('700.00'), 'Too much', gateway)

        refund = self.payment.refund(Decimal('600.00'), 'Order cancelled', gateway)
        self.assertEqual(refund.type, Transaction.TYPE_REFUND)
        self.assertEqual(self.payment.status, Payment.STATUS_REFUNDED)
        self.assertEqual(self.payment.refunded_amount, Decimal('1000.00'))

    def test_refund_requires_completed_payment(self):
        with self.assertRaises(WorkflowError):
            self.payment.refund(Decimal('10.00'), 'Nope', SimulatedGateway(success_rate=1.0))

    def test_completion_settles_invoice_and_emd(self):
        invoice = TestDataFactory.create_invoice(user=self.payment.created_by, status=Invoice.STATUS_SENT)
        emd = TestDataFactory.create_emd()
        payment = TestDataFactory.create_payment(user=self.payment.created_by, invoice=invoice, emd=emd)
        payment.process(SimulatedGateway(success_rate=1.0))

        invoice.refresh_from_db()
        emd.refresh_from_db()
        self.assertEqual(invoice.status, Invoice.STATUS_PAID)
        self.assertEqual(emd.status, Emd.STATUS_PAID)
        self.assertEqual(emd.transaction_id, payment.gateway_transaction_id)

    def test_cancel_only_pending(self):
        self.payment.cancel()
        self.assertEqual(self.payment.status, Payment.STATUS_CANCELLED)
        self.assertEqual(self.payment.transactions.get().status, Transaction.STATUS_CANCELLED)
        with self.assertRaises(WorkflowError):
            self.payment.cancel()

    def test_receipt(self):
        with self.assertRaises(WorkflowError):
            self.payment.receipt()
        self.payment.process(SimulatedGateway(success_rate=1.0))
        receipt = self.payment.receipt()
        self.assertEqual(receipt['receipt_number'], f"RCP-{self.payment.payment_number}")
        self.assertEqual(receipt['amount'], Decimal('1000.00'))


class WebhookSignatureTests(TestCase):

    def test_signature_round_trip(self):
        body = b'{"event": "payment.success"}'
        signature = webhook_signature(body, 'secret')
        self.assertTrue(verify_webhook_signature(body, signature, 'secret'))
        self.assertFalse(verify_webhook_signature(body, signature, 'other'))
        self.assertFalse(verify_webhook_signature(body, '', 'secret'))


@override_settings(PAYMENT_GATEWAY_SUCCESS_RATE=1.0)
class PaymentAPITests(TestCase):
    """Test payment endpoints"""

    def setUp(self):
        self.organization = TestDataFactory.create_organization()
        self.user = TestDataFactory.create_user(organization=self.organization)
        self.client = AuthenticatedAPIClient().authenticate_user(self.user)

    def create(self, **overrides):
        data = {'amount': '1500.00', 'type': 'tender_fee', 'method': 'upi', 'description': 'Tender document fee'}
        data.update(overrides)
        return self.client.post('/api/v1/payments/', data, format='json')

    def test_create_payment(self):
        response = self.create()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], Payment.STATUS_PENDING)
        self.assertEqual(response.data['organization'], self.organization.id)
        self.assertEqual(len(response.data['transactions']), 1)

    def test_create_and_process_immediately(self):
        response = self.create(process_immediately=True)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], Payment.STATUS_COMPLETED)
        self.assertEqual(response.data['gateway'], 'simulated')

    def test_amount_validation(self):
        response = self.create(amount='0')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        contract = TestDataFactory.create_contract(user=self.user, contract_value=Decimal('1000.00'))
        response = self.create(contract=contract.id)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('amount', response.data)

    @override_settings(PAYMENT_GATEWAY_SUCCESS_RATE=0.0)
    def test_process_declined(self):
        payment_id = self.create().data['id']
        response = self.client.post(f'/api/v1/payments/{payment_id}/process/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], Payment.STATUS_FAILED)

    def test_process_twice(self):
        payment_id = self.create().data['id']
        self.client.post(f'/api/v1/payments/{payment_id}/process/')
        response = self.client.post(f'/api/v1/payments/{payment_id}/process/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    @override_settings(PAYMENT_GATEWAY_NAME='unknown')
    def test_unconfigured_gateway(self):
        payment_id = self.create().data['id']
        response = self.client.post(f'/api/v1/payments/{payment_id}/process/')
        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)

    def test_refund(self):
        payment_id = self.create(process_immediately=True).data['id']
        response = self.client.post(f'/api/v1/payments/{payment_id}/refund/', {'amount': '500.00', 'reason': 'Duplicate'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], Payment.STATUS_PARTIAL_REFUND)
        self.assertEqual(Decimal(response.data['refunded_amount']), Decimal('500.00'))

        response = self.client.post(f'/api/v1/payments/{payment_id}/refund/', {'amount': '5000.00', 'reason': 'Oops'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_colleague_cannot_refund(self):
        payment_id = self.create(process_immediately=True).data['id']
        colleague = TestDataFactory.create_user(organization=self.organization)
        self.client.authenticate_user(colleague)
        response = self.client.get(f'/api/v1/payments/{payment_id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        response = self.client.post(f'/api/v1/payments/{payment_id}/refund/', {'amount': '1.00', 'reason': 'x'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_outsider_cannot_view(self):
        payment_id = self.create().data['id']
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.get(f'/api/v1/payments/{payment_id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_auditor_sees_everything(self):
        payment_id = self.create().data['id']
        auditor = TestDataFactory.create_user(role=User.ROLE_AUDITOR)
        self.client.authenticate_user(auditor)
        response = self.client.get('/api/v1/payments/')
        self.assertEqual(response.data['count'], 1)
        response = self.client.post(f'/api/v1/payments/{payment_id}/cancel/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_verify_pending_payment(self):
        payment_id = self.create().data['id']
        response = self.client.post(f'/api/v1/payments/{payment_id}/verify/')
        self.assertTrue(response.data['verified'])
        self.assertEqual(response.data['payment']['status'], Payment.STATUS_COMPLETED)
        self.assertEqual(response.data['payment']['verified_by'], self.user.id)

    def test_cancel_and_receipt(self):
        payment_id = self.create().data['id']
        response = self.client.get(f'/api/v1/payments/{payment_id}/receipt/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.post(f'/api/v1/payments/{payment_id}/cancel/')
        self.assertEqual(response.data['status'], Payment.STATUS_CANCELLED)

        paid_id = self.create(process_immediately=True).data['id']
        response = self.client.get(f'/api/v1/payments/{paid_id}/receipt/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['receipt_number'].startswith('RCP-PAY-'))

    def test_list_filters(self):
        self.create()
        self.create(method='cheque', process_immediately=True)
        response = self.client.get('/api/v1/payments/?status=completed')
        self.assertEqual(response.data['count'], 1)
        response = self.client.get('/api/v1/payments/?method=bitcoin')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_statistics(self):
        self.create()
        self.create(process_immediately=True)
        response = self.client.get('/api/v1/payments/statistics/')
        self.assertEqual(response.data['total_payments'], 2)
        self.assertEqual(response.data['by_status'][Payment.STATUS_COMPLETED]['count'], 1)
        self.assertEqual(response.data['total_completed_amount'], Decimal('1500.00'))

    def test_reconciliation(self):
        self.create(process_immediately=True)
        response = self.client.get('/api/v1/payments/reconciliation/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(TestDataFactory.create_admin())
        today = timezone.localdate().isoformat()
        response = self.client.get(f'/api/v1/payments/reconciliation/?start_date={today}&end_date={today}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_payments'], 1)
        self.assertEqual(response.data['by_gateway']['simulated']['count'], 1)
        response = self.client.get('/api/v1/payments/reconciliation/?start_date=01-01-2024')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_organization_payments(self):
        self.create()
        response = self.client.get(f'/api/v1/payments/organization/{self.organization.id}/')
        self.assertEqual(response.data['count'], 1)
        other = TestDataFactory.create_organization()
        response = self.client.get(f'/api/v1/payments/organization/{other.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


@override_settings(PAYMENT_GATEWAY_SUCCESS_RATE=1.0)
class PaymentLinkTests(TestCase):
    """Payments may only settle invoices and deposits the payer owns, in full"""

    def setUp(self):
        self.organization = TestDataFactory.create_organization()
        self.user = TestDataFactory.create_vendor_user(organization=self.organization)
        self.invoice = TestDataFactory.create_invoice(user=self.user, status=Invoice.STATUS_SENT)
        self.emd = TestDataFactory.create_emd(vendor=self.user)
        self.client = AuthenticatedAPIClient().authenticate_user(self.user)

    def create(self, **overrides):
        data = {'type': 'contract_payment', 'method': 'upi'}
        data.update(overrides)
        return self.client.post('/api/v1/payments/', data, format='json')

    def test_pay_own_invoice(self):
        response = self.create(invoice=self.invoice.id, amount='1180.00', process_immediately=True)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, Invoice.STATUS_PAID)

    def test_underpaying_invoice_rejected(self):
        response = self.create(invoice=self.invoice.id, amount='1.00', process_immediately=True)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('amount', response.data)
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, Invoice.STATUS_SENT)

    def test_foreign_invoice_rejected(self):
        foreign = TestDataFactory.create_invoice(status=Invoice.STATUS_SENT)
        response = self.create(invoice=foreign.id, amount='1180.00')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('invoice', response.data)

    def test_cancelled_invoice_rejected(self):
        self.invoice.status = Invoice.STATUS_CANCELLED
        self.invoice.save()
        response = self.create(invoice=self.invoice.id, amount='1180.00')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_pay_own_emd(self):
        response = self.create(type='emd', emd=self.emd.id, amount='2000.00', process_immediately=True)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.emd.refresh_from_db()
        self.assertEqual(self.emd.status, Emd.STATUS_PAID)

    def test_emd_amount_must_match(self):
        response = self.create(type='emd', emd=self.emd.id, amount='1.00', process_immediately=True)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.emd.refresh_from_db()
        self.assertEqual(self.emd.status, Emd.STATUS_PENDING)

    def test_foreign_emd_rejected(self):
        foreign = TestDataFactory.create_emd()
        response = self.create(type='emd', emd=foreign.id, amount='2000.00')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('emd', response.data)

    def test_foreign_organization_rejected(self):
        other = TestDataFactory.create_organization()
        response = self.create(type='tender_fee', amount='100.00', organization=other.id)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('organization', response.data)

    def test_admin_may_link_any_invoice(self):
        self.client.authenticate_user(TestDataFactory.create_admin())
        response = self.create(invoice=self.invoice.id, amount='1180.00', organization=self.organization.id)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)


@override_settings(PAYMENT_WEBHOOK_SECRET='webhook-test-secret')
class PaymentWebhookTests(TestCase):

    def setUp(self):
        self.payment = TestDataFactory.create_payment()
        self.client = APIClient()

    def post_event(self, event, signature=None):
        body = json.dumps(event)
        signature = webhook_signature(body, 'webhook-test-secret') if signature is None else signature
        return self.client.post(
            '/api/v1/payments/webhook/simulated/', body,
            content_type='application/json', HTTP_X_WEBHOOK_SIGNATURE=signature
        )

    def test_invalid_signature(self):
        response = self.post_event({'event': 'payment.success'}, signature='bad')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_payment_success(self):
        response = self.post_event({
            'event': 'payment.success',
            'data': {'payment_number': self.payment.payment_number, 'gateway_transaction_id': 'GW-42'},
        })
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, Payment.STATUS_COMPLETED)
        self.assertEqual(self.payment.gateway_transaction_id, 'GW-42')
        self.assertEqual(self.payment.gateway, 'simulated')

    def test_payment_failed(self):
        self.post_event({
            'event': 'payment.failed',
            'data': {'payment_number': self.payment.payment_number, 'reason': 'Insufficient funds'},
        })
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, Payment.STATUS_FAILED)
        self.assertEqual(self.payment.failure_reason, 'Insufficient funds')

    def test_unknown_payment(self):
        response = self.post_event({'event': 'payment.success', 'data': {'payment_number': 'PAY-000000-999999'}})
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_refund_success(self):
        self.payment.process(SimulatedGateway(success_rate=1.0))
        refund = self.payment.open_transaction(type=Transaction.TYPE_REFUND, amount=self.payment.amount)
        response = self.post_event({
            'event': 'refund.success',
            'data': {'transaction_number': refund.transaction_number, 'gateway_transaction_id': 'RF-1'},
        })
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, Payment.STATUS_REFUNDED)

    def test_unhandled_event_acknowledged(self):
        response = self.post_event({'event': 'dispute.opened'})
        self.assertEqual(response.data, {'received': True})

    def test_non_object_payload_rejected(self):
        response = self.post_event([])
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.post_event('payment.success')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.post_event({'event': 'payment.success', 'data': ['PAY-1']})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class InvoiceTests(TestCase):
    """Test invoice endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user(organization=TestDataFactory.create_organization())
        self.client = AuthenticatedAPIClient().authenticate_user(self.user)

    def test_totals_computed(self):
        invoice = TestDataFactory.create_invoice(user=self.user)
        self.assertEqual(invoice.subtotal, Decimal('1000.00'))
        self.assertEqual(invoice.tax_amount, Decimal('180.00'))
        self.assertEqual(invoice.total_amount, Decimal('1180.00'))
        self.assertTrue(invoice.invoice_number.startswith(f'INV-{timezone.now().year}-'))

    def test_create_via_api(self):
        response = self.client.post('/api/v1/invoices/', {
            'line_items': [
                {'description': 'Cement bags', 'quantity': '10', 'unit_price': '350.00'},
                {'description': 'Transport', 'quantity': '1', 'unit_price': '500.00'},
            ],
            'tax_rate': '5.00',
            'discount_amount': '200.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Decimal(response.data['subtotal']), Decimal('4000.00'))
        self.assertEqual(Decimal(response.data['total_amount']), Decimal('4000.00'))

    def test_discount_cannot_exceed_total(self):
        response = self.client.post('/api/v1/invoices/', {
            'line_items': [{'description': 'Pen', 'quantity': '1', 'unit_price': '10.00'}],
            'tax_rate': '0',
            'discount_amount': '50.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_send_view_cancel(self):
        invoice = TestDataFactory.create_invoice(user=self.user)
        response = self.client.post(f'/api/v1/invoices/{invoice.id}/mark-viewed/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.post(f'/api/v1/invoices/{invoice.id}/send/')
        self.assertEqual(response.data['status'], Invoice.STATUS_SENT)
        response = self.client.patch(f'/api/v1/invoices/{invoice.id}/', {'notes': 'late edit'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.post(f'/api/v1/invoices/{invoice.id}/mark-viewed/')
        self.assertEqual(response.data['status'], Invoice.STATUS_VIEWED)
        response = self.client.post(f'/api/v1/invoices/{invoice.id}/cancel/', {'reason': 'Duplicate'}, format='json')
        self.assertEqual(response.data['status'], Invoice.STATUS_CANCELLED)
        self.assertEqual(response.data['cancellation_reason'], 'Duplicate')

    def test_overdue_flag_applied_on_read(self):
        invoice = TestDataFactory.create_invoice(
            user=self.user, status=Invoice.STATUS_SENT, due_date=timezone.localdate() - timedelta(days=1)
        )
        response = self.client.get(f'/api/v1/invoices/{invoice.id}/')
        self.assertEqual(response.data['status'], Invoice.STATUS_OVERDUE)

    def test_mark_overdue_command(self):
        overdue = TestDataFactory.create_invoice(
            user=self.user, status=Invoice.STATUS_SENT, due_date=timezone.localdate() - timedelta(days=3)
        )
        TestDataFactory.create_invoice(
            user=self.user, status=Invoice.STATUS_DRAFT, due_date=timezone.localdate() - timedelta(days=3)
        )
        out = StringIO()
        call_command('mark_overdue_invoices', stdout=out)
        self.assertIn('Marked 1 invoice(s) overdue', out.getvalue())
        overdue.refresh_from_db()
        self.assertEqual(overdue.status, Invoice.STATUS_OVERDUE)
