"""
Test suite for the EMD module
Tests: deposit creation, payment, verification, refund, forfeiture and expiry
"""
from datetime import timedelta
from decimal import Decimal
from io import StringIO

from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from tenderhub.bids.models import Bid
from tenderhub.core.exceptions import WorkflowError
from tenderhub.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from tenderhub.emd.models import Emd
from tenderhub.tenders.models import Tender


class EmdModelTests(TestCase):

    def setUp(self):
        self.emd = TestDataFactory.create_emd()

    def test_reference_and_validity(self):
        self.assertTrue(self.emd.reference_number.startswith('EMD-'))
        self.assertEqual(self.emd.valid_upto, self.emd.tender.bid_end_date + timedelta(days=180))

    def test_lifecycle(self):
        with self.assertRaises(WorkflowError):
            self.emd.verify(None)
        self.emd.mark_paid('TXN-1')
        self.assertEqual(self.emd.status, Emd.STATUS_PAID)
        with self.assertRaises(WorkflowError):
            self.emd.mark_paid('TXN-2')
        self.emd.verify(None)
        self.emd.refund('Tender awarded to another vendor', 'RF-1')
        self.assertEqual(self.emd.status, Emd.STATUS_REFUNDED)
        with self.assertRaises(WorkflowError):
            self.emd.forfeit('Too late')

    def test_mark_paid_updates_bid(self):
        bid = TestDataFactory.create_bid(tender=self.emd.tender, vendor=self.emd.vendor)
        self.emd.mark_paid('TXN-9')
        bid.refresh_from_db()
        self.assertTrue(bid.is_emd_paid)
        self.assertEqual(bid.emd_transaction_id, 'TXN-9')
        self.assertEqual(bid.emd_amount, Decimal('2000.00'))
        self.assertEqual(self.emd.bid_id, bid.id)

    def test_summary(self):
        other = TestDataFactory.create_emd(tender=self.emd.tender, status=Emd.STATUS_PAID)
        summary = Emd.summary(self.emd.tender)
        self.assertEqual(summary['total'], 2)
        self.assertEqual(summary['pending'], 1)
        self.assertEqual(summary['paid'], 1)
        self.assertEqual(summary['total_amount'], other.amount)


class EmdAPITests(TestCase):
    """Test EMD endpoints"""

    def setUp(self):
        self.buyer = TestDataFactory.create_user()
        self.vendor = TestDataFactory.create_vendor_user()
        self.tender = TestDataFactory.create_tender(
            user=self.buyer, status=Tender.STATUS_PUBLISHED,
            is_emd_required=True, emd_amount=Decimal('2500.00')
        )
        self.client = AuthenticatedAPIClient()

    def deposit(self):
        self.client.authenticate_user(self.vendor)
        return self.client.post('/api/v1/emds/', {
            'tender': self.tender.id,
            'type': 'demand_draft',
            'bank_name': 'State Bank',
        }, format='json')

    def test_create_uses_tender_amount(self):
        response = self.deposit()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Decimal(response.data['amount']), Decimal('2500.00'))
        self.assertEqual(response.data['status'], Emd.STATUS_PENDING)

    def test_create_twice_conflicts(self):
        self.deposit()
        response = self.deposit()
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_create_when_not_required(self):
        self.tender.is_emd_required = False
        self.tender.save()
        response = self.deposit()
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_buyer_cannot_deposit(self):
        self.client.authenticate_user(self.buyer)
        response = self.client.post('/api/v1/emds/', {'tender': self.tender.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_list_is_admin_only(self):
        self.client.authenticate_user(self.vendor)
        response = self.client.get('/api/v1/emds/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.client.authenticate_user(TestDataFactory.create_admin())
        response = self.client.get('/api/v1/emds/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_payment_then_bid_submission(self):
        bid = TestDataFactory.create_bid(tender=self.tender, vendor=self.vendor)
        emd_id = self.deposit().data['id']

        response = self.client.post(f'/api/v1/bids/{bid.id}/submit/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(f'/api/v1/emds/{emd_id}/mark-paid/', {'transaction_id': 'UTR123'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], Emd.STATUS_PAID)
        self.assertEqual(response.data['bid'], bid.id)

        response = self.client.post(f'/api/v1/bids/{bid.id}/submit/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], Bid.STATUS_SUBMITTED)

    def test_verify_and_forfeit_by_tender_owner(self):
        emd_id = self.deposit().data['id']
        self.client.post(f'/api/v1/emds/{emd_id}/mark-paid/', {'transaction_id': 'UTR1'}, format='json')

        response = self.client.post(f'/api/v1/emds/{emd_id}/verify/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.buyer)
        response = self.client.post(f'/api/v1/emds/{emd_id}/verify/')
        self.assertEqual(response.data['status'], Emd.STATUS_VERIFIED)
        self.assertEqual(response.data['verified_by'], self.buyer.id)

        response = self.client.post(f'/api/v1/emds/{emd_id}/forfeit/', {'reason': 'Withdrew after award'}, format='json')
        self.assertEqual(response.data['status'], Emd.STATUS_FORFEITED)

    def test_refund_requires_verified(self):
        emd_id = self.deposit().data['id']
        self.client.authenticate_user(self.buyer)
        response = self.client.post(f'/api/v1/emds/{emd_id}/refund/', {'reason': 'Not awarded'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Only verified EMDs can be refunded')

    def test_only_pending_can_be_deleted(self):
        emd_id = self.deposit().data['id']
        self.client.post(f'/api/v1/emds/{emd_id}/mark-paid/', {'transaction_id': 'UTR1'}, format='json')
        response = self.client.delete(f'/api/v1/emds/{emd_id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_summary_for_owner(self):
        self.deposit()
        response = self.client.get(f'/api/v1/emds/tender/{self.tender.id}/summary/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.buyer)
        response = self.client.get(f'/api/v1/emds/tender/{self.tender.id}/summary/')
        self.assertEqual(response.data['total'], 1)
        self.assertEqual(response.data['pending'], 1)

    def test_my_emds(self):
        self.deposit()
        response = self.client.get('/api/v1/emds/my-emds/')
        self.assertEqual(response.data['count'], 1)


class ExpireEmdsCommandTests(TestCase):

    def test_expires_stale_deposits(self):
        stale = TestDataFactory.create_emd()
        Emd.objects.filter(pk=stale.pk).update(valid_upto=timezone.now() - timedelta(days=1))
        fresh = TestDataFactory.create_emd()

        out = StringIO()
        call_command('expire_emds', stdout=out)
        self.assertIn('Expired 1 EMD(s)', out.getvalue())

        stale.refresh_from_db()
        fresh.refresh_from_db()
        self.assertEqual(stale.status, Emd.STATUS_EXPIRED)
        self.assertEqual(fresh.status, Emd.STATUS_PENDING)
