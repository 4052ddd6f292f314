"""
Test suite for the bids module
"""
from datetime import timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from tenderhub.bids.models import Bid
from tenderhub.core.exceptions import WorkflowError
from tenderhub.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from tenderhub.emd.models import Emd
from tenderhub.tenders.models import Tender


class BidModelTests(TestCase):
    """Bid lifecycle rules"""

    def setUp(self):
        self.buyer = TestDataFactory.create_user()
        self.tender = TestDataFactory.create_tender(user=self.buyer, status=Tender.STATUS_PUBLISHED)

    def test_submit_requires_open_tender(self):
        closed = TestDataFactory.create_tender(user=self.buyer, status=Tender.STATUS_EVALUATION)
        bid = TestDataFactory.create_bid(tender=closed)
        with self.assertRaises(WorkflowError):
            bid.submit()

    def test_submit_after_deadline(self):
        self.tender.bid_end_date = timezone.now() - timedelta(hours=1)
        self.tender.save()
        bid = TestDataFactory.create_bid(tender=self.tender)
        with self.assertRaisesMessage(WorkflowError, 'Bid submission period has ended'):
            bid.submit()

    def test_submit_requires_amount_and_delivery(self):
        bid = TestDataFactory.create_bid(tender=self.tender, quoted_amount=None)
        with self.assertRaisesMessage(WorkflowError, 'Quoted amount is required'):
            bid.submit()
        bid.quoted_amount = Decimal('500.00')
        bid.delivery_period = ''
        with self.assertRaisesMessage(WorkflowError, 'Delivery period is required'):
            bid.submit()

    def test_submit_requires_emd_when_tender_demands_it(self):
        tender = TestDataFactory.create_tender(
            user=self.buyer, status=Tender.STATUS_PUBLISHED,
            is_emd_required=True, emd_amount=Decimal('2000.00')
        )
        bid = TestDataFactory.create_bid(tender=tender)
        with self.assertRaisesMessage(WorkflowError, 'EMD payment is required'):
            bid.submit()

        TestDataFactory.create_emd(tender=tender, vendor=bid.vendor, status=Emd.STATUS_PAID)
        bid.submit()
        self.assertEqual(bid.status, Bid.STATUS_SUBMITTED)
        self.assertIsNotNone(bid.submitted_at)

    def test_withdraw_only_submitted(self):
        bid = TestDataFactory.create_bid(tender=self.tender)
        with self.assertRaises(WorkflowError):
            bid.withdraw()
        bid.submit()
        bid.withdraw('Pricing error')
        self.assertEqual(bid.status, Bid.STATUS_WITHDRAWN)
        self.assertEqual(bid.withdrawal_reason, 'Pricing error')

    def test_shortlist_only_competing_bids(self):
        for bid_status in (Bid.STATUS_DRAFT, Bid.STATUS_WITHDRAWN, Bid.STATUS_DISQUALIFIED, Bid.STATUS_ACCEPTED):
            bid = TestDataFactory.create_bid(tender=self.tender, status=bid_status)
            with self.assertRaisesMessage(WorkflowError, f'Cannot shortlist a bid with status {bid_status}'):
                bid.shortlist()
            bid.refresh_from_db()
            self.assertEqual(bid.status, bid_status)

        evaluated = TestDataFactory.create_bid(tender=self.tender, status=Bid.STATUS_UNDER_EVALUATION)
        evaluated.shortlist()
        self.assertEqual(evaluated.status, Bid.STATUS_SHORTLISTED)
        with self.assertRaises(WorkflowError):
            evaluated.shortlist()

    def test_compare_without_bids(self):
        self.assertIsNone(Bid.compare(self.tender))

    def test_compare_and_analytics(self):
        cheap = TestDataFactory.create_bid(tender=self.tender, status=Bid.STATUS_SUBMITTED, quoted_amount=Decimal('90000.00'))
        dear = TestDataFactory.create_bid(tender=self.tender, status=Bid.STATUS_SUBMITTED, quoted_amount=Decimal('100000.00'))
        TestDataFactory.create_bid(tender=self.tender, quoted_amount=Decimal('10.00'))

        comparison = Bid.compare(self.tender)
        self.assertEqual(comparison['total_bids'], 2)
        self.assertEqual(comparison['lowest_bid'], Decimal('90000.00'))
        self.assertEqual(comparison['average_amount'], Decimal('95000.00'))
        self.assertEqual(comparison['bids'][0]['id'], cheap.id)
        self.assertEqual(comparison['bids'][1]['percentage_from_lowest'], Decimal('11.11'))

        analytics = dear.analytics()
        self.assertEqual(analytics['position'], 2)
        self.assertEqual(analytics['total_bids'], 2)
        self.assertEqual(analytics['percentage_from_lowest'], Decimal('11.11'))


class BidAPITests(TestCase):
    """Test bid endpoints"""

    def setUp(self):
        self.buyer = TestDataFactory.create_user()
        self.vendor = TestDataFactory.create_vendor_user()
        self.tender = TestDataFactory.create_tender(user=self.buyer, status=Tender.STATUS_PUBLISHED)
        self.client = AuthenticatedAPIClient()

    def place_bid(self, amount='95000.00'):
        self.client.authenticate_user(self.vendor)
        return self.client.post('/api/v1/bids/', {
            'tender': self.tender.id,
            'quoted_amount': amount,
            'delivery_period': '45 days',
            'deviations': [{'clause': '4.2', 'description': 'Warranty of 2 years instead of 3'}],
        }, format='json')

    def test_create_bid(self):
        response = self.place_bid()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], Bid.STATUS_DRAFT)
        self.assertEqual(response.data['vendor'], self.vendor.id)
        self.assertEqual(response.data['deviations'][0]['impact'], 'To be assessed')
        self.tender.refresh_from_db()
        self.assertEqual(self.tender.bid_count, 1)

    def test_duplicate_bid_conflicts(self):
        self.place_bid()
        response = self.place_bid()
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_buyer_cannot_bid(self):
        self.client.authenticate_user(self.buyer)
        response = self.client.post('/api/v1/bids/', {'tender': self.tender.id, 'quoted_amount': '1.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_cannot_bid_on_draft_tender(self):
        self.tender.status = Tender.STATUS_DRAFT
        self.tender.save()
        response = self.place_bid()
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Tender is not open for bidding')

    def test_negative_amount_rejected(self):
        response = self.place_bid(amount='-5.00')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('quoted_amount', response.data)

    def test_submit_and_withdraw(self):
        bid_id = self.place_bid().data['id']
        response = self.client.post(f'/api/v1/bids/{bid_id}/submit/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], Bid.STATUS_SUBMITTED)

        response = self.client.patch(f'/api/v1/bids/{bid_id}/', {'quoted_amount': '80000.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(f'/api/v1/bids/{bid_id}/withdraw/', {'reason': 'Capacity'}, format='json')
        self.assertEqual(response.data['status'], Bid.STATUS_WITHDRAWN)

    def test_update_and_delete_draft(self):
        bid_id = self.place_bid().data['id']
        response = self.client.patch(f'/api/v1/bids/{bid_id}/', {'quoted_amount': '88000.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Decimal(response.data['quoted_amount']), Decimal('88000.00'))

        response = self.client.delete(f'/api/v1/bids/{bid_id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.tender.refresh_from_db()
        self.assertEqual(self.tender.bid_count, 0)

    def test_visibility(self):
        bid_id = self.place_bid().data['id']
        self.client.authenticate_user(TestDataFactory.create_vendor_user())
        response = self.client.get(f'/api/v1/bids/{bid_id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.buyer)
        response = self.client.get(f'/api/v1/bids/{bid_id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_evaluation_is_for_tender_owner(self):
        bid = TestDataFactory.create_bid(tender=self.tender, vendor=self.vendor, status=Bid.STATUS_SUBMITTED)
        self.client.authenticate_user(self.vendor)
        response = self.client.post(f'/api/v1/bids/{bid.id}/evaluate/', {'overall_score': '80'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.buyer)
        response = self.client.post(f'/api/v1/bids/{bid.id}/evaluate/', {
            'overall_score': '80.00',
            'technical_score': {'experience': 30, 'methodology': 40},
            'remarks': 'Strong methodology',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], Bid.STATUS_UNDER_EVALUATION)
        self.assertEqual(response.data['evaluated_by'], self.buyer.id)

        response = self.client.post(f'/api/v1/bids/{bid.id}/shortlist/')
        self.assertEqual(response.data['status'], Bid.STATUS_SHORTLISTED)

    def test_disqualify_needs_reason(self):
        bid = TestDataFactory.create_bid(tender=self.tender, vendor=self.vendor, status=Bid.STATUS_SUBMITTED)
        self.client.authenticate_user(self.buyer)
        response = self.client.post(f'/api/v1/bids/{bid.id}/disqualify/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.post(f'/api/v1/bids/{bid.id}/disqualify/', {'reason': 'Forged certificate'}, format='json')
        self.assertEqual(response.data['status'], Bid.STATUS_DISQUALIFIED)

    def test_tender_bids_sorted_by_amount(self):
        TestDataFactory.create_bid(tender=self.tender, quoted_amount=Decimal('120000.00'), status=Bid.STATUS_SUBMITTED)
        TestDataFactory.create_bid(tender=self.tender, quoted_amount=Decimal('70000.00'), status=Bid.STATUS_SUBMITTED)
        self.client.authenticate_user(self.buyer)
        response = self.client.get(f'/api/v1/bids/tender/{self.tender.id}/')
        amounts = [Decimal(row['quoted_amount']) for row in response.data['results']]
        self.assertEqual(amounts, [Decimal('70000.00'), Decimal('120000.00')])

    def test_compare_endpoint(self):
        self.client.authenticate_user(self.buyer)
        response = self.client.get(f'/api/v1/bids/tender/{self.tender.id}/compare/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        TestDataFactory.create_bid(tender=self.tender, status=Bid.STATUS_SUBMITTED)
        response = self.client.get(f'/api/v1/bids/tender/{self.tender.id}/compare/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_bids'], 1)

    def test_my_bids_and_filter(self):
        self.place_bid()
        other_tender = TestDataFactory.create_tender(user=self.buyer, status=Tender.STATUS_PUBLISHED)
        TestDataFactory.create_bid(tender=other_tender, vendor=self.vendor, status=Bid.STATUS_SUBMITTED)
        response = self.client.get('/api/v1/bids/my-bids/')
        self.assertEqual(response.data['count'], 2)
        response = self.client.get('/api/v1/bids/my-bids/?status=submitted')
        self.assertEqual(response.data['count'], 1)
        response = self.client.get('/api/v1/bids/my-bids/?status=bogus')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_analytics_owner_only(self):
        bid = TestDataFactory.create_bid(tender=self.tender, vendor=self.vendor, status=Bid.STATUS_SUBMITTED)
        self.client.authenticate_user(self.buyer)
        response = self.client.get(f'/api/v1/bids/{bid.id}/analytics/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.client.authenticate_user(self.vendor)
        response = self.client.get(f'/api/v1/bids/{bid.id}/analytics/')
        self.assertEqual(response.data['position'], 1)
