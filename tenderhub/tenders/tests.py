"""
Test suite for the tenders module
Tests: tender lifecycle, visibility, deadline extension, award and analytics
"""
from datetime import timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from tenderhub.bids.models import Bid
from tenderhub.core.exceptions import WorkflowError
from tenderhub.core.models import AuditLog, User
from tenderhub.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from tenderhub.tenders.models import Tender


class TenderModelTests(TestCase):
    """Test Tender model methods"""

    def setUp(self):
        self.buyer = TestDataFactory.create_user(organization=TestDataFactory.create_organization())

    def test_publish_requires_future_deadline(self):
        tender = TestDataFactory.create_tender(user=self.buyer, days_open=-1)
        with self.assertRaises(WorkflowError):
            tender.publish()

    def test_publish_sets_publish_date(self):
        tender = TestDataFactory.create_tender(user=self.buyer)
        tender.publish()
        self.assertEqual(tender.status, Tender.STATUS_PUBLISHED)
        self.assertIsNotNone(tender.publish_date)
        self.assertTrue(tender.is_bidding_open())

    def test_cannot_publish_twice(self):
        tender = TestDataFactory.create_tender(user=self.buyer, status=Tender.STATUS_PUBLISHED)
        with self.assertRaises(WorkflowError):
            tender.publish()

    def test_extend_deadline_records_amendment(self):
        tender = TestDataFactory.create_tender(user=self.buyer, status=Tender.STATUS_PUBLISHED)
        new_deadline = tender.bid_end_date + timedelta(days=5)
        tender.extend_deadline(new_deadline, 'Clarifications pending', self.buyer)
        self.assertEqual(tender.bid_end_date, new_deadline)
        self.assertEqual(len(tender.amendments), 1)
        self.assertEqual(tender.amendments[0]['type'], 'deadline_extension')

    def test_extend_deadline_must_move_forward(self):
        tender = TestDataFactory.create_tender(user=self.buyer, status=Tender.STATUS_PUBLISHED)
        with self.assertRaises(WorkflowError):
            tender.extend_deadline(tender.bid_end_date - timedelta(days=1))

    def test_cancel_not_allowed_after_award(self):
        tender = TestDataFactory.create_tender(user=self.buyer, status=Tender.STATUS_AWARDED)
        with self.assertRaises(WorkflowError):
            tender.cancel('Too late')

    def test_award_rejects_other_competing_bids(self):
        tender = TestDataFactory.create_tender(user=self.buyer, status=Tender.STATUS_EVALUATION)
        winner = TestDataFactory.create_bid(tender=tender, status=Bid.STATUS_SUBMITTED, quoted_amount=Decimal('80000'))
        loser = TestDataFactory.create_bid(tender=tender, status=Bid.STATUS_SHORTLISTED, quoted_amount=Decimal('95000'))
        withdrawn = TestDataFactory.create_bid(tender=tender, status=Bid.STATUS_WITHDRAWN)

        tender.award(winner)

        winner.refresh_from_db()
        loser.refresh_from_db()
        withdrawn.refresh_from_db()
        self.assertEqual(tender.status, Tender.STATUS_AWARDED)
        self.assertEqual(tender.awarded_to_id, winner.vendor_id)
        self.assertEqual(tender.awarded_amount, Decimal('80000'))
        self.assertEqual(winner.status, Bid.STATUS_ACCEPTED)
        self.assertEqual(loser.status, Bid.STATUS_REJECTED)
        self.assertEqual(withdrawn.status, Bid.STATUS_WITHDRAWN)

    def test_award_requires_evaluation(self):
        tender = TestDataFactory.create_tender(user=self.buyer, status=Tender.STATUS_PUBLISHED)
        bid = TestDataFactory.create_bid(tender=tender, status=Bid.STATUS_SUBMITTED)
        with self.assertRaises(WorkflowError):
            tender.award(bid)

    def test_award_refuses_inactive_bids(self):
        tender = TestDataFactory.create_tender(user=self.buyer, status=Tender.STATUS_EVALUATION)
        for bid_status in (Bid.STATUS_DRAFT, Bid.STATUS_WITHDRAWN, Bid.STATUS_DISQUALIFIED, Bid.STATUS_REJECTED):
            bid = TestDataFactory.create_bid(tender=tender, status=bid_status)
            with self.assertRaisesMessage(WorkflowError, f'Cannot award a bid with status {bid_status}'):
                tender.award(bid)
        tender.refresh_from_db()
        self.assertEqual(tender.status, Tender.STATUS_EVALUATION)
        self.assertIsNone(tender.awarded_to_id)

    def test_award_accepts_evaluated_bid(self):
        tender = TestDataFactory.create_tender(user=self.buyer, status=Tender.STATUS_EVALUATION)
        bid = TestDataFactory.create_bid(tender=tender, status=Bid.STATUS_UNDER_EVALUATION)
        tender.award(bid)
        bid.refresh_from_db()
        self.assertEqual(bid.status, Bid.STATUS_ACCEPTED)

    def test_draft_hidden_from_other_users(self):
        tender = TestDataFactory.create_tender(user=self.buyer)
        self.assertTrue(tender.can_view(self.buyer))
        self.assertFalse(tender.can_view(TestDataFactory.create_user()))

    def test_private_tender_visible_to_invited_vendor(self):
        invited = TestDataFactory.create_vendor_user()
        tender = TestDataFactory.create_tender(
            user=self.buyer, status=Tender.STATUS_PUBLISHED, is_public=False, invited_vendors=[invited.id]
        )
        self.assertTrue(tender.can_view(invited))
        self.assertFalse(tender.can_view(TestDataFactory.create_vendor_user()))

    def test_analytics_ignores_drafts(self):
        tender = TestDataFactory.create_tender(user=self.buyer, status=Tender.STATUS_PUBLISHED)
        TestDataFactory.create_bid(tender=tender, status=Bid.STATUS_SUBMITTED, quoted_amount=Decimal('100.00'))
        TestDataFactory.create_bid(tender=tender, status=Bid.STATUS_SUBMITTED, quoted_amount=Decimal('200.00'))
        TestDataFactory.create_bid(tender=tender, quoted_amount=Decimal('1.00'))
        analytics = tender.analytics()
        self.assertEqual(analytics['total_bids'], 2)
        self.assertEqual(analytics['lowest_bid'], Decimal('100.00'))
        self.assertEqual(analytics['average_bid'], Decimal('150.00'))


class TenderAPITests(TestCase):
    """Test tender endpoints"""

    def setUp(self):
        self.organization = TestDataFactory.create_organization()
        self.buyer = TestDataFactory.create_user(organization=self.organization)
        self.vendor = TestDataFactory.create_vendor_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.buyer)

    def tender_payload(self, **overrides):
        now = timezone.now()
        data = {
            'reference_number': 'TND-2025-001',
            'title': 'Road resurfacing',
            'description': 'Resurfacing of 12 km of arterial road.',
            'category': 'works',
            'estimated_value': '1000000.00',
            'emd_percentage': '2.00',
            'bid_start_date': now.isoformat(),
            'bid_end_date': (now + timedelta(days=14)).isoformat(),
        }
        data.update(overrides)
        return data

    def test_create_tender_as_draft(self):
        response = self.client.post('/api/v1/tenders/', self.tender_payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], Tender.STATUS_DRAFT)
        self.assertEqual(response.data['organization'], self.organization.id)
        self.assertEqual(Decimal(response.data['emd_amount']), Decimal('20000.00'))
        self.assertTrue(AuditLog.objects.filter(model_name='Tender', action='create').exists())

    def test_vendor_cannot_create_tender(self):
        self.client.authenticate_user(self.vendor)
        response = self.client.post('/api/v1/tenders/', self.tender_payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_create_rejects_end_before_start(self):
        now = timezone.now()
        response = self.client.post('/api/v1/tenders/', self.tender_payload(
            bid_start_date=now.isoformat(), bid_end_date=(now - timedelta(days=1)).isoformat()
        ), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('bid_end_date', response.data)

    def test_list_excludes_drafts(self):
        TestDataFactory.create_tender(user=self.buyer)
        TestDataFactory.create_tender(user=self.buyer, status=Tender.STATUS_PUBLISHED)
        self.client.authenticate_user(self.vendor)
        response = self.client.get('/api/v1/tenders/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)

    def test_list_filters_by_category(self):
        TestDataFactory.create_tender(user=self.buyer, status=Tender.STATUS_PUBLISHED, category='works')
        TestDataFactory.create_tender(user=self.buyer, status=Tender.STATUS_PUBLISHED, category='goods')
        response = self.client.get('/api/v1/tenders/?category=works')
        self.assertEqual(response.data['count'], 1)

    def test_list_rejects_invalid_filter(self):
        response = self.client.get('/api/v1/tenders/?status=bogus')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_my_tenders_includes_drafts(self):
        TestDataFactory.create_tender(user=self.buyer)
        response = self.client.get('/api/v1/tenders/my-tenders/')
        self.assertEqual(response.data['count'], 1)

    def test_detail_counts_views_for_non_owner(self):
        tender = TestDataFactory.create_tender(user=self.buyer, status=Tender.STATUS_PUBLISHED)
        self.client.authenticate_user(self.vendor)
        response = self.client.get(f'/api/v1/tenders/{tender.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['view_count'], 1)

    def test_draft_detail_is_404_for_others(self):
        tender = TestDataFactory.create_tender(user=self.buyer)
        self.client.authenticate_user(self.vendor)
        response = self.client.get(f'/api/v1/tenders/{tender.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_update_only_drafts(self):
        tender = TestDataFactory.create_tender(user=self.buyer, status=Tender.STATUS_PUBLISHED)
        response = self.client.patch(f'/api/v1/tenders/{tender.id}/', {'title': 'Changed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_publish_close_award_complete(self):
        tender = TestDataFactory.create_tender(user=self.buyer)
        response = self.client.post(f'/api/v1/tenders/{tender.id}/publish/')
        self.assertEqual(response.data['status'], Tender.STATUS_PUBLISHED)

        bid = TestDataFactory.create_bid(tender=tender, vendor=self.vendor, status=Bid.STATUS_SUBMITTED)
        response = self.client.post(f'/api/v1/tenders/{tender.id}/close/')
        self.assertEqual(response.data['status'], Tender.STATUS_EVALUATION)

        response = self.client.post(f'/api/v1/tenders/{tender.id}/award/', {'bid_id': bid.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['awarded_to'], self.vendor.id)

        response = self.client.post(f'/api/v1/tenders/{tender.id}/complete/')
        self.assertEqual(response.data['status'], Tender.STATUS_COMPLETED)
        self.assertTrue(AuditLog.objects.filter(model_name='Tender', action='award').exists())

    def test_non_owner_cannot_publish(self):
        tender = TestDataFactory.create_tender(user=self.buyer)
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.post(f'/api/v1/tenders/{tender.id}/publish/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_extend_deadline(self):
        tender = TestDataFactory.create_tender(user=self.buyer, status=Tender.STATUS_PUBLISHED)
        new_deadline = tender.bid_end_date + timedelta(days=7)
        response = self.client.post(f'/api/v1/tenders/{tender.id}/extend/', {
            'new_deadline': new_deadline.isoformat(),
            'reason': 'Site visit rescheduled',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['amendments']), 1)

    def test_cancel_draft(self):
        tender = TestDataFactory.create_tender(user=self.buyer)
        response = self.client.post(f'/api/v1/tenders/{tender.id}/cancel/', {'reason': 'Budget cut'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['cancellation_reason'], 'Budget cut')

    def test_favorites(self):
        tender = TestDataFactory.create_tender(user=self.buyer, status=Tender.STATUS_PUBLISHED)
        self.client.authenticate_user(self.vendor)
        response = self.client.post(f'/api/v1/tenders/{tender.id}/favorite/')
        self.assertTrue(response.data['is_favorite'])
        response = self.client.get('/api/v1/tenders/favorites/')
        self.assertEqual(response.data['count'], 1)
        response = self.client.delete(f'/api/v1/tenders/{tender.id}/favorite/')
        self.assertFalse(response.data['is_favorite'])

    def test_buyer_cannot_favorite(self):
        tender = TestDataFactory.create_tender(user=self.buyer, status=Tender.STATUS_PUBLISHED)
        response = self.client.post(f'/api/v1/tenders/{tender.id}/favorite/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_analytics_owner_only(self):
        tender = TestDataFactory.create_tender(user=self.buyer, status=Tender.STATUS_PUBLISHED)
        response = self.client.get(f'/api/v1/tenders/{tender.id}/analytics/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.client.authenticate_user(self.vendor)
        response = self.client.get(f'/api/v1/tenders/{tender.id}/analytics/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_admin_sees_private_tenders(self):
        TestDataFactory.create_tender(user=self.buyer, status=Tender.STATUS_PUBLISHED, is_public=False)
        self.client.authenticate_user(TestDataFactory.create_user(role=User.ROLE_ADMIN))
        response = self.client.get('/api/v1/tenders/')
        self.assertEqual(response.data['count'], 1)
