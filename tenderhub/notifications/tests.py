"""
Test suite for the notifications module
Tests: inbox endpoints, cleanup, and notifications raised by workflow events
"""
from datetime import timedelta
from decimal import Decimal
from io import StringIO

from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from tenderhub.bids.models import Bid
from tenderhub.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from tenderhub.emd.models import Emd
from tenderhub.notifications.models import Notification
from tenderhub.notifications.services import notify, notify_many
from tenderhub.tenders.models import Tender


def _notify(user, **kwargs):
    kwargs.setdefault('type', Notification.TYPE_INFO)
    kwargs.setdefault('title', 'Hello')
    kwargs.setdefault('message', 'Something happened')
    return notify(user, **kwargs)


class NotificationModelTests(TestCase):

    def setUp(self):
        self.user = TestDataFactory.create_user()

    def test_notify_skips_missing_recipient(self):
        self.assertIsNone(_notify(None))
        self.assertEqual(Notification.objects.count(), 0)

    def test_notify_many_deduplicates_and_excludes_actor(self):
        other = TestDataFactory.create_user()
        sent = notify_many([self.user, other, self.user, None], Notification.TYPE_INFO, 'Hi', 'There', exclude=other)
        self.assertEqual(sent, 1)
        self.assertEqual(Notification.objects.get().recipient, self.user)

    def test_read_tracking(self):
        first = _notify(self.user)
        _notify(self.user)
        self.assertEqual(Notification.unread_count(self.user), 2)
        first.mark_read()
        self.assertIsNotNone(first.read_at)
        self.assertEqual(Notification.unread_count(self.user), 1)
        self.assertEqual(Notification.mark_all_read(self.user), 1)
        self.assertEqual(Notification.unread_count(self.user), 0)

    def test_purge_keeps_recent_and_unread(self):
        old_read = _notify(self.user)
        old_read.mark_read()
        old_unread = _notify(self.user)
        expired = _notify(self.user, expires_at=timezone.now() - timedelta(hours=1))
        recent_read = _notify(self.user)
        recent_read.mark_read()
        Notification.objects.filter(pk__in=[old_read.pk, old_unread.pk]).update(
            created_at=timezone.now() - timedelta(days=40)
        )

        self.assertEqual(Notification.purge(days=30), 2)
        remaining = set(Notification.objects.values_list('pk', flat=True))
        self.assertEqual(remaining, {old_unread.pk, recent_read.pk})
        self.assertNotIn(expired.pk, remaining)

    def test_purge_command(self):
        stale = _notify(self.user)
        stale.mark_read()
        Notification.objects.filter(pk=stale.pk).update(created_at=timezone.now() - timedelta(days=5))
        out = StringIO()
        call_command('purge_notifications', '--days', '3', stdout=out)
        self.assertIn('Purged 1 notification(s)', out.getvalue())
        self.assertFalse(Notification.objects.exists())


class NotificationAPITests(TestCase):
    """Test the notification inbox endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.other = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_list_shows_only_own_notifications(self):
        _notify(self.user, title='Mine')
        _notify(self.other, title='Theirs')
        response = self.client.get('/api/v1/notifications/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['title'], 'Mine')

    def test_list_filters(self):
        _notify(self.user, type=Notification.TYPE_BID_RECEIVED)
        _notify(self.user).mark_read()
        response = self.client.get('/api/v1/notifications/', {'is_read': 'false'})
        self.assertEqual(response.data['count'], 1)
        response = self.client.get('/api/v1/notifications/', {'type': Notification.TYPE_BID_RECEIVED})
        self.assertEqual(response.data['count'], 1)
        response = self.client.get('/api/v1/notifications/', {'type': 'nonsense'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_read_and_unread_count(self):
        notification = _notify(self.user)
        _notify(self.user)
        response = self.client.get('/api/v1/notifications/unread-count/')
        self.assertEqual(response.data['unread_count'], 2)

        response = self.client.patch(f'/api/v1/notifications/{notification.id}/read/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['is_read'])

        response = self.client.post('/api/v1/notifications/mark-all-read/')
        self.assertEqual(response.data['updated'], 1)
        self.assertEqual(Notification.unread_count(self.user), 0)

    def test_other_users_notification_not_found(self):
        notification = _notify(self.other)
        self.assertEqual(self.client.get(f'/api/v1/notifications/{notification.id}/').status_code,
                         status.HTTP_404_NOT_FOUND)
        self.assertEqual(self.client.post(f'/api/v1/notifications/{notification.id}/read/').status_code,
                         status.HTTP_404_NOT_FOUND)
        self.assertEqual(self.client.delete(f'/api/v1/notifications/{notification.id}/').status_code,
                         status.HTTP_404_NOT_FOUND)
        self.assertTrue(Notification.objects.filter(pk=notification.pk).exists())

    def test_delete_own(self):
        notification = _notify(self.user)
        response = self.client.delete(f'/api/v1/notifications/{notification.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Notification.objects.exists())

    def test_send_is_admin_only(self):
        payload = {'recipient': self.other.id, 'title': 'Maintenance', 'message': 'Downtime tonight'}
        response = self.client.post('/api/v1/notifications/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(TestDataFactory.create_admin())
        response = self.client.post('/api/v1/notifications/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['type'], Notification.TYPE_INFO)
        self.assertEqual(Notification.unread_count(self.other), 1)

    def test_cleanup_is_admin_only(self):
        stale = _notify(self.user)
        stale.mark_read()
        Notification.objects.filter(pk=stale.pk).update(created_at=timezone.now() - timedelta(days=10))

        response = self.client.post('/api/v1/notifications/cleanup/', {'days_to_keep': 7}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(TestDataFactory.create_admin())
        response = self.client.post('/api/v1/notifications/cleanup/', {'days_to_keep': 7}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['deleted'], 1)


class WorkflowNotificationTests(TestCase):
    """Workflow actions leave notifications for the other side"""

    def setUp(self):
        self.buyer = TestDataFactory.create_user(organization=TestDataFactory.create_organization())
        self.vendor = TestDataFactory.create_vendor_user()
        self.tender = TestDataFactory.create_tender(user=self.buyer, status=Tender.STATUS_PUBLISHED)
        self.client = AuthenticatedAPIClient()

    def inbox(self, user):
        return list(Notification.objects.filter(recipient=user).values_list('type', flat=True))

    def test_bid_submission_notifies_vendor_and_owner(self):
        bid = TestDataFactory.create_bid(tender=self.tender, vendor=self.vendor)
        self.client.authenticate_user(self.vendor)
        response = self.client.post(f'/api/v1/bids/{bid.id}/submit/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(self.inbox(self.buyer), [Notification.TYPE_BID_RECEIVED])
        self.assertEqual(self.inbox(self.vendor), [])

    def test_failed_action_sends_nothing(self):
        bid = TestDataFactory.create_bid(tender=self.tender, vendor=self.vendor, status=Bid.STATUS_WITHDRAWN)
        self.client.authenticate_user(self.buyer)
        response = self.client.post(f'/api/v1/bids/{bid.id}/shortlist/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Notification.objects.exists())

    def test_shortlist_notifies_vendor(self):
        bid = TestDataFactory.create_bid(tender=self.tender, vendor=self.vendor, status=Bid.STATUS_SUBMITTED)
        self.client.authenticate_user(self.buyer)
        self.client.post(f'/api/v1/bids/{bid.id}/shortlist/')
        notification = Notification.objects.get(recipient=self.vendor)
        self.assertEqual(notification.type, Notification.TYPE_BID_SHORTLISTED)
        self.assertEqual(notification.data['bid_id'], bid.id)
        self.assertIn(bid.reference_number, notification.message)

    def test_cancel_notifies_bidders_and_followers(self):
        TestDataFactory.create_bid(tender=self.tender, vendor=self.vendor, status=Bid.STATUS_SUBMITTED)
        follower = TestDataFactory.create_vendor_user()
        self.tender.favorited_by.add(follower)
        self.client.authenticate_user(self.buyer)
        response = self.client.post(f'/api/v1/tenders/{self.tender.id}/cancel/', {'reason': 'Budget cut'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(self.inbox(self.vendor), [Notification.TYPE_TENDER_CANCELLED])
        self.assertEqual(self.inbox(follower), [Notification.TYPE_TENDER_CANCELLED])
        self.assertEqual(self.inbox(self.buyer), [])

    def test_award_notifies_winner_and_losers(self):
        winner = TestDataFactory.create_bid(tender=self.tender, vendor=self.vendor, status=Bid.STATUS_SHORTLISTED)
        loser = TestDataFactory.create_bid(tender=self.tender, status=Bid.STATUS_SUBMITTED)
        self.tender.close()
        self.client.authenticate_user(self.buyer)
        response = self.client.post(f'/api/v1/tenders/{self.tender.id}/award/', {'bid_id': winner.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(self.inbox(self.vendor), [Notification.TYPE_BID_ACCEPTED])
        self.assertEqual(self.inbox(loser.vendor), [Notification.TYPE_BID_REJECTED])

    def test_emd_verification_notifies_depositor(self):
        emd = TestDataFactory.create_emd(vendor=self.vendor, status=Emd.STATUS_PAID)
        self.client.authenticate_user(emd.tender.created_by)
        response = self.client.post(f'/api/v1/emds/{emd.id}/verify/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(self.inbox(self.vendor), [Notification.TYPE_EMD_VERIFIED])

    def test_vendor_rejection_notifies_organization(self):
        vendor = TestDataFactory.create_vendor(organization=self.vendor.organization)
        self.client.authenticate_user(TestDataFactory.create_admin())
        response = self.client.post(f'/api/v1/vendors/{vendor.id}/reject/', {'remarks': 'Tax ID missing'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        notification = Notification.objects.get(recipient=self.vendor)
        self.assertEqual(notification.type, Notification.TYPE_VENDOR_REJECTED)
        self.assertEqual(notification.priority, Notification.PRIORITY_HIGH)
        self.assertIn('Tax ID missing', notification.message)

    def test_payment_outcome_notifies_payer(self):
        payment = TestDataFactory.create_payment(user=self.buyer, amount=Decimal('250.00'))
        payment.fail('Card declined')
        notification = Notification.objects.get(recipient=self.buyer)
        self.assertEqual(notification.type, Notification.TYPE_PAYMENT_FAILED)
        self.assertIn('Card declined', notification.message)

    def test_contract_approval_notifies_parties(self):
        contract = TestDataFactory.create_contract(user=self.buyer, vendor_organization=self.vendor.organization)
        contract.submit_for_approval()
        self.client.authenticate_user(TestDataFactory.create_admin())
        response = self.client.post(f'/api/v1/contracts/{contract.id}/approve/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(self.inbox(self.buyer), [Notification.TYPE_CONTRACT_APPROVED])
        self.assertEqual(self.inbox(self.vendor), [Notification.TYPE_CONTRACT_APPROVED])
