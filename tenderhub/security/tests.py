"""
Test suite for the security instruments module
Tests: guarantee, deposit and insurance lifecycles, access rules, expiry and statistics
"""
from datetime import timedelta
from decimal import Decimal
from io import StringIO

from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from tenderhub.core.exceptions import WorkflowError
from tenderhub.core.models import User
from tenderhub.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from tenderhub.notifications.models import Notification
from tenderhub.security.models import SecurityInstrument
from tenderhub.tenders.models import Tender


class SecurityInstrumentModelTests(TestCase):

    def setUp(self):
        self.instrument = TestDataFactory.create_security_instrument()
        self.verifier = self.instrument.tender.created_by

    def held(self, **kwargs):
        instrument = TestDataFactory.create_security_instrument(status=SecurityInstrument.STATUS_VERIFIED, **kwargs)
        return instrument

    def test_reference_number(self):
        self.assertTrue(self.instrument.reference_number.startswith('SEC-'))

    def test_guarantee_lifecycle(self):
        self.instrument.submit()
        self.assertIsNotNone(self.instrument.submitted_at)
        self.instrument.verify(True, self.verifier)
        self.assertEqual(self.instrument.verified_by, self.verifier)
        self.instrument.activate()
        self.instrument.release('Contract completed')
        self.assertEqual(self.instrument.status, SecurityInstrument.STATUS_RELEASED)
        with self.assertRaises(WorkflowError):
            self.instrument.claim(Decimal('10.00'), 'Too late')

    def test_rejected_verification_returns_to_draft(self):
        self.instrument.submit()
        with self.assertRaises(WorkflowError):
            self.instrument.verify(False, self.verifier)
        self.instrument.verify(False, self.verifier, 'Wrong beneficiary name')
        self.assertEqual(self.instrument.status, SecurityInstrument.STATUS_DRAFT)
        self.assertEqual(self.instrument.verification_remarks, 'Wrong beneficiary name')

    def test_cannot_submit_expired(self):
        self.instrument.expiry_date = timezone.localdate() - timedelta(days=1)
        with self.assertRaises(WorkflowError):
            self.instrument.submit()

    def test_deposit_is_forfeited_or_refunded(self):
        claimed = self.held(kind=SecurityInstrument.KIND_SECURITY_DEPOSIT)
        claimed.claim(Decimal('2500.00'), 'Delivery default')
        self.assertEqual(claimed.status, SecurityInstrument.STATUS_FORFEITED)
        self.assertEqual(claimed.claimed_amount, Decimal('2500.00'))

        returned = self.held(kind=SecurityInstrument.KIND_SECURITY_DEPOSIT)
        returned.release()
        self.assertEqual(returned.status, SecurityInstrument.STATUS_REFUNDED)

    def test_insurance_cannot_be_released(self):
        policy = self.held(kind=SecurityInstrument.KIND_INSURANCE_POLICY)
        with self.assertRaises(WorkflowError):
            policy.release()
        policy.claim(Decimal('100.00'), 'Site damage')
        self.assertEqual(policy.status, SecurityInstrument.STATUS_CLAIMED)

    def test_claim_limits(self):
        guarantee = self.held()
        with self.assertRaises(WorkflowError):
            guarantee.claim(Decimal('10000.01'), 'Over the limit')
        guarantee.expiry_date = timezone.localdate() - timedelta(days=1)
        with self.assertRaises(WorkflowError):
            guarantee.claim(Decimal('10.00'), 'After expiry')

    def test_cancel_only_before_verification(self):
        self.instrument.cancel()
        self.assertEqual(self.instrument.status, SecurityInstrument.STATUS_CANCELLED)
        with self.assertRaises(WorkflowError):
            self.held().cancel()

    def test_statistics(self):
        self.held(amount=Decimal('4000.00'))
        forfeited = self.held(kind=SecurityInstrument.KIND_SECURITY_DEPOSIT)
        forfeited.claim(Decimal('1500.00'), 'Default')
        stats = SecurityInstrument.statistics()
        self.assertEqual(stats['total'], 3)
        self.assertEqual(stats['by_status'][SecurityInstrument.STATUS_DRAFT], 1)
        self.assertEqual(stats['by_kind'][SecurityInstrument.KIND_SECURITY_DEPOSIT], 1)
        self.assertEqual(stats['held_amount'], Decimal('4000.00'))
        self.assertEqual(stats['claimed_amount'], Decimal('1500.00'))

    def test_expire_command(self):
        lapsed = self.held(expiry_date=timezone.localdate() - timedelta(days=2))
        soon = self.held(expiry_date=timezone.localdate() + timedelta(days=5))
        out = StringIO()
        call_command('expire_securities', '--days', '10', stdout=out)
        lapsed.refresh_from_db()
        self.assertEqual(lapsed.status, SecurityInstrument.STATUS_EXPIRED)
        self.assertIn('Expired 1 security instrument(s), sent 1 expiry alert(s)', out.getvalue())
        alert = Notification.objects.get(type=Notification.TYPE_SECURITY_EXPIRING)
        self.assertEqual(alert.recipient, soon.created_by)


class SecurityInstrumentAPITests(TestCase):
    """Test security instrument endpoints"""

    def setUp(self):
        self.buyer = TestDataFactory.create_user(organization=TestDataFactory.create_organization())
        self.vendor = TestDataFactory.create_vendor_user()
        self.tender = TestDataFactory.create_tender(user=self.buyer, status=Tender.STATUS_PUBLISHED)
        self.client = AuthenticatedAPIClient()

    def furnish(self, **overrides):
        payload = {
            'kind': SecurityInstrument.KIND_BANK_GUARANTEE,
            'purpose': 'performance',
            'amount': '5000.00',
            'tender': self.tender.id,
            'instrument_number': 'BG-778',
            'issuer_name': 'State Bank',
            'issue_date': str(timezone.localdate()),
            'expiry_date': str(timezone.localdate() + timedelta(days=365)),
        }
        payload.update(overrides)
        self.client.authenticate_user(self.vendor)
        return self.client.post('/api/v1/security/instruments/', payload, format='json')

    def test_create_defaults_to_own_organization(self):
        response = self.furnish()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['organization'], self.vendor.organization_id)
        self.assertEqual(response.data['status'], SecurityInstrument.STATUS_DRAFT)
        self.assertEqual(response.data['created_by'], self.vendor.id)

    def test_create_validation(self):
        response = self.furnish(expiry_date=str(timezone.localdate() - timedelta(days=1)))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('expiry_date', response.data)

        response = self.furnish(tender=None)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.furnish(amount='0')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_cannot_furnish_for_foreign_organization_or_bid(self):
        response = self.furnish(organization=self.buyer.organization_id)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('organization', response.data)

        foreign_bid = TestDataFactory.create_bid(tender=self.tender)
        response = self.furnish(bid=foreign_bid.id)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('bid', response.data)

    def test_cannot_furnish_for_hidden_tender(self):
        draft = TestDataFactory.create_tender(user=self.buyer)
        response = self.furnish(tender=draft.id)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('tender', response.data)

    def test_full_workflow_and_notifications(self):
        instrument_id = self.furnish().data['id']

        response = self.client.post(f'/api/v1/security/instruments/{instrument_id}/submit/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], SecurityInstrument.STATUS_SUBMITTED)
        self.assertTrue(Notification.objects.filter(
            recipient=self.buyer, type=Notification.TYPE_SECURITY_SUBMITTED
        ).exists())

        response = self.client.post(f'/api/v1/security/instruments/{instrument_id}/verify/', {'approved': True}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.buyer)
        response = self.client.post(f'/api/v1/security/instruments/{instrument_id}/verify/', {'approved': True}, format='json')
        self.assertEqual(response.data['status'], SecurityInstrument.STATUS_VERIFIED)
        response = self.client.post(f'/api/v1/security/instruments/{instrument_id}/activate/')
        self.assertEqual(response.data['status'], SecurityInstrument.STATUS_ACTIVE)
        response = self.client.post(
            f'/api/v1/security/instruments/{instrument_id}/claim/',
            {'amount': '1200.00', 'reason': 'Late delivery'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], SecurityInstrument.STATUS_CLAIMED)
        self.assertEqual(Decimal(response.data['claimed_amount']), Decimal('1200.00'))

        vendor_inbox = Notification.objects.filter(recipient=self.vendor).values_list('type', flat=True)
        self.assertIn(Notification.TYPE_SECURITY_VERIFIED, vendor_inbox)
        self.assertIn(Notification.TYPE_SECURITY_CLAIMED, vendor_inbox)

    def test_claim_over_amount_rejected(self):
        instrument = TestDataFactory.create_security_instrument(
            provider=self.vendor, tender=self.tender, status=SecurityInstrument.STATUS_ACTIVE
        )
        self.client.authenticate_user(self.buyer)
        response = self.client.post(
            f'/api/v1/security/instruments/{instrument.id}/claim/',
            {'amount': '20000.00', 'reason': 'Everything'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('exceeds', response.data['error'])

    def test_provider_cannot_release_own_instrument(self):
        instrument = TestDataFactory.create_security_instrument(
            provider=self.vendor, tender=self.tender, status=SecurityInstrument.STATUS_VERIFIED
        )
        self.client.authenticate_user(self.vendor)
        response = self.client.post(f'/api/v1/security/instruments/{instrument.id}/release/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_only_drafts_are_editable(self):
        instrument = TestDataFactory.create_security_instrument(
            provider=self.vendor, tender=self.tender, status=SecurityInstrument.STATUS_SUBMITTED
        )
        self.client.authenticate_user(self.vendor)
        response = self.client.patch(f'/api/v1/security/instruments/{instrument.id}/', {'remarks': 'x'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        draft = TestDataFactory.create_security_instrument(provider=self.vendor, tender=self.tender)
        response = self.client.patch(f'/api/v1/security/instruments/{draft.id}/', {'issuer_name': 'City Bank'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['issuer_name'], 'City Bank')
        response = self.client.delete(f'/api/v1/security/instruments/{draft.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

    def test_visibility(self):
        instrument = TestDataFactory.create_security_instrument(provider=self.vendor, tender=self.tender)
        colleague = TestDataFactory.create_vendor_user(organization=self.vendor.organization)
        stranger = TestDataFactory.create_vendor_user()
        auditor = TestDataFactory.create_user(role=User.ROLE_AUDITOR)

        for user, expected in ((colleague, 1), (self.buyer, 1), (auditor, 1), (stranger, 0)):
            self.client.authenticate_user(user)
            response = self.client.get('/api/v1/security/instruments/')
            self.assertEqual(response.data['count'], expected, user.username)

        self.client.authenticate_user(stranger)
        response = self.client.get(f'/api/v1/security/instruments/{instrument.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(auditor)
        response = self.client.get(f'/api/v1/security/instruments/{instrument.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        response = self.client.post(f'/api/v1/security/instruments/{instrument.id}/cancel/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_contract_security_verified_by_buyer(self):
        contract = TestDataFactory.create_contract(user=self.buyer, vendor_organization=self.vendor.organization)
        instrument = TestDataFactory.create_security_instrument(
            provider=self.vendor, contract=contract, status=SecurityInstrument.STATUS_SUBMITTED
        )
        self.client.authenticate_user(self.buyer)
        response = self.client.post(
            f'/api/v1/security/instruments/{instrument.id}/verify/',
            {'approved': False, 'remarks': 'Amount below 5% of contract value'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], SecurityInstrument.STATUS_DRAFT)

    def test_expiring_and_statistics(self):
        TestDataFactory.create_security_instrument(
            provider=self.vendor, tender=self.tender, status=SecurityInstrument.STATUS_ACTIVE,
            expiry_date=timezone.localdate() + timedelta(days=7)
        )
        TestDataFactory.create_security_instrument(
            provider=self.vendor, tender=self.tender, status=SecurityInstrument.STATUS_ACTIVE,
            expiry_date=timezone.localdate() + timedelta(days=90)
        )
        self.client.authenticate_user(self.vendor)
        response = self.client.get('/api/v1/security/instruments/expiring/', {'days': 30})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        response = self.client.get('/api/v1/security/instruments/expiring/', {'days': 'soon'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.get('/api/v1/security/instruments/statistics/')
        self.assertEqual(response.data['total'], 2)
        self.assertEqual(response.data['expiring_soon'], 1)

    def test_tender_listing_is_owner_only(self):
        TestDataFactory.create_security_instrument(provider=self.vendor, tender=self.tender)
        self.client.authenticate_user(self.vendor)
        response = self.client.get(f'/api/v1/security/instruments/tender/{self.tender.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.client.authenticate_user(self.buyer)
        response = self.client.get(f'/api/v1/security/instruments/tender/{self.tender.id}/')
        self.assertEqual(response.data['count'], 1)
