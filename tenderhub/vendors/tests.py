"""
Test suite for the vendors module
Tests: registration, verification workflow, status changes, blacklisting and performance
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
from tenderhub.vendors.models import Vendor, BASE_REQUIRED_DOCUMENTS


def all_documents(category='supplier'):
    vendor = Vendor(category=category)
    return [{'type': doc_type, 'url': f'https://files.test/{doc_type}.pdf'} for doc_type in vendor.required_documents()]


class VendorModelTests(TestCase):
    """Vendor workflow methods"""

    def setUp(self):
        self.vendor = TestDataFactory.create_vendor()

    def test_registration_number_generated(self):
        self.assertTrue(self.vendor.registration_number.startswith(f'VND-{timezone.now().year}-'))

    def test_required_documents_include_category_documents(self):
        required = self.vendor.required_documents()
        for doc_type in BASE_REQUIRED_DOCUMENTS:
            self.assertIn(doc_type, required)
        self.assertIn('supply_license', required)

    def test_initiate_verification_without_documents(self):
        missing = self.vendor.initiate_verification()
        self.assertEqual(self.vendor.verification_status, Vendor.VERIFICATION_PENDING_DOCUMENTS)
        self.assertEqual(len(missing), len(self.vendor.required_documents()))
        with self.assertRaises(WorkflowError):
            self.vendor.initiate_verification()

    def test_submitting_all_documents_moves_to_review(self):
        self.vendor.initiate_verification()
        missing = self.vendor.submit_documents(all_documents())
        self.assertEqual(missing, [])
        self.assertEqual(self.vendor.verification_status, Vendor.VERIFICATION_UNDER_REVIEW)

    def test_verify_approves_and_marks_documents(self):
        self.vendor.submit_documents(all_documents())
        self.vendor.verify(True, 'Looks good')
        self.assertEqual(self.vendor.status, Vendor.STATUS_VERIFIED)
        self.assertIsNotNone(self.vendor.verified_at)
        self.assertTrue(all(doc['status'] == 'verified' for doc in self.vendor.documents))
        with self.assertRaises(WorkflowError):
            self.vendor.verify(True)

    def test_status_transitions(self):
        with self.assertRaises(WorkflowError):
            self.vendor.suspend()
        self.vendor.verify(True)
        self.vendor.suspend('Late deliveries')
        self.assertEqual(self.vendor.status, Vendor.STATUS_SUSPENDED)
        self.assertIn('Late deliveries', self.vendor.notes)
        self.vendor.activate()
        self.assertEqual(self.vendor.status, Vendor.STATUS_VERIFIED)

    def test_blacklist_and_lift(self):
        self.vendor.blacklist('Fraudulent documents', 30)
        self.assertTrue(self.vendor.is_blacklisted)
        self.assertIsNotNone(self.vendor.blacklist_expiry_date)
        with self.assertRaises(WorkflowError):
            self.vendor.blacklist('Again')

        self.vendor.remove_from_blacklist('Appeal accepted')
        self.assertEqual(self.vendor.status, Vendor.STATUS_VERIFIED)
        self.assertEqual(self.vendor.blacklist_history[-1]['remarks'], 'Appeal accepted')
        with self.assertRaises(WorkflowError):
            self.vendor.remove_from_blacklist()

    def test_performance_rating(self):
        self.vendor.update_performance({
            'quality_score': Decimal('4.00'),
            'compliance_score': Decimal('4.00'),
        })
        # 0 * 0.3 + (100 * 0.25 / 100) * 5 + 4 * 0.25 + 4 * 0.2
        self.assertEqual(self.vendor.overall_rating, Decimal('3.05'))

    def test_dispute_resolution_rate(self):
        self.assertEqual(self.vendor.dispute_resolution_rate, Decimal('100.00'))
        self.vendor.total_disputes = 3
        self.vendor.resolved_disputes = 2
        self.assertEqual(self.vendor.dispute_resolution_rate, Decimal('66.67'))

    def test_rate_averages_with_completed_contracts(self):
        self.assertEqual(self.vendor.rate(Decimal('4.00')), Decimal('2.00'))

    def test_record_contract_completion(self):
        self.vendor.total_contracts_in_progress = 1
        self.vendor.record_contract_completion(on_time=False)
        self.assertEqual(self.vendor.total_contracts_completed, 1)
        self.assertEqual(self.vendor.total_contracts_in_progress, 0)
        self.assertEqual(self.vendor.on_time_delivery_rate, Decimal('0.00'))


class VendorAPITests(TestCase):
    """Test vendor endpoints"""

    def setUp(self):
        self.vendor_user = TestDataFactory.create_vendor_user()
        self.manager = TestDataFactory.create_user(role=User.ROLE_MANAGER)
        self.buyer = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()

    def register(self):
        self.client.authenticate_user(self.vendor_user)
        return self.client.post('/api/v1/vendors/', {
            'legal_name': 'Acme Supplies Pvt Ltd',
            'category': 'supplier',
            'primary_contact_email': 'sales@acme.test',
        }, format='json')

    def test_register_vendor(self):
        response = self.register()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['organization'], self.vendor_user.organization_id)
        self.assertEqual(response.data['status'], Vendor.STATUS_PENDING)
        self.assertEqual(response.data['verification_status'], Vendor.VERIFICATION_PENDING_DOCUMENTS)
        self.assertTrue(response.data['missing_documents'])

    def test_register_twice_conflicts(self):
        self.register()
        response = self.register()
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_register_with_bad_organization(self):
        self.client.authenticate_user(TestDataFactory.create_user(role=User.ROLE_VENDOR))
        response = self.client.post('/api/v1/vendors/', {'legal_name': 'Acme', 'organization': 'acme'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('organization', response.data)

        response = self.client.post('/api/v1/vendors/', {'legal_name': 'Acme', 'organization': 999999}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_buyer_cannot_register(self):
        self.client.authenticate_user(self.buyer)
        response = self.client.post('/api/v1/vendors/', {'legal_name': 'Nope'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_submit_documents(self):
        vendor_id = self.register().data['id']
        response = self.client.post(
            f'/api/v1/vendors/{vendor_id}/documents/', {'documents': all_documents()}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['verification_status'], Vendor.VERIFICATION_UNDER_REVIEW)
        self.assertEqual(response.data['missing_documents'], [])

    def test_submit_documents_for_other_vendor_forbidden(self):
        vendor = TestDataFactory.create_vendor()
        self.client.authenticate_user(self.vendor_user)
        response = self.client.post(
            f'/api/v1/vendors/{vendor.id}/documents/', {'documents': all_documents()}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_approve_requires_manager(self):
        vendor_id = self.register().data['id']
        response = self.client.post(f'/api/v1/vendors/{vendor_id}/approve/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.manager)
        response = self.client.post(f'/api/v1/vendors/{vendor_id}/approve/', {'remarks': 'OK'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], Vendor.STATUS_VERIFIED)
        self.assertEqual(response.data['verified_by'], self.manager.id)

    def test_reject(self):
        vendor = TestDataFactory.create_vendor()
        self.client.authenticate_user(self.manager)
        response = self.client.post(f'/api/v1/vendors/{vendor.id}/verify/', {'approved': False, 'remarks': 'Blurry scans'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['verification_status'], Vendor.VERIFICATION_REJECTED)
        self.assertEqual(response.data['verification_remarks'], 'Blurry scans')

    def test_suspend_and_activate(self):
        vendor = TestDataFactory.create_vendor(status=Vendor.STATUS_VERIFIED)
        self.client.authenticate_user(self.manager)
        response = self.client.post(f'/api/v1/vendors/{vendor.id}/suspend/', {'reason': 'Quality issues'}, format='json')
        self.assertEqual(response.data['status'], Vendor.STATUS_SUSPENDED)
        response = self.client.post(f'/api/v1/vendors/{vendor.id}/activate/')
        self.assertEqual(response.data['status'], Vendor.STATUS_VERIFIED)

    def test_invalid_status_transition(self):
        vendor = TestDataFactory.create_vendor()
        self.client.authenticate_user(self.manager)
        response = self.client.post(f'/api/v1/vendors/{vendor.id}/status/', {'status': Vendor.STATUS_SUSPENDED}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('error', response.data)

    def test_blacklist_and_remove(self):
        vendor = TestDataFactory.create_vendor(status=Vendor.STATUS_VERIFIED)
        self.client.authenticate_user(self.manager)
        response = self.client.post(
            f'/api/v1/vendors/{vendor.id}/blacklist/', {'reason': 'Cartel bidding', 'duration_days': 90}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['is_blacklisted'])
        self.assertEqual(response.data['blacklist_history'][0]['blacklisted_by'], self.manager.id)

        response = self.client.post(f'/api/v1/vendors/{vendor.id}/blacklist/', {'reason': 'Again'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.delete(f'/api/v1/vendors/{vendor.id}/blacklist/', {'remarks': 'Appeal upheld'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], Vendor.STATUS_VERIFIED)

    def test_list_excludes_blacklisted(self):
        TestDataFactory.create_vendor(legal_name='Good Co')
        TestDataFactory.create_vendor(legal_name='Bad Co', status=Vendor.STATUS_BLACKLISTED)
        self.client.authenticate_user(self.buyer)

        response = self.client.get('/api/v1/vendors/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['legal_name'] for row in response.data['results']], ['Good Co'])

        response = self.client.get('/api/v1/vendors/?include_blacklisted=true')
        self.assertEqual(response.data['count'], 2)

    def test_list_invalid_filter(self):
        self.client.authenticate_user(self.buyer)
        response = self.client.get('/api/v1/vendors/?category=wizard')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_search(self):
        TestDataFactory.create_vendor(legal_name='Bharat Cables Ltd')
        TestDataFactory.create_vendor(legal_name='Bharat Steel', status=Vendor.STATUS_BLACKLISTED)
        self.client.authenticate_user(self.buyer)
        response = self.client.get('/api/v1/vendors/search/?q=bharat')
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['legal_name'], 'Bharat Cables Ltd')

    def test_categories(self):
        self.client.authenticate_user(self.buyer)
        response = self.client.get('/api/v1/vendors/categories/')
        self.assertIn('manufacturer', response.data['categories'])
        self.assertIn('IT Services', response.data['service_categories'])

    def test_statistics(self):
        TestDataFactory.create_vendor(status=Vendor.STATUS_VERIFIED)
        TestDataFactory.create_vendor(status=Vendor.STATUS_BLACKLISTED)
        self.client.authenticate_user(self.buyer)
        response = self.client.get('/api/v1/vendors/statistics/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total'], 2)
        self.assertEqual(response.data['blacklisted'], 1)
        self.assertEqual(len(response.data['top_rated']), 1)

    def test_my_vendor(self):
        self.client.authenticate_user(self.vendor_user)
        response = self.client.get('/api/v1/vendors/me/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.register()
        response = self.client.get('/api/v1/vendors/me/')
        self.assertEqual(response.data['legal_name'], 'Acme Supplies Pvt Ltd')

    def test_delete_is_soft(self):
        vendor_id = self.register().data['id']
        response = self.client.delete(f'/api/v1/vendors/{vendor_id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertEqual(Vendor.objects.get(pk=vendor_id).status, Vendor.STATUS_INACTIVE)

    def test_update_performance(self):
        vendor = TestDataFactory.create_vendor()
        self.client.authenticate_user(self.buyer)
        response = self.client.patch(f'/api/v1/vendors/{vendor.id}/performance/', {'quality_score': '4.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.manager)
        response = self.client.patch(f'/api/v1/vendors/{vendor.id}/performance/', {
            'quality_score': '4.00',
            'compliance_score': '4.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['metrics']['overall_rating'], Decimal('3.05'))

    def test_rate(self):
        vendor_id = self.register().data['id']
        response = self.client.post(f'/api/v1/vendors/{vendor_id}/rate/', {'score': '5.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.buyer)
        response = self.client.post(f'/api/v1/vendors/{vendor_id}/rate/', {'score': '4.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['overall_rating'], Decimal('2.00'))


class LiftExpiredBlacklistsCommandTests(TestCase):

    def test_lifts_only_expired(self):
        expired = TestDataFactory.create_vendor()
        expired.blacklist('Short ban', 1)
        Vendor.objects.filter(pk=expired.pk).update(blacklist_expiry_date=timezone.now() - timedelta(days=1))
        permanent = TestDataFactory.create_vendor()
        permanent.blacklist('Permanent ban')

        out = StringIO()
        call_command('lift_expired_blacklists', stdout=out)
        self.assertIn('Restored 1 vendor(s)', out.getvalue())

        expired.refresh_from_db()
        permanent.refresh_from_db()
        self.assertEqual(expired.status, Vendor.STATUS_VERIFIED)
        self.assertTrue(permanent.is_blacklisted)

    def test_dry_run_changes_nothing(self):
        vendor = TestDataFactory.create_vendor()
        vendor.blacklist('Short ban', 1)
        Vendor.objects.filter(pk=vendor.pk).update(blacklist_expiry_date=timezone.now() - timedelta(days=1))

        call_command('lift_expired_blacklists', '--dry-run', stdout=StringIO())
        vendor.refresh_from_db()
        self.assertTrue(vendor.is_blacklisted)
