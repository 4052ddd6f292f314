"""
Test suite for the core module
Tests: authentication, users, settings, audit logs, search, reference numbers and health
"""
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIClient

from tenderhub.core.models import User, AuditLog, Setting
from tenderhub.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from tenderhub.core.utils import create_audit_log, generate_reference, next_sequence_number
from tenderhub.contracts.models import Contract
from tenderhub.tenders.models import Tender


class AuthTests(TestCase):
    """Registration, login and password endpoints"""

    def setUp(self):
        self.client = APIClient()

    def test_register_returns_tokens(self):
        data = {
            'username': 'newbuyer',
            'email': 'newbuyer@test.com',
            'password': 'Str0ng-Passw0rd!',
            'password_confirm': 'Str0ng-Passw0rd!',
            'role': User.ROLE_BUYER,
        }
        response = self.client.post('/api/v1/auth/register/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)
        self.assertEqual(response.data['user']['role'], User.ROLE_BUYER)

    def test_register_password_mismatch(self):
        data = {
            'username': 'mismatch',
            'email': 'mismatch@test.com',
            'password': 'Str0ng-Passw0rd!',
            'password_confirm': 'Different-Passw0rd!',
        }
        response = self.client.post('/api/v1/auth/register/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_register_cannot_claim_admin_role(self):
        data = {
            'username': 'sneaky',
            'email': 'sneaky@test.com',
            'password': 'Str0ng-Passw0rd!',
            'password_confirm': 'Str0ng-Passw0rd!',
            'role': User.ROLE_ADMIN,
        }
        response = self.client.post('/api/v1/auth/register/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('role', response.data)

    def test_login_returns_user(self):
        TestDataFactory.create_user(username='loginuser', password='testpass123')
        response = self.client.post(
            '/api/v1/auth/login/', {'username': 'loginuser', 'password': 'testpass123'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['user']['username'], 'loginuser')

    def test_login_wrong_password(self):
        TestDataFactory.create_user(username='loginuser', password='testpass123')
        response = self.client.post(
            '/api/v1/auth/login/', {'username': 'loginuser', 'password': 'wrong'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_requires_authentication(self):
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_reports_capabilities(self):
        vendor = TestDataFactory.create_vendor_user()
        client = AuthenticatedAPIClient().authenticate_user(vendor)
        response = client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['can_bid'])
        self.assertFalse(response.data['can_manage_tenders'])
        self.assertFalse(response.data['is_admin'])

    def test_change_password(self):
        user = TestDataFactory.create_user(password='testpass123')
        client = AuthenticatedAPIClient().authenticate_user(user)
        response = client.post('/api/v1/auth/change-password/', {
            'current_password': 'testpass123',
            'new_password': 'An0ther-Str0ng-One!',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        user.refresh_from_db()
        self.assertTrue(user.check_password('An0ther-Str0ng-One!'))

    def test_change_password_wrong_current(self):
        user = TestDataFactory.create_user(password='testpass123')
        client = AuthenticatedAPIClient().authenticate_user(user)
        response = client.post('/api/v1/auth/change-password/', {
            'current_password': 'nope',
            'new_password': 'An0ther-Str0ng-One!',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class UserAndSettingAdminTests(TestCase):
    """User and setting CRUD is restricted to admins"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient().authenticate_user(self.admin)

    def test_list_users_paginated(self):
        TestDataFactory.create_user()
        response = self.client.get('/api/v1/users/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertGreaterEqual(response.data['count'], 2)
        self.assertIn('total_pages', response.data)

    def test_filter_users_by_role(self):
        TestDataFactory.create_vendor_user()
        response = self.client.get('/api/v1/users/?role=vendor')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(all(user['role'] == User.ROLE_VENDOR for user in response.data['results']))

    def test_non_admin_cannot_list_users(self):
        client = AuthenticatedAPIClient().authenticate_user(TestDataFactory.create_user())
        response = client.get('/api/v1/users/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_update_user_role(self):
        user = TestDataFactory.create_user()
        response = self.client.patch(f'/api/v1/users/{user.id}/', {'role': User.ROLE_MANAGER}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        user.refresh_from_db()
        self.assertEqual(user.role, User.ROLE_MANAGER)

    def test_setting_crud(self):
        response = self.client.post('/api/v1/settings/', {'key': 'bid_reminder_days', 'value': '3'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        setting_id = response.data['id']

        response = self.client.patch(f'/api/v1/settings/{setting_id}/', {'value': '5'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Setting.objects.get(pk=setting_id).value, '5')

        response = self.client.delete(f'/api/v1/settings/{setting_id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)


class AuditLogTests(TestCase):
    """Audit log visibility and filtering"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.other = TestDataFactory.create_user()
        create_audit_log(user=self.user, action='create', model_name='Tender', object_id='1')
        create_audit_log(user=self.other, action='publish', model_name='Tender', object_id='2')

    def test_user_sees_only_own_entries(self):
        client = AuthenticatedAPIClient().authenticate_user(self.user)
        response = client.get('/api/v1/audit-logs/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)

    def test_admin_filters_by_action(self):
        client = AuthenticatedAPIClient().authenticate_user(TestDataFactory.create_admin())
        response = client.get('/api/v1/audit-logs/?action=publish')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['object_id'], '2')

    def test_detail_of_someone_elses_entry_is_forbidden(self):
        entry = AuditLog.objects.get(user=self.other)
        client = AuthenticatedAPIClient().authenticate_user(self.user)
        response = client.get(f'/api/v1/audit-logs/{entry.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class ReferenceNumberTests(TestCase):

    def test_generate_reference_format(self):
        reference = generate_reference('BID', Tender)
        prefix, timestamp, code = reference.split('-')
        self.assertEqual(prefix, 'BID')
        self.assertTrue(timestamp.isdigit())
        self.assertEqual(len(code), 6)

    def test_next_sequence_number_increments(self):
        first = TestDataFactory.create_contract()
        second = TestDataFactory.create_contract()
        self.assertTrue(first.contract_number.endswith('-000001'))
        self.assertTrue(second.contract_number.endswith('-000002'))
        prefix = first.contract_number.rsplit('-', 1)[0]
        self.assertEqual(next_sequence_number(Contract, 'contract_number', prefix), f'{prefix}-000003')


class SearchAndHealthTests(TestCase):

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient().authenticate_user(self.user)

    def test_search_requires_query(self):
        response = self.client.get('/api/v1/search/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['tenders'], [])

    def test_search_skips_draft_tenders(self):
        TestDataFactory.create_tender(user=self.user, title='Solar panels phase one')
        TestDataFactory.create_tender(user=self.user, title='Solar panels phase two', status=Tender.STATUS_PUBLISHED)
        response = self.client.get('/api/v1/search/?q=solar')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['tenders']), 1)
        self.assertIn('contracts', response.data)
        self.assertIn('payments', response.data)

    def test_health_is_public(self):
        response = APIClient().get('/api/v1/health/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['checks'], {'database': 'ok', 'cache': 'ok'})
