"""
Test suite for the organizations module
"""
from decimal import Decimal

from django.test import TestCase
from rest_framework import status

from tenderhub.core.models import AuditLog
from tenderhub.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from tenderhub.organizations.models import Organization
from tenderhub.tenders.models import Tender


class OrganizationAPITests(TestCase):
    """Test organization endpoints"""

    def setUp(self):
        self.organization = TestDataFactory.create_organization(name='Municipal Works')
        self.member = TestDataFactory.create_user(organization=self.organization)
        self.outsider = TestDataFactory.create_user()
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()

    def test_list_organizations_with_search(self):
        TestDataFactory.create_organization(name='State Transport')
        self.client.authenticate_user(self.outsider)
        response = self.client.get('/api/v1/organizations/?search=municipal')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['name'], 'Municipal Works')

    def test_only_admin_creates(self):
        self.client.authenticate_user(self.member)
        response = self.client.post('/api/v1/organizations/', {'name': 'New Org'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/v1/organizations/', {'name': 'New Org', 'type': 'government'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], Organization.STATUS_PENDING)
        self.assertTrue(AuditLog.objects.filter(model_name='Organization', action='create').exists())

    def test_my_organization(self):
        self.client.authenticate_user(self.member)
        response = self.client.get('/api/v1/organizations/my-organization/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['id'], self.organization.id)

    def test_my_organization_without_one(self):
        self.client.authenticate_user(self.outsider)
        response = self.client.get('/api/v1/organizations/my-organization/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_member_can_update_but_outsider_cannot(self):
        self.client.authenticate_user(self.outsider)
        response = self.client.patch(f'/api/v1/organizations/{self.organization.id}/', {'city': 'Nagpur'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.member)
        response = self.client.patch(f'/api/v1/organizations/{self.organization.id}/', {'city': 'Nagpur'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['city'], 'Nagpur')

    def test_activate_and_deactivate(self):
        self.client.authenticate_user(self.admin)
        response = self.client.post(f'/api/v1/organizations/{self.organization.id}/deactivate/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], Organization.STATUS_INACTIVE)
        response = self.client.post(f'/api/v1/organizations/{self.organization.id}/activate/')
        self.assertEqual(response.data['status'], Organization.STATUS_ACTIVE)

    def test_users_listing_requires_membership(self):
        self.client.authenticate_user(self.outsider)
        response = self.client.get(f'/api/v1/organizations/{self.organization.id}/users/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.member)
        response = self.client.get(f'/api/v1/organizations/{self.organization.id}/users/')
        self.assertEqual(response.data['count'], 1)

    def test_tenders_hide_drafts_from_outsiders(self):
        TestDataFactory.create_tender(user=self.member)
        TestDataFactory.create_tender(user=self.member, status=Tender.STATUS_PUBLISHED)

        self.client.authenticate_user(self.outsider)
        response = self.client.get(f'/api/v1/organizations/{self.organization.id}/tenders/')
        self.assertEqual(response.data['count'], 1)

        self.client.authenticate_user(self.member)
        response = self.client.get(f'/api/v1/organizations/{self.organization.id}/tenders/')
        self.assertEqual(response.data['count'], 2)

    def test_statistics(self):
        TestDataFactory.create_tender(user=self.member, estimated_value=Decimal('1000.00'))
        TestDataFactory.create_tender(
            user=self.member, status=Tender.STATUS_PUBLISHED, estimated_value=Decimal('2500.00')
        )
        self.client.authenticate_user(self.member)
        response = self.client.get(f'/api/v1/organizations/{self.organization.id}/statistics/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        stats = response.data['statistics']
        self.assertEqual(stats['total_tenders'], 2)
        self.assertEqual(stats['active_tenders'], 1)
        self.assertEqual(stats['total_tender_value'], Decimal('3500.00'))

    def test_settings_are_merged(self):
        self.client.authenticate_user(self.member)
        self.client.post(f'/api/v1/organizations/{self.organization.id}/settings/', {'currency': 'INR'}, format='json')
        response = self.client.post(
            f'/api/v1/organizations/{self.organization.id}/settings/', {'approval_levels': 2}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['currency'], 'INR')
        self.assertEqual(response.data['approval_levels'], 2)
        self.assertEqual(response.data['last_updated_by'], self.member.id)

    def test_delete_with_contracts_conflicts(self):
        TestDataFactory.create_contract(vendor_organization=self.organization)
        self.client.authenticate_user(self.admin)
        response = self.client.delete(f'/api/v1/organizations/{self.organization.id}/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertTrue(Organization.objects.filter(pk=self.organization.id).exists())
