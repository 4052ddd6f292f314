"""
Test suite for the contracts module
Tests: drafting, approval, signing, activation, amendments, renewal, performance and expiry
"""
from datetime import timedelta
from decimal import Decimal
from io import StringIO

from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from tenderhub.bids.models import Bid
from tenderhub.contracts.models import Contract
from tenderhub.core.exceptions import WorkflowError
from tenderhub.core.models import User
from tenderhub.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from tenderhub.tenders.models import Tender


class ContractModelTests(TestCase):
    """Contract lifecycle rules"""

    def setUp(self):
        self.buyer = TestDataFactory.create_user(organization=TestDataFactory.create_organization())
        self.vendor_org = TestDataFactory.create_organization()
        self.vendor_user = TestDataFactory.create_vendor_user(organization=self.vendor_org)

    def test_contract_number_sequence(self):
        contract = TestDataFactory.create_contract(user=self.buyer, vendor_organization=self.vendor_org)
        self.assertEqual(contract.contract_number, f'CONT-{timezone.now().year}-000001')

    def test_approval_flow(self):
        contract = TestDataFactory.create_contract(user=self.buyer, vendor_organization=self.vendor_org)
        with self.assertRaises(WorkflowError):
            contract.approve(self.buyer)
        contract.submit_for_approval()
        contract.reject('Missing penalty clause')
        self.assertEqual(contract.status, Contract.STATUS_DRAFT)
        self.assertEqual(contract.approval_remarks, 'Rejected: Missing penalty clause')
        contract.submit_for_approval()
        contract.approve(self.buyer, 'Fine')
        self.assertEqual(contract.status, Contract.STATUS_APPROVED)
        self.assertEqual(contract.approved_by, self.buyer)

    def test_signing_and_activation(self):
        contract = TestDataFactory.create_contract(
            user=self.buyer, vendor_organization=self.vendor_org, status=Contract.STATUS_APPROVED
        )
        contract.sign(self.buyer, 'Buyer', 'buyer')
        self.assertIsNone(contract.signed_at)
        with self.assertRaisesMessage(WorkflowError, 'already signed'):
            contract.sign(self.buyer, 'Buyer', 'buyer')
        with self.assertRaisesMessage(WorkflowError, 'signed by both parties'):
            contract.activate()

        contract.sign(self.vendor_user, 'Vendor', 'vendor')
        self.assertIsNotNone(contract.signed_at)
        self.assertEqual(len(contract.signatures[0]['signature_hash']), 64)
        contract.activate()
        self.assertEqual(contract.status, Contract.STATUS_ACTIVE)

    def test_activation_counts_vendor_contracts(self):
        vendor = TestDataFactory.create_vendor(organization=self.vendor_org)
        TestDataFactory.create_active_contract(user=self.buyer, vendor_organization=self.vendor_org)
        vendor.refresh_from_db()
        self.assertEqual(vendor.total_contracts_in_progress, 1)

    def test_complete_requires_milestones(self):
        vendor = TestDataFactory.create_vendor(organization=self.vendor_org)
        contract = TestDataFactory.create_active_contract(
            user=self.buyer, vendor_organization=self.vendor_org,
            milestones=[{'name': 'Delivery', 'status': 'pending'}]
        )
        with self.assertRaisesMessage(WorkflowError, 'All milestones must be completed'):
            contract.complete()
        contract.update_milestone(0, 'completed')
        contract.complete()
        self.assertEqual(contract.status, Contract.STATUS_COMPLETED)
        vendor.refresh_from_db()
        self.assertEqual(vendor.total_contracts_completed, 1)
        self.assertEqual(vendor.total_contracts_in_progress, 0)

    def test_update_milestone_validation(self):
        contract = TestDataFactory.create_contract(user=self.buyer, milestones=[{'name': 'Delivery', 'status': 'pending'}])
        with self.assertRaises(WorkflowError):
            contract.update_milestone(3, 'completed')
        with self.assertRaises(WorkflowError):
            contract.update_milestone(0, 'done')

    def test_amend_only_active(self):
        contract = TestDataFactory.create_contract(user=self.buyer)
        with self.assertRaises(WorkflowError):
            contract.amend(self.buyer, 'Extend', {'end_date': contract.end_date + timedelta(days=30)})

        active = TestDataFactory.create_active_contract(user=self.buyer)
        new_end = active.end_date + timedelta(days=30)
        amendment = active.amend(self.buyer, 'Extend by a month', {'end_date': new_end, 'title': 'Ignored'})
        self.assertEqual(amendment['amendment_number'], 1)
        self.assertEqual(amendment['changes'], {'end_date': new_end.isoformat()})
        self.assertEqual(active.end_date, new_end)

    def test_renew(self):
        active = TestDataFactory.create_active_contract(user=self.buyer)
        start = active.end_date + timedelta(days=1)
        renewal = active.renew(self.buyer, start, start + timedelta(days=365))
        self.assertEqual(renewal.parent_contract, active)
        self.assertEqual(renewal.status, Contract.STATUS_DRAFT)
        self.assertEqual(renewal.contract_value, active.contract_value)
        self.assertEqual(active.metadata['superseded_by'], renewal.id)

    def test_record_performance_averages_scores(self):
        contract = TestDataFactory.create_active_contract(user=self.buyer)
        contract.record_performance([
            {'metric': 'On-time delivery', 'target': 95, 'actual': 90, 'score': 80},
            {'metric': 'Defect rate', 'target': 1, 'actual': 0.5, 'score': 90},
        ])
        self.assertEqual(contract.performance_score, Decimal('85.00'))
        self.assertEqual(len(contract.performance_metrics), 2)

    def test_statistics(self):
        TestDataFactory.create_contract(user=self.buyer, contract_value=Decimal('100.00'))
        TestDataFactory.create_active_contract(user=self.buyer, contract_value=Decimal('300.00'))
        stats = Contract.statistics()
        self.assertEqual(stats['total'], 2)
        self.assertEqual(stats['total_value'], Decimal('400.00'))
        self.assertEqual(stats['active_value'], Decimal('300.00'))


class ContractAPITests(TestCase):
    """Test contract endpoints"""

    def setUp(self):
        self.buyer_org = TestDataFactory.create_organization()
        self.buyer = TestDataFactory.create_user(organization=self.buyer_org)
        self.vendor_org = TestDataFactory.create_organization()
        self.vendor_user = TestDataFactory.create_vendor_user(organization=self.vendor_org)
        self.client = AuthenticatedAPIClient().authenticate_user(self.buyer)

    def draft(self, **overrides):
        today = timezone.localdate()
        data = {
            'title': 'Annual supply of stationery',
            'vendor_organization': self.vendor_org.id,
            'contract_value': '250000.00',
            'start_date': today.isoformat(),
            'end_date': (today + timedelta(days=365)).isoformat(),
            'milestones': [{'name': 'First delivery', 'amount': '100000.00'}],
        }
        data.update(overrides)
        return self.client.post('/api/v1/contracts/', data, format='json')

    def test_create_contract(self):
        response = self.draft()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], Contract.STATUS_DRAFT)
        self.assertEqual(response.data['buyer_organization'], self.buyer_org.id)
        self.assertEqual(response.data['milestones'][0]['status'], 'pending')
        self.assertEqual(response.data['milestones'][0]['amount'], '100000.00')

    def test_create_validation(self):
        response = self.draft(vendor_organization=None)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.draft(end_date=timezone.localdate().isoformat())
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('end_date', response.data)

    def test_vendor_cannot_create(self):
        self.client.authenticate_user(self.vendor_user)
        response = self.draft()
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_create_from_bid(self):
        tender = TestDataFactory.create_tender(user=self.buyer, status=Tender.STATUS_AWARDED)
        bid = TestDataFactory.create_bid(
            tender=tender, vendor=self.vendor_user, status=Bid.STATUS_ACCEPTED, quoted_amount=Decimal('87500.00')
        )
        response = self.client.post('/api/v1/contracts/', {
            'title': 'Contract from award',
            'bid': bid.id,
            'start_date': timezone.localdate().isoformat(),
            'end_date': (timezone.localdate() + timedelta(days=90)).isoformat(),
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['vendor_organization'], self.vendor_org.id)
        self.assertEqual(Decimal(response.data['contract_value']), Decimal('87500.00'))
        self.assertEqual(response.data['tender'], tender.id)

    def test_full_lifecycle(self):
        contract_id = self.draft().data['id']
        for action in ('submit', 'approve'):
            response = self.client.post(f'/api/v1/contracts/{contract_id}/{action}/', {}, format='json')
            self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.post(f'/api/v1/contracts/{contract_id}/activate/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        self.client.post(f'/api/v1/contracts/{contract_id}/sign/', {'party_name': 'Buyer', 'party_role': 'buyer'}, format='json')
        self.client.authenticate_user(self.vendor_user)
        response = self.client.post(
            f'/api/v1/contracts/{contract_id}/sign/', {'party_name': 'Vendor', 'party_role': 'vendor'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['signatures']), 2)

        response = self.client.post(f'/api/v1/contracts/{contract_id}/activate/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.buyer)
        response = self.client.post(f'/api/v1/contracts/{contract_id}/activate/')
        self.assertEqual(response.data['status'], Contract.STATUS_ACTIVE)
        self.assertIsNotNone(response.data['days_until_expiry'])

        response = self.client.post(f'/api/v1/contracts/{contract_id}/complete/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.client.patch(f'/api/v1/contracts/{contract_id}/milestones/0/', {'status': 'completed'}, format='json')
        response = self.client.post(f'/api/v1/contracts/{contract_id}/complete/')
        self.assertEqual(response.data['status'], Contract.STATUS_COMPLETED)

        response = self.client.get(f'/api/v1/contracts/{contract_id}/history/')
        actions = {entry['action'] for entry in response.data}
        self.assertTrue({'create', 'submit', 'approve', 'sign', 'activate', 'complete'} <= actions)

    def test_only_drafts_editable(self):
        contract_id = self.draft().data['id']
        response = self.client.patch(f'/api/v1/contracts/{contract_id}/', {'title': 'Renamed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.client.post(f'/api/v1/contracts/{contract_id}/submit/')
        response = self.client.patch(f'/api/v1/contracts/{contract_id}/', {'title': 'Again'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_outsider_cannot_view(self):
        contract_id = self.draft().data['id']
        self.client.authenticate_user(TestDataFactory.create_user(organization=TestDataFactory.create_organization()))
        response = self.client.get(f'/api/v1/contracts/{contract_id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        response = self.client.get('/api/v1/contracts/')
        self.assertEqual(response.data['count'], 0)

    def test_auditor_reads_but_cannot_act(self):
        contract_id = self.draft().data['id']
        for action in ('submit', 'approve'):
            self.client.post(f'/api/v1/contracts/{contract_id}/{action}/', {}, format='json')
        self.client.authenticate_user(TestDataFactory.create_user(role=User.ROLE_AUDITOR))

        response = self.client.get('/api/v1/contracts/')
        self.assertEqual(response.data['count'], 1)
        response = self.client.get(f'/api/v1/contracts/{contract_id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        response = self.client.get(f'/api/v1/contracts/{contract_id}/history/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.post(
            f'/api/v1/contracts/{contract_id}/sign/', {'party_name': 'Audit', 'party_role': 'buyer'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        response = self.client.post(
            f'/api/v1/contracts/{contract_id}/documents/', {'name': 'Note', 'url': 'https://files.test/n.pdf'},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_vendor_sees_own_contracts(self):
        self.draft()
        self.client.authenticate_user(self.vendor_user)
        response = self.client.get('/api/v1/contracts/')
        self.assertEqual(response.data['count'], 1)

    def test_suspend_resume_terminate(self):
        contract = TestDataFactory.create_active_contract(user=self.buyer, vendor_organization=self.vendor_org)
        response = self.client.post(f'/api/v1/contracts/{contract.id}/suspend/', {'reason': 'Audit'}, format='json')
        self.assertEqual(response.data['status'], Contract.STATUS_SUSPENDED)
        response = self.client.post(f'/api/v1/contracts/{contract.id}/resume/')
        self.assertEqual(response.data['status'], Contract.STATUS_ACTIVE)
        response = self.client.post(f'/api/v1/contracts/{contract.id}/terminate/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.post(f'/api/v1/contracts/{contract.id}/terminate/', {'reason': 'Breach'}, format='json')
        self.assertEqual(response.data['status'], Contract.STATUS_TERMINATED)

    def test_amend(self):
        contract = TestDataFactory.create_active_contract(user=self.buyer, vendor_organization=self.vendor_org)
        response = self.client.post(f'/api/v1/contracts/{contract.id}/amend/', {
            'description': 'Scope increase',
            'changes': {'contract_value': '600000.00'},
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Decimal(response.data['contract_value']), Decimal('600000.00'))
        self.assertEqual(response.data['amendments'][0]['changes'], {'contract_value': '600000.00'})

    def test_amend_rejects_bad_value(self):
        contract = TestDataFactory.create_active_contract(user=self.buyer, vendor_organization=self.vendor_org)
        response = self.client.post(f'/api/v1/contracts/{contract.id}/amend/', {
            'description': 'Typo',
            'changes': {'end_date': 'next year'},
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_renew(self):
        contract = TestDataFactory.create_active_contract(user=self.buyer, vendor_organization=self.vendor_org)
        start = contract.end_date + timedelta(days=1)
        response = self.client.post(f'/api/v1/contracts/{contract.id}/renew/', {
            'start_date': start.isoformat(),
            'end_date': (start + timedelta(days=180)).isoformat(),
            'contract_value': '550000.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['parent_contract'], contract.id)
        self.assertEqual(Decimal(response.data['contract_value']), Decimal('550000.00'))

    def test_performance(self):
        contract = TestDataFactory.create_active_contract(user=self.buyer, vendor_organization=self.vendor_org)
        response = self.client.post(f'/api/v1/contracts/{contract.id}/performance/', {
            'metrics': [{'metric': 'Response time', 'target': 4, 'actual': 3, 'score': 70}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Decimal(response.data['performance_score']), Decimal('70.00'))

    def test_documents(self):
        contract_id = self.draft().data['id']
        response = self.client.post(
            f'/api/v1/contracts/{contract_id}/documents/', {'name': 'Signed copy', 'url': 'https://files.test/c.pdf'},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        document_id = response.data['id']
        self.assertEqual(response.data['uploaded_by'], self.buyer.id)

        response = self.client.delete(f'/api/v1/contracts/{contract_id}/documents/{document_id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['documents'], [])
        response = self.client.delete(f'/api/v1/contracts/{contract_id}/documents/{document_id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_expiring(self):
        TestDataFactory.create_active_contract(
            user=self.buyer, vendor_organization=self.vendor_org,
            end_date=timezone.localdate() + timedelta(days=10)
        )
        TestDataFactory.create_active_contract(user=self.buyer, vendor_organization=self.vendor_org)
        response = self.client.get('/api/v1/contracts/expiring/?days=30')
        self.assertEqual(len(response.data), 1)
        response = self.client.get('/api/v1/contracts/expiring/?days=soon')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_statistics_scoped_to_user(self):
        self.draft()
        TestDataFactory.create_contract()
        response = self.client.get('/api/v1/contracts/statistics/')
        self.assertEqual(response.data['total'], 1)
        self.client.authenticate_user(TestDataFactory.create_admin())
        response = self.client.get('/api/v1/contracts/statistics/')
        self.assertEqual(response.data['total'], 2)

    def test_templates(self):
        response = self.client.get('/api/v1/contracts/templates/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('standard-purchase', [template['id'] for template in response.data['templates']])


class ContractCommandTests(TestCase):

    def setUp(self):
        self.buyer = TestDataFactory.create_user(organization=TestDataFactory.create_organization())

    def test_expire_contracts(self):
        today = timezone.localdate()
        ended = TestDataFactory.create_active_contract(
            user=self.buyer, start_date=today - timedelta(days=400), end_date=today - timedelta(days=1)
        )
        running = TestDataFactory.create_active_contract(user=self.buyer)

        out = StringIO()
        call_command('expire_contracts', stdout=out)
        self.assertIn('Expired 1 contract(s)', out.getvalue())
        ended.refresh_from_db()
        running.refresh_from_db()
        self.assertEqual(ended.status, Contract.STATUS_EXPIRED)
        self.assertEqual(running.status, Contract.STATUS_ACTIVE)

    def test_check_expiring_contracts(self):
        TestDataFactory.create_active_contract(
            user=self.buyer, end_date=timezone.localdate() + timedelta(days=5)
        )
        out = StringIO()
        call_command('check_expiring_contracts', '--days', '7', stdout=out)
        self.assertIn('1 contract(s) expiring in the next 7 days', out.getvalue())
