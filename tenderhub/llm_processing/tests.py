"""
Test suite for the document intelligence module
Tests: field extraction, compliance, pricing, document generation, jobs,
knowledge bases, prompt templates and chat
"""
from decimal import Decimal

from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase, override_settings
from rest_framework import status

from tenderhub.bids.models import Bid
from tenderhub.core.exceptions import WorkflowError
from tenderhub.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from tenderhub.llm_processing import analysis
from tenderhub.llm_processing.client import LLMClient
from tenderhub.llm_processing.jobs import run_job, is_supported
from tenderhub.llm_processing.models import ProcessingJob, KnowledgeBase, PromptTemplate
from tenderhub.tenders.models import Tender

NOTICE = """NOTICE INVITING TENDER
Tender No: PWD/2024/117
Title: Construction of community hall
Estimated value: Rs 1,00,000
EMD amount: Rs 2,000
Closing date: 15/03/2025
Bidders must submit audited balance sheets.
The contractor shall complete the work in 90 days.
"""


class AnalysisTests(TestCase):
    """Heuristics that run without an LLM"""

    def test_extract_tender_fields(self):
        fields = analysis.extract_tender_fields(NOTICE)
        self.assertEqual(fields['reference_number'], 'PWD/2024/117')
        self.assertEqual(fields['title'], 'Construction of community hall')
        self.assertEqual(fields['dates']['closing_date'], '2025-03-15')
        self.assertIsNone(fields['dates']['opening_date'])
        self.assertEqual(fields['amounts']['estimated_value'], Decimal('100000'))
        self.assertEqual(fields['amounts']['emd_amount'], Decimal('2000'))
        self.assertIsNone(fields['amounts']['tender_fee'])
        self.assertEqual(len(fields['requirements']), 2)

    def test_title_falls_back_to_first_line(self):
        fields = analysis.extract_tender_fields('Supply of laptops\nQuantity 40')
        self.assertEqual(fields['title'], 'Supply of laptops')
        self.assertIsNone(fields['reference_number'])

    def test_assess_compliance(self):
        result = analysis.assess_compliance(
            ['ISO 9001 certification', 'Three years experience in road works'],
            'We hold ISO certification and 5 years of experience',
        )
        self.assertEqual(result['met'], 1)
        self.assertEqual(result['not_met'], 1)
        self.assertEqual(result['compliance_score'], Decimal('50.00'))
        self.assertEqual(result['details'][0]['status'], 'met')
        self.assertEqual(len(result['recommendations']), 1)

    def test_optimize_pricing_positions(self):
        tender = TestDataFactory.create_tender()
        self.assertEqual(analysis.optimize_pricing(tender, '50000')['position'], 'below_range')
        result = analysis.optimize_pricing(tender, '80000')
        self.assertEqual(result['suggested_price'], Decimal('92000.00'))
        self.assertEqual(result['position'], 'competitive')
        self.assertEqual(result['competitive_range'], {'min': Decimal('85000.00'), 'max': Decimal('110000.00')})
        self.assertEqual(analysis.optimize_pricing(tender, '100000')['position'], 'above_range')

        with self.assertRaises(WorkflowError):
            analysis.optimize_pricing(tender, '0')

    def test_pricing_without_estimate(self):
        tender = TestDataFactory.create_tender(estimated_value=None)
        result = analysis.optimize_pricing(tender, '1000')
        self.assertEqual(result['position'], 'unknown')
        self.assertIsNone(result['competitive_range'])

    def test_generate_document_marks_missing_values(self):
        document = analysis.generate_document('award-letter', {'vendor_name': 'Acme Supplies'})
        self.assertIn('To: Acme Supplies', document['content'])
        self.assertIn('[awarded_amount]', document['content'])
        with self.assertRaises(WorkflowError):
            analysis.generate_document('memo', {})

    def test_compare_documents(self):
        result = analysis.compare_documents([
            {'name': 'a', 'content': 'cement steel bricks'},
            {'name': 'b', 'content': 'cement steel bricks'},
        ])
        self.assertEqual(result['comparisons'][0]['similarity'], Decimal('100.00'))

    def test_analyze_tender(self):
        tender = TestDataFactory.create_tender(status=Tender.STATUS_PUBLISHED)
        result = analysis.analyze_tender(tender)
        self.assertEqual(result['complexity']['level'], 'Low')
        self.assertEqual(result['estimated_preparation_days'], 7)
        self.assertEqual(len(result['key_requirements']), 1)


@override_settings(LLM_API_URL='')
class ProcessingJobTests(TestCase):

    def setUp(self):
        self.user = TestDataFactory.create_user()

    def test_run_job_success(self):
        job = ProcessingJob.objects.create(
            type=ProcessingJob.TYPE_TENDER_EXTRACTION, input={'text': NOTICE}, created_by=self.user
        )
        run_job(job)
        self.assertEqual(job.status, ProcessingJob.STATUS_COMPLETED)
        self.assertEqual(job.attempts, 1)
        self.assertEqual(job.result['reference_number'], 'PWD/2024/117')

    def test_run_job_failure(self):
        job = ProcessingJob.objects.create(
            type=ProcessingJob.TYPE_COMPARISON, input={'documents': [{'name': 'only'}]}, created_by=self.user
        )
        run_job(job)
        self.assertEqual(job.status, ProcessingJob.STATUS_FAILED)
        self.assertIn('at least two', job.error)

    def test_missing_tender_fails_job(self):
        job = ProcessingJob.objects.create(
            type=ProcessingJob.TYPE_RISK_ASSESSMENT, input={'tender_id': 999999}, created_by=self.user
        )
        run_job(job)
        self.assertEqual(job.status, ProcessingJob.STATUS_FAILED)

    def test_run_only_pending(self):
        job = ProcessingJob.objects.create(type=ProcessingJob.TYPE_SUMMARY_GENERATION, status=ProcessingJob.STATUS_COMPLETED)
        with self.assertRaises(WorkflowError):
            run_job(job)

    def test_translation_needs_llm(self):
        self.assertFalse(is_supported(ProcessingJob.TYPE_TRANSLATION))
        self.assertTrue(is_supported(ProcessingJob.TYPE_SUMMARY_GENERATION))
        with override_settings(LLM_API_URL='http://llm.local/v1/chat/completions'):
            self.assertTrue(is_supported(ProcessingJob.TYPE_TRANSLATION))

    def test_cancel_and_retry(self):
        job = ProcessingJob.objects.create(type=ProcessingJob.TYPE_SUMMARY_GENERATION)
        with self.assertRaises(WorkflowError):
            job.reset_for_retry()
        job.cancel()
        self.assertEqual(job.status, ProcessingJob.STATUS_CANCELLED)
        with self.assertRaises(WorkflowError):
            job.cancel()
        job.reset_for_retry()
        self.assertEqual(job.status, ProcessingJob.STATUS_PENDING)


@override_settings(LLM_API_URL='')
class DocumentIntelligenceAPITests(TestCase):
    """Test the /ai/ endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.tender = TestDataFactory.create_tender(user=self.user, status=Tender.STATUS_PUBLISHED)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_extract_tender_from_text_file(self):
        upload = SimpleUploadedFile('notice.txt', NOTICE.encode('utf-8'), content_type='text/plain')
        response = self.client.post('/api/v1/ai/extract-tender/', {'file': upload}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['file_name'], 'notice.txt')
        self.assertEqual(response.data['extracted']['reference_number'], 'PWD/2024/117')

    def test_extract_rejects_unsupported_format(self):
        upload = SimpleUploadedFile('notice.xls', b'binary', content_type='application/vnd.ms-excel')
        response = self.client.post('/api/v1/ai/extract-tender/', {'file': upload}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_analyze_tender_access(self):
        response = self.client.get(f'/api/v1/ai/analyze-tender/{self.tender.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['tender_id'], self.tender.id)

        draft = TestDataFactory.create_tender()
        response = self.client.get(f'/api/v1/ai/analyze-tender/{draft.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_assess_compliance(self):
        response = self.client.post('/api/v1/ai/assess-compliance/', {
            'tender_id': self.tender.id,
            'content': 'We are ISO 9001 certified with a certification valid until 2027',
            'requirements': ['ISO certification'],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['met'], 1)

        response = self.client.post('/api/v1/ai/assess-compliance/', {'tender_id': self.tender.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_generate_proposal(self):
        response = self.client.post('/api/v1/ai/generate-proposal/', {
            'tender_id': self.tender.id,
            'company_profile': {'name': 'Acme Supplies', 'strengths': ['Local warehouse']},
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['key_differentiators'], ['Local warehouse'])
        self.assertIn('compliance_matrix', response.data)

    def test_generate_document_with_template_override(self):
        response = self.client.post('/api/v1/ai/generate-document/', {
            'type': 'tender-notice', 'tender_id': self.tender.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['template'], 'default')
        self.assertIn(self.tender.title, response.data['content'])

        PromptTemplate.objects.create(name='award-letter', template='Awarded to {vendor_name}', created_by=self.user)
        response = self.client.post('/api/v1/ai/generate-document/', {
            'type': 'award-letter', 'data': {'vendor_name': 'Acme'},
        }, format='json')
        self.assertEqual(response.data['template'], 'award-letter')
        self.assertEqual(response.data['content'], 'Awarded to Acme')

    def test_generate_document_ignores_other_users_templates(self):
        PromptTemplate.objects.create(
            name='award-letter', template='Pay fees to {vendor_name}', created_by=TestDataFactory.create_user()
        )
        response = self.client.post('/api/v1/ai/generate-document/', {
            'type': 'award-letter', 'data': {'vendor_name': 'Acme'},
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['template'], 'default')
        self.assertIn('To: Acme', response.data['content'])

    def test_generate_document_uses_admin_template(self):
        PromptTemplate.objects.create(
            name='award-letter', template='Congratulations {vendor_name}', created_by=TestDataFactory.create_admin()
        )
        response = self.client.post('/api/v1/ai/generate-document/', {
            'type': 'award-letter', 'data': {'vendor_name': 'Acme'},
        }, format='json')
        self.assertEqual(response.data['template'], 'award-letter')
        self.assertEqual(response.data['content'], 'Congratulations Acme')

    def test_generate_document_with_broken_template(self):
        PromptTemplate.objects.create(name='award-letter', template='Hi {0}, welcome {vendor_name}', created_by=self.user)
        response = self.client.post('/api/v1/ai/generate-document/', {
            'type': 'award-letter', 'data': {'vendor_name': 'Acme'},
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('could not be rendered', response.data['error'])

    def test_optimize_pricing(self):
        response = self.client.post('/api/v1/ai/optimize-pricing/', {
            'tender_id': self.tender.id, 'cost_estimate': '80000.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['position'], 'competitive')

    def test_chat_uses_heuristic_provider(self):
        response = self.client.post('/api/v1/ai/chat/', {'message': 'How do I pay the EMD?'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['provider'], 'heuristic')
        self.assertIn('earnest money deposit', response.data['message'])

    def test_providers(self):
        response = self.client.get('/api/v1/ai/providers/')
        self.assertEqual(response.data['default'], 'heuristic')
        self.assertEqual([p['name'] for p in response.data['providers']], ['heuristic'])

    def test_usage_statistics(self):
        ProcessingJob.objects.create(type=ProcessingJob.TYPE_SUMMARY_GENERATION, created_by=self.user)
        ProcessingJob.objects.create(type=ProcessingJob.TYPE_SUMMARY_GENERATION)
        response = self.client.get('/api/v1/ai/usage/')
        self.assertEqual(response.data['total_jobs'], 1)
        self.assertEqual(response.data['jobs_by_type'], {'summary_generation': 1})
        self.assertEqual(response.data['provider'], 'heuristic')


@override_settings(LLM_API_URL='')
class ProcessingJobAPITests(TestCase):

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def create_job(self, **payload):
        data = {'type': 'summary_generation', 'input': {'text': 'Supply of 40 laptops. Delivery in 30 days.'}}
        data.update(payload)
        return self.client.post('/api/v1/ai/jobs/', data, format='json')

    def test_create_runs_job(self):
        response = self.create_job()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], ProcessingJob.STATUS_COMPLETED)

        response = self.client.get(f"/api/v1/ai/jobs/{response.data['id']}/result/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['result']['summary'], 'Supply of 40 laptops. Delivery in 30 days.')

    def test_deferred_job_stays_pending(self):
        response = self.create_job(defer=True)
        self.assertEqual(response.data['status'], ProcessingJob.STATUS_PENDING)
        response = self.client.get(f"/api/v1/ai/jobs/{response.data['id']}/result/")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_translation_waits_for_llm(self):
        response = self.create_job(type='translation')
        self.assertEqual(response.data['status'], ProcessingJob.STATUS_PENDING)

    def test_invalid_type(self):
        response = self.create_job(type='divination')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_cancel_then_retry(self):
        job_id = self.create_job(defer=True).data['id']
        response = self.client.post(f'/api/v1/ai/jobs/{job_id}/cancel/')
        self.assertEqual(response.data['status'], ProcessingJob.STATUS_CANCELLED)

        response = self.client.post(f'/api/v1/ai/jobs/{job_id}/cancel/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(f'/api/v1/ai/jobs/{job_id}/retry/')
        self.assertEqual(response.data['status'], ProcessingJob.STATUS_COMPLETED)
        self.assertEqual(response.data['attempts'], 1)

    def test_jobs_are_private(self):
        job_id = self.create_job().data['id']
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.get(f'/api/v1/ai/jobs/{job_id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        response = self.client.get('/api/v1/ai/jobs/')
        self.assertEqual(response.data['count'], 0)

    def test_list_filter_and_delete(self):
        self.create_job()
        job_id = self.create_job(defer=True).data['id']
        response = self.client.get('/api/v1/ai/jobs/?status=pending')
        self.assertEqual(response.data['count'], 1)

        response = self.client.delete(f'/api/v1/ai/jobs/{job_id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(ProcessingJob.objects.filter(pk=job_id).exists())


@override_settings(LLM_API_URL='')
class TenderJobAccessTests(TestCase):
    """Tender-bound jobs run with the access of the user who queued them"""

    def setUp(self):
        self.buyer = TestDataFactory.create_user()
        self.tender = TestDataFactory.create_tender(user=self.buyer, status=Tender.STATUS_PUBLISHED)
        self.bid = TestDataFactory.create_bid(tender=self.tender, status=Bid.STATUS_SUBMITTED)
        TestDataFactory.create_bid(tender=self.tender, status=Bid.STATUS_SUBMITTED, quoted_amount=Decimal('95000.00'))
        self.outsider = TestDataFactory.create_vendor_user()
        self.client = AuthenticatedAPIClient()

    def post_job(self, user, job_type, **job_input):
        self.client.authenticate_user(user)
        return self.client.post('/api/v1/ai/jobs/', {
            'type': job_type, 'input': dict(job_input, tender_id=self.tender.id),
        }, format='json')

    def test_owner_can_evaluate_bids(self):
        response = self.post_job(self.buyer, 'bid_evaluation')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], ProcessingJob.STATUS_COMPLETED)
        self.assertEqual(response.data['result']['total_bids'], 2)

    def test_other_vendor_cannot_evaluate_bids(self):
        response = self.post_job(self.outsider, 'bid_evaluation')
        self.assertEqual(response.data['status'], ProcessingJob.STATUS_FAILED)
        self.assertIn('tender owner', response.data['error'])
        self.assertIsNone(response.data['result'])

    def test_other_vendor_cannot_check_foreign_bid(self):
        response = self.post_job(self.outsider, 'compliance_check', bid_id=self.bid.id)
        self.assertEqual(response.data['status'], ProcessingJob.STATUS_FAILED)
        self.assertIn('access to this bid', response.data['error'])
        self.assertIsNone(response.data['result'])

    def test_bidder_can_check_own_bid(self):
        response = self.post_job(self.bid.vendor, 'compliance_check', bid_id=self.bid.id)
        self.assertEqual(response.data['status'], ProcessingJob.STATUS_COMPLETED)

    def test_draft_tender_hidden_from_jobs(self):
        draft = TestDataFactory.create_tender(user=self.buyer)
        self.client.authenticate_user(self.outsider)
        response = self.client.post('/api/v1/ai/jobs/', {
            'type': 'risk_assessment', 'input': {'tender_id': draft.id},
        }, format='json')
        self.assertEqual(response.data['status'], ProcessingJob.STATUS_FAILED)
        self.assertIn('access to this tender', response.data['error'])


class KnowledgeBaseAPITests(TestCase):
    """Test knowledge base endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        response = self.client.post('/api/v1/ai/knowledge-bases/', {'name': 'Procurement rules'}, format='json')
        self.kb_id = response.data['id']

    def add(self, title, content):
        return self.client.post(f'/api/v1/ai/knowledge-bases/{self.kb_id}/documents/', {
            'title': title, 'content': content,
        }, format='json')

    def test_add_and_query(self):
        response = self.add('Certification', 'Suppliers need ISO certification for all equipment.')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.add('Payments', 'Invoices are paid within 30 days of acceptance.')

        response = self.client.post(f'/api/v1/ai/knowledge-bases/{self.kb_id}/query/', {
            'question': 'Which certification is needed?',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['matches'][0]['title'], 'Certification')

    def test_add_requires_content(self):
        response = self.client.post(f'/api/v1/ai/knowledge-bases/{self.kb_id}/documents/', {'title': 'Empty'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_add_from_upload(self):
        upload = SimpleUploadedFile('rules.txt', b'Bid security is mandatory.', content_type='text/plain')
        response = self.client.post(
            f'/api/v1/ai/knowledge-bases/{self.kb_id}/documents/', {'file': upload}, format='multipart'
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['title'], 'rules.txt')
        self.assertEqual(response.data['source'], 'upload')

    def test_remove_document(self):
        document_id = self.add('Temp', 'Temporary note').data['id']
        response = self.client.delete(f'/api/v1/ai/knowledge-bases/{self.kb_id}/documents/{document_id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        response = self.client.delete(f'/api/v1/ai/knowledge-bases/{self.kb_id}/documents/{document_id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_only_creator_modifies(self):
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.add('Intruder', 'Should not be stored')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        response = self.client.get(f'/api/v1/ai/knowledge-bases/{self.kb_id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_inactive_cannot_be_queried(self):
        KnowledgeBase.objects.filter(pk=self.kb_id).update(is_active=False)
        response = self.client.post(f'/api/v1/ai/knowledge-bases/{self.kb_id}/query/', {'question': 'anything'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_refresh(self):
        self.add('Note', 'one two three')
        response = self.client.post(f'/api/v1/ai/knowledge-bases/{self.kb_id}/refresh/')
        self.assertIsNotNone(response.data['last_refreshed_at'])
        self.assertEqual(response.data['document_count'], 1)


class PromptTemplateAPITests(TestCase):

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        response = self.client.post('/api/v1/ai/templates/', {
            'name': 'bid-reminder',
            'category': 'notifications',
            'template': 'Dear {vendor}, bids for {reference} close soon.',
        }, format='json')
        self.template_id = response.data['id']

    def test_variables_detected(self):
        template = PromptTemplate.objects.get(pk=self.template_id)
        self.assertEqual(template.variables, ['vendor', 'reference'])

    def test_unbalanced_braces_rejected(self):
        response = self.client.post('/api/v1/ai/templates/', {
            'name': 'broken', 'template': 'Dear {vendor',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('template', response.data)

    def test_render(self):
        url = f'/api/v1/ai/templates/{self.template_id}/test/'
        response = self.client.post(url, {'variables': {'vendor': 'Acme'}}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(url, {'variables': {'vendor': 'Acme', 'reference': 'TND-1'}}, format='json')
        self.assertEqual(response.data['rendered'], 'Dear Acme, bids for TND-1 close soon.')

    def test_clone(self):
        url = f'/api/v1/ai/templates/{self.template_id}/clone/'
        response = self.client.post(url, {'name': 'bid-reminder'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

        response = self.client.post(url, {'name': 'bid-reminder-v2'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['category'], 'notifications')

    def test_filter_and_modify(self):
        response = self.client.get('/api/v1/ai/templates/?category=notifications')
        self.assertEqual(response.data['count'], 1)

        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.patch(f'/api/v1/ai/templates/{self.template_id}/', {'is_active': False}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class LLMClientTests(TestCase):

    def test_disabled_client(self):
        client = LLMClient(api_url='')
        self.assertFalse(client.enabled)
        reply = client.chat('Tell me about contracts')
        self.assertEqual(reply['provider'], 'heuristic')
        self.assertIn('Contracts move from draft', reply['message'])

    def test_enabled_client_lists_llm_first(self):
        client = LLMClient(api_url='http://llm.local/v1/chat/completions', model='local-model')
        providers = client.providers()
        self.assertEqual(providers['default'], 'local-model')
        self.assertEqual(providers['providers'][0]['name'], 'llm')
