"""
Synchronous runners for processing jobs, keyed by job type.
"""
import logging

from django.core.exceptions import ObjectDoesNotExist
from django.utils import timezone

from tenderhub.bids.models import Bid
from tenderhub.core.exceptions import WorkflowError
from tenderhub.core.utils import is_admin_user
from tenderhub.tenders.models import Tender
from . import analysis
from .client import LLMClient, LLMError
from .models import ProcessingJob

logger = logging.getLogger(__name__)


def _text(payload):
    text = payload.get('text') or payload.get('content') or ''
    if not text.strip():
        raise WorkflowError('Job input needs a non-empty "text"')
    return text


def _tender(payload, user):
    tender_id = payload.get('tender_id')
    if not tender_id:
        raise WorkflowError('Job input needs a "tender_id"')
    tender = Tender.objects.select_related('organization').get(pk=tender_id)
    if user is None or not tender.can_view(user):
        raise WorkflowError('You do not have access to this tender', status_code=403)
    return tender


def can_review_bids(user, tender):
    return tender.is_owner(user) or is_admin_user(user)


def can_access_bid(user, bid):
    return bid.is_owner(user) or can_review_bids(user, bid.tender)


def bid_text(bid):
    parts = [bid.technical_proposal or '', bid.delivery_period or '', str(bid.commercial_proposal or '')]
    parts.extend(analysis.requirement_text(doc) for doc in bid.submitted_documents or [])
    return '\n'.join(parts)


def document_analysis(payload, user):
    text = _text(payload)
    return {
        'fields': analysis.extract_tender_fields(text),
        'summary': analysis.summarize(text),
    }


def tender_extraction(payload, user):
    return analysis.extract_tender_fields(_text(payload))


def bid_evaluation(payload, user):
    tender = _tender(payload, user)
    if not can_review_bids(user, tender):
        raise WorkflowError('Only the tender owner can compare its bids', status_code=403)
    comparison = Bid.compare(tender)
    if comparison is None:
        raise WorkflowError('No submitted bids found for this tender')
    return comparison


def compliance_check(payload, user):
    tender = _tender(payload, user)
    if payload.get('bid_id'):
        bid = Bid.objects.select_related('tender').get(pk=payload['bid_id'], tender=tender)
        if not can_access_bid(user, bid):
            raise WorkflowError('You do not have access to this bid', status_code=403)
        text = bid_text(bid)
    else:
        text = _text(payload)
    return analysis.assess_compliance(analysis.tender_requirements(tender), text)


def risk_assessment(payload, user):
    tender = _tender(payload, user)
    return {
        'tender_id': tender.id,
        'complexity': analysis.complexity(tender),
        'risk_factors': analysis.risk_factors(tender),
    }


def summary_generation(payload, user):
    return {'summary': analysis.summarize(_text(payload), int(payload.get('max_sentences', 5)))}


def comparison(payload, user):
    documents = payload.get('documents') or []
    if len(documents) < 2 or not all(isinstance(doc, dict) and doc.get('name') for doc in documents):
        raise WorkflowError('Job input needs at least two named "documents"')
    return analysis.compare_documents(documents)


def translation(payload, user):
    target = payload.get('target_language') or 'English'
    client = LLMClient()
    try:
        translated = client.complete([
            {'role': 'system', 'content': f'Translate the user text into {target}. Reply with the translation only.'},
            {'role': 'user', 'content': _text(payload)},
        ])
    except LLMError as e:
        raise WorkflowError(str(e))
    return {'target_language': target, 'translation': translated}


HANDLERS = {
    ProcessingJob.TYPE_DOCUMENT_ANALYSIS: document_analysis,
    ProcessingJob.TYPE_TENDER_EXTRACTION: tender_extraction,
    ProcessingJob.TYPE_BID_EVALUATION: bid_evaluation,
    ProcessingJob.TYPE_COMPLIANCE_CHECK: compliance_check,
    ProcessingJob.TYPE_RISK_ASSESSMENT: risk_assessment,
    ProcessingJob.TYPE_SUMMARY_GENERATION: summary_generation,
    ProcessingJob.TYPE_COMPARISON: comparison,
    ProcessingJob.TYPE_TRANSLATION: translation,
}


def is_supported(job_type):
    """Translation needs the LLM endpoint; everything else runs on heuristics"""
    if job_type == ProcessingJob.TYPE_TRANSLATION:
        return LLMClient().enabled
    return job_type in HANDLERS


def run_job(job):
    """Run a pending job in-process, storing its result or error"""
    if job.status != ProcessingJob.STATUS_PENDING:
        raise WorkflowError('Only pending jobs can be run')
    job.status = ProcessingJob.STATUS_PROCESSING
    job.attempts += 1
    job.started_at = timezone.now()
    job.save(update_fields=['status', 'attempts', 'started_at', 'updated_at'])

    try:
        result = HANDLERS[job.type](job.input or {}, job.created_by)
    except (WorkflowError, ObjectDoesNotExist, ValueError, TypeError) as e:
        job.status = ProcessingJob.STATUS_FAILED
        job.error = str(e)
        job.completed_at = timezone.now()
        job.save(update_fields=['status', 'error', 'completed_at', 'updated_at'])
        logger.warning(f"Processing job {job.pk} ({job.type}) failed: {str(e)}")
        return job

    job.status = ProcessingJob.STATUS_COMPLETED
    job.result = result
    job.error = ''
    job.completed_at = timezone.now()
    job.save(update_fields=['status', 'result', 'error', 'completed_at', 'updated_at'])
    logger.info(f"Processing job {job.pk} ({job.type}) completed")
    return job
