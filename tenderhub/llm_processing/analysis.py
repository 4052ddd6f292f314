"""
Heuristic document intelligence for tenders and bids.

Everything here works on plain text and model instances only, so it runs
without an LLM endpoint. client.py layers the optional LLM on top.
"""
import re
import string
from collections import Counter
from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from tenderhub.core.exceptions import WorkflowError

TWO_PLACES = Decimal('0.01')

STOPWORDS = {
    'the', 'and', 'for', 'with', 'that', 'this', 'from', 'shall', 'must', 'should', 'will', 'have', 'been',
    'are', 'all', 'any', 'not', 'per', 'its', 'their', 'which', 'such', 'other', 'into', 'than', 'then',
    'also', 'each', 'under', 'upon', 'where', 'required', 'requirement', 'requirements', 'bidder', 'bidders',
    'vendor', 'vendors', 'tender', 'what', 'when', 'how', 'does', 'about',
}

REFERENCE_RE = re.compile(r'tender\s*no\.?\s*:?\s*(\S+)', re.IGNORECASE)
TITLE_RE = re.compile(r'^\s*(?:title|subject|name\s+of\s+(?:the\s+)?work)\s*[:\-]\s*(.+)$', re.IGNORECASE | re.MULTILINE)
DATE_VALUE = r'(\d{1,2}[/-]\d{1,2}[/-]\d{4}|\d{4}-\d{2}-\d{2})'
DATE_PATTERNS = {
    'opening_date': re.compile(r'opening\s*date\s*[:\-]?\s*' + DATE_VALUE, re.IGNORECASE),
    'closing_date': re.compile(r'(?:closing|last|submission)\s*date\s*[:\-]?\s*' + DATE_VALUE, re.IGNORECASE),
    'prebid_date': re.compile(r'pre[\s\-]*bid\s*(?:meeting\s*)?date\s*[:\-]?\s*' + DATE_VALUE, re.IGNORECASE),
}
AMOUNT_VALUE = r'[^\d\n]{0,20}?(\d[\d,]*(?:\.\d+)?)'
AMOUNT_PATTERNS = {
    'estimated_value': re.compile(r'estimated\s*(?:value|cost)' + AMOUNT_VALUE, re.IGNORECASE),
    'emd_amount': re.compile(r'(?:emd\s*amount|earnest\s*money(?:\s*deposit)?)' + AMOUNT_VALUE, re.IGNORECASE),
    'tender_fee': re.compile(r'tender\s*fee' + AMOUNT_VALUE, re.IGNORECASE),
}
OBLIGATION_RE = re.compile(r'\b(must|shall|should|required)\b', re.IGNORECASE)
KEY_REQUIREMENT_RE = re.compile(r'\b(must|should|require\w*|need\w*)\b', re.IGNORECASE)
SENTENCE_RE = re.compile(r'(?<=[.!?])\s+')


def keywords(text):
    """Lower-cased significant words of ``text``"""
    cleaned = (text or '').lower().translate(str.maketrans(string.punctuation, ' ' * len(string.punctuation)))
    return [word for word in cleaned.split() if len(word) > 2 and word not in STOPWORDS and not word.isdigit()]


def _parse_date(value):
    try:
        if re.match(r'^\d{4}-\d{2}-\d{2}$', value):
            year, month, day = value.split('-')
        else:
            day, month, year = re.split(r'[/-]', value)
        return date(int(year), int(month), int(day)).isoformat()
    except ValueError:
        return None


def _parse_amount(value):
    try:
        return Decimal(value.replace(',', ''))
    except InvalidOperation:
        return None


def _lines(text):
    return [line.strip() for line in (text or '').splitlines() if line.strip()]


def extract_tender_fields(text):
    """Pull the structured fields of a tender notice out of its text"""
    reference = REFERENCE_RE.search(text)
    title_match = TITLE_RE.search(text)
    lines = _lines(text)
    if title_match:
        title = title_match.group(1).strip()
    else:
        title = lines[0] if lines else 'Untitled Tender'

    dates = {}
    for field, pattern in DATE_PATTERNS.items():
        match = pattern.search(text)
        dates[field] = _parse_date(match.group(1)) if match else None

    amounts = {}
    for field, pattern in AMOUNT_PATTERNS.items():
        match = pattern.search(text)
        amounts[field] = _parse_amount(match.group(1)) if match else None

    requirements = [line for line in lines if OBLIGATION_RE.search(line)][:20]

    return {
        'reference_number': reference.group(1).strip() if reference else None,
        'title': title[:500],
        'description': text[:500].strip(),
        'dates': dates,
        'amounts': amounts,
        'requirements': requirements,
        'word_count': len(text.split()),
    }


def complexity(tender):
    factors = {
        'long_description': len(tender.description or '') > 1000,
        'many_eligibility_criteria': len(tender.eligibility_criteria or []) > 5,
        'detailed_technical_requirements': len(tender.technical_requirements or {}) > 3,
        'high_value': bool(tender.estimated_value and tender.estimated_value > 1000000),
    }
    score = sum(1 for present in factors.values() if present)
    if score >= 3:
        level = 'High'
    elif score >= 2:
        level = 'Medium'
    else:
        level = 'Low'
    return {'score': score, 'level': level, 'factors': factors}


def suggested_approach(tender):
    approach = []
    if tender.type == 'open':
        approach.append('Prepare comprehensive technical documentation')
        approach.append('Focus on competitive pricing')
    elif tender.type in ('limited', 'single'):
        approach.append('Emphasise prior relationship and proven delivery with the buyer')
    elif tender.type == 'two_stage':
        approach.append('Clear the technical stage first; keep the financial bid sealed and ready')
    elif tender.type == 'expression_of_interest':
        approach.append('Lead with capability statements and relevant past projects')

    if tender.category in ('services', 'consultancy'):
        approach.append('Highlight team expertise and past experience')
        approach.append('Provide detailed methodology and work plan')
    elif tender.category == 'works':
        approach.append('Attach site plan, equipment list and safety plan')
    elif tender.category == 'goods':
        approach.append('Include product specifications, warranties and delivery schedule')

    approach.append('Ensure all compliance requirements are met')
    approach.append('Submit bid well before deadline')
    return approach


def risk_factors(tender):
    risks = []
    if tender.status == 'published' and tender.days_remaining() < 7:
        risks.append('Short submission window')
    if tender.is_emd_required and tender.emd_amount:
        risks.append(f'EMD of {tender.emd_amount} {tender.currency} must be deposited before submission')
    if not tender.estimated_value:
        risks.append('Estimated value not disclosed')
    elif tender.estimated_value > 10000000:
        risks.append('High contract value attracts strong competition')
    if len(tender.eligibility_criteria or []) > 5:
        risks.append('Extensive eligibility criteria')
    if len(tender.technical_requirements or {}) > 3:
        risks.append('Detailed technical specifications to comply with')
    if tender.amendments:
        risks.append(f'{len(tender.amendments)} amendment(s) issued; check for changed terms')
    return risks


PREPARATION_DAYS = {'Low': 7, 'Medium': 14, 'High': 21}


def analyze_tender(tender):
    assessed = complexity(tender)
    return {
        'tender_id': tender.id,
        'title': tender.title,
        'key_requirements': [line for line in _lines(tender.description) if KEY_REQUIREMENT_RE.search(line)][:10],
        'technical_specs': tender.technical_requirements,
        'complexity': assessed,
        'suggested_approach': suggested_approach(tender),
        'risk_factors': risk_factors(tender),
        'estimated_preparation_days': PREPARATION_DAYS[assessed['level']],
    }


def requirement_text(item):
    if isinstance(item, dict):
        for key in ('criterion', 'requirement', 'description', 'name', 'title'):
            if item.get(key):
                return str(item[key])
        return ' '.join(str(value) for value in item.values())
    return str(item)


def tender_requirements(tender):
    requirements = [requirement_text(item) for item in (tender.eligibility_criteria or [])]
    for key, value in (tender.technical_requirements or {}).items():
        requirements.append(f"{key}: {value}" if value else str(key))
    requirements.extend(f"Document: {requirement_text(doc)}" for doc in (tender.required_documents or []))
    return [requirement for requirement in requirements if requirement.strip()]


def assess_compliance(requirements, text):
    """Mark each requirement met when at least half its keywords appear in ``text``"""
    available = set(keywords(text))
    details = []
    for requirement in requirements:
        wanted = set(keywords(requirement))
        matched = sorted(wanted & available)
        confidence = Decimal(len(matched) * 100 / len(wanted)) if wanted else Decimal('0')
        met = bool(wanted) and len(matched) * 2 >= len(wanted)
        details.append({
            'requirement': requirement,
            'status': 'met' if met else 'not_met',
            'matched_keywords': matched,
            'confidence': confidence.quantize(TWO_PLACES, rounding=ROUND_HALF_UP),
        })

    met_count = sum(1 for detail in details if detail['status'] == 'met')
    total = len(details)
    score = Decimal(met_count * 100 / total).quantize(TWO_PLACES, rounding=ROUND_HALF_UP) if total else Decimal('0.00')
    return {
        'compliance_score': score,
        'total_requirements': total,
        'met': met_count,
        'not_met': total - met_count,
        'details': details,
        'recommendations': [
            f"Address requirement: {detail['requirement']}" for detail in details if detail['status'] == 'not_met'
        ],
    }


def generate_proposal(tender, profile):
    company = profile.get('company_name') or 'Our company'
    certifications = [str(c) for c in profile.get('certifications', [])]
    evidence = ' '.join(certifications + [str(p) for p in profile.get('past_projects', [])])
    evidence_words = set(keywords(evidence))

    compliance_matrix = []
    for item in tender.eligibility_criteria or []:
        criterion = requirement_text(item)
        matched = set(keywords(criterion)) & evidence_words
        compliance_matrix.append({
            'criterion': criterion,
            'response': 'Complied' if matched else 'To be confirmed',
            'evidence': ', '.join(sorted(matched)),
        })

    experience = profile.get('experience_years')
    summary = (
        f"{company} is pleased to submit this proposal for {tender.title} "
        f"(ref. {tender.reference_number})."
    )
    if experience:
        summary += f" With {experience} years of experience, we are well placed to deliver the scope on time."

    return {
        'tender_id': tender.id,
        'executive_summary': summary,
        'technical_approach': suggested_approach(tender) + [
            f"Address {key}: {value}" for key, value in (tender.technical_requirements or {}).items()
        ],
        'compliance_matrix': compliance_matrix,
        'commercial_summary': {
            'estimated_value': tender.estimated_value,
            'currency': tender.currency,
            'payment_terms': tender.payment_terms,
            'delivery_period': tender.delivery_period,
            'emd_amount': tender.emd_amount if tender.is_emd_required else None,
        },
        'timeline': {
            'phases': [
                {'name': 'Initiation', 'duration': '2 weeks'},
                {'name': 'Execution', 'duration': '8 weeks'},
                {'name': 'Closure', 'duration': '2 weeks'},
            ],
            'total_duration': '12 weeks',
        },
        'key_differentiators': profile.get('strengths') or [
            'Extensive industry experience',
            'Proven track record',
            'Competitive pricing',
            'Quality assurance',
        ],
    }


DOCUMENT_TEMPLATES = {
    'tender-notice': (
        "TENDER NOTICE\n\n"
        "Reference: {reference_number}\n"
        "Title: {title}\n\n"
        "{organization} invites sealed bids for {title}.\n"
        "Estimated value: {estimated_value} {currency}\n"
        "EMD: {emd_amount} {currency}\n"
        "Last date for submission: {bid_end_date}\n\n"
        "{description}\n"
    ),
    'bid-invitation': (
        "INVITATION TO BID\n\n"
        "Dear {vendor_name},\n\n"
        "You are invited to submit a bid for {title} (ref. {reference_number}). "
        "Bids are due by {bid_end_date}.\n\n"
        "Regards,\n{organization}\n"
    ),
    'evaluation-report': (
        "BID EVALUATION REPORT\n\n"
        "Tender: {title} ({reference_number})\n"
        "Bids received: {total_bids}\n"
        "Lowest bid: {lowest_bid}\n"
        "Recommended bidder: {vendor_name}\n\n"
        "{remarks}\n"
    ),
    'award-letter': (
        "LETTER OF AWARD\n\n"
        "To: {vendor_name}\n\n"
        "We are pleased to inform you that your bid for {title} (ref. {reference_number}) "
        "has been accepted for an amount of {awarded_amount} {currency}.\n\n"
        "Regards,\n{organization}\n"
    ),
    'contract-draft': (
        "CONTRACT AGREEMENT\n\n"
        "This agreement is made between {buyer} and {vendor} for {title}.\n"
        "Contract value: {contract_value} {currency}\n"
        "Period: {start_date} to {end_date}\n\n"
        "Terms and conditions:\n{terms_and_conditions}\n"
    ),
}


class _Defaulting(dict):
    def __missing__(self, key):
        return f'[{key}]'


def tender_context(tender):
    return {
        'reference_number': tender.reference_number,
        'title': tender.title,
        'description': tender.description,
        'organization': tender.organization.name if tender.organization_id else '',
        'estimated_value': tender.estimated_value or '',
        'emd_amount': tender.emd_amount or '',
        'currency': tender.currency,
        'bid_end_date': tender.bid_end_date.date().isoformat() if tender.bid_end_date else '',
        'awarded_amount': tender.awarded_amount or '',
        'total_bids': tender.bid_count,
    }


def generate_document(document_type, data, template_text=None):
    """Render a procurement document; unknown placeholders render as [name]"""
    if template_text is None:
        if document_type not in DOCUMENT_TEMPLATES:
            raise WorkflowError(f'Invalid document type: {document_type}')
        template_text = DOCUMENT_TEMPLATES[document_type]
    try:
        content = string.Formatter().vformat(template_text, (), _Defaulting(data))
    except (AttributeError, IndexError, KeyError, ValueError) as e:
        raise WorkflowError(f'Template for {document_type} could not be rendered: {e}')
    return {'type': document_type, 'content': content}


def optimize_pricing(tender, cost_estimate):
    cost = Decimal(cost_estimate)
    if cost <= 0:
        raise WorkflowError('Cost estimate must be greater than zero')
    suggested = (cost * Decimal('1.15')).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    result = {
        'tender_id': tender.id,
        'base_cost': cost,
        'suggested_price': suggested,
        'profit_margin': Decimal('15.00'),
        'competitive_range': None,
        'position': 'unknown',
        'recommendations': [],
    }
    if not tender.estimated_value:
        result['recommendations'].append('Estimated value not disclosed; price on cost plus margin')
        return result

    low = (tender.estimated_value * Decimal('0.85')).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    high = (tender.estimated_value * Decimal('1.1')).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    result['competitive_range'] = {'min': low, 'max': high}
    if suggested < low:
        result['position'] = 'below_range'
        result['recommendations'].append('Price is well below the estimate; check the scope is fully costed')
    elif suggested > high:
        result['position'] = 'above_range'
        margin_at_max = ((high - cost) / cost * 100).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
        result['recommendations'].append(
            f'Price exceeds the competitive range; quoting {high} leaves a margin of {margin_at_max}%'
        )
    else:
        result['position'] = 'competitive'
        result['recommendations'].append('Suggested price sits inside the competitive range')
    return result


def summarize(text, max_sentences=5):
    """Pick the highest scoring sentences, kept in their original order"""
    sentences = [s.strip() for s in SENTENCE_RE.split(' '.join((text or '').split())) if s.strip()]
    if len(sentences) <= max_sentences:
        return ' '.join(sentences)
    frequency = Counter(keywords(text))
    scored = sorted(
        range(len(sentences)),
        key=lambda i: sum(frequency[word] for word in keywords(sentences[i])) / (len(sentences[i].split()) or 1),
        reverse=True,
    )[:max_sentences]
    return ' '.join(sentences[i] for i in sorted(scored))


def compare_documents(documents):
    """Pairwise keyword overlap (Jaccard) between named documents"""
    vocab = {doc['name']: set(keywords(doc.get('content', ''))) for doc in documents}
    names = list(vocab)
    pairs = []
    for i, first in enumerate(names):
        for second in names[i + 1:]:
            union = vocab[first] | vocab[second]
            shared = vocab[first] & vocab[second]
            similarity = Decimal(len(shared) * 100 / len(union)) if union else Decimal('0')
            pairs.append({
                'documents': [first, second],
                'similarity': similarity.quantize(TWO_PLACES, rounding=ROUND_HALF_UP),
                'shared_terms': sorted(shared)[:20],
            })
    return {'documents': names, 'comparisons': pairs}


CANNED_REPLIES = [
    ('emd', 'EMD is the earnest money deposit. Create it from the tender page and mark it paid before submitting your bid.'),
    ('contract', 'Contracts move from draft through approval and signatures to active. I can help you track milestones and renewals.'),
    ('payment', 'Payments can be processed, verified and refunded from the payments section. Receipts are available once completed.'),
    ('bid', 'I can assist with bid preparation and submission. What would you like to know?'),
    ('tender', 'I can help you with tender-related queries. What specific information do you need?'),
]


def canned_reply(message):
    lowered = (message or '').lower()
    reply = 'How can I assist you with the tender management system today?'
    for keyword, answer in CANNED_REPLIES:
        if keyword in lowered:
            reply = answer
            break
    return {
        'message': reply,
        'suggestions': ['View active tenders', 'Check bid status', 'Generate reports', 'Get compliance help'],
        'related_actions': [
            {'action': 'viewTenders', 'label': 'View Tenders'},
            {'action': 'createBid', 'label': 'Create New Bid'},
            {'action': 'checkCompliance', 'label': 'Check Compliance'},
        ],
    }
