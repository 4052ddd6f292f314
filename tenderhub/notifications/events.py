"""
Notification templates for workflow events.

Each ``*_event`` function is called by the view (or model method) that
completed the transition. Actions without a template are ignored, so
callers can pass every action through unconditionally.
"""
from tenderhub.core.models import User
from .models import Notification
from .services import notify_many

MEDIUM = Notification.PRIORITY_MEDIUM
HIGH = Notification.PRIORITY_HIGH

TENDER_TEMPLATES = {
    'publish': (Notification.TYPE_TENDER_PUBLISHED, 'New tender published',
                'Tender {reference} "{title}" is open for bids until {deadline}.', MEDIUM),
    'extend': (Notification.TYPE_TENDER_EXTENDED, 'Tender deadline extended',
               'The bid deadline for tender {reference} has been extended to {deadline}.', MEDIUM),
    'cancel': (Notification.TYPE_TENDER_CANCELLED, 'Tender cancelled',
               'Tender {reference} "{title}" has been cancelled.', HIGH),
}

# (audience, type, title, message, priority); audience is 'vendor' or 'owner'
BID_TEMPLATES = {
    'submit': [
        ('vendor', Notification.TYPE_BID_SUBMITTED, 'Bid submitted',
         'Your bid {reference} for tender {tender} has been submitted.', MEDIUM),
        ('owner', Notification.TYPE_BID_RECEIVED, 'New bid received',
         'Bid {reference} was submitted for tender {tender}.', MEDIUM),
    ],
    'withdraw': [
        ('owner', Notification.TYPE_BID_WITHDRAWN, 'Bid withdrawn',
         'Bid {reference} for tender {tender} has been withdrawn.', MEDIUM),
    ],
    'shortlist': [
        ('vendor', Notification.TYPE_BID_SHORTLISTED, 'Bid shortlisted',
         'Your bid {reference} for tender {tender} has been shortlisted.', MEDIUM),
    ],
    'disqualify': [
        ('vendor', Notification.TYPE_BID_DISQUALIFIED, 'Bid disqualified',
         'Your bid {reference} for tender {tender} has been disqualified.', HIGH),
    ],
}

CONTRACT_TEMPLATES = {
    'approve': (Notification.TYPE_CONTRACT_APPROVED, 'Contract approved',
                'Contract {reference} "{title}" has been approved and is ready for signature.', MEDIUM),
    'sign': (Notification.TYPE_CONTRACT_SIGNED, 'Contract signed',
             'Contract {reference} has been signed by {actor}.', MEDIUM),
    'activate': (Notification.TYPE_CONTRACT_ACTIVATED, 'Contract activated',
                 'Contract {reference} "{title}" is now active.', MEDIUM),
    'terminate': (Notification.TYPE_CONTRACT_TERMINATED, 'Contract terminated',
                  'Contract {reference} "{title}" has been terminated.', HIGH),
}

PAYMENT_TEMPLATES = {
    'complete': (Notification.TYPE_PAYMENT_RECEIVED, 'Payment completed',
                 'Payment {reference} of {amount} {currency} has been completed.', MEDIUM),
    'fail': (Notification.TYPE_PAYMENT_FAILED, 'Payment failed',
             'Payment {reference} of {amount} {currency} failed: {reason}', HIGH),
}

EMD_TEMPLATES = {
    'verify': (Notification.TYPE_EMD_VERIFIED, 'EMD verified',
               'Your EMD {reference} for tender {tender} has been verified.', MEDIUM),
    'refund': (Notification.TYPE_EMD_REFUNDED, 'EMD refunded',
               'Your EMD {reference} for tender {tender} has been refunded.', MEDIUM),
    'forfeit': (Notification.TYPE_EMD_FORFEITED, 'EMD forfeited',
                'Your EMD {reference} for tender {tender} has been forfeited.', HIGH),
}

# Provider-facing security events; 'submit' goes to the beneficiary instead
SECURITY_TEMPLATES = {
    'submit': (Notification.TYPE_SECURITY_SUBMITTED, 'Security instrument submitted',
               '{kind} {reference} of {amount} {currency} was submitted for verification.', MEDIUM),
    'verify': (Notification.TYPE_SECURITY_VERIFIED, 'Security instrument verified',
               'Your {kind} {reference} has been verified.', MEDIUM),
    'claim': (Notification.TYPE_SECURITY_CLAIMED, 'Security instrument claimed',
              'A claim of {claimed} {currency} was made against your {kind} {reference}.', HIGH),
    'release': (Notification.TYPE_SECURITY_RELEASED, 'Security instrument released',
                'Your {kind} {reference} has been released.', MEDIUM),
    'expiring': (Notification.TYPE_SECURITY_EXPIRING, 'Security instrument expiring',
                 'Your {kind} {reference} expires on {expiry}.', HIGH),
}


def _members(organization):
    if organization is None:
        return []
    return list(organization.users.filter(is_active=True))


def _send(template, recipients, fields, data, link, exclude=None):
    type, title, message, priority = template
    return notify_many(
        recipients, type, title, message.format(**fields),
        data=data, priority=priority, link=link, exclude=exclude
    )


def tender_event(tender, action, actor=None):
    if action == 'award':
        return tender_awarded(tender, actor)
    template = TENDER_TEMPLATES.get(action)
    if template is None:
        return 0
    if action == 'publish':
        recipients = list(User.objects.filter(pk__in=tender.invited_vendors or [], is_active=True))
    else:
        recipients = [bid.vendor for bid in tender.bids.select_related('vendor')]
        recipients += list(tender.favorited_by.all())
    fields = {
        'reference': tender.reference_number,
        'title': tender.title,
        'deadline': tender.bid_end_date.strftime('%Y-%m-%d %H:%M') if tender.bid_end_date else 'n/a',
    }
    return _send(template, recipients, fields, {'tender_id': tender.id}, f'/tenders/{tender.id}', exclude=actor)


def tender_awarded(tender, actor=None):
    """Tell the winning bidder and every rejected bidder how the award went"""
    sent = 0
    for bid in tender.bids.select_related('vendor'):
        if bid.status == bid.STATUS_ACCEPTED:
            sent += notify_many(
                [bid.vendor], Notification.TYPE_BID_ACCEPTED, 'Bid accepted',
                f'Congratulations! Your bid {bid.reference_number} won tender {tender.reference_number}.',
                data={'tender_id': tender.id, 'bid_id': bid.id}, priority=HIGH,
                link=f'/bids/{bid.id}', exclude=actor
            )
        elif bid.status == bid.STATUS_REJECTED:
            sent += notify_many(
                [bid.vendor], Notification.TYPE_BID_REJECTED, 'Bid not selected',
                f'Tender {tender.reference_number} was awarded to another bidder.',
                data={'tender_id': tender.id, 'bid_id': bid.id}, priority=MEDIUM,
                link=f'/bids/{bid.id}', exclude=actor
            )
    return sent


def bid_event(bid, action, actor=None):
    sent = 0
    fields = {'reference': bid.reference_number, 'tender': bid.tender.reference_number}
    data = {'tender_id': bid.tender_id, 'bid_id': bid.id}
    for audience, *template in BID_TEMPLATES.get(action, []):
        recipient = bid.vendor if audience == 'vendor' else bid.tender.created_by
        sent += _send(template, [recipient], fields, data, f'/bids/{bid.id}', exclude=actor)
    return sent


def contract_event(contract, action, actor=None):
    template = CONTRACT_TEMPLATES.get(action)
    if template is None:
        return 0
    recipients = [contract.created_by]
    recipients += _members(contract.vendor_organization)
    recipients += _members(contract.buyer_organization)
    fields = {
        'reference': contract.contract_number,
        'title': contract.title,
        'actor': actor.username if actor is not None else 'a party',
    }
    return _send(template, recipients, fields, {'contract_id': contract.id},
                 f'/contracts/{contract.id}', exclude=actor)


def payment_event(payment, action):
    template = PAYMENT_TEMPLATES.get(action)
    if template is None:
        return 0
    fields = {
        'reference': payment.payment_number,
        'amount': payment.amount,
        'currency': payment.currency,
        'reason': payment.failure_reason,
    }
    return _send(template, [payment.created_by], fields, {'payment_id': payment.id}, f'/payments/{payment.id}')


def vendor_verified(vendor, approved, actor=None):
    if approved:
        template = (Notification.TYPE_VENDOR_APPROVED, 'Vendor verification approved',
                    '{name} has been verified and can now bid on tenders.', MEDIUM)
    else:
        template = (Notification.TYPE_VENDOR_REJECTED, 'Vendor verification rejected',
                    'Verification of {name} was rejected. {remarks}', HIGH)
    recipients = [vendor.created_by] + _members(vendor.organization)
    fields = {'name': vendor.legal_name, 'remarks': vendor.verification_remarks or ''}
    return _send(template, recipients, fields, {'vendor_id': vendor.id}, f'/vendors/{vendor.id}', exclude=actor)


def emd_event(emd, action, actor=None):
    template = EMD_TEMPLATES.get(action)
    if template is None:
        return 0
    fields = {'reference': emd.reference_number, 'tender': emd.tender.reference_number}
    return _send(template, [emd.vendor], fields, {'emd_id': emd.id, 'tender_id': emd.tender_id},
                 f'/emds/{emd.id}', exclude=actor)


def security_event(instrument, action, actor=None, claimed=None):
    template = SECURITY_TEMPLATES.get(action)
    if template is None:
        return 0
    if action == 'submit':
        recipients = instrument.beneficiaries()
    else:
        recipients = [instrument.created_by] + _members(instrument.organization)
    fields = {
        'kind': instrument.get_kind_display(),
        'reference': instrument.reference_number,
        'amount': instrument.amount,
        'currency': instrument.currency,
        'claimed': claimed if claimed is not None else instrument.claimed_amount,
        'expiry': instrument.expiry_date.isoformat() if instrument.expiry_date else 'n/a',
    }
    return _send(template, recipients, fields, {'instrument_id': instrument.id},
                 f'/security/instruments/{instrument.id}', exclude=actor)
