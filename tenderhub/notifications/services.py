import logging

from .models import Notification

logger = logging.getLogger(__name__)


def notify(recipient, type, title, message, data=None, priority=Notification.PRIORITY_MEDIUM, link='',
           expires_at=None):
    if recipient is None:
        return None
    notification = Notification.objects.create(
        recipient=recipient,
        type=type,
        priority=priority,
        title=title,
        message=message,
        data=data or {},
        link=link,
        expires_at=expires_at,
    )
    logger.info(f"Notification {type} sent to {recipient.username}")
    return notification


def notify_many(recipients, type, title, message, data=None, priority=Notification.PRIORITY_MEDIUM, link='',
                exclude=None):
    """
    Create the same notification for every distinct recipient, skipping None
    and the user in ``exclude`` (normally whoever triggered the event).
    """
    seen = set()
    rows = []
    for user in recipients:
        if user is None or user.pk in seen or (exclude is not None and user.pk == exclude.pk):
            continue
        seen.add(user.pk)
        rows.append(Notification(
            recipient=user, type=type, priority=priority, title=title,
            message=message, data=data or {}, link=link,
        ))
    if rows:
        Notification.objects.bulk_create(rows)
        logger.info(f"Notification {type} sent to {len(rows)} user(s)")
    return len(rows)
