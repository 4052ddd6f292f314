"""Shared helpers: audit logging, role checks, pagination and reference numbers"""
import logging
import random
import string
import time

from django.core.paginator import Paginator
from rest_framework import status
from rest_framework.response import Response

from .models import AuditLog, User

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

ADMIN_ROLES = (User.ROLE_ADMIN, User.ROLE_SUPER_ADMIN)


def get_client_ip(request):
    """Extract client IP address from request"""
    if not request or not hasattr(request, 'META'):
        return None
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('REMOTE_ADDR')
    return ip or None


def create_audit_log(request=None, action=None, model_name=None, object_id=None,
                     changes=None, user=None, object_name=None, object_reference=None):
    """
    Create an audit log entry

    Args:
        request: Django request object (for user and IP) - optional if user is provided
        action: Action type (create, publish, sign, refund, etc.)
        model_name: Name of the model being acted upon
        object_id: ID of the object (as string)
        changes: Dictionary of changes made
        user: Optional user override (defaults to request.user if request provided)
        object_name: Human-readable name of the object (e.g., tender title)
        object_reference: Reference identifier (e.g., contract number)
    """
    try:
        audit_user = None
        if user:
            audit_user = user
        elif request and hasattr(request, 'user'):
            audit_user = request.user

        ip_address = get_client_ip(request) if request else None

        if not action or not model_name or not object_id:
            logger.warning(f"Audit log creation skipped: missing required fields (action={action}, model_name={model_name}, object_id={object_id})")
            return None

        return AuditLog.objects.create(
            user=audit_user if audit_user and audit_user.is_authenticated else None,
            action=action,
            model_name=model_name,
            object_id=str(object_id),
            object_name=object_name,
            object_reference=object_reference,
            changes=changes or {},
            ip_address=ip_address
        )
    except Exception as e:
        # Don't fail the main operation if audit logging fails
        logger.error(f"Failed to create audit log: {str(e)}")
        return None


def is_admin_user(user):
    """Superusers and users holding the admin or super_admin role"""
    if not user or not user.is_authenticated:
        return False
    return user.is_superuser or getattr(user, 'role', None) in ADMIN_ROLES


def has_role(user, *roles):
    """True when the user holds one of ``roles``; admins always pass"""
    if is_admin_user(user):
        return True
    return bool(user and user.is_authenticated and user.role in roles)


def forbidden(message='Permission denied'):
    return Response({'error': message}, status=status.HTTP_403_FORBIDDEN)


def workflow_error_response(exc):
    """Render a WorkflowError as the standard error payload"""
    return Response({'error': str(exc)}, status=exc.status_code)


def paginate(request, queryset, serializer_class, context=None):
    """
    Paginate a queryset and return the list response used by every app:
    results, count, next, previous, page, page_size, total_pages.
    Accepts ``page_size`` (or ``limit``) capped at MAX_PAGE_SIZE.
    """
    try:
        page = max(int(request.query_params.get('page', 1)), 1)
    except (TypeError, ValueError):
        page = 1
    raw_size = request.query_params.get('page_size') or request.query_params.get('limit')
    try:
        page_size = int(raw_size) if raw_size else DEFAULT_PAGE_SIZE
    except (TypeError, ValueError):
        page_size = DEFAULT_PAGE_SIZE
    page_size = min(max(page_size, 1), MAX_PAGE_SIZE)

    paginator = Paginator(queryset, page_size)
    page_obj = paginator.get_page(page)

    serializer_context = {'request': request}
    if context:
        serializer_context.update(context)
    serializer = serializer_class(page_obj, many=True, context=serializer_context)
    return Response({
        'results': serializer.data,
        'count': paginator.count,
        'next': page_obj.next_page_number() if page_obj.has_next() else None,
        'previous': page_obj.previous_page_number() if page_obj.has_previous() else None,
        'page': page_obj.number,
        'page_size': page_size,
        'total_pages': paginator.num_pages,
    })


def random_code(length=6, alphabet=string.ascii_uppercase + string.digits):
    return ''.join(random.choices(alphabet, k=length))


def generate_reference(prefix, model, field='reference_number'):
    """Reference numbers of the form PREFIX-<unix ts>-<random>, unique on ``field``"""
    value = f"{prefix}-{int(time.time())}-{random_code()}"
    while model.objects.filter(**{field: value}).exists():
        value = f"{prefix}-{int(time.time())}-{random_code()}"
    return value


def next_sequence_number(model, field, prefix):
    """
    Sequential numbers of the form PREFIX-000001, counting existing rows that
    share the prefix. Skips forward if a number is already taken.
    """
    count = model.objects.filter(**{f'{field}__startswith': f'{prefix}-'}).count()
    sequence = count + 1
    value = f"{prefix}-{str(sequence).zfill(6)}"
    while model.objects.filter(**{field: value}).exists():
        sequence += 1
        value = f"{prefix}-{str(sequence).zfill(6)}"
    return value
