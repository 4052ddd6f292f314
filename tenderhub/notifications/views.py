import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404

from tenderhub.core.utils import create_audit_log, is_admin_user, forbidden, paginate
from .filters import NotificationFilter
from .models import Notification
from .serializers import NotificationSerializer, NotificationCleanupSerializer

logger = logging.getLogger(__name__)


def _own_notification(request, pk):
    return get_object_or_404(Notification.objects.select_related('recipient'), pk=pk, recipient=request.user)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def notification_list_create(request):
    """
    GET lists the current user's notifications (filters: type, priority, is_read).
    POST lets an administrator send a notification to any user.
    """
    if request.method == 'GET':
        notification_filter = NotificationFilter(
            request.query_params, queryset=Notification.objects.select_related('recipient').filter(recipient=request.user)
        )
        if not notification_filter.is_valid():
            return Response(notification_filter.errors, status=status.HTTP_400_BAD_REQUEST)
        return paginate(request, notification_filter.qs, NotificationSerializer)

    if not is_admin_user(request.user):
        return forbidden('Only administrators can send notifications')
    serializer = NotificationSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    notification = serializer.save()
    create_audit_log(
        request=request,
        action='create',
        model_name='Notification',
        object_id=str(notification.id),
        object_name=notification.title,
        changes={'recipient': notification.recipient.username, 'type': notification.type}
    )
    logger.info(f"Notification {notification.id} sent to {notification.recipient.username} by {request.user.username}")
    return Response(NotificationSerializer(notification).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def notification_unread_count(request):
    return Response({'unread_count': Notification.unread_count(request.user)})


@api_view(['GET', 'DELETE'])
@permission_classes([IsAuthenticated])
def notification_detail(request, pk):
    notification = _own_notification(request, pk)
    if request.method == 'DELETE':
        notification.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)
    return Response(NotificationSerializer(notification).data)


@api_view(['POST', 'PATCH'])
@permission_classes([IsAuthenticated])
def notification_read(request, pk):
    notification = _own_notification(request, pk)
    notification.mark_read()
    return Response(NotificationSerializer(notification).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def notification_mark_all_read(request):
    updated = Notification.mark_all_read(request.user)
    return Response({'updated': updated, 'unread_count': 0})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def notification_cleanup(request):
    """Delete old read notifications and expired ones (admin only)"""
    if not is_admin_user(request.user):
        return forbidden('Only administrators can clean up notifications')
    serializer = NotificationCleanupSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    deleted = Notification.purge(days=serializer.validated_data.get('days_to_keep'))
    create_audit_log(
        request=request,
        action='cleanup',
        model_name='Notification',
        object_id='bulk',
        changes={'deleted': deleted}
    )
    logger.info(f"Notification cleanup by {request.user.username} removed {deleted} notification(s)")
    return Response({'deleted': deleted})
