import django_filters
from .models import Notification


class NotificationFilter(django_filters.FilterSet):
    type = django_filters.ChoiceFilter(choices=Notification.TYPE_CHOICES)
    priority = django_filters.ChoiceFilter(choices=Notification.PRIORITY_CHOICES)
    is_read = django_filters.BooleanFilter()

    class Meta:
        model = Notification
        fields = ['type', 'priority', 'is_read']
