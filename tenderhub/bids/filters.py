import django_filters
from .models import Bid


class BidFilter(django_filters.FilterSet):
    tender = django_filters.NumberFilter(field_name='tender_id')
    status = django_filters.ChoiceFilter(choices=Bid.STATUS_CHOICES)
    type = django_filters.ChoiceFilter(choices=Bid.TYPE_CHOICES)
    min_amount = django_filters.NumberFilter(field_name='quoted_amount', lookup_expr='gte')
    max_amount = django_filters.NumberFilter(field_name='quoted_amount', lookup_expr='lte')

    class Meta:
        model = Bid
        fields = ['tender', 'status', 'type', 'min_amount', 'max_amount']
