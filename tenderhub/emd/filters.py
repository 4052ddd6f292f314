import django_filters
from .models import Emd


class EmdFilter(django_filters.FilterSet):
    tender = django_filters.NumberFilter(field_name='tender_id')
    vendor = django_filters.NumberFilter(field_name='vendor_id')
    status = django_filters.ChoiceFilter(choices=Emd.STATUS_CHOICES)
    type = django_filters.ChoiceFilter(choices=Emd.TYPE_CHOICES)

    class Meta:
        model = Emd
        fields = ['tender', 'vendor', 'status', 'type']
