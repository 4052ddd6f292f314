import django_filters
from django.db.models import Q
from .models import Tender


class TenderFilter(django_filters.FilterSet):
    """Query-parameter filters for tender listings"""
    search = django_filters.CharFilter(method='filter_search', label='Search')
    status = django_filters.ChoiceFilter(choices=Tender.STATUS_CHOICES)
    category = django_filters.ChoiceFilter(choices=Tender.CATEGORY_CHOICES)
    type = django_filters.ChoiceFilter(choices=Tender.TYPE_CHOICES)
    organization = django_filters.NumberFilter(field_name='organization_id')
    min_value = django_filters.NumberFilter(field_name='estimated_value', lookup_expr='gte')
    max_value = django_filters.NumberFilter(field_name='estimated_value', lookup_expr='lte')
    closing_after = django_filters.IsoDateTimeFilter(field_name='bid_end_date', lookup_expr='gte')
    closing_before = django_filters.IsoDateTimeFilter(field_name='bid_end_date', lookup_expr='lte')

    class Meta:
        model = Tender
        fields = ['search', 'status', 'category', 'type', 'organization', 'min_value', 'max_value',
                  'closing_after', 'closing_before']

    def filter_search(self, queryset, name, value):
        if not value:
            return queryset
        return queryset.filter(
            Q(title__icontains=value) |
            Q(description__icontains=value) |
            Q(reference_number__icontains=value)
        )
