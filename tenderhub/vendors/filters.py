import django_filters
from django.db.models import Q
from .models import Vendor


class VendorFilter(django_filters.FilterSet):
    search = django_filters.CharFilter(method='filter_search', label='Search')
    status = django_filters.ChoiceFilter(choices=Vendor.STATUS_CHOICES)
    category = django_filters.ChoiceFilter(choices=Vendor.CATEGORY_CHOICES)
    verification_status = django_filters.ChoiceFilter(choices=Vendor.VERIFICATION_CHOICES)
    min_rating = django_filters.NumberFilter(field_name='overall_rating', lookup_expr='gte')

    class Meta:
        model = Vendor
        fields = ['search', 'status', 'category', 'verification_status', 'min_rating']

    def filter_search(self, queryset, name, value):
        if not value:
            return queryset
        return queryset.filter(
            Q(legal_name__icontains=value) |
            Q(trade_name__icontains=value) |
            Q(registration_number__icontains=value)
        )
