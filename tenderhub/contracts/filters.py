import django_filters
from django.db.models import Q
from .models import Contract


class ContractFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=Contract.STATUS_CHOICES)
    type = django_filters.ChoiceFilter(choices=Contract.TYPE_CHOICES)
    organization = django_filters.NumberFilter(method='filter_organization')
    vendor_organization = django_filters.NumberFilter(field_name='vendor_organization_id')
    buyer_organization = django_filters.NumberFilter(field_name='buyer_organization_id')
    tender = django_filters.NumberFilter(field_name='tender_id')
    search = django_filters.CharFilter(method='filter_search')
    end_before = django_filters.DateFilter(field_name='end_date', lookup_expr='lte')
    end_after = django_filters.DateFilter(field_name='end_date', lookup_expr='gte')

    class Meta:
        model = Contract
        fields = ['status', 'type', 'organization', 'vendor_organization', 'buyer_organization', 'tender']

    def filter_organization(self, queryset, name, value):
        return queryset.filter(Q(vendor_organization_id=value) | Q(buyer_organization_id=value))

    def filter_search(self, queryset, name, value):
        return queryset.filter(
            Q(contract_number__icontains=value) |
            Q(title__icontains=value) |
            Q(description__icontains=value)
        )
