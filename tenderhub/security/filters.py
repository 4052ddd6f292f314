import django_filters
from .models import SecurityInstrument


class SecurityInstrumentFilter(django_filters.FilterSet):
    kind = django_filters.ChoiceFilter(choices=SecurityInstrument.KIND_CHOICES)
    purpose = django_filters.ChoiceFilter(choices=SecurityInstrument.PURPOSE_CHOICES)
    status = django_filters.ChoiceFilter(choices=SecurityInstrument.STATUS_CHOICES)
    organization = django_filters.NumberFilter(field_name='organization_id')
    tender = django_filters.NumberFilter(field_name='tender_id')
    contract = django_filters.NumberFilter(field_name='contract_id')
    expiry_before = django_filters.DateFilter(field_name='expiry_date', lookup_expr='lte')
    expiry_after = django_filters.DateFilter(field_name='expiry_date', lookup_expr='gte')

    class Meta:
        model = SecurityInstrument
        fields = ['kind', 'purpose', 'status', 'organization', 'tender', 'contract']
