import django_filters
from .models import Payment, Invoice


class PaymentFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=Payment.STATUS_CHOICES)
    method = django_filters.ChoiceFilter(choices=Payment.METHOD_CHOICES)
    type = django_filters.ChoiceFilter(choices=Payment.TYPE_CHOICES)
    organization = django_filters.NumberFilter(field_name='organization_id')
    tender = django_filters.NumberFilter(field_name='tender_id')
    contract = django_filters.NumberFilter(field_name='contract_id')
    start_date = django_filters.DateFilter(field_name='created_at', lookup_expr='date__gte')
    end_date = django_filters.DateFilter(field_name='created_at', lookup_expr='date__lte')
    min_amount = django_filters.NumberFilter(field_name='amount', lookup_expr='gte')
    max_amount = django_filters.NumberFilter(field_name='amount', lookup_expr='lte')

    class Meta:
        model = Payment
        fields = ['status', 'method', 'type', 'organization', 'tender', 'contract']


class InvoiceFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=Invoice.STATUS_CHOICES)
    organization = django_filters.NumberFilter(field_name='organization_id')
    contract = django_filters.NumberFilter(field_name='contract_id')
    due_before = django_filters.DateFilter(field_name='due_date', lookup_expr='lte')

    class Meta:
        model = Invoice
        fields = ['status', 'organization', 'contract']
