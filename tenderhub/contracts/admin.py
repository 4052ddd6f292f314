from django.contrib import admin
from .models import Contract


@admin.register(Contract)
class ContractAdmin(admin.ModelAdmin):
    list_display = ['contract_number', 'title', 'type', 'status', 'contract_value', 'start_date', 'end_date',
                    'vendor_organization', 'buyer_organization']
    list_filter = ['status', 'type', 'payment_terms']
    search_fields = ['contract_number', 'title', 'vendor_organization__name', 'buyer_organization__name']
    ordering = ['-created_at']
    readonly_fields = ['contract_number', 'signatures', 'approved_at', 'signed_at', 'activated_at',
                       'completed_at', 'created_at', 'updated_at']
