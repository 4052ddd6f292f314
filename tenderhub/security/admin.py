from django.contrib import admin
from .models import SecurityInstrument


@admin.register(SecurityInstrument)
class SecurityInstrumentAdmin(admin.ModelAdmin):
    list_display = ['reference_number', 'kind', 'purpose', 'organization', 'amount', 'status', 'expiry_date']
    list_filter = ['kind', 'purpose', 'status']
    search_fields = ['reference_number', 'instrument_number', 'issuer_name', 'organization__name',
                     'tender__reference_number', 'contract__contract_number']
    ordering = ['-created_at']
    readonly_fields = ['reference_number', 'submitted_at', 'verified_at', 'activated_at', 'claimed_at',
                       'released_at', 'cancelled_at', 'created_at', 'updated_at']
