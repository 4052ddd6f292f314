from django.contrib import admin
from .models import Emd


@admin.register(Emd)
class EmdAdmin(admin.ModelAdmin):
    list_display = ['reference_number', 'tender', 'vendor', 'amount', 'type', 'status', 'paid_at', 'valid_upto']
    list_filter = ['status', 'type']
    search_fields = ['reference_number', 'transaction_id', 'tender__reference_number', 'vendor__username']
    ordering = ['-created_at']
    readonly_fields = ['reference_number', 'paid_at', 'verified_at', 'refunded_at', 'forfeited_at',
                       'created_at', 'updated_at']
