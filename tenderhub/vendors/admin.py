from django.contrib import admin
from .models import Vendor


@admin.register(Vendor)
class VendorAdmin(admin.ModelAdmin):
    list_display = ['registration_number', 'legal_name', 'category', 'status', 'verification_status',
                    'overall_rating', 'total_contracts_completed', 'created_at']
    list_filter = ['status', 'category', 'verification_status']
    search_fields = ['registration_number', 'legal_name', 'trade_name', 'tax_id', 'organization__name']
    ordering = ['-created_at']
    readonly_fields = ['registration_number', 'verified_at', 'blacklist_date', 'blacklist_history',
                       'last_activity_at', 'created_at', 'updated_at']
