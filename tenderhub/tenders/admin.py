from django.contrib import admin
from .models import Tender


@admin.register(Tender)
class TenderAdmin(admin.ModelAdmin):
    list_display = ['reference_number', 'title', 'status', 'category', 'type', 'estimated_value',
                    'bid_end_date', 'bid_count', 'organization', 'created_at']
    list_filter = ['status', 'category', 'type', 'is_public', 'is_emd_required']
    search_fields = ['reference_number', 'title', 'description', 'organization__name']
    ordering = ['-created_at']
    readonly_fields = ['view_count', 'bid_count', 'publish_date', 'awarded_date', 'cancellation_date',
                       'created_at', 'updated_at']
    filter_horizontal = ['favorited_by']
