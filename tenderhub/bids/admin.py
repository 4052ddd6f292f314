from django.contrib import admin
from .models import Bid


@admin.register(Bid)
class BidAdmin(admin.ModelAdmin):
    list_display = ['reference_number', 'tender', 'vendor', 'status', 'quoted_amount', 'is_emd_paid', 'submitted_at']
    list_filter = ['status', 'type', 'is_emd_paid']
    search_fields = ['reference_number', 'tender__reference_number', 'tender__title', 'vendor__username']
    ordering = ['-created_at']
    readonly_fields = ['reference_number', 'submitted_at', 'evaluated_at', 'withdrawn_at', 'disqualified_at',
                       'created_at', 'updated_at']
