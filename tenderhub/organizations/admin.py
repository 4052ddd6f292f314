from django.contrib import admin
from .models import Organization


@admin.register(Organization)
class OrganizationAdmin(admin.ModelAdmin):
    list_display = ['name', 'type', 'status', 'city', 'email', 'created_at']
    list_filter = ['type', 'status', 'country']
    search_fields = ['name', 'registration_number', 'tax_id', 'email']
    ordering = ['name']
    readonly_fields = ['created_at', 'updated_at']
