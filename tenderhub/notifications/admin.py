from django.contrib import admin
from .models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ['recipient', 'type', 'priority', 'title', 'is_read', 'created_at']
    list_filter = ['type', 'priority', 'is_read']
    search_fields = ['title', 'message', 'recipient__username']
    ordering = ['-created_at']
    readonly_fields = ['read_at', 'created_at']
