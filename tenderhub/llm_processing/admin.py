from django.contrib import admin
from .models import ProcessingJob, KnowledgeBase, PromptTemplate


@admin.register(ProcessingJob)
class ProcessingJobAdmin(admin.ModelAdmin):
    list_display = ['id', 'type', 'priority', 'status', 'attempts', 'created_by', 'created_at', 'completed_at']
    list_filter = ['type', 'status', 'priority']
    readonly_fields = ['started_at', 'completed_at', 'created_at', 'updated_at']


@admin.register(KnowledgeBase)
class KnowledgeBaseAdmin(admin.ModelAdmin):
    list_display = ['name', 'is_active', 'last_refreshed_at', 'created_by', 'created_at']
    list_filter = ['is_active']
    search_fields = ['name', 'description']


@admin.register(PromptTemplate)
class PromptTemplateAdmin(admin.ModelAdmin):
    list_display = ['name', 'category', 'is_active', 'created_by', 'updated_at']
    list_filter = ['category', 'is_active']
    search_fields = ['name', 'description', 'template']
