from django.urls import path
from . import views

urlpatterns = [
    path('ai/extract-tender/', views.extract_tender, name='ai-extract-tender'),
    path('ai/analyze-tender/<int:tender_id>/', views.analyze_tender, name='ai-analyze-tender'),
    path('ai/generate-proposal/', views.generate_proposal, name='ai-generate-proposal'),
    path('ai/assess-compliance/', views.assess_compliance, name='ai-assess-compliance'),
    path('ai/generate-document/', views.generate_document, name='ai-generate-document'),
    path('ai/optimize-pricing/', views.optimize_pricing, name='ai-optimize-pricing'),
    path('ai/chat/', views.chat, name='ai-chat'),
    path('ai/providers/', views.providers, name='ai-providers'),
    path('ai/usage/', views.usage_statistics, name='ai-usage'),

    path('ai/jobs/', views.job_list_create, name='ai-job-list-create'),
    path('ai/jobs/<int:pk>/', views.job_detail, name='ai-job-detail'),
    path('ai/jobs/<int:pk>/result/', views.job_result, name='ai-job-result'),
    path('ai/jobs/<int:pk>/cancel/', views.job_cancel, name='ai-job-cancel'),
    path('ai/jobs/<int:pk>/retry/', views.job_retry, name='ai-job-retry'),

    path('ai/knowledge-bases/', views.knowledge_base_list_create, name='ai-kb-list-create'),
    path('ai/knowledge-bases/<int:pk>/', views.knowledge_base_detail, name='ai-kb-detail'),
    path('ai/knowledge-bases/<int:pk>/documents/', views.knowledge_base_add_document, name='ai-kb-add-document'),
    path('ai/knowledge-bases/<int:pk>/documents/<str:document_id>/', views.knowledge_base_remove_document,
         name='ai-kb-remove-document'),
    path('ai/knowledge-bases/<int:pk>/query/', views.knowledge_base_query, name='ai-kb-query'),
    path('ai/knowledge-bases/<int:pk>/refresh/', views.knowledge_base_refresh, name='ai-kb-refresh'),

    path('ai/templates/', views.template_list_create, name='ai-template-list-create'),
    path('ai/templates/<int:pk>/', views.template_detail, name='ai-template-detail'),
    path('ai/templates/<int:pk>/test/', views.template_test, name='ai-template-test'),
    path('ai/templates/<int:pk>/clone/', views.template_clone, name='ai-template-clone'),
]
