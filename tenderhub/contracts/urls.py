from django.urls import path
from . import views

urlpatterns = [
    path('contracts/', views.contract_list_create, name='contract-list-create'),
    path('contracts/expiring/', views.contract_expiring, name='contract-expiring'),
    path('contracts/statistics/', views.contract_statistics, name='contract-statistics'),
    path('contracts/templates/', views.contract_templates, name='contract-templates'),
    path('contracts/<int:pk>/', views.contract_detail, name='contract-detail'),
    path('contracts/<int:pk>/submit/', views.contract_submit, name='contract-submit'),
    path('contracts/<int:pk>/approve/', views.contract_approve, name='contract-approve'),
    path('contracts/<int:pk>/reject/', views.contract_reject, name='contract-reject'),
    path('contracts/<int:pk>/cancel/', views.contract_cancel, name='contract-cancel'),
    path('contracts/<int:pk>/sign/', views.contract_sign, name='contract-sign'),
    path('contracts/<int:pk>/activate/', views.contract_activate, name='contract-activate'),
    path('contracts/<int:pk>/suspend/', views.contract_suspend, name='contract-suspend'),
    path('contracts/<int:pk>/resume/', views.contract_resume, name='contract-resume'),
    path('contracts/<int:pk>/terminate/', views.contract_terminate, name='contract-terminate'),
    path('contracts/<int:pk>/complete/', views.contract_complete, name='contract-complete'),
    path('contracts/<int:pk>/milestones/<int:index>/', views.contract_milestone, name='contract-milestone'),
    path('contracts/<int:pk>/amend/', views.contract_amend, name='contract-amend'),
    path('contracts/<int:pk>/renew/', views.contract_renew, name='contract-renew'),
    path('contracts/<int:pk>/performance/', views.contract_performance, name='contract-performance'),
    path('contracts/<int:pk>/documents/', views.contract_documents, name='contract-documents'),
    path('contracts/<int:pk>/documents/<str:document_id>/', views.contract_document_delete,
         name='contract-document-delete'),
    path('contracts/<int:pk>/history/', views.contract_history, name='contract-history'),
]
