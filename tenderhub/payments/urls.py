from django.urls import path
from . import views

urlpatterns = [
    path('payments/', views.payment_list_create, name='payment-list-create'),
    path('payments/statistics/', views.payment_statistics, name='payment-statistics'),
    path('payments/reconciliation/', views.payment_reconciliation, name='payment-reconciliation'),
    path('payments/organization/<int:organization_id>/', views.organization_payments, name='organization-payments'),
    path('payments/tender/<int:tender_id>/', views.tender_payments, name='tender-payments'),
    path('payments/webhook/<str:provider>/', views.payment_webhook, name='payment-webhook'),
    path('payments/<int:pk>/', views.payment_detail, name='payment-detail'),
    path('payments/<int:pk>/process/', views.payment_process, name='payment-process'),
    path('payments/<int:pk>/refund/', views.payment_refund, name='payment-refund'),
    path('payments/<int:pk>/verify/', views.payment_verify, name='payment-verify'),
    path('payments/<int:pk>/cancel/', views.payment_cancel, name='payment-cancel'),
    path('payments/<int:pk>/receipt/', views.payment_receipt, name='payment-receipt'),
    path('invoices/', views.invoice_list_create, name='invoice-list-create'),
    path('invoices/<int:pk>/', views.invoice_detail, name='invoice-detail'),
    path('invoices/<int:pk>/send/', views.invoice_send, name='invoice-send'),
    path('invoices/<int:pk>/mark-viewed/', views.invoice_mark_viewed, name='invoice-mark-viewed'),
    path('invoices/<int:pk>/cancel/', views.invoice_cancel, name='invoice-cancel'),
]
