from django.urls import path
from . import views

urlpatterns = [
    path('security/instruments/', views.instrument_list_create, name='security-list-create'),
    path('security/instruments/expiring/', views.instrument_expiring, name='security-expiring'),
    path('security/instruments/statistics/', views.instrument_statistics, name='security-statistics'),
    path('security/instruments/tender/<int:tender_id>/', views.tender_instruments, name='security-tender'),
    path('security/instruments/<int:pk>/', views.instrument_detail, name='security-detail'),
    path('security/instruments/<int:pk>/submit/', views.instrument_submit, name='security-submit'),
    path('security/instruments/<int:pk>/verify/', views.instrument_verify, name='security-verify'),
    path('security/instruments/<int:pk>/activate/', views.instrument_activate, name='security-activate'),
    path('security/instruments/<int:pk>/claim/', views.instrument_claim, name='security-claim'),
    path('security/instruments/<int:pk>/release/', views.instrument_release, name='security-release'),
    path('security/instruments/<int:pk>/cancel/', views.instrument_cancel, name='security-cancel'),
]
