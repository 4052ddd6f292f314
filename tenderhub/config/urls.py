"""
URL configuration for the TenderHub project.

Every app exposes its endpoints under ``api/v1/``.
"""
from django.contrib import admin
from django.urls import path, include

admin.site.site_header = "TenderHub Administration"
admin.site.site_title = "TenderHub Admin Portal"
admin.site.index_title = "Tender & Procurement Management"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('tenderhub.core.urls')),
    path('api/v1/', include('tenderhub.organizations.urls')),
    path('api/v1/', include('tenderhub.tenders.urls')),
    path('api/v1/', include('tenderhub.vendors.urls')),
    path('api/v1/', include('tenderhub.bids.urls')),
    path('api/v1/', include('tenderhub.emd.urls')),
    path('api/v1/', include('tenderhub.contracts.urls')),
    path('api/v1/', include('tenderhub.payments.urls')),
    path('api/v1/', include('tenderhub.security.urls')),
    path('api/v1/', include('tenderhub.notifications.urls')),
    path('api/v1/', include('tenderhub.llm_processing.urls')),
]
