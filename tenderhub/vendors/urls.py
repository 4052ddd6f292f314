from django.urls import path
from . import views

urlpatterns = [
    path('vendors/', views.vendor_list_create, name='vendor-list-create'),
    path('vendors/search/', views.vendor_search, name='vendor-search'),
    path('vendors/categories/', views.vendor_categories, name='vendor-categories'),
    path('vendors/statistics/', views.vendor_statistics, name='vendor-statistics'),
    path('vendors/me/', views.my_vendor, name='my-vendor'),
    path('vendors/<int:pk>/', views.vendor_detail, name='vendor-detail'),
    path('vendors/<int:pk>/documents/', views.vendor_documents, name='vendor-documents'),
    path('vendors/<int:pk>/initiate-verification/', views.vendor_initiate_verification, name='vendor-initiate-verification'),
    path('vendors/<int:pk>/verify/', views.vendor_verify, name='vendor-verify'),
    path('vendors/<int:pk>/approve/', views.vendor_approve, name='vendor-approve'),
    path('vendors/<int:pk>/reject/', views.vendor_reject, name='vendor-reject'),
    path('vendors/<int:pk>/suspend/', views.vendor_suspend, name='vendor-suspend'),
    path('vendors/<int:pk>/activate/', views.vendor_activate, name='vendor-activate'),
    path('vendors/<int:pk>/status/', views.vendor_change_status, name='vendor-change-status'),
    path('vendors/<int:pk>/blacklist/', views.vendor_blacklist, name='vendor-blacklist'),
    path('vendors/<int:pk>/performance/', views.vendor_performance, name='vendor-performance'),
    path('vendors/<int:pk>/rate/', views.vendor_rate, name='vendor-rate'),
    path('vendors/<int:pk>/bids/', views.vendor_bids, name='vendor-bids'),
    path('vendors/<int:pk>/contracts/', views.vendor_contracts, name='vendor-contracts'),
]
