from django.urls import path
from . import views

urlpatterns = [
    path('emds/', views.emd_list_create, name='emd-list-create'),
    path('emds/my-emds/', views.my_emds, name='my-emds'),
    path('emds/tender/<int:tender_id>/', views.tender_emds, name='tender-emds'),
    path('emds/tender/<int:tender_id>/summary/', views.tender_emd_summary, name='tender-emd-summary'),
    path('emds/<int:pk>/', views.emd_detail, name='emd-detail'),
    path('emds/<int:pk>/mark-paid/', views.emd_mark_paid, name='emd-mark-paid'),
    path('emds/<int:pk>/verify/', views.emd_verify, name='emd-verify'),
    path('emds/<int:pk>/refund/', views.emd_refund, name='emd-refund'),
    path('emds/<int:pk>/forfeit/', views.emd_forfeit, name='emd-forfeit'),
]
