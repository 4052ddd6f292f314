from django.urls import path
from . import views

urlpatterns = [
    path('bids/', views.bid_list_create, name='bid-list-create'),
    path('bids/my-bids/', views.my_bids, name='my-bids'),
    path('bids/tender/<int:tender_id>/', views.tender_bids, name='tender-bids'),
    path('bids/tender/<int:tender_id>/compare/', views.bid_compare, name='bid-compare'),
    path('bids/<int:pk>/', views.bid_detail, name='bid-detail'),
    path('bids/<int:pk>/submit/', views.bid_submit, name='bid-submit'),
    path('bids/<int:pk>/withdraw/', views.bid_withdraw, name='bid-withdraw'),
    path('bids/<int:pk>/disqualify/', views.bid_disqualify, name='bid-disqualify'),
    path('bids/<int:pk>/shortlist/', views.bid_shortlist, name='bid-shortlist'),
    path('bids/<int:pk>/evaluate/', views.bid_evaluate, name='bid-evaluate'),
    path('bids/<int:pk>/analytics/', views.bid_analytics, name='bid-analytics'),
]
