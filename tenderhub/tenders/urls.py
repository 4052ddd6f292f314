from django.urls import path
from . import views

urlpatterns = [
    path('tenders/', views.tender_list_create, name='tender-list-create'),
    path('tenders/my-tenders/', views.my_tenders, name='my-tenders'),
    path('tenders/favorites/', views.favorite_tenders, name='favorite-tenders'),
    path('tenders/<int:pk>/', views.tender_detail, name='tender-detail'),
    path('tenders/<int:pk>/publish/', views.tender_publish, name='tender-publish'),
    path('tenders/<int:pk>/close/', views.tender_close, name='tender-close'),
    path('tenders/<int:pk>/cancel/', views.tender_cancel, name='tender-cancel'),
    path('tenders/<int:pk>/extend/', views.tender_extend, name='tender-extend'),
    path('tenders/<int:pk>/award/', views.tender_award, name='tender-award'),
    path('tenders/<int:pk>/complete/', views.tender_complete, name='tender-complete'),
    path('tenders/<int:pk>/favorite/', views.tender_favorite, name='tender-favorite'),
    path('tenders/<int:pk>/analytics/', views.tender_analytics, name='tender-analytics'),
]
