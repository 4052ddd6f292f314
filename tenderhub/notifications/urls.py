from django.urls import path
from . import views

urlpatterns = [
    path('notifications/', views.notification_list_create, name='notification-list-create'),
    path('notifications/unread-count/', views.notification_unread_count, name='notification-unread-count'),
    path('notifications/mark-all-read/', views.notification_mark_all_read, name='notification-mark-all-read'),
    path('notifications/cleanup/', views.notification_cleanup, name='notification-cleanup'),
    path('notifications/<int:pk>/', views.notification_detail, name='notification-detail'),
    path('notifications/<int:pk>/read/', views.notification_read, name='notification-read'),
]
