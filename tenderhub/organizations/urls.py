from django.urls import path
from . import views

urlpatterns = [
    path('organizations/', views.organization_list_create, name='organization-list-create'),
    path('organizations/my-organization/', views.my_organization, name='my-organization'),
    path('organizations/<int:pk>/', views.organization_detail, name='organization-detail'),
    path('organizations/<int:pk>/activate/', views.organization_activate, name='organization-activate'),
    path('organizations/<int:pk>/deactivate/', views.organization_deactivate, name='organization-deactivate'),
    path('organizations/<int:pk>/users/', views.organization_users, name='organization-users'),
    path('organizations/<int:pk>/tenders/', views.organization_tenders, name='organization-tenders'),
    path('organizations/<int:pk>/statistics/', views.organization_statistics, name='organization-statistics'),
    path('organizations/<int:pk>/settings/', views.organization_settings, name='organization-settings'),
]
