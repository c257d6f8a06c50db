from django.urls import path
from .views import agency_list_create, agency_detail, agency_company_info

urlpatterns = [
    path('agencies/', agency_list_create, name='agency-list-create'),
    path('agencies/<int:pk>/', agency_detail, name='agency-detail'),
    path('agencies/<int:pk>/company-info/', agency_company_info, name='agency-company-info'),
]
