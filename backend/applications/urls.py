from django.urls import path
from .views import application_list_create, application_detail, application_update_status

urlpatterns = [
    path('applications/', application_list_create, name='application-list-create'),
    path('applications/<int:pk>/', application_detail, name='application-detail'),
    path('applications/<int:pk>/status/', application_update_status, name='application-status'),
]
