from django.urls import path
from .views import liver_list, liver_detail, liver_update_status, liver_bulk_update_status, liver_export_csv

urlpatterns = [
    path('livers/', liver_list, name='liver-list'),
    path('livers/export/', liver_export_csv, name='liver-export'),
    path('livers/bulk-status/', liver_bulk_update_status, name='liver-bulk-status'),
    path('livers/<int:pk>/', liver_detail, name='liver-detail'),
    path('livers/<int:pk>/status/', liver_update_status, name='liver-status'),
]
