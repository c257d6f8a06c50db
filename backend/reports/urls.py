from django.urls import path
from .views import (
    monthly_report_list, monthly_report_import, monthly_report_dashboard,
    refund_create, refund_delete, refund_export_csv,
    exchange_rate_preview, exchange_rate_update, exchange_rate_logs,
)

urlpatterns = [
    # Monthly reports
    path('reports/', monthly_report_list, name='monthly-report-list'),
    path('reports/import/', monthly_report_import, name='monthly-report-import'),
    path('reports/<int:pk>/dashboard/', monthly_report_dashboard, name='monthly-report-dashboard'),
    path('reports/<int:pk>/refunds/export/', refund_export_csv, name='refund-export'),

    # Exchange rate
    path('reports/<int:pk>/exchange-rate/preview/', exchange_rate_preview, name='exchange-rate-preview'),
    path('reports/<int:pk>/exchange-rate/', exchange_rate_update, name='exchange-rate-update'),
    path('reports/<int:pk>/exchange-rate/logs/', exchange_rate_logs, name='exchange-rate-logs'),

    # Refunds
    path('refunds/', refund_create, name='refund-create'),
    path('refunds/<int:pk>/', refund_delete, name='refund-delete'),
]
