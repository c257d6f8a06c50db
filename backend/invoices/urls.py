from django.urls import path
from .views import invoice_list, invoice_detail, invoice_preview, invoice_create, invoice_pdf

urlpatterns = [
    path('invoices/', invoice_list, name='invoice-list'),
    path('invoices/preview/', invoice_preview, name='invoice-preview'),
    path('invoices/create/', invoice_create, name='invoice-create'),
    path('invoices/<int:pk>/', invoice_detail, name='invoice-detail'),
    path('invoices/<int:pk>/pdf/', invoice_pdf, name='invoice-pdf'),
]
