from django.contrib import admin
from .models import Invoice


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ['invoice_number', 'agency_name', 'data_month', 'subtotal_jpy', 'tax_amount_jpy', 'total_jpy',
                    'is_invoice_registered', 'sent_at', 'created_at']
    list_filter = ['is_invoice_registered', 'data_month']
    search_fields = ['invoice_number', 'agency_name']
    raw_id_fields = ['agency', 'monthly_report', 'created_by']
    readonly_fields = ['invoice_number', 'subtotal_jpy', 'tax_rate', 'tax_amount_jpy', 'total_jpy',
                       'deductible_rate', 'exchange_rate', 'commission_rate', 'created_at']
