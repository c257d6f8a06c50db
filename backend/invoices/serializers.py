from rest_framework import serializers

from backend.agencies.models import Agency
from backend.reports.models import MonthlyReport
from .models import Invoice


class InvoiceListSerializer(serializers.ModelSerializer):
    class Meta:
        model = Invoice
        fields = ['id', 'invoice_number', 'agency', 'agency_name', 'monthly_report', 'data_month',
                  'subtotal_jpy', 'tax_amount_jpy', 'total_jpy', 'is_invoice_registered', 'sent_at', 'created_at']


class InvoiceSerializer(serializers.ModelSerializer):
    bank_account_type_display = serializers.CharField(source='get_bank_account_type_display', read_only=True)

    class Meta:
        model = Invoice
        fields = ['id', 'invoice_number', 'agency', 'monthly_report', 'subtotal_jpy', 'tax_rate',
                  'tax_amount_jpy', 'total_jpy', 'is_invoice_registered', 'invoice_registration_number',
                  'deductible_rate', 'agency_name', 'agency_address', 'agency_representative',
                  'bank_name', 'bank_branch', 'bank_account_type', 'bank_account_type_display',
                  'bank_account_number', 'bank_account_holder', 'data_month', 'exchange_rate',
                  'commission_rate', 'sent_at', 'created_by', 'created_at']
        read_only_fields = fields


class InvoiceTargetSerializer(serializers.Serializer):
    """Agency and monthly report an invoice is (or would be) issued for"""
    agency = serializers.PrimaryKeyRelatedField(queryset=Agency.objects.all())
    monthly_report = serializers.PrimaryKeyRelatedField(queryset=MonthlyReport.objects.all())
