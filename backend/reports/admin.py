from django.contrib import admin
from .models import MonthlyReport, CsvDataRow, Refund, ExchangeRateLog


@admin.register(MonthlyReport)
class MonthlyReportAdmin(admin.ModelAdmin):
    list_display = ['id', 'data_month', 'rate', 'revenue_task', 'upload_agency', 'created_by', 'created_at']
    list_filter = ['revenue_task', 'data_month']
    ordering = ['-created_at']


@admin.register(CsvDataRow)
class CsvDataRowAdmin(admin.ModelAdmin):
    list_display = ['creator_id', 'creator_nickname', 'report', 'agency', 'liver', 'estimated_bonus',
                    'total_reward_jpy', 'agency_reward_jpy']
    list_filter = ['report']
    search_fields = ['creator_id', 'creator_nickname', 'handle', 'creator_network_manager']
    raw_id_fields = ['report', 'liver', 'agency', 'upload_agency']


@admin.register(Refund)
class RefundAdmin(admin.ModelAdmin):
    list_display = ['id', 'report', 'liver', 'agency', 'target_month', 'amount_usd', 'amount_jpy', 'is_deleted']
    list_filter = ['is_deleted', 'report']
    raw_id_fields = ['report', 'liver', 'agency']


@admin.register(ExchangeRateLog)
class ExchangeRateLogAdmin(admin.ModelAdmin):
    list_display = ['report', 'old_rate', 'new_rate', 'csv_row_count', 'refund_row_count', 'changed_by', 'created_at']
    readonly_fields = ['report', 'old_rate', 'new_rate', 'csv_row_count', 'refund_row_count', 'changed_by', 'created_at']
