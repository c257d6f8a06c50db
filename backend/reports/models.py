from decimal import Decimal

from django.db import models

from backend.agencies.models import Agency
from backend.core.constants import REVENUE_TASK_CHOICES
from backend.core.models import User
from backend.livers.models import Liver


class MonthlyReport(models.Model):
    """One imported CSV batch: a month of reward data at a fixed exchange rate"""
    rate = models.DecimalField(max_digits=10, decimal_places=4, help_text="JPY per USD")
    revenue_task = models.CharField(max_length=20, choices=REVENUE_TASK_CHOICES, blank=True, null=True)
    data_month = models.CharField(max_length=7, blank=True, null=True, unique=True, help_text="YYYY-MM")
    upload_agency = models.ForeignKey(Agency, on_delete=models.SET_NULL, null=True, blank=True, related_name='uploaded_reports')
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='monthly_reports')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.data_month or 'unknown month'} @ {self.rate}"

    class Meta:
        db_table = 'monthly_reports'
        ordering = ['-created_at']


class CsvDataRow(models.Model):
    """One creator line of an imported report"""
    report = models.ForeignKey(MonthlyReport, on_delete=models.CASCADE, related_name='rows')
    creator_id = models.CharField(max_length=100, blank=True, null=True, db_index=True)
    creator_nickname = models.CharField(max_length=255, blank=True, null=True)
    handle = models.CharField(max_length=255, blank=True, null=True)
    group = models.CharField(max_length=255, blank=True, null=True)
    group_manager = models.CharField(max_length=255, blank=True, null=True)
    creator_network_manager = models.CharField(max_length=255, blank=True, null=True)
    data_month = models.CharField(max_length=50, blank=True, null=True)
    diamonds = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal('0.00'))
    estimated_bonus = models.DecimalField(max_digits=14, decimal_places=4, default=Decimal('0.0000'))
    bonus_rookie_half_milestone = models.DecimalField(max_digits=14, decimal_places=4, default=Decimal('0.0000'))
    bonus_activeness = models.DecimalField(max_digits=14, decimal_places=4, default=Decimal('0.0000'))
    bonus_revenue_scale = models.DecimalField(max_digits=14, decimal_places=4, default=Decimal('0.0000'))
    bonus_rookie_milestone_1 = models.DecimalField(max_digits=14, decimal_places=4, default=Decimal('0.0000'))
    bonus_rookie_milestone_2 = models.DecimalField(max_digits=14, decimal_places=4, default=Decimal('0.0000'))
    bonus_off_platform = models.DecimalField(max_digits=14, decimal_places=4, default=Decimal('0.0000'))
    bonus_rookie_retention = models.DecimalField(max_digits=14, decimal_places=4, default=Decimal('0.0000'))
    valid_days = models.CharField(max_length=50, blank=True, null=True)
    live_duration = models.CharField(max_length=50, blank=True, null=True)
    is_violative = models.BooleanField(default=False)
    was_rookie = models.BooleanField(default=False)
    total_reward_jpy = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal('0.00'))
    agency_reward_jpy = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal('0.00'))
    liver = models.ForeignKey(Liver, on_delete=models.SET_NULL, null=True, blank=True, related_name='csv_rows')
    agency = models.ForeignKey(Agency, on_delete=models.SET_NULL, null=True, blank=True, related_name='csv_rows')
    upload_agency = models.ForeignKey(Agency, on_delete=models.SET_NULL, null=True, blank=True, related_name='uploaded_csv_rows')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.creator_id} ({self.report_id})"

    class Meta:
        db_table = 'csv_data'
        ordering = ['id']
        indexes = [
            models.Index(fields=['report', 'agency'], name='csv_data_report__4f0b6e_idx'),
        ]


class Refund(models.Model):
    """Amount clawed back from a liver's reward for a report"""
    report = models.ForeignKey(MonthlyReport, on_delete=models.CASCADE, related_name='refunds')
    liver = models.ForeignKey(Liver, on_delete=models.SET_NULL, null=True, blank=True, related_name='refunds')
    agency = models.ForeignKey(Agency, on_delete=models.SET_NULL, null=True, blank=True, related_name='refunds')
    target_month = models.DateField()
    reason = models.TextField(blank=True, null=True)
    amount_usd = models.DecimalField(max_digits=14, decimal_places=2)
    amount_jpy = models.DecimalField(max_digits=18, decimal_places=2)
    is_deleted = models.BooleanField(default=False)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='refunds')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Refund {self.amount_usd} USD ({self.target_month})"

    class Meta:
        db_table = 'refunds'
        ordering = ['-created_at']


class ExchangeRateLog(models.Model):
    """History of exchange-rate changes applied to a report"""
    report = models.ForeignKey(MonthlyReport, on_delete=models.CASCADE, related_name='rate_logs')
    old_rate = models.DecimalField(max_digits=10, decimal_places=4)
    new_rate = models.DecimalField(max_digits=10, decimal_places=4)
    csv_row_count = models.IntegerField(default=0)
    refund_row_count = models.IntegerField(default=0)
    changed_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='rate_changes')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.report_id}: {self.old_rate} -> {self.new_rate}"

    class Meta:
        db_table = 'exchange_rate_logs'
        ordering = ['-created_at']
