from django.db import models

from backend.agencies.models import Agency
from backend.core.constants import BANK_ACCOUNT_TYPE_CHOICES
from backend.core.models import User
from backend.reports.models import MonthlyReport


class Invoice(models.Model):
    """
    Commission invoice issued by an agency for one monthly report.
    Agency, bank and rate values are copied at issue time so later edits
    never change an issued invoice.
    """
    invoice_number = models.CharField(max_length=30, unique=True, help_text="INV-YYYYMM-NNNN")
    agency = models.ForeignKey(Agency, on_delete=models.PROTECT, related_name='invoices')
    monthly_report = models.ForeignKey(MonthlyReport, on_delete=models.PROTECT, related_name='invoices')

    subtotal_jpy = models.DecimalField(max_digits=18, decimal_places=2)
    tax_rate = models.DecimalField(max_digits=5, decimal_places=4)
    tax_amount_jpy = models.DecimalField(max_digits=18, decimal_places=2)
    total_jpy = models.DecimalField(max_digits=18, decimal_places=2)

    is_invoice_registered = models.BooleanField(default=False)
    invoice_registration_number = models.CharField(max_length=14, blank=True, default='')
    deductible_rate = models.DecimalField(max_digits=3, decimal_places=2)

    agency_name = models.CharField(max_length=200)
    agency_address = models.TextField(blank=True, default='')
    agency_representative = models.CharField(max_length=200, blank=True, default='')
    bank_name = models.CharField(max_length=200, blank=True, default='')
    bank_branch = models.CharField(max_length=200, blank=True, default='')
    bank_account_type = models.CharField(max_length=10, choices=BANK_ACCOUNT_TYPE_CHOICES, blank=True, default='')
    bank_account_number = models.CharField(max_length=50, blank=True, default='')
    bank_account_holder = models.CharField(max_length=200, blank=True, default='')

    data_month = models.CharField(max_length=7, blank=True, null=True)
    exchange_rate = models.DecimalField(max_digits=10, decimal_places=4)
    commission_rate = models.DecimalField(max_digits=5, decimal_places=4)

    sent_at = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='invoices')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.invoice_number} - {self.agency_name}"

    class Meta:
        db_table = 'invoices'
        ordering = ['-created_at']
        unique_together = [['agency', 'monthly_report']]
