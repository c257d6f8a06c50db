from decimal import Decimal

from django.core.validators import MinValueValidator, MaxValueValidator, RegexValidator
from django.db import models

from backend.core.constants import AGENCY_RANK_CHOICES, BANK_ACCOUNT_TYPE_CHOICES
from backend.core.models import User

invoice_registration_number_validator = RegexValidator(
    regex=r'^T[0-9]{13}$',
    message='Registration number must be T followed by 13 digits',
)


class Agency(models.Model):
    """Reseller agency entitled to a commission on its livers' rewards"""
    name = models.CharField(max_length=200)
    commission_rate = models.DecimalField(
        max_digits=5, decimal_places=4, default=Decimal('0.0000'),
        validators=[MinValueValidator(Decimal('0')), MaxValueValidator(Decimal('1'))],
    )
    rank = models.CharField(max_length=20, choices=AGENCY_RANK_CHOICES, blank=True, null=True)
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='owned_agencies')
    parent_agencies = models.ManyToManyField(
        'self', through='AgencyHierarchy', through_fields=('agency', 'parent_agency'),
        symmetrical=False, related_name='child_agencies', blank=True,
    )

    # Company info printed on invoices
    company_address = models.TextField(blank=True, default='')
    representative_name = models.CharField(max_length=200, blank=True, default='')
    invoice_registration_number = models.CharField(
        max_length=14, blank=True, default='', validators=[invoice_registration_number_validator]
    )
    bank_name = models.CharField(max_length=200, blank=True, default='')
    bank_branch = models.CharField(max_length=200, blank=True, default='')
    bank_account_type = models.CharField(max_length=10, choices=BANK_ACCOUNT_TYPE_CHOICES, blank=True, default='')
    bank_account_number = models.CharField(max_length=50, blank=True, default='')
    bank_account_holder = models.CharField(max_length=200, blank=True, default='')

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    @property
    def is_invoice_registered(self):
        return bool(self.invoice_registration_number)

    class Meta:
        db_table = 'agencies'
        ordering = ['-created_at']


class AgencyHierarchy(models.Model):
    """Parent link: parent_agency sits above agency"""
    agency = models.ForeignKey(Agency, on_delete=models.CASCADE, related_name='parent_links')
    parent_agency = models.ForeignKey(Agency, on_delete=models.CASCADE, related_name='child_links')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.parent_agency_id} -> {self.agency_id}"

    class Meta:
        db_table = 'agency_hierarchy'
        unique_together = [['agency', 'parent_agency']]
