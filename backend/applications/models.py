from django.db import models

from backend.agencies.models import Agency
from backend.core.constants import FORM_TAB_CHOICES, STATUS_CHOICES, STATUS_PENDING
from backend.core.models import User
from backend.livers.models import Liver


class Application(models.Model):
    """Request submitted through one of the application forms"""
    form_tab = models.CharField(max_length=30, choices=FORM_TAB_CHOICES)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    name = models.CharField(max_length=200, blank=True, null=True)
    address = models.TextField(blank=True, null=True)
    birth_date = models.DateField(blank=True, null=True)
    contact = models.CharField(max_length=200, blank=True, null=True)
    email = models.EmailField(blank=True, null=True)
    additional_info = models.TextField(blank=True, null=True)
    tiktok_username = models.CharField(max_length=200, blank=True, null=True)
    tiktok_account_link = models.URLField(max_length=500, blank=True, null=True)
    id_verified = models.BooleanField(default=False)
    form_data = models.JSONField(default=dict, blank=True, help_text="Form-specific extra fields")
    agency = models.ForeignKey(Agency, on_delete=models.SET_NULL, null=True, blank=True, related_name='applications')
    liver = models.ForeignKey(Liver, on_delete=models.SET_NULL, null=True, blank=True, related_name='applications')
    submitted_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='applications')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.get_form_tab_display()} - {self.name or self.tiktok_username or self.pk}"

    class Meta:
        db_table = 'applications'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status'], name='applications_status_0c5e1b_idx'),
            models.Index(fields=['form_tab'], name='applications_form_ta_7d2a94_idx'),
        ]
