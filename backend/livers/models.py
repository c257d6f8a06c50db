from django.db import models

from backend.agencies.models import Agency
from backend.core.constants import STATUS_CHOICES, STATUS_PENDING


class Liver(models.Model):
    """Livestreaming talent on the roster"""
    name = models.CharField(max_length=200, blank=True, null=True)
    account_name = models.CharField(max_length=200, blank=True, null=True)
    liver_id = models.CharField(max_length=100, blank=True, null=True, db_index=True, help_text="TikTok creator ID")
    email = models.EmailField(blank=True, null=True)
    tiktok_username = models.CharField(max_length=200, blank=True, null=True)
    link = models.URLField(max_length=500, blank=True, null=True)
    address = models.TextField(blank=True, null=True)
    contact = models.CharField(max_length=200, blank=True, null=True)
    birth_date = models.DateField(blank=True, null=True)
    acquisition_date = models.DateField(blank=True, null=True)
    streaming_start_date = models.DateField(blank=True, null=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    agency = models.ForeignKey(Agency, on_delete=models.SET_NULL, null=True, blank=True, related_name='livers')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name or self.account_name or self.liver_id or f"Liver {self.pk}"

    class Meta:
        db_table = 'livers'
        ordering = ['-created_at']
