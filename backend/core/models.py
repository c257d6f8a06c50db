from django.contrib.auth.models import AbstractUser
from django.db import models

from .constants import USER_ROLE_CHOICES, ROLE_AGENCY_USER, ROLE_SYSTEM_ADMIN


class User(AbstractUser):
    """Extended user model with additional fields"""
    email = models.EmailField(unique=True)
    phone = models.CharField(max_length=20, blank=True, null=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'users'


class Profile(models.Model):
    """Role and agency scope of a user"""
    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='profile')
    role = models.CharField(max_length=20, choices=USER_ROLE_CHOICES, default=ROLE_AGENCY_USER)
    agency = models.ForeignKey(
        'agencies.Agency', on_delete=models.SET_NULL, null=True, blank=True, related_name='member_profiles'
    )
    viewable_agencies = models.ManyToManyField(
        'agencies.Agency', blank=True, related_name='viewer_profiles', db_table='profile_viewable_agencies'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.user.email} ({self.role})"

    @property
    def is_system_admin(self):
        return self.role == ROLE_SYSTEM_ADMIN

    class Meta:
        db_table = 'profiles'


class AuditLog(models.Model):
    """Audit log for critical operations"""
    ACTION_CHOICES = [
        ('create', 'Create'),
        ('update', 'Update'),
        ('delete', 'Delete'),
        ('agency_create', 'Agency Created'),
        ('agency_update', 'Agency Updated'),
        ('company_info_update', 'Company Info Updated'),
        ('status_change', 'Status Changed'),
        ('bulk_status_change', 'Bulk Status Changed'),
        ('application_create', 'Application Submitted'),
        ('csv_import', 'CSV Imported'),
        ('csv_replace', 'CSV Replaced Existing Month'),
        ('rate_change', 'Exchange Rate Changed'),
        ('refund_create', 'Refund Created'),
        ('refund_delete', 'Refund Deleted'),
        ('invoice_create', 'Invoice Created'),
        ('password_change', 'Password Changed'),
    ]

    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='audit_logs')
    action = models.CharField(max_length=50, choices=ACTION_CHOICES)
    model_name = models.CharField(max_length=100)
    object_id = models.CharField(max_length=100)
    object_name = models.CharField(max_length=255, blank=True, null=True, help_text="Human-readable name of the object (e.g., agency name, invoice number)")
    object_reference = models.CharField(max_length=255, blank=True, null=True, help_text="Reference identifier (e.g., invoice number, data month)")
    changes = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['-created_at'], name='audit_logs_created_d3a1f2_idx'),
            models.Index(fields=['action'], name='audit_logs_action_5b7c20_idx'),
            models.Index(fields=['model_name'], name='audit_logs_model_n_8e4d11_idx'),
            models.Index(fields=['object_reference'], name='audit_logs_object__c2f9a7_idx'),
        ]
