"""
Profile provisioning signals
"""
from django.conf import settings
from django.db.models.signals import post_save
from django.dispatch import receiver
import logging

from .constants import ROLE_AGENCY_USER, ROLE_SYSTEM_ADMIN
from .models import Profile

logger = logging.getLogger(__name__)


@receiver(post_save, sender=settings.AUTH_USER_MODEL)
def create_user_profile(sender, instance, created, **kwargs):
    """Every user gets a profile; superusers start as system admins"""
    if not created:
        return
    role = ROLE_SYSTEM_ADMIN if instance.is_superuser else ROLE_AGENCY_USER
    Profile.objects.get_or_create(user=instance, defaults={'role': role})
    logger.debug(f"Created {role} profile for user {instance.pk}")
