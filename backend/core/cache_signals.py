"""
Cache invalidation signals
Automatically invalidate cache when data changes
"""
from django.db import transaction
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver
import logging

from .cache_utils import invalidate_agency_list_cache, invalidate_monthly_report_list_cache

logger = logging.getLogger(__name__)


@receiver([post_save, post_delete])
def invalidate_agencies_cache(sender, instance, **kwargs):
    """Invalidate the agency list when agencies or hierarchy links change"""
    if sender.__name__ in ['Agency', 'AgencyHierarchy']:
        try:
            from backend.agencies.models import Agency, AgencyHierarchy

            if isinstance(instance, (Agency, AgencyHierarchy)):
                # After commit so the list is not rebuilt from uncommitted rows
                transaction.on_commit(invalidate_agency_list_cache)
        except Exception as e:
            logger.warning(f"Error in invalidate_agencies_cache signal: {e}")


@receiver([post_save, post_delete])
def invalidate_monthly_reports_cache(sender, instance, **kwargs):
    """Invalidate the monthly report list when reports change"""
    if sender.__name__ == 'MonthlyReport':
        try:
            from backend.reports.models import MonthlyReport

            if isinstance(instance, MonthlyReport):
                transaction.on_commit(invalidate_monthly_report_list_cache)
        except Exception as e:
            logger.warning(f"Error in invalidate_monthly_reports_cache signal: {e}")
