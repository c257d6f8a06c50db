"""
Caching helpers for list endpoints that are read far more often than written.
Keys are fixed per list; invalidation deletes them explicitly.
"""
from django.core.cache import cache
import logging

logger = logging.getLogger(__name__)

# Cache TTLs (in seconds)
AGENCY_LIST_CACHE_TTL = 300  # 5 minutes
MONTHLY_REPORT_LIST_CACHE_TTL = 600  # 10 minutes

AGENCY_LIST_CACHE_KEY = 'agencies_list'
MONTHLY_REPORT_LIST_CACHE_KEY = 'monthly_reports_list'


def get_or_set_cached(cache_key, builder, ttl):
    """
    Return cached data for cache_key, building and storing it on a miss.

    Usage:
        data = get_or_set_cached(AGENCY_LIST_CACHE_KEY, build_agency_list, AGENCY_LIST_CACHE_TTL)
    """
    cached_data = cache.get(cache_key)
    if cached_data is not None:
        logger.debug(f"Cache HIT for {cache_key}")
        return cached_data

    logger.debug(f"Cache MISS for {cache_key}")
    data = builder()
    cache.set(cache_key, data, ttl)
    return data


def invalidate_agency_list_cache():
    """Invalidate the cached agency list"""
    try:
        cache.delete(AGENCY_LIST_CACHE_KEY)
        logger.info("Invalidated agency list cache")
    except Exception as e:
        logger.warning(f"Error invalidating agency list cache: {e}")


def invalidate_monthly_report_list_cache():
    """Invalidate the cached monthly report list"""
    try:
        cache.delete(MONTHLY_REPORT_LIST_CACHE_KEY)
        logger.info("Invalidated monthly report list cache")
    except Exception as e:
        logger.warning(f"Error invalidating monthly report list cache: {e}")
