"""
Caching utilities for expensive queries
Uses Redis (django-redis) in production, any Django cache backend in tests
"""
from django.core.cache import cache
import hashlib
import logging

logger = logging.getLogger(__name__)

# Cache TTLs (in seconds)
DASHBOARD_KPI_CACHE_TTL = 300  # 5 minutes
INSEE_SIRET_CACHE_TTL = 3600  # 1 hour
INSEE_NAME_CACHE_TTL = 1800  # 30 minutes


def make_cache_key(prefix, *args, **kwargs):
    """Generate a unique cache key from arguments"""
    key_data = f"{prefix}:{args}:{sorted(kwargs.items())}"
    # Hash it to keep key length reasonable
    key_hash = hashlib.md5(key_data.encode()).hexdigest()
    return f"{prefix}:{key_hash}"


def invalidate_cache_pattern(pattern):
    """
    Invalidate all cache keys matching a pattern
    Note: This requires Redis with SCAN command support
    """
    try:
        from django_redis import get_redis_connection
        redis_conn = get_redis_connection("default")

        keys = []
        cursor = 0
        while True:
            cursor, partial_keys = redis_conn.scan(cursor, match=f"*{pattern}*", count=100)
            keys.extend(partial_keys)
            if cursor == 0:
                break

        if keys:
            redis_conn.delete(*keys)
            logger.info(f"Invalidated {len(keys)} cache keys matching pattern: {pattern}")
    except Exception as e:
        logger.debug(f"Could not invalidate cache pattern {pattern}: {str(e)}")


def _dashboard_version_key(organization_id):
    return f"dashboard_version:{organization_id}"


def get_dashboard_cache_key(organization_id, name, **params):
    """Dashboard keys embed a per-organization version so invalidation works on every backend"""
    version = cache.get(_dashboard_version_key(organization_id), 0)
    return make_cache_key(f"dashboard_kpis:{organization_id}:{name}", version, **params)


def get_cached_dashboard(organization_id, name, **params):
    """Return (cached_data, cache_key) for a dashboard payload"""
    cache_key = get_dashboard_cache_key(organization_id, name, **params)
    return cache.get(cache_key), cache_key


def cache_dashboard(cache_key, data, ttl=DASHBOARD_KPI_CACHE_TTL):
    """Cache dashboard KPIs data"""
    cache.set(cache_key, data, ttl)
    logger.debug(f"Cached dashboard KPIs: {cache_key}")


def invalidate_dashboard_cache(organization_id):
    """Invalidate the dashboard KPIs of one organization"""
    version_key = _dashboard_version_key(organization_id)
    try:
        cache.incr(version_key)
    except ValueError:
        cache.set(version_key, 1, None)
    invalidate_cache_pattern(f"dashboard_kpis:{organization_id}:")
    logger.debug(f"Invalidated dashboard cache for organization {organization_id}")
