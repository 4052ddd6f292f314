"""
Caching helpers for expensive aggregate queries.
Backed by django-redis when REDIS_URL is configured.
"""
from django.core.cache import cache
import hashlib
import logging

logger = logging.getLogger(__name__)

# Cache TTLs (in seconds)
VENDOR_STATS_CACHE_TTL = 300  # 5 minutes
VENDOR_CATEGORIES_CACHE_TTL = 3600  # 1 hour
CONTRACT_STATS_CACHE_TTL = 300  # 5 minutes

VENDOR_STATS_KEY = 'vendor_stats'
VENDOR_CATEGORIES_KEY = 'vendor_categories'
CONTRACT_STATS_KEY = 'contract_stats'


def make_cache_key(prefix, *args, **kwargs):
    """Generate a unique cache key from arguments"""
    key_data = f"{prefix}:{args}:{sorted(kwargs.items())}"
    key_hash = hashlib.md5(key_data.encode()).hexdigest()
    return f"{prefix}:{key_hash}"


def get_or_set(prefix, builder, ttl, *args, **kwargs):
    """Return the cached value for ``prefix``/args, computing it with ``builder`` on a miss"""
    cache_key = make_cache_key(prefix, *args, **kwargs)
    cached_data = cache.get(cache_key)
    if cached_data is not None:
        logger.debug(f"Cache HIT for {prefix}: {cache_key}")
        return cached_data

    logger.debug(f"Cache MISS for {prefix}: {cache_key}")
    data = builder()
    cache.set(cache_key, data, ttl)
    return data


def invalidate(prefix, *args, **kwargs):
    cache.delete(make_cache_key(prefix, *args, **kwargs))
    logger.debug(f"Invalidated cache for {prefix}")
