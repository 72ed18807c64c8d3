"""
Caching utilities for the storefront product listings

Keys embed a generation number; bumping the generation invalidates every
cached listing at once on any cache backend (Redis or local memory).
"""
from django.core.cache import cache
import hashlib
import logging

logger = logging.getLogger(__name__)

# Cache TTLs (in seconds)
PRODUCTS_LIST_CACHE_TTL = 120  # 2 minutes

PRODUCTS_GENERATION_KEY = 'products_list:generation'


def make_cache_key(prefix, *args, **kwargs):
    """Generate a unique cache key from arguments"""
    key_data = f"{prefix}:{args}:{sorted(kwargs.items())}"
    key_hash = hashlib.md5(key_data.encode()).hexdigest()
    return f"{prefix}:{key_hash}"


def get_products_generation():
    generation = cache.get(PRODUCTS_GENERATION_KEY)
    if generation is None:
        generation = 1
        cache.add(PRODUCTS_GENERATION_KEY, generation, None)
    return generation


def get_cached_products_list(filters_dict):
    """
    Get cached products list with filters
    Returns tuple: (cached_data, cache_key)
    """
    cache_key = make_cache_key(f"products_list:{get_products_generation()}", sorted(filters_dict.items()))
    cached_data = cache.get(cache_key)
    if cached_data is not None:
        logger.debug(f"Cache HIT for products_list: {cache_key}")
    else:
        logger.debug(f"Cache MISS for products_list: {cache_key}")
    return cached_data, cache_key


def cache_products_list(cache_key, data, ttl=PRODUCTS_LIST_CACHE_TTL):
    """Cache products list data"""
    cache.set(cache_key, data, ttl)
    logger.debug(f"Cached products list: {cache_key}")


def invalidate_products_cache():
    """Invalidate all products-related cache"""
    try:
        cache.incr(PRODUCTS_GENERATION_KEY)
    except ValueError:
        # Generation key expired or was never set
        cache.set(PRODUCTS_GENERATION_KEY, get_products_generation() + 1, None)
    logger.info("Invalidated products cache")
