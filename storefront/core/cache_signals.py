"""
Cache invalidation signals
Automatically invalidate the storefront product cache when catalog data changes
"""
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver
import logging
import threading
from contextlib import contextmanager

from .cache_utils import invalidate_products_cache

logger = logging.getLogger(__name__)

# Thread-local storage to track signal suspension
_thread_locals = threading.local()


@contextmanager
def suspend_cache_signals():
    """
    Context manager to temporarily suspend cache invalidation signals.
    Useful for bulk operations to prevent excessive cache clearing.
    Remember to manually invalidate cache after the block!
    """
    try:
        _thread_locals.suspended = True
        yield
    finally:
        _thread_locals.suspended = False


def is_suspended():
    return getattr(_thread_locals, 'suspended', False)


@receiver(post_save, sender='catalog.Product')
@receiver(post_delete, sender='catalog.Product')
@receiver(post_save, sender='catalog.ProductImage')
@receiver(post_delete, sender='catalog.ProductImage')
@receiver(post_save, sender='catalog.Category')
@receiver(post_delete, sender='catalog.Category')
def invalidate_catalog_cache(sender, **kwargs):
    if is_suspended():
        return
    try:
        invalidate_products_cache()
    except Exception as e:
        logger.warning(f"Could not invalidate products cache after {sender.__name__} change: {str(e)}")
