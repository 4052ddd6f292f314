"""
Cache invalidation signals for vendor aggregates
"""
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver
import logging

from tenderhub.core.cache_utils import invalidate, VENDOR_STATS_KEY
from .models import Vendor

logger = logging.getLogger(__name__)


@receiver([post_save, post_delete], sender=Vendor)
def invalidate_vendor_statistics(sender, instance, **kwargs):
    invalidate(VENDOR_STATS_KEY)
    logger.debug(f"Vendor statistics cache cleared after change to {instance.registration_number}")
