from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver

from tenderhub.core.cache_utils import invalidate, CONTRACT_STATS_KEY
from .models import Contract


@receiver([post_save, post_delete], sender=Contract)
def invalidate_contract_statistics(sender, instance, **kwargs):
    invalidate(CONTRACT_STATS_KEY)
