import logging

from celery import shared_task
from django.utils import timezone

from .models import SubscriptionStatus, Tenant

logger = logging.getLogger(__name__)


@shared_task
def cleanup_expired_trials():
    """
    Task diária: empresas em TRIAL com período vencido
    passam para SUSPENDED até contratarem um plano.
    """
    now = timezone.now()
    expired = Tenant.objects.filter(
        subscription_status=SubscriptionStatus.TRIAL,
        trial_ends_at__lt=now,
        is_active=True
    )

    count = expired.update(subscription_status=SubscriptionStatus.SUSPENDED)
    if count > 0:
        logger.info(f"CELERY BEAT: {count} empresas com trial expirado foram suspensas.")

    return f"Suspended {count} expired trials."
