import logging

from celery import shared_task
from django.db.models import Count
from django.utils import timezone

from .models import OPEN_STATUSES, CustomerCredit

logger = logging.getLogger(__name__)


@shared_task
def refresh_overdue_credits():
    """
    Task diária: levanta os fiados vencidos por empresa para acompanhamento.
    O status de atraso é derivado do vencimento, nada é alterado aqui.
    """
    today = timezone.localdate()
    per_tenant = CustomerCredit.objects.filter(
        status__in=OPEN_STATUSES,
        due_date__lt=today,
    ).values('tenant_id').annotate(total=Count('id'))

    summary = {row['tenant_id']: row['total'] for row in per_tenant}
    for tenant_id, total in summary.items():
        logger.info(f"CELERY BEAT: empresa {tenant_id} com {total} fiado(s) vencido(s).")

    return summary
