import io
import logging

from celery import shared_task
from celery.exceptions import SoftTimeLimitExceeded
from django.contrib.auth import get_user_model
from django.db import DatabaseError

from apps.core.exceptions import BusinessError
from apps.tenants.models import Tenant

from .services import ProductImportService

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    max_retries=3,
    default_retry_delay=60,
    soft_time_limit=240,
    time_limit=300
)
def import_products_task(self, tenant_id, user_id, csv_content):
    """Background CSV import for large catalogs (content passed as text)"""
    tenant = Tenant.objects.get(pk=tenant_id)
    user = get_user_model().objects.filter(pk=user_id).first()

    try:
        result = ProductImportService.import_csv(tenant, user, io.StringIO(csv_content))
    except BusinessError as e:
        # Bad file: retrying would fail the same way
        logger.error(f"Importação assíncrona recusada para empresa {tenant_id}: {e}")
        return {'created': 0, 'updated': 0, 'errors': [{'line': 1, 'error': str(e)}]}
    except SoftTimeLimitExceeded:
        logger.error(f"Importação assíncrona da empresa {tenant_id} excedeu o tempo limite")
        raise
    except DatabaseError as exc:
        logger.warning(f"Falha de banco na importação da empresa {tenant_id}, tentativa {self.request.retries + 1}: {exc}")
        raise self.retry(exc=exc)

    logger.info(f"Importação assíncrona concluída para empresa {tenant_id}: {result['created']} novos")
    return result
