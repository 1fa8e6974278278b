import logging

from django.contrib.auth import get_user_model
from django.db import transaction

from apps.accounts.models import MembershipRole, TenantMembership
from apps.accounts.services import create_user
from apps.core.exceptions import BusinessError
from apps.core.models import StoreSettings

from .models import ApprovalStatus, Plan, SubscriptionStatus, Tenant

logger = logging.getLogger(__name__)


def default_plan():
    plan = Plan.objects.filter(name='GRATUITO').first()
    if not plan:
        plan = Plan.objects.create(name='GRATUITO', display_name='Gratuito', price=0, max_products=50, max_users=3)
    return plan


class SignupService:
    """Self-service signup that creates Tenant + User + OWNER membership + store settings"""

    @staticmethod
    @transaction.atomic
    def signup(company_name, email, password, first_name='', last_name='', cnpj=None, plan=None):
        email = email.strip().lower()
        if get_user_model().objects.filter(email__iexact=email).exists():
            raise BusinessError("Este e-mail já está cadastrado.")
        cnpj = (cnpj or '').strip() or None
        if cnpj and Tenant.objects.filter(cnpj=cnpj).exists():
            raise BusinessError("Já existe uma empresa com este CNPJ.")

        if plan is not None and not isinstance(plan, Plan):
            plan = Plan.objects.filter(name=str(plan).upper()).first()
        plan = plan or default_plan()

        tenant = Tenant.objects.create(
            name=company_name, cnpj=cnpj, email=email, plan=plan, subscription_status=SubscriptionStatus.TRIAL,
        )
        user = create_user(email, password, first_name, last_name, suffix=tenant.pk)
        membership = TenantMembership.objects.create(user=user, tenant=tenant, role=MembershipRole.OWNER)
        StoreSettings.objects.create(tenant=tenant, store_name=company_name, store_cnpj=cnpj or '', store_email=email)

        logger.info(f"Nova empresa {tenant.pk} ({tenant.slug}) criada por {user.pk} no plano {plan.name}")
        return membership


class BillingService:
    @staticmethod
    def upgrade(tenant, plan):
        tenant.plan = plan
        tenant.subscription_status = SubscriptionStatus.ACTIVE
        tenant.save(update_fields=['plan', 'subscription_status'])
        logger.info(f"Empresa {tenant.pk} migrou para o plano {plan.name}")
        return tenant


class PlatformAdminService:
    """Superuser moderation of companies"""

    @staticmethod
    def toggle_block(tenant):
        if tenant.approval_status == ApprovalStatus.BLOQUEADO:
            tenant.approval_status = ApprovalStatus.APROVADO
        else:
            tenant.approval_status = ApprovalStatus.BLOQUEADO
        tenant.save(update_fields=['approval_status'])
        logger.warning(f"Empresa {tenant.pk} agora está {tenant.approval_status}")
        return tenant

    @staticmethod
    def approve(tenant):
        tenant.approval_status = ApprovalStatus.APROVADO
        tenant.save(update_fields=['approval_status'])
        logger.info(f"Empresa {tenant.pk} aprovada")
        return tenant
