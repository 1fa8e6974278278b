"""
Tenant resolution for session and API (JWT) requests.

Responsibilities:
1. Attach active tenant/membership to request
2. Support tenant switching via session or X-Company-Id header
3. Refuse access for blocked companies and write access for expired trials
"""
import logging

from rest_framework.permissions import SAFE_METHODS, BasePermission

from apps.core.exceptions import PlanLimitError

logger = logging.getLogger(__name__)

TENANT_HEADER = 'X-Company-Id'


def resolve_membership(request):
    """
    Get user's active membership.
    Priority:
    1. X-Company-Id header (API clients)
    2. Session-stored active_tenant_id
    3. Oldest active membership
    """
    from apps.accounts.models import TenantMembership

    user = getattr(request, 'user', None)
    if user is None or not user.is_authenticated:
        return None

    memberships = TenantMembership.objects.filter(
        user=user,
        is_active=True,
    ).select_related('tenant', 'tenant__plan').order_by('joined_at', 'pk')

    header = request.headers.get(TENANT_HEADER)
    if header:
        try:
            return memberships.filter(tenant_id=int(header)).first()
        except ValueError:
            return None

    session = getattr(request, 'session', None)
    active_tenant_id = session.get('active_tenant_id') if session is not None else None
    if active_tenant_id:
        membership = memberships.filter(tenant_id=active_tenant_id).first()
        if membership:
            return membership
        # Stale selection (membership removed)
        del session['active_tenant_id']

    return memberships.first()


def attach_tenant(request):
    """Resolve once per request and cache on it"""
    if getattr(request, 'membership', None) is not None:
        return request.membership
    membership = resolve_membership(request)
    request.membership = membership
    request.tenant = membership.tenant if membership else None
    return membership


def resolve_tenant(request):
    membership = attach_tenant(request)
    return membership.tenant if membership else None


class TenantMiddleware:
    """
    Injects request.tenant / request.membership for session-authenticated users.
    JWT requests are authenticated later by DRF; TenantRequired resolves them.
    """

    EXEMPT_PATHS = [
        '/static/',
        '/favicon.ico',
    ]

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request.tenant = None
        request.membership = None

        if not any(request.path.startswith(p) for p in self.EXEMPT_PATHS):
            attach_tenant(request)

        return self.get_response(request)


class TenantRequired(BasePermission):
    """
    Ensures a usable company context:
    - user belongs to an active company
    - company is not blocked/suspended (unless view sets allow_blocked_tenant)
    - expired trial allows read-only access
    """
    message = "Acesso requer contexto de empresa."

    def has_permission(self, request, view):
        membership = attach_tenant(request)
        if not membership:
            return False

        tenant = membership.tenant
        if getattr(view, 'allow_blocked_tenant', False):
            return True

        if tenant.is_blocked:
            logger.warning(f"Acesso negado à empresa bloqueada {tenant.pk} para {request.user.pk}")
            self.message = "Sua empresa está bloqueada ou suspensa. Regularize sua assinatura."
            return False

        if tenant.is_trial_expired and request.method not in SAFE_METHODS:
            self.message = "Período de teste expirado. Faça upgrade para continuar."
            return False

        return True


def check_plan_limit(tenant, limit_type):
    """
    Blocks creation if plan limits are reached.
    limit_type: 'products' or 'users'
    """
    if tenant is None or tenant.plan is None:
        return

    if limit_type == 'products' and tenant.products_limit_reached:
        raise PlanLimitError(
            f"Limite de produtos do seu plano '{tenant.plan.display_name}' atingido "
            f"({tenant.plan.max_products}). Faça upgrade para cadastrar mais."
        )

    if limit_type == 'users' and tenant.users_limit_reached:
        raise PlanLimitError(
            f"Limite de usuários do seu plano '{tenant.plan.display_name}' atingido "
            f"({tenant.plan.max_users}). Faça upgrade para convidar mais membros."
        )
