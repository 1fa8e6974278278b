import logging
from decimal import Decimal

from django.db.models import Q

from apps.accounts.models import CustomerType, MembershipRole, TenantMembership
from apps.core.exceptions import BusinessError
from apps.core.models import StoreSettings
from apps.orders.models import OrderChannel, OrderStatus
from apps.orders.services import OrderService
from apps.products.models import Category, Product, ProductStatus
from apps.tenants.models import Tenant

logger = logging.getLogger(__name__)

SHIPPING_OPTIONS = [
    {'id': 'economico', 'name': 'Econômico', 'price': Decimal('25.90'), 'days': '8 a 12 dias úteis'},
    {'id': 'normal', 'name': 'Normal', 'price': Decimal('45.90'), 'days': '5 a 7 dias úteis'},
    {'id': 'expresso', 'name': 'Expresso', 'price': Decimal('89.90'), 'days': '1 a 3 dias úteis'},
    {'id': 'combinar', 'name': 'A combinar', 'price': Decimal('0.00'), 'days': 'Combinar com a loja'},
]

WHOLESALE_TYPES = [CustomerType.ATACADO, CustomerType.DISTRIBUIDOR]


class PendingApproval(BusinessError):
    code = 'pending_approval'
    status_code = 403


class CatalogService:
    """Read side of the public catalog"""

    @staticmethod
    def get_store(slug):
        tenant = Tenant.objects.filter(slug=slug).select_related('plan').first()
        if tenant is None or tenant.is_blocked:
            return None
        return tenant

    @staticmethod
    def viewer_membership(tenant, user):
        if user is None or not user.is_authenticated:
            return None
        return TenantMembership.objects.filter(
            tenant=tenant, user=user, is_active=True
        ).select_related('customer_profile').first()

    @staticmethod
    def sees_wholesale(membership):
        """Approved wholesale customers and store staff see hidden categories"""
        if membership is None or not membership.approved:
            return False
        return membership.is_staff_member or membership.customer_type in WHOLESALE_TYPES

    @staticmethod
    def viewer_customer_type(membership):
        if membership is None or not membership.approved:
            return None
        return membership.customer_type

    @staticmethod
    def visible_categories(tenant, membership):
        qs = Category.objects.filter(tenant=tenant, is_active=True)
        if not CatalogService.sees_wholesale(membership):
            hidden = set(qs.filter(hide_from_retail=True).values_list('pk', flat=True))
            # Children of hidden categories are hidden too
            frontier = set(hidden)
            while frontier:
                frontier = set(
                    Category.objects.filter(tenant=tenant, parent_id__in=frontier).values_list('pk', flat=True)
                ) - hidden
                hidden |= frontier
            qs = qs.exclude(pk__in=hidden)
        return qs.order_by('sort_order', 'name')

    @staticmethod
    def category_tree(categories):
        nodes = {c.pk: {'id': c.pk, 'name': c.name, 'slug': c.slug, 'children': []} for c in categories}
        roots = []
        for c in categories:
            if c.parent_id in nodes:
                nodes[c.parent_id]['children'].append(nodes[c.pk])
            else:
                roots.append(nodes[c.pk])
        return roots

    @staticmethod
    def visible_products(tenant, membership, search=None, category=None, featured=None):
        categories = CatalogService.visible_categories(tenant, membership)
        visible_ids = list(categories.values_list('pk', flat=True))
        qs = Product.objects.filter(tenant=tenant, status=ProductStatus.ATIVO).filter(
            Q(category__isnull=True) | Q(category_id__in=visible_ids)
        ).select_related('category', 'brand')

        if search:
            qs = qs.filter(Q(name__icontains=search) | Q(sku__icontains=search) | Q(description__icontains=search))
        if category:
            lookup = Q(slug=category)
            if str(category).isdigit():
                lookup |= Q(pk=int(category))
            root = categories.filter(lookup).first()
            if root is None:
                return qs.none()
            qs = qs.filter(category_id__in=root.descendant_ids())
        if featured:
            qs = qs.filter(featured=True)
        return qs.order_by('-featured', 'name')


class CheckoutService:
    @staticmethod
    def shipping_option(option_id):
        for option in SHIPPING_OPTIONS:
            if option['id'] == option_id:
                return option
        raise BusinessError("Forma de envio inválida.")

    @staticmethod
    def checkout(tenant, user, cart, shipping_method, payment_type=None, coupon_code='',
                 shipping_address=None, notes=''):
        """Turn the session cart into a quote (ORCAMENTO) for the logged-in customer"""
        membership = CatalogService.viewer_membership(tenant, user)
        if membership is None or membership.role != MembershipRole.CUSTOMER:
            raise BusinessError("Faça seu cadastro como cliente desta loja para finalizar o pedido.")
        if not membership.approved:
            raise PendingApproval("Cadastro aguardando aprovação.")
        items = cart.as_order_items()
        if not items:
            raise BusinessError("Carrinho vazio.")

        option = CheckoutService.shipping_option(shipping_method)
        if shipping_address is None:
            profile = getattr(membership, 'customer_profile', None)
            shipping_address = profile.shipping_address() if profile else None

        order = OrderService.create_order(
            tenant,
            items,
            user=user,
            customer=user,
            channel=OrderChannel.SITE,
            payment_type=payment_type,
            coupon_code=coupon_code,
            shipping_cost=option['price'],
            shipping_method=option['id'],
            shipping_address=shipping_address,
            notes=notes,
            status=OrderStatus.ORCAMENTO,
        )
        cart.clear()
        logger.info(f"Checkout do pedido #{order.order_number} na loja {tenant.slug}")
        return order

    @staticmethod
    def enforce_stock(tenant):
        """Quote-style catalogs accept any quantity"""
        return not StoreSettings.get_settings(tenant).delivery_catalog_mode
