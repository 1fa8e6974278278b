from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.db.models import Count, Sum
from django.db.models.functions import TruncDate
from django.utils import timezone

from apps.accounts.models import MembershipRole, TenantMembership
from apps.credits.models import OPEN_STATUSES, CustomerCredit
from apps.inventory.services import StockService
from apps.orders.models import Order, OrderItem, OrderStatus
from apps.tenants.models import Tenant

ZERO = Decimal('0.00')


class DashboardService:
    @staticmethod
    def summary(tenant, today=None):
        today = today or timezone.localdate()
        month_start = today.replace(day=1)
        orders = Order.objects.filter(tenant=tenant)

        by_status = {status: 0 for status in OrderStatus.values}
        for row in orders.values('status').annotate(total=Count('id')):
            by_status[row['status']] = row['total']

        invoiced_month = orders.filter(status=OrderStatus.FATURADO, invoiced_at__date__gte=month_start)
        month = invoiced_month.aggregate(revenue=Sum('total'), count=Count('id'))
        revenue = month['revenue'] or ZERO
        average_ticket = (revenue / month['count']).quantize(Decimal('0.01')) if month['count'] else ZERO

        top_products = OrderItem.objects.filter(
            order__tenant=tenant, order__status=OrderStatus.FATURADO
        ).values('product_id', 'sku_snapshot', 'description_snapshot').annotate(
            quantity=Sum('quantity'), revenue=Sum('line_total')
        ).order_by('-quantity')[:5]

        credits = CustomerCredit.objects.filter(tenant=tenant, status__in=OPEN_STATUSES)
        pending = credits.aggregate(total=Sum('amount'), paid=Sum('paid_amount'))
        overdue = credits.filter(due_date__lt=today).aggregate(total=Sum('amount'), paid=Sum('paid_amount'))

        return {
            'orders_by_status': by_status,
            'orders_today': orders.filter(created_at__date=today).count(),
            'revenue_month': revenue,
            'average_ticket': average_ticket,
            'top_products': [
                {
                    'product_id': row['product_id'],
                    'sku': row['sku_snapshot'],
                    'name': row['description_snapshot'],
                    'quantity': row['quantity'],
                    'revenue': row['revenue'],
                }
                for row in top_products
            ],
            'low_stock_count': StockService.low_stock(tenant).count(),
            'pending_approvals': TenantMembership.objects.filter(
                tenant=tenant, role=MembershipRole.CUSTOMER, approved=False, is_active=True
            ).count(),
            'fiado': {
                'pending': (pending['total'] or ZERO) - (pending['paid'] or ZERO),
                'overdue': (overdue['total'] or ZERO) - (overdue['paid'] or ZERO),
            },
        }

    @staticmethod
    def sales_by_day(tenant, days=30, today=None):
        """Invoiced orders per day, zero-filled"""
        days = min(max(int(days), 1), 365)
        today = today or timezone.localdate()
        start = today - timedelta(days=days - 1)

        rows = Order.objects.filter(
            tenant=tenant, status=OrderStatus.FATURADO, invoiced_at__date__gte=start
        ).annotate(day=TruncDate('invoiced_at')).values('day').annotate(
            orders=Count('id'), revenue=Sum('total')
        )
        by_day = {row['day']: row for row in rows}

        series = []
        for offset in range(days):
            day = start + timedelta(days=offset)
            row = by_day.get(day)
            series.append({
                'date': day,
                'orders': row['orders'] if row else 0,
                'revenue': row['revenue'] if row else ZERO,
            })
        return series


class PlatformMetricsService:
    """Cross-tenant numbers for the platform superadmin"""

    @staticmethod
    def metrics():
        by_approval = {row['approval_status']: row['total'] for row in
                       Tenant.objects.values('approval_status').annotate(total=Count('id'))}
        by_subscription = {row['subscription_status']: row['total'] for row in
                           Tenant.objects.values('subscription_status').annotate(total=Count('id'))}
        return {
            'companies_total': Tenant.objects.count(),
            'companies_by_approval': by_approval,
            'companies_by_subscription': by_subscription,
            'users_total': get_user_model().objects.filter(is_active=True).count(),
            'orders_total': Order.objects.count(),
            'revenue_total': Order.objects.filter(status=OrderStatus.FATURADO).aggregate(
                total=Sum('total'))['total'] or ZERO,
        }
