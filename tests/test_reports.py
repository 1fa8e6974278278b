from datetime import timedelta
from decimal import Decimal

import pytest
from django.urls import reverse
from django.utils import timezone
from rest_framework import status

from apps.orders.models import OrderStatus
from apps.orders.services import OrderService
from apps.reports.exports import ORDER_COLUMNS, OrderExporter
from apps.reports.services import DashboardService, PlatformMetricsService
from tests.conftest import login
from tests.factories import (
    CustomerCreditFactory,
    CustomerMembershipFactory,
    ProductFactory,
    TenantMembershipFactory,
)


@pytest.fixture
def sales(tenant, user):
    """Two invoiced orders, one open quote and one cancelled order"""
    pen = ProductFactory(tenant=tenant, name="Caneta", stock=50, price=Decimal('2.50'))
    glue = ProductFactory(tenant=tenant, name="Cola", stock=50, price=Decimal('6.00'))

    first = OrderService.create_order(tenant, [{'product': pen, 'quantity': 10}], user=user,
                                      status=OrderStatus.PEDIDO_GERADO)
    OrderService.change_status(first, OrderStatus.FATURADO, user)
    second = OrderService.create_order(tenant, [{'product': pen, 'quantity': 2}, {'product': glue, 'quantity': 1}],
                                       user=user, status=OrderStatus.PEDIDO_GERADO)
    OrderService.change_status(second, OrderStatus.FATURADO, user)

    OrderService.create_order(tenant, [{'product': glue, 'quantity': 1}], user=user)
    cancelled = OrderService.create_order(tenant, [{'product': glue, 'quantity': 3}], user=user)
    OrderService.change_status(cancelled, OrderStatus.CANCELADO, user)
    return {'pen': pen, 'glue': glue}


@pytest.mark.django_db
class TestDashboard:
    def test_summary(self, tenant, sales):
        data = DashboardService.summary(tenant)

        assert data['orders_by_status'] == {
            'ORCAMENTO': 1, 'PEDIDO_GERADO': 0, 'FATURADO': 2, 'CANCELADO': 1,
        }
        assert data['orders_today'] == 4
        # 25.00 + 11.00
        assert data['revenue_month'] == Decimal('36.00')
        assert data['average_ticket'] == Decimal('18.00')
        assert data['top_products'][0]['name'] == "Caneta"
        assert data['top_products'][0]['quantity'] == 12
        assert data['top_products'][0]['revenue'] == Decimal('30.00')

    def test_empty_company(self, tenant):
        data = DashboardService.summary(tenant)
        assert data['revenue_month'] == Decimal('0.00')
        assert data['average_ticket'] == Decimal('0.00')
        assert data['top_products'] == []

    def test_fiado_and_approvals(self, tenant):
        customer = CustomerMembershipFactory(tenant=tenant)
        yesterday = timezone.localdate() - timedelta(days=1)
        CustomerCreditFactory(tenant=tenant, customer=customer.user, amount=Decimal('80.00'), due_date=yesterday)
        CustomerCreditFactory(tenant=tenant, customer=customer.user, amount=Decimal('50.00'),
                              paid_amount=Decimal('20.00'))
        CustomerMembershipFactory(tenant=tenant, approved=False)
        ProductFactory(tenant=tenant, stock=0, min_stock=2)

        data = DashboardService.summary(tenant)
        assert data['fiado'] == {'pending': Decimal('110.00'), 'overdue': Decimal('80.00')}
        assert data['pending_approvals'] == 1
        assert data['low_stock_count'] == 1

    def test_dashboard_endpoint(self, auth_client, sales):
        response = auth_client.get(reverse('api-report-dashboard'))
        assert response.status_code == status.HTTP_200_OK
        assert response.data['orders_by_status']['FATURADO'] == 2

    def test_customers_refused(self, customer_client):
        response = customer_client.get(reverse('api-report-dashboard'))
        assert response.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.django_db
class TestSalesReport:
    def test_zero_filled_series(self, tenant, sales):
        series = DashboardService.sales_by_day(tenant, days=7)
        assert len(series) == 7
        assert series[-1]['date'] == timezone.localdate()
        assert series[-1]['orders'] == 2
        assert series[-1]['revenue'] == Decimal('36.00')
        assert series[0]['orders'] == 0
        assert series[0]['revenue'] == Decimal('0.00')

    def test_days_are_clamped(self, tenant):
        assert len(DashboardService.sales_by_day(tenant, days=0)) == 1
        assert len(DashboardService.sales_by_day(tenant, days=1000)) == 365

    def test_sales_endpoint(self, auth_client, sales):
        response = auth_client.get(reverse('api-report-sales'), {'days': 3})
        assert response.status_code == status.HTTP_200_OK
        assert len(response.data) == 3

        response = auth_client.get(reverse('api-report-sales'), {'days': 'abc'})
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['code'] == 'validation_error'


@pytest.mark.django_db
class TestOrdersCsv:
    def test_exporter(self, tenant, sales):
        content = OrderExporter(tenant).to_csv(status=OrderStatus.FATURADO)
        lines = content.strip().splitlines()

        assert lines[0] == ';'.join(ORDER_COLUMNS)
        assert len(lines) == 3
        first = lines[1].split(';')
        assert first[0] == '1'
        assert first[4] == 'Faturado'
        assert first[10] == '25,00'
        assert first[11] == '10'

    def test_date_filter(self, tenant, sales):
        tomorrow = timezone.localdate() + timedelta(days=1)
        content = OrderExporter(tenant).to_csv(date_from=tomorrow)
        assert content.strip().splitlines() == [';'.join(ORDER_COLUMNS)]

    def test_csv_endpoint(self, auth_client, sales):
        response = auth_client.get(reverse('api-report-orders-csv'), {'status': 'CANCELADO'})
        assert response.status_code == status.HTTP_200_OK
        assert response['Content-Type'].startswith('text/csv')
        assert 'attachment; filename="pedidos_' in response['Content-Disposition']

        lines = response.content.decode('utf-8').strip().splitlines()
        assert len(lines) == 2
        assert 'Cancelado' in lines[1]

    @pytest.mark.parametrize('params', [{'status': 'PERDIDO'}, {'date_from': '31/12/2025'}])
    def test_invalid_filters(self, auth_client, params):
        response = auth_client.get(reverse('api-report-orders-csv'), params)
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_sales_role_exports_without_dashboard(self, client, tenant):
        seller = TenantMembershipFactory(tenant=tenant, role='SALES')
        login(client, seller.user)
        assert client.get(reverse('api-report-dashboard')).status_code == status.HTTP_403_FORBIDDEN
        assert client.get(reverse('api-report-orders-csv')).status_code == status.HTTP_200_OK


@pytest.mark.django_db
class TestPlatformMetrics:
    def test_metrics(self, tenant, sales):
        TenantMembershipFactory(role='OWNER')
        data = PlatformMetricsService.metrics()

        assert data['companies_total'] == 2
        assert data['companies_by_approval'] == {'APROVADO': 2}
        assert data['orders_total'] == 4
        assert data['revenue_total'] == Decimal('36.00')
