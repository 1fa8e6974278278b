"""
Reports API - dashboard numbers, daily sales and the orders spreadsheet
"""
from django.http import HttpResponse
from django.utils import timezone
from django.utils.dateparse import parse_date
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.accounts.permissions import HasModule, IsStaffMember
from apps.core.api.views import TenantScopedMixin
from apps.orders.models import OrderStatus
from apps.tenants.middleware import TenantRequired

from .exports import OrderExporter
from .services import DashboardService


def _date_param(request, name):
    raw = request.query_params.get(name)
    if not raw:
        return None
    value = parse_date(raw)
    if value is None:
        raise ValidationError({name: "Data inválida, use AAAA-MM-DD."})
    return value


class ReportView(TenantScopedMixin, APIView):
    permission_classes = [IsAuthenticated, TenantRequired, IsStaffMember, HasModule]
    required_modules = ['dashboard']


class DashboardView(ReportView):
    def get(self, request):
        return Response(DashboardService.summary(self.get_tenant()))


class SalesReportView(ReportView):
    def get(self, request):
        try:
            days = int(request.query_params.get('days', 30))
        except ValueError:
            raise ValidationError({'days': "Informe um número de dias."})
        return Response(DashboardService.sales_by_day(self.get_tenant(), days=days))


class OrdersCsvView(ReportView):
    required_modules = ['dashboard', 'orders']

    def get(self, request):
        status = request.query_params.get('status')
        if status and status not in OrderStatus.values:
            raise ValidationError({'status': f"Status inválido: {status}"})

        content = OrderExporter(self.get_tenant()).to_csv(
            status=status,
            date_from=_date_param(request, 'date_from'),
            date_to=_date_param(request, 'date_to'),
        )
        filename = f"pedidos_{timezone.localdate():%Y%m%d}.csv"
        response = HttpResponse(content, content_type='text/csv; charset=utf-8')
        response['Content-Disposition'] = f'attachment; filename="{filename}"'
        return response
