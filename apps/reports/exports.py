"""
Order exporter - CSV for spreadsheets (semicolon separated, pt-BR decimals)
"""
import csv
import io

from apps.orders.models import Order

ORDER_COLUMNS = [
    'numero', 'data', 'cliente', 'canal', 'status', 'etapa', 'forma_pagamento',
    'subtotal', 'desconto', 'frete', 'total', 'itens',
]


def br_decimal(value):
    return f"{value:.2f}".replace('.', ',')


class OrderExporter:
    def __init__(self, tenant):
        self.tenant = tenant

    def get_orders(self, status=None, date_from=None, date_to=None):
        qs = Order.objects.filter(tenant=self.tenant).select_related(
            'customer', 'payment_type'
        ).prefetch_related('items').order_by('order_number')
        if status:
            qs = qs.filter(status=status)
        if date_from:
            qs = qs.filter(created_at__date__gte=date_from)
        if date_to:
            qs = qs.filter(created_at__date__lte=date_to)
        return qs

    def _row(self, order):
        return {
            'numero': order.order_number,
            'data': order.created_at.strftime('%d/%m/%Y %H:%M'),
            'cliente': order.customer_name,
            'canal': order.get_channel_display(),
            'status': order.get_status_display(),
            'etapa': order.get_stage_display(),
            'forma_pagamento': order.payment_type.name if order.payment_type else '',
            'subtotal': br_decimal(order.subtotal),
            'desconto': br_decimal(order.discount_total),
            'frete': br_decimal(order.shipping_cost),
            'total': br_decimal(order.total),
            'itens': sum(item.quantity for item in order.items.all()),
        }

    def to_csv(self, **filters):
        output = io.StringIO()
        writer = csv.DictWriter(output, fieldnames=ORDER_COLUMNS, delimiter=';')
        writer.writeheader()
        for order in self.get_orders(**filters):
            writer.writerow(self._row(order))
        return output.getvalue()
