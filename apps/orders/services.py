import logging
from decimal import Decimal, InvalidOperation

from django.db import transaction
from django.db.models import F, Max
from django.utils import timezone

from apps.accounts.models import MembershipRole, TenantMembership
from apps.core.exceptions import BusinessError, CouponError, InvalidTransitionError
from apps.core.models import VisualAuditLog
from apps.credits.services import CreditService
from apps.inventory.services import StockService
from apps.products.models import Product, ProductStatus
from apps.tenants.models import Tenant

from .models import (
    CENTS,
    Coupon,
    Order,
    OrderChannel,
    OrderItem,
    OrderStage,
    OrderStatus,
    PaymentType,
    StockState,
)

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    OrderStatus.ORCAMENTO: [OrderStatus.PEDIDO_GERADO, OrderStatus.FATURADO, OrderStatus.CANCELADO],
    OrderStatus.PEDIDO_GERADO: [OrderStatus.ORCAMENTO, OrderStatus.FATURADO, OrderStatus.CANCELADO],
    OrderStatus.FATURADO: [OrderStatus.PEDIDO_GERADO, OrderStatus.CANCELADO],
    OrderStatus.CANCELADO: [OrderStatus.ORCAMENTO],
}

# Where the stock must be once the order reaches each status
STATUS_STOCK_TARGET = {
    OrderStatus.ORCAMENTO: StockState.NONE,
    OrderStatus.PEDIDO_GERADO: StockState.RESERVED,
    OrderStatus.FATURADO: StockState.DEDUCTED,
    OrderStatus.CANCELADO: StockState.NONE,
}

STAFF_CHANNELS = [OrderChannel.ADMIN, OrderChannel.PDV, OrderChannel.REPRESENTANTE]


def _decimal(value, label):
    try:
        number = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise BusinessError(f"{label} inválido: {value}")
    if not number.is_finite():
        raise BusinessError(f"{label} inválido: {value}")
    return number


class OrderService:
    @staticmethod
    def customer_membership(tenant, customer):
        if customer is None:
            return None
        return TenantMembership.objects.filter(
            tenant=tenant, user=customer
        ).select_related('customer_profile').first()

    @staticmethod
    def _resolve_lines(tenant, items, customer_type, allow_override):
        """
        items: [{'product': id|Product, 'quantity': n, 'unit_price'?: x, 'discount_percent'?: y}]
        Returns validated lines with snapshots and line totals.
        """
        if not items:
            raise BusinessError("O pedido precisa de pelo menos um item.")

        lines = []
        for raw in items:
            product = raw.get('product') or raw.get('product_id')
            product_id = product.pk if isinstance(product, Product) else product
            product = Product.objects.filter(tenant=tenant, pk=product_id).first()
            if product is None:
                raise BusinessError(f"Produto {product_id} não encontrado.")
            if product.status != ProductStatus.ATIVO:
                raise BusinessError(f"Produto '{product.name}' não está ativo.")

            try:
                quantity = int(raw.get('quantity', 0))
            except (TypeError, ValueError):
                raise BusinessError(f"Quantidade inválida para '{product.name}'.")
            if quantity <= 0:
                raise BusinessError(f"Quantidade inválida para '{product.name}'.")

            unit_price = product.price_for(customer_type)
            discount = Decimal('0')
            if allow_override:
                if raw.get('unit_price') not in (None, ''):
                    unit_price = _decimal(raw['unit_price'], "Preço")
                    if unit_price < 0:
                        raise BusinessError("Preço não pode ser negativo.")
                if raw.get('discount_percent') not in (None, ''):
                    discount = _decimal(raw['discount_percent'], "Desconto")
                    if not Decimal('0') <= discount <= Decimal('100'):
                        raise BusinessError("Desconto deve estar entre 0 e 100%.")

            lines.append({
                'product': product,
                'quantity': quantity,
                'unit_price': unit_price.quantize(CENTS),
                'discount_percent': discount,
                'line_total': OrderItem.calculate_line_total(quantity, unit_price, discount),
            })
        return lines

    @staticmethod
    def _find_coupon(tenant, code):
        coupon = Coupon.objects.filter(tenant=tenant, code__iexact=code.strip()).first()
        if coupon is None:
            raise CouponError("Cupom não encontrado.")
        return coupon

    @staticmethod
    def _write_items(order, lines):
        for line in lines:
            OrderItem.objects.create(
                order=order,
                product=line['product'],
                sku_snapshot=line['product'].sku or '',
                description_snapshot=line['product'].name[:255],
                quantity=line['quantity'],
                unit_price=line['unit_price'],
                discount_percent=line['discount_percent'],
            )

    @staticmethod
    def _apply_totals(order, lines):
        order.subtotal = sum((line['line_total'] for line in lines), Decimal('0.00'))
        order.discount_total = order.coupon.discount_for(order.subtotal) if order.coupon else Decimal('0.00')
        order.total = max(order.subtotal - order.discount_total + order.shipping_cost, Decimal('0.00'))

    @staticmethod
    def _next_number(tenant):
        # Row lock on the tenant serializes numbering
        Tenant.objects.select_for_update().get(pk=tenant.pk)
        last = Order.objects.filter(tenant=tenant).aggregate(last=Max('order_number'))['last'] or 0
        return last + 1

    @staticmethod
    @transaction.atomic
    def create_order(tenant, items, user=None, customer=None, channel=OrderChannel.ADMIN,
                     payment_type=None, coupon_code='', shipping_cost=0, shipping_method='',
                     shipping_address=None, notes='', payment_notes='', fiado_installments=None,
                     guest=None, status=OrderStatus.ORCAMENTO):
        if status not in (OrderStatus.ORCAMENTO, OrderStatus.PEDIDO_GERADO):
            raise BusinessError("Pedidos só podem ser criados como orçamento ou pedido gerado.")

        membership = OrderService.customer_membership(tenant, customer)
        if customer is not None and membership is None:
            raise BusinessError("Cliente não pertence a esta empresa.")
        customer_type = membership.customer_type if membership else None

        if payment_type is not None:
            if isinstance(payment_type, PaymentType):
                payment_type = payment_type.pk
            payment_type = PaymentType.objects.filter(tenant=tenant, pk=payment_type, active=True).first()
            if payment_type is None:
                raise BusinessError("Forma de pagamento inválida.")

        if fiado_installments is not None and int(fiado_installments) < 1:
            raise BusinessError("Número de parcelas inválido.")

        lines = OrderService._resolve_lines(tenant, items, customer_type, channel in STAFF_CHANNELS)

        guest = guest or {}
        order = Order(
            tenant=tenant,
            order_number=OrderService._next_number(tenant),
            customer=customer,
            created_by=user,
            channel=channel,
            payment_type=payment_type,
            shipping_cost=_decimal(shipping_cost or 0, "Frete").quantize(CENTS),
            shipping_method=shipping_method or '',
            shipping_address=shipping_address,
            notes=notes or '',
            payment_notes=payment_notes or '',
            fiado_installments=fiado_installments,
            guest_name=guest.get('name', ''),
            guest_email=guest.get('email', ''),
            guest_phone=guest.get('phone', ''),
            guest_document=guest.get('document', ''),
        )

        if coupon_code:
            coupon = OrderService._find_coupon(tenant, coupon_code)
            subtotal = sum((line['line_total'] for line in lines), Decimal('0.00'))
            coupon.validate(subtotal)
            order.coupon = coupon
            order.coupon_code = coupon.code
            Coupon.objects.filter(pk=coupon.pk).update(used_count=F('used_count') + 1)

        OrderService._apply_totals(order, lines)
        order.save()
        OrderService._write_items(order, lines)

        if status == OrderStatus.PEDIDO_GERADO:
            OrderService._sync_stock(order, StockState.RESERVED, user)
            order.status = OrderStatus.PEDIDO_GERADO
            order.save()

        VisualAuditLog.record(
            tenant, 'ORDER', order.pk, 'CREATE', after=order.snapshot(), user=user,
            source=channel, external_ref=str(order.order_number),
        )
        logger.info(f"Pedido #{order.order_number} criado na empresa {tenant.pk} via {channel} (total {order.total})")
        return order

    @staticmethod
    def _sync_stock(order, target, user=None):
        """Move the order's items between NONE / RESERVED / DEDUCTED"""
        current = order.stock_state
        if current == target:
            return

        reason = f"Pedido #{order.order_number}"
        for item in order.items.select_related('product').filter(product__isnull=False):
            product, qty = item.product, item.quantity
            kwargs = {'user': user, 'reason': reason, 'order': order}
            if current == StockState.NONE and target == StockState.RESERVED:
                StockService.reserve(product, qty, **kwargs)
            elif current == StockState.RESERVED and target == StockState.DEDUCTED:
                StockService.deduct_reserved(product, qty, **kwargs)
            elif current == StockState.NONE and target == StockState.DEDUCTED:
                StockService.reserve(product, qty, **kwargs)
                StockService.deduct_reserved(product, qty, **kwargs)
            elif current == StockState.DEDUCTED and target == StockState.RESERVED:
                StockService.unpost_to_reserved(product, qty, **kwargs)
            elif current == StockState.DEDUCTED and target == StockState.NONE:
                StockService.restock(product, qty, **kwargs)
            elif current == StockState.RESERVED and target == StockState.NONE:
                StockService.release(product, qty, **kwargs)

        order.stock_state = target
        if target == StockState.RESERVED:
            order.reserved_at = timezone.now()
            order.reserved_by = user
        elif target == StockState.NONE:
            order.reserved_at = None
            order.reserved_by = None
        logger.info(f"Pedido #{order.order_number}: estoque {current} -> {target}")

    @staticmethod
    def _lock(order):
        return Order.objects.select_for_update().select_related('payment_type', 'tenant').get(pk=order.pk)

    @staticmethod
    @transaction.atomic
    def change_status(order, new_status, user=None, source='API'):
        order = OrderService._lock(order)
        if new_status not in OrderStatus.values:
            raise InvalidTransitionError(f"Status inválido: {new_status}")
        if new_status == order.status:
            raise InvalidTransitionError(f"Pedido #{order.order_number} já está {order.get_status_display()}.")
        if new_status not in ALLOWED_TRANSITIONS[order.status]:
            raise InvalidTransitionError(
                f"Transição de {order.get_status_display()} para {OrderStatus(new_status).label} não permitida."
            )

        before = order.snapshot()
        now = timezone.now()

        if order.status == OrderStatus.FATURADO and order.accounts_posted:
            CreditService.cancel_for_order(order)

        OrderService._sync_stock(order, STATUS_STOCK_TARGET[new_status], user)

        if order.status == OrderStatus.FATURADO:
            order.invoiced_at = None
            order.invoiced_by = None

        order.status = new_status
        if new_status == OrderStatus.FATURADO:
            order.invoiced_at = now
            order.invoiced_by = user
            payment_type = order.payment_type
            if payment_type and payment_type.is_store_credit and order.customer_id and not order.accounts_posted:
                CreditService.create_from_order(order, user)
        elif new_status == OrderStatus.CANCELADO:
            order.cancelled_at = now
        elif new_status == OrderStatus.ORCAMENTO:
            order.cancelled_at = None

        order.save()
        VisualAuditLog.record(
            order.tenant, 'ORDER', order.pk, 'STATUS', before=before, after=order.snapshot(),
            user=user, source=source, external_ref=str(order.order_number),
        )
        logger.info(f"Pedido #{order.order_number}: {before['status']} -> {new_status}")
        return order

    @staticmethod
    @transaction.atomic
    def post_stock(order, user=None):
        """Manual 'lançar estoque'"""
        order = OrderService._lock(order)
        if order.status == OrderStatus.CANCELADO:
            raise BusinessError("Pedido cancelado não movimenta estoque.")
        if order.stock_posted:
            raise BusinessError(f"Estoque do pedido #{order.order_number} já foi lançado.")

        before = order.snapshot()
        target = StockState.DEDUCTED if order.status == OrderStatus.FATURADO else StockState.RESERVED
        OrderService._sync_stock(order, target, user)
        order.save()
        VisualAuditLog.record(order.tenant, 'ORDER', order.pk, 'POST_STOCK', before=before,
                              after=order.snapshot(), user=user, external_ref=str(order.order_number))
        return order

    @staticmethod
    @transaction.atomic
    def reverse_stock(order, user=None):
        """Manual 'estornar estoque'"""
        order = OrderService._lock(order)
        if not order.stock_posted:
            raise BusinessError(f"Estoque do pedido #{order.order_number} não está lançado.")

        before = order.snapshot()
        OrderService._sync_stock(order, StockState.NONE, user)
        order.save()
        VisualAuditLog.record(order.tenant, 'ORDER', order.pk, 'REVERSE_STOCK', before=before,
                              after=order.snapshot(), user=user, external_ref=str(order.order_number))
        return order

    @staticmethod
    @transaction.atomic
    def post_accounts(order, user=None):
        order = OrderService._lock(order)
        if order.status not in (OrderStatus.PEDIDO_GERADO, OrderStatus.FATURADO):
            raise BusinessError("Contas só podem ser lançadas para pedidos gerados ou faturados.")
        if not order.payment_type or not order.payment_type.is_store_credit:
            raise BusinessError("A forma de pagamento do pedido não gera fiado.")
        CreditService.create_from_order(order, user)
        return order

    @staticmethod
    @transaction.atomic
    def reverse_accounts(order, user=None):
        order = OrderService._lock(order)
        if not order.accounts_posted:
            raise BusinessError(f"Contas do pedido #{order.order_number} não estão lançadas.")
        CreditService.cancel_for_order(order)
        return order

    @staticmethod
    @transaction.atomic
    def update_stage(order, stage, user=None):
        if stage not in OrderStage.values:
            raise BusinessError(f"Etapa inválida: {stage}")
        order = OrderService._lock(order)
        if order.status == OrderStatus.CANCELADO:
            raise BusinessError("Pedido cancelado não muda de etapa.")
        before = order.snapshot()
        order.stage = stage
        order.save(update_fields=['stage', 'updated_at'])
        VisualAuditLog.record(order.tenant, 'ORDER', order.pk, 'STAGE', before=before,
                              after=order.snapshot(), user=user, external_ref=str(order.order_number))
        return order

    @staticmethod
    @transaction.atomic
    def mark_printed(order, user=None):
        order = OrderService._lock(order)
        order.printed = True
        order.printed_at = timezone.now()
        order.printed_by = user
        if order.stage == OrderStage.AGUARDANDO_IMPRESSAO:
            order.stage = OrderStage.PEDIDO_IMPRESSO
        order.save()
        return order

    @staticmethod
    @transaction.atomic
    def update_items(order, items, user=None):
        """Replace the items of a quote and recalculate totals"""
        order = OrderService._lock(order)
        if order.status != OrderStatus.ORCAMENTO:
            raise BusinessError("Itens só podem ser alterados em orçamentos.")
        if order.stock_posted:
            raise BusinessError("Estorne o estoque do orçamento antes de alterar os itens.")

        membership = OrderService.customer_membership(order.tenant, order.customer)
        customer_type = membership.customer_type if membership else None
        lines = OrderService._resolve_lines(order.tenant, items, customer_type, order.channel in STAFF_CHANNELS)

        order.items.all().delete()
        OrderService._write_items(order, lines)
        OrderService._apply_totals(order, lines)
        order.save()
        return order

    @staticmethod
    @transaction.atomic
    def bulk_delete(tenant, ids, reverse_stock=False, user=None):
        """
        Deletes orders of the tenant.
        Orders with posted accounts are ignored; reservations are always released;
        deducted stock only returns when reverse_stock is set.
        """
        processed, ignored = [], []
        orders = {o.pk: o for o in Order.objects.select_for_update().filter(tenant=tenant, pk__in=ids)}

        for order_id in ids:
            order = orders.get(order_id)
            if order is None or order.accounts_posted:
                ignored.append(order_id)
                continue

            if order.stock_state == StockState.RESERVED or (
                order.stock_state == StockState.DEDUCTED and reverse_stock
            ):
                OrderService._sync_stock(order, StockState.NONE, user)

            VisualAuditLog.record(tenant, 'ORDER', order.pk, 'DELETE', before=order.snapshot(),
                                  user=user, external_ref=str(order.order_number))
            order.delete()
            processed.append(order_id)

        logger.info(f"Exclusão em massa na empresa {tenant.pk}: {len(processed)} excluído(s), {len(ignored)} ignorado(s)")
        return {'processed': processed, 'ignored': ignored}

    @staticmethod
    def create_pdv_order(tenant, user, customer, items, payment_type=None, notes='',
                         fiado_installments=None, generate=False):
        """Quick in-store order for an approved customer of the store"""
        membership = OrderService.customer_membership(tenant, customer)
        if membership is None or membership.role != MembershipRole.CUSTOMER or not membership.is_active:
            raise BusinessError("Selecione um cliente válido da loja.")
        if not membership.approved:
            raise BusinessError("Cliente com cadastro aguardando aprovação.")

        return OrderService.create_order(
            tenant,
            items,
            user=user,
            customer=customer,
            channel=OrderChannel.PDV,
            payment_type=payment_type,
            notes=notes,
            fiado_installments=fiado_installments,
            status=OrderStatus.PEDIDO_GERADO if generate else OrderStatus.ORCAMENTO,
        )
