import logging
from datetime import timedelta
from decimal import Decimal, InvalidOperation

from django.db import transaction
from django.db.models import Max, Q, Sum
from django.utils import timezone

from apps.accounts.validators import is_valid_cnpj, only_digits
from apps.core.exceptions import BusinessError
from apps.core.models import VisualAuditLog
from apps.credits import finance
from apps.inventory.models import MovementSource, MovementType
from apps.inventory.services import StockService
from apps.products.models import Product
from apps.tenants.models import Tenant

from .models import (
    OPEN_PAYABLE_STATUSES,
    Payable,
    PayablePayment,
    PayableStatus,
    PurchaseOrder,
    PurchaseOrderItem,
    PurchaseStatus,
    Supplier,
)

logger = logging.getLogger(__name__)

ZERO = Decimal('0.00')


def _money(value, label, allow_zero=False):
    try:
        number = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise BusinessError(f"{label} inválido: {value}")
    if not number.is_finite():
        raise BusinessError(f"{label} inválido: {value}")
    number = finance.to_money(number)
    if number < 0 or (number == 0 and not allow_zero):
        raise BusinessError(f"{label} deve ser maior que zero.")
    return number


class SupplierService:
    @staticmethod
    def clean_cnpj(tenant, cnpj, exclude=None):
        """Returns the digits-only CNPJ; empty is allowed, duplicates per company are not"""
        digits = only_digits(cnpj or '')
        if not digits:
            return ''
        if not is_valid_cnpj(digits):
            raise BusinessError("CNPJ inválido.")
        qs = Supplier.objects.filter(tenant=tenant, cnpj=digits)
        if exclude is not None:
            qs = qs.exclude(pk=exclude.pk)
        if qs.exists():
            raise BusinessError("Já existe um fornecedor com este CNPJ.")
        return digits

    @staticmethod
    def search(qs, term):
        lookup = Q(name__icontains=term) | Q(trade_name__icontains=term)
        digits = only_digits(term)
        if digits:
            lookup |= Q(cnpj__contains=digits)
        return qs.filter(lookup)


class PurchaseService:
    @staticmethod
    def _next_number(tenant):
        Tenant.objects.select_for_update().get(pk=tenant.pk)
        last = PurchaseOrder.objects.filter(tenant=tenant).aggregate(last=Max('number'))['last'] or 0
        return last + 1

    @staticmethod
    def _lock(order):
        return PurchaseOrder.objects.select_for_update().get(pk=order.pk)

    @staticmethod
    def _resolve_items(tenant, items):
        """items: [{'product': id|Product, 'quantity': n, 'unit_cost': x}]"""
        if not items:
            raise BusinessError("Informe ao menos um item.")
        lines = []
        for raw in items:
            product = raw.get('product')
            product_id = product.pk if isinstance(product, Product) else product
            product = Product.objects.filter(tenant=tenant, pk=product_id).first()
            if product is None:
                raise BusinessError(f"Produto {product_id} não encontrado.")
            try:
                quantity = int(raw.get('quantity', 0))
            except (TypeError, ValueError):
                raise BusinessError(f"Quantidade inválida para '{product.name}'.")
            if quantity <= 0:
                raise BusinessError(f"Quantidade inválida para '{product.name}'.")
            unit_cost = _money(raw.get('unit_cost', product.cost or 0), "Custo", allow_zero=True)
            lines.append(PurchaseOrderItem(
                product=product,
                sku_snapshot=product.sku or '',
                description_snapshot=product.name,
                quantity=quantity,
                unit_cost=unit_cost,
                line_total=unit_cost * quantity,
            ))
        return lines

    @staticmethod
    def _check_refs(tenant, supplier, payment_term):
        if supplier is not None and (supplier.tenant_id != tenant.pk or not supplier.is_active):
            raise BusinessError("Fornecedor inválido.")
        if payment_term is not None and (payment_term.tenant_id != tenant.pk or not payment_term.active):
            raise BusinessError("Condição de prazo inválida.")

    @staticmethod
    def _save_items(order, lines):
        order.items.all().delete()
        for line in lines:
            line.purchase_order = order
        PurchaseOrderItem.objects.bulk_create(lines)
        order.total = sum((line.line_total for line in lines), ZERO)
        order.save(update_fields=['total', 'updated_at'])

    @staticmethod
    @transaction.atomic
    def create(tenant, items, supplier=None, payment_term=None, notes='', user=None):
        PurchaseService._check_refs(tenant, supplier, payment_term)
        lines = PurchaseService._resolve_items(tenant, items)
        order = PurchaseOrder.objects.create(
            tenant=tenant,
            number=PurchaseService._next_number(tenant),
            supplier=supplier,
            payment_term=payment_term,
            notes=notes or '',
            created_by=user,
        )
        PurchaseService._save_items(order, lines)
        VisualAuditLog.record(tenant, 'PURCHASE', order.pk, 'CREATE', after={'total': str(order.total)},
                              user=user, external_ref=order.code)
        logger.info(f"Compra {order.code} criada na empresa {tenant.pk}: total {order.total}")
        return order

    @staticmethod
    @transaction.atomic
    def update(order, data, user=None):
        """Drafts only. data: supplier, payment_term, notes, items"""
        order = PurchaseService._lock(order)
        if order.status != PurchaseStatus.RASCUNHO:
            raise BusinessError(f"Compra {order.code} não é mais rascunho.")

        supplier = data.get('supplier', order.supplier)
        payment_term = data.get('payment_term', order.payment_term)
        PurchaseService._check_refs(order.tenant, supplier, payment_term)
        order.supplier = supplier
        order.payment_term = payment_term
        if 'notes' in data:
            order.notes = data['notes']
        order.save()

        if 'items' in data:
            PurchaseService._save_items(order, PurchaseService._resolve_items(order.tenant, data['items']))
        return order

    @staticmethod
    @transaction.atomic
    def finalize(order, user=None):
        order = PurchaseService._lock(order)
        if order.status != PurchaseStatus.RASCUNHO:
            raise BusinessError(f"Compra {order.code} já foi finalizada.")
        if not order.items.exists():
            raise BusinessError("Compra sem itens não pode ser finalizada.")

        order.status = PurchaseStatus.FINALIZADO
        order.finalized_at = timezone.now()
        order.save(update_fields=['status', 'finalized_at', 'updated_at'])
        if order.payment_term_id and order.total > 0:
            PayableService.create_from_purchase(order, user=user)
        logger.info(f"Compra {order.code} finalizada")
        return order

    @staticmethod
    @transaction.atomic
    def post_stock(order, user=None):
        """Receive the goods: IN movements and the product cost follows the last purchase"""
        order = PurchaseService._lock(order)
        if order.status != PurchaseStatus.FINALIZADO:
            raise BusinessError(f"Compra {order.code} precisa estar finalizada para lançar o estoque.")

        for item in order.items.select_related('product'):
            StockService.create_movement(
                item.product, user, MovementType.IN, item.quantity,
                reason=f"Compra {order.code}", source=MovementSource.PURCHASE,
            )
            Product.objects.filter(pk=item.product_id).update(cost=item.unit_cost)

        order.status = PurchaseStatus.LANCADO
        order.posted_at = timezone.now()
        order.save(update_fields=['status', 'posted_at', 'updated_at'])
        VisualAuditLog.record(order.tenant, 'PURCHASE', order.pk, 'STOCK_POST',
                              before={'status': PurchaseStatus.FINALIZADO}, after={'status': order.status},
                              user=user, external_ref=order.code)
        logger.info(f"Estoque da compra {order.code} lançado")
        return order

    @staticmethod
    @transaction.atomic
    def reverse_stock(order, user=None):
        """Return received goods; fails when the stock was already sold or reserved"""
        order = PurchaseService._lock(order)
        if order.status != PurchaseStatus.LANCADO:
            raise BusinessError(f"Compra {order.code} não possui estoque lançado.")

        for item in order.items.select_related('product'):
            StockService.create_movement(
                item.product, user, MovementType.OUT, item.quantity,
                reason=f"Estorno da compra {order.code}", source=MovementSource.PURCHASE,
            )

        order.status = PurchaseStatus.ESTORNADO
        order.reversed_at = timezone.now()
        order.save(update_fields=['status', 'reversed_at', 'updated_at'])
        VisualAuditLog.record(order.tenant, 'PURCHASE', order.pk, 'STOCK_REVERSE',
                              before={'status': PurchaseStatus.LANCADO}, after={'status': order.status},
                              user=user, external_ref=order.code)
        logger.info(f"Estoque da compra {order.code} estornado")
        return order

    @staticmethod
    @transaction.atomic
    def delete(order):
        order = PurchaseService._lock(order)
        if order.status != PurchaseStatus.RASCUNHO:
            raise BusinessError("Apenas compras em rascunho podem ser excluídas.")
        code = order.code
        order.delete()
        logger.info(f"Compra {code} excluída")


class PayableService:
    @staticmethod
    def _refresh_status(payable):
        if payable.status == PayableStatus.CANCELADA:
            return
        if payable.paid_amount >= payable.amount:
            payable.status = PayableStatus.PAGA
        elif payable.paid_amount > 0:
            payable.status = PayableStatus.PARCIAL
        else:
            payable.status = PayableStatus.ABERTA
        payable.paid_at = timezone.now() if payable.status == PayableStatus.PAGA else None

    @staticmethod
    @transaction.atomic
    def create_from_purchase(order, user=None):
        term = order.payment_term
        try:
            amounts = finance.split_installments(order.total, term.installment_count)
        except ValueError as e:
            raise BusinessError(str(e))
        count = len(amounts)
        dates = finance.installment_due_dates(
            timezone.localdate(), count, term.first_payment_days, term.interval_days
        )

        payables = [
            Payable.objects.create(
                tenant=order.tenant,
                supplier=order.supplier,
                purchase_order=order,
                description=f"Compra {order.code} - parcela {number}/{count}",
                amount=amount,
                due_date=due_date,
                installment_number=number,
                installment_count=count,
                created_by=user,
            )
            for number, (amount, due_date) in enumerate(zip(amounts, dates), start=1)
        ]
        logger.info(f"Contas a pagar da compra {order.code}: {count} parcela(s), total {order.total}")
        return payables

    @staticmethod
    @transaction.atomic
    def create_manual(tenant, amount, due_date, supplier=None, description='', user=None):
        if supplier is not None and supplier.tenant_id != tenant.pk:
            raise BusinessError("Fornecedor inválido.")
        payable = Payable.objects.create(
            tenant=tenant,
            supplier=supplier,
            amount=_money(amount, "Valor"),
            due_date=due_date,
            description=description,
            created_by=user,
        )
        logger.info(f"Conta a pagar {payable.pk} de R$ {payable.amount} lançada")
        return payable

    @staticmethod
    @transaction.atomic
    def record_payment(payable, amount, user=None, payment_method='', notes='', payment_date=None):
        payable = Payable.objects.select_for_update().get(pk=payable.pk)
        if payable.status == PayableStatus.CANCELADA:
            raise BusinessError("Conta cancelada não aceita pagamentos.")
        if payable.status == PayableStatus.PAGA:
            raise BusinessError("Conta já está quitada.")

        amount = _money(amount, "Valor")
        if amount > payable.pending_amount:
            raise BusinessError(f"Valor excede o saldo pendente (R$ {payable.pending_amount}).")

        payment = PayablePayment.objects.create(
            payable=payable,
            amount=amount,
            payment_method=payment_method,
            payment_date=payment_date or timezone.localdate(),
            notes=notes,
            paid_by=user,
        )
        payable.paid_amount += amount
        PayableService._refresh_status(payable)
        payable.save(update_fields=['paid_amount', 'status', 'paid_at'])
        logger.info(f"Pagamento de R$ {amount} na conta {payable.pk} ({payable.status})")
        return payment

    @staticmethod
    @transaction.atomic
    def reverse_payment(payment, user=None):
        payment = PayablePayment.objects.select_for_update().get(pk=payment.pk)
        if payment.is_reversed:
            raise BusinessError("Pagamento já estornado.")
        payable = Payable.objects.select_for_update().get(pk=payment.payable_id)

        payment.reversed_at = timezone.now()
        payment.reversed_by = user
        payment.save(update_fields=['reversed_at', 'reversed_by'])

        payable.paid_amount = max(payable.paid_amount - payment.amount, ZERO)
        PayableService._refresh_status(payable)
        payable.save(update_fields=['paid_amount', 'status', 'paid_at'])
        logger.info(f"Pagamento {payment.pk} estornado na conta {payable.pk}")
        return payable

    @staticmethod
    @transaction.atomic
    def cancel(payable, reason='', user=None):
        payable = Payable.objects.select_for_update().get(pk=payable.pk)
        if payable.status == PayableStatus.CANCELADA:
            raise BusinessError("Conta já cancelada.")
        if payable.payments.filter(reversed_at__isnull=True).exists():
            raise BusinessError("Conta com pagamentos não pode ser cancelada. Estorne os pagamentos antes.")

        payable.status = PayableStatus.CANCELADA
        payable.cancelled_at = timezone.now()
        payable.cancel_reason = reason or ''
        payable.save(update_fields=['status', 'cancelled_at', 'cancel_reason'])
        logger.info(f"Conta a pagar {payable.pk} cancelada")
        return payable

    @staticmethod
    @transaction.atomic
    def reopen(payable):
        payable = Payable.objects.select_for_update().get(pk=payable.pk)
        if payable.status != PayableStatus.CANCELADA:
            raise BusinessError("Apenas contas canceladas podem ser reabertas.")
        payable.status = PayableStatus.ABERTA
        payable.cancelled_at = None
        payable.cancel_reason = ''
        PayableService._refresh_status(payable)
        payable.save(update_fields=['status', 'cancelled_at', 'cancel_reason', 'paid_at'])
        return payable

    @staticmethod
    def dashboard(tenant, today=None):
        today = today or timezone.localdate()
        active = Payable.objects.filter(tenant=tenant).exclude(status=PayableStatus.CANCELADA)
        totals = active.aggregate(total=Sum('amount'), paid=Sum('paid_amount'))
        total = totals['total'] or ZERO
        paid = totals['paid'] or ZERO

        open_qs = active.filter(status__in=OPEN_PAYABLE_STATUSES)
        overdue = list(open_qs.filter(due_date__lt=today).select_related('supplier'))
        upcoming = list(
            open_qs.filter(due_date__gte=today, due_date__lte=today + timedelta(days=30)).select_related('supplier')
        )
        return {
            'overview': {
                'total': total,
                'paid': paid,
                'pending': total - paid,
                'overdue': sum((p.pending_amount for p in overdue), ZERO),
                'overdue_count': len(overdue),
                'count': active.count(),
            },
            'upcoming': upcoming,
            'overdue': overdue,
        }
