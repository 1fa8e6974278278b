import logging
from datetime import timedelta
from decimal import Decimal, InvalidOperation

from django.db import transaction
from django.db.models import Count, Min, Q, Sum
from django.utils import timezone

from apps.core.exceptions import CreditError
from apps.core.models import StoreSettings, VisualAuditLog

from . import finance
from .models import OPEN_STATUSES, CreditKind, CreditPayment, CreditStatus, CustomerCredit

logger = logging.getLogger(__name__)

ZERO = Decimal('0.00')


def _amount(value):
    try:
        value = finance.to_money(value)
    except (InvalidOperation, TypeError, ValueError):
        raise CreditError(f"Valor inválido: {value}")
    if not value.is_finite():
        raise CreditError(f"Valor inválido: {value}")
    if value <= 0:
        raise CreditError("O valor deve ser maior que zero.")
    return value


class CreditService:
    @staticmethod
    def _refresh_status(credit):
        credit.status = finance.determine_status(
            credit.amount, credit.paid_amount, cancelled=credit.status == CreditStatus.CANCELADO
        )
        credit.paid_at = timezone.now() if credit.status == CreditStatus.PAGO else None

    @staticmethod
    @transaction.atomic
    def create_from_order(order, user=None):
        """Split the order total into fiado installments for its customer"""
        if order.customer_id is None:
            raise CreditError("Pedido sem cliente não pode gerar fiado.")
        if order.accounts_posted:
            raise CreditError(f"Contas do pedido #{order.order_number} já foram lançadas.")
        if order.total <= 0:
            raise CreditError("Pedido com total zerado não gera fiado.")

        payment_type = order.payment_type
        count = order.fiado_installments or (payment_type.installments if payment_type else 1) or 1
        first_due = payment_type.first_due_days if payment_type else 30
        interval = payment_type.interval_days if payment_type else 30

        try:
            amounts = finance.split_installments(order.total, count)
        except ValueError as e:
            raise CreditError(str(e))
        dates = finance.installment_due_dates(timezone.localdate(), count, first_due, interval)

        credits = []
        for number, (amount, due_date) in enumerate(zip(amounts, dates), start=1):
            credits.append(CustomerCredit.objects.create(
                tenant=order.tenant,
                customer=order.customer,
                order=order,
                kind=CreditKind.COMPRA,
                amount=amount,
                description=f"Pedido #{order.order_number} - parcela {number}/{count}",
                due_date=due_date,
                installment_number=number,
                installment_count=count,
                created_by=user,
            ))

        order.accounts_posted = True
        order.save(update_fields=['accounts_posted', 'updated_at'])
        logger.info(f"Fiado lançado para pedido #{order.order_number}: {count} parcela(s), total {order.total}")
        return credits

    @staticmethod
    @transaction.atomic
    def create_manual(tenant, customer, amount, due_date, description='', user=None, kind=CreditKind.MANUAL):
        credit = CustomerCredit.objects.create(
            tenant=tenant,
            customer=customer,
            kind=kind,
            amount=_amount(amount),
            description=description,
            due_date=due_date,
            created_by=user,
        )
        logger.info(f"Fiado manual {credit.pk} de R$ {credit.amount} para cliente {customer.pk}")
        return credit

    @staticmethod
    @transaction.atomic
    def record_payment(credit, amount, user=None, payment_method='', notes=''):
        credit = CustomerCredit.objects.select_for_update().get(pk=credit.pk)
        if credit.status == CreditStatus.CANCELADO:
            raise CreditError("Fiado cancelado não aceita pagamentos.")
        if credit.status == CreditStatus.PAGO:
            raise CreditError("Fiado já está quitado.")

        amount = _amount(amount)
        if amount > credit.pending_amount:
            raise CreditError(f"Valor excede o saldo pendente (R$ {credit.pending_amount}).")

        payment = CreditPayment.objects.create(
            credit=credit,
            amount=amount,
            payment_method=payment_method,
            notes=notes,
            received_by=user,
        )
        credit.paid_amount += amount
        CreditService._refresh_status(credit)
        credit.save(update_fields=['paid_amount', 'status', 'paid_at'])

        VisualAuditLog.record(
            credit.tenant, 'CREDIT', credit.pk, 'PAYMENT',
            after={'amount': str(amount), 'paid_amount': str(credit.paid_amount), 'status': credit.status},
            user=user,
        )
        logger.info(f"Pagamento de R$ {amount} no fiado {credit.pk} ({credit.status})")
        return payment

    @staticmethod
    @transaction.atomic
    def reverse_payment(payment, user=None):
        payment = CreditPayment.objects.select_for_update().select_related('credit').get(pk=payment.pk)
        if payment.is_reversed:
            raise CreditError("Pagamento já estornado.")
        credit = CustomerCredit.objects.select_for_update().get(pk=payment.credit_id)
        if credit.status == CreditStatus.CANCELADO:
            raise CreditError("Fiado cancelado não permite estorno.")

        payment.reversed_at = timezone.now()
        payment.reversed_by = user
        payment.save(update_fields=['reversed_at', 'reversed_by'])

        credit.paid_amount = max(credit.paid_amount - payment.amount, ZERO)
        CreditService._refresh_status(credit)
        credit.save(update_fields=['paid_amount', 'status', 'paid_at'])
        logger.info(f"Pagamento {payment.pk} estornado no fiado {credit.pk}")
        return credit

    @staticmethod
    def _has_active_payments(credits):
        return CreditPayment.objects.filter(credit__in=credits, reversed_at__isnull=True).exists()

    @staticmethod
    @transaction.atomic
    def cancel_credit(credit, user=None):
        credit = CustomerCredit.objects.select_for_update().get(pk=credit.pk)
        if credit.status == CreditStatus.CANCELADO:
            raise CreditError("Fiado já cancelado.")
        if CreditService._has_active_payments([credit]):
            raise CreditError("Fiado com pagamentos não pode ser cancelado. Estorne os pagamentos antes.")

        credit.status = CreditStatus.CANCELADO
        credit.cancelled_at = timezone.now()
        credit.save(update_fields=['status', 'cancelled_at'])
        return credit

    @staticmethod
    @transaction.atomic
    def cancel_for_order(order):
        """Reverse the accounts posted for an order; refused once anything was paid"""
        credits = list(
            CustomerCredit.objects.select_for_update().filter(order=order).exclude(status=CreditStatus.CANCELADO)
        )
        if CreditService._has_active_payments(credits):
            raise CreditError(
                f"Pedido #{order.order_number} possui parcelas com pagamento. Estorne os pagamentos antes."
            )

        now = timezone.now()
        for credit in credits:
            credit.status = CreditStatus.CANCELADO
            credit.cancelled_at = now
            credit.save(update_fields=['status', 'cancelled_at'])

        order.accounts_posted = False
        order.save(update_fields=['accounts_posted', 'updated_at'])
        logger.info(f"Contas do pedido #{order.order_number} estornadas ({len(credits)} parcela(s))")
        return len(credits)

    @staticmethod
    def customer_balance(tenant, customer):
        totals = CustomerCredit.objects.filter(tenant=tenant, customer=customer).exclude(
            status=CreditStatus.CANCELADO
        ).aggregate(total=Sum('amount'), paid=Sum('paid_amount'))
        total = totals['total'] or ZERO
        paid = totals['paid'] or ZERO
        return {'total': total, 'paid': paid, 'pending': total - paid}

    @staticmethod
    def financial_view(credit, today=None, rate=None, fine=None):
        """Pending amount with interest and fine; rates default to the store settings"""
        store = StoreSettings.get_settings(credit.tenant)
        return finance.financial_total(
            credit.pending_amount,
            credit.due_date,
            store.interest_rate_monthly if rate is None else rate,
            store.late_fee_percent if fine is None else fine,
            today or timezone.localdate(),
        )

    @staticmethod
    def overdue(tenant, today=None):
        today = today or timezone.localdate()
        return CustomerCredit.objects.filter(tenant=tenant, status__in=OPEN_STATUSES, due_date__lt=today)

    @staticmethod
    def dashboard(tenant, today=None):
        today = today or timezone.localdate()
        active = CustomerCredit.objects.filter(tenant=tenant).exclude(status=CreditStatus.CANCELADO)
        open_credits = active.filter(status__in=OPEN_STATUSES)

        totals = active.aggregate(total=Sum('amount'), paid=Sum('paid_amount'))
        total = totals['total'] or ZERO
        paid = totals['paid'] or ZERO
        overdue_qs = open_credits.filter(due_date__lt=today)
        overdue_totals = overdue_qs.aggregate(total=Sum('amount'), paid=Sum('paid_amount'))
        total_overdue = (overdue_totals['total'] or ZERO) - (overdue_totals['paid'] or ZERO)

        per_customer = open_credits.values(
            'customer_id', 'customer__first_name', 'customer__last_name', 'customer__username'
        ).annotate(
            total=Sum('amount'),
            paid=Sum('paid_amount'),
            open_count=Count('id'),
            next_due_date=Min('due_date'),
            overdue_total=Sum('amount', filter=Q(due_date__lt=today)),
            overdue_paid=Sum('paid_amount', filter=Q(due_date__lt=today)),
        )

        summaries = []
        for row in per_customer:
            name = f"{row['customer__first_name']} {row['customer__last_name']}".strip()
            summaries.append({
                'customer_id': row['customer_id'],
                'customer_name': name or row['customer__username'],
                'total': row['total'],
                'paid': row['paid'],
                'pending': row['total'] - row['paid'],
                'overdue': (row['overdue_total'] or ZERO) - (row['overdue_paid'] or ZERO),
                'open_credits': row['open_count'],
                'next_due_date': row['next_due_date'],
            })
        summaries.sort(key=lambda s: s['pending'], reverse=True)

        pending_total = open_credits.aggregate(total=Sum('amount'), paid=Sum('paid_amount'))
        total_pending = (pending_total['total'] or ZERO) - (pending_total['paid'] or ZERO)
        customers_with_debt = len(summaries)

        upcoming = open_credits.filter(
            due_date__gte=today, due_date__lte=today + timedelta(days=7)
        ).select_related('customer').order_by('due_date')
        recent_payments = CreditPayment.objects.filter(
            credit__tenant=tenant, reversed_at__isnull=True
        ).select_related('credit', 'credit__customer').order_by('-created_at', '-id')[:10]

        return {
            'overview': {
                'total_in_circulation': total,
                'total_pending': total_pending,
                'total_paid': paid,
                'total_overdue': total_overdue,
                'customers_with_debt': customers_with_debt,
                'average_debt_per_customer': (
                    finance.to_money(total_pending / customers_with_debt) if customers_with_debt else ZERO
                ),
            },
            'customer_summaries': summaries,
            'upcoming_payments': list(upcoming),
            'overdue_payments': list(overdue_qs.select_related('customer').order_by('due_date')),
            'recent_payments': list(recent_payments),
        }
