"""
Credits App - Fiado ledger (customer credit / accounts receivable)
"""
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone

from apps.tenants.models import TenantMixin


class CreditStatus(models.TextChoices):
    PENDENTE = 'PENDENTE', 'Pendente'
    PARCIAL = 'PARCIAL', 'Parcial'
    PAGO = 'PAGO', 'Pago'
    CANCELADO = 'CANCELADO', 'Cancelado'


OPEN_STATUSES = [CreditStatus.PENDENTE, CreditStatus.PARCIAL]


class CreditKind(models.TextChoices):
    COMPRA = 'COMPRA', 'Compra'
    MANUAL = 'MANUAL', 'Lançamento Manual'
    AJUSTE = 'AJUSTE', 'Ajuste'


class CustomerCredit(TenantMixin):
    """One receivable installment owed by a customer"""
    customer = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='credits')
    order = models.ForeignKey(
        'orders.Order', on_delete=models.SET_NULL, null=True, blank=True, related_name='credits'
    )
    kind = models.CharField(max_length=10, choices=CreditKind.choices, default=CreditKind.MANUAL)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    paid_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    description = models.CharField(max_length=255, blank=True)
    due_date = models.DateField(verbose_name="Vencimento")
    installment_number = models.PositiveSmallIntegerField(default=1)
    installment_count = models.PositiveSmallIntegerField(default=1)
    status = models.CharField(max_length=10, choices=CreditStatus.choices, default=CreditStatus.PENDENTE, db_index=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Fiado"
        verbose_name_plural = "Fiados"
        ordering = ['due_date', 'id']

    def __str__(self):
        return f"{self.customer} - R$ {self.amount} ({self.installment_number}/{self.installment_count})"

    @property
    def pending_amount(self):
        if self.status == CreditStatus.CANCELADO:
            return Decimal('0')
        return max(self.amount - self.paid_amount, Decimal('0'))

    @property
    def is_overdue(self):
        return self.status in OPEN_STATUSES and self.due_date < timezone.localdate()

    @property
    def days_overdue(self):
        if not self.is_overdue:
            return 0
        return (timezone.localdate() - self.due_date).days


class CreditPayment(models.Model):
    credit = models.ForeignKey(CustomerCredit, on_delete=models.CASCADE, related_name='payments')
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    payment_method = models.CharField(max_length=50, blank=True)
    notes = models.CharField(max_length=255, blank=True)
    received_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    reversed_at = models.DateTimeField(null=True, blank=True)
    reversed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )

    class Meta:
        verbose_name = "Pagamento de Fiado"
        verbose_name_plural = "Pagamentos de Fiado"
        ordering = ['-created_at', '-id']

    def __str__(self):
        return f"R$ {self.amount} em {self.created_at:%d/%m/%Y}"

    @property
    def is_reversed(self):
        return self.reversed_at is not None
