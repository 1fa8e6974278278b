"""
Purchases App - Suppliers, payment terms, purchase orders and accounts payable

A purchase order moves RASCUNHO -> FINALIZADO -> LANCADO (stock received),
and a received order can be reversed once (ESTORNADO). Finalizing an order
with a payment term splits its total into payable installments.
"""
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone

from apps.accounts.validators import format_cnpj
from apps.tenants.models import TenantMixin


class Supplier(TenantMixin):
    """
    Cadastro de fornecedores.
    O CNPJ é opcional, mas único por empresa quando informado.
    """
    name = models.CharField(max_length=200, verbose_name="Razão Social")
    trade_name = models.CharField(max_length=200, blank=True, verbose_name="Nome Fantasia")
    cnpj = models.CharField(max_length=14, blank=True, verbose_name="CNPJ")
    email = models.EmailField(blank=True, verbose_name="E-mail")
    phone = models.CharField(max_length=20, blank=True, verbose_name="Telefone")
    contact_name = models.CharField(max_length=100, blank=True, verbose_name="Nome do Contato")
    lead_time_days = models.PositiveIntegerField(default=7, verbose_name="Prazo de Entrega (dias)")
    city = models.CharField(max_length=100, blank=True, verbose_name="Cidade")
    state = models.CharField(max_length=2, blank=True, verbose_name="UF")
    notes = models.TextField(blank=True, verbose_name="Observações")
    is_active = models.BooleanField(default=True, verbose_name="Ativo")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Fornecedor"
        verbose_name_plural = "Fornecedores"
        ordering = ['trade_name', 'name']
        indexes = [
            models.Index(fields=['tenant', 'cnpj']),
            models.Index(fields=['tenant', 'is_active']),
        ]

    def __str__(self):
        return self.display_name

    @property
    def display_name(self):
        return self.trade_name or self.name

    @property
    def formatted_cnpj(self):
        return format_cnpj(self.cnpj) if self.cnpj else ''


class PaymentTerm(TenantMixin):
    """Condição de prazo para compras: parcelas, carência e intervalo"""
    name = models.CharField(max_length=100, verbose_name="Nome")
    installment_count = models.PositiveSmallIntegerField(default=1, verbose_name="Parcelas")
    first_payment_days = models.PositiveSmallIntegerField(default=30, verbose_name="Dias até a 1ª parcela")
    interval_days = models.PositiveSmallIntegerField(default=30, verbose_name="Intervalo entre parcelas")
    sort_order = models.PositiveIntegerField(default=0)
    active = models.BooleanField(default=True, verbose_name="Ativa")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Condição de Prazo"
        verbose_name_plural = "Condições de Prazo"
        ordering = ['sort_order', 'name']

    def __str__(self):
        return self.name


class PurchaseStatus(models.TextChoices):
    RASCUNHO = 'RASCUNHO', 'Rascunho'
    FINALIZADO = 'FINALIZADO', 'Finalizado'
    LANCADO = 'LANCADO', 'Estoque Lançado'
    ESTORNADO = 'ESTORNADO', 'Estoque Estornado'


class PurchaseOrder(TenantMixin):
    number = models.PositiveIntegerField(verbose_name="Número")
    supplier = models.ForeignKey(
        Supplier, on_delete=models.PROTECT, null=True, blank=True, related_name='purchase_orders'
    )
    payment_term = models.ForeignKey(
        PaymentTerm, on_delete=models.PROTECT, null=True, blank=True, related_name='purchase_orders'
    )
    status = models.CharField(
        max_length=12, choices=PurchaseStatus.choices, default=PurchaseStatus.RASCUNHO, db_index=True
    )
    notes = models.TextField(blank=True)
    total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    finalized_at = models.DateTimeField(null=True, blank=True)
    posted_at = models.DateTimeField(null=True, blank=True)
    reversed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        verbose_name = "Pedido de Compra"
        verbose_name_plural = "Pedidos de Compra"
        ordering = ['-number']
        unique_together = ['tenant', 'number']

    def __str__(self):
        return self.code

    @property
    def code(self):
        return f"PC-{self.number:06d}"


class PurchaseOrderItem(models.Model):
    purchase_order = models.ForeignKey(PurchaseOrder, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey('products.Product', on_delete=models.PROTECT, related_name='purchase_items')
    sku_snapshot = models.CharField(max_length=50, blank=True)
    description_snapshot = models.CharField(max_length=255, blank=True)
    quantity = models.PositiveIntegerField()
    unit_cost = models.DecimalField(max_digits=12, decimal_places=2)
    line_total = models.DecimalField(max_digits=12, decimal_places=2)

    class Meta:
        verbose_name = "Item de Compra"
        verbose_name_plural = "Itens de Compra"
        ordering = ['id']

    def __str__(self):
        return f"{self.quantity} x {self.sku_snapshot}"


class PayableStatus(models.TextChoices):
    ABERTA = 'ABERTA', 'Aberta'
    PARCIAL = 'PARCIAL', 'Parcial'
    PAGA = 'PAGA', 'Paga'
    CANCELADA = 'CANCELADA', 'Cancelada'


OPEN_PAYABLE_STATUSES = [PayableStatus.ABERTA, PayableStatus.PARCIAL]


class Payable(TenantMixin):
    """One accounts-payable installment owed to a supplier"""
    supplier = models.ForeignKey(
        Supplier, on_delete=models.PROTECT, null=True, blank=True, related_name='payables'
    )
    purchase_order = models.ForeignKey(
        PurchaseOrder, on_delete=models.SET_NULL, null=True, blank=True, related_name='payables'
    )
    description = models.CharField(max_length=255, blank=True)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    paid_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    due_date = models.DateField(verbose_name="Vencimento")
    installment_number = models.PositiveSmallIntegerField(default=1)
    installment_count = models.PositiveSmallIntegerField(default=1)
    status = models.CharField(
        max_length=10, choices=PayableStatus.choices, default=PayableStatus.ABERTA, db_index=True
    )
    paid_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancel_reason = models.CharField(max_length=255, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Conta a Pagar"
        verbose_name_plural = "Contas a Pagar"
        ordering = ['due_date', 'id']

    def __str__(self):
        return f"{self.description or self.supplier} - R$ {self.amount}"

    @property
    def pending_amount(self):
        if self.status == PayableStatus.CANCELADA:
            return Decimal('0')
        return max(self.amount - self.paid_amount, Decimal('0'))

    @property
    def is_overdue(self):
        return self.status in OPEN_PAYABLE_STATUSES and self.due_date < timezone.localdate()


class PayablePayment(models.Model):
    payable = models.ForeignKey(Payable, on_delete=models.CASCADE, related_name='payments')
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    payment_method = models.CharField(max_length=50, blank=True)
    payment_date = models.DateField(default=timezone.localdate)
    notes = models.CharField(max_length=255, blank=True)
    paid_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    reversed_at = models.DateTimeField(null=True, blank=True)
    reversed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )

    class Meta:
        verbose_name = "Pagamento de Conta"
        verbose_name_plural = "Pagamentos de Contas"
        ordering = ['-created_at', '-id']

    def __str__(self):
        return f"R$ {self.amount} em {self.payment_date:%d/%m/%Y}"

    @property
    def is_reversed(self):
        return self.reversed_at is not None
