"""
Orders App - Orders, items, payment types and coupons
"""
from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone

from apps.core.exceptions import CouponError
from apps.products.models import Product
from apps.tenants.models import TenantMixin

CENTS = Decimal('0.01')


class OrderStatus(models.TextChoices):
    ORCAMENTO = 'ORCAMENTO', 'Orçamento'
    PEDIDO_GERADO = 'PEDIDO_GERADO', 'Pedido Gerado'
    FATURADO = 'FATURADO', 'Faturado'
    CANCELADO = 'CANCELADO', 'Cancelado'


class OrderStage(models.TextChoices):
    AGUARDANDO_IMPRESSAO = 'AGUARDANDO_IMPRESSAO', 'Aguardando Impressão'
    PEDIDO_IMPRESSO = 'PEDIDO_IMPRESSO', 'Pedido Impresso'
    PEDIDO_SEPARADO = 'PEDIDO_SEPARADO', 'Pedido Separado'
    COBRADO = 'COBRADO', 'Cobrado'
    CONFERENCIA = 'CONFERENCIA', 'Conferência'
    AGUARDANDO_ENVIO = 'AGUARDANDO_ENVIO', 'Aguardando Envio'
    FINALIZADO = 'FINALIZADO', 'Finalizado'


class OrderChannel(models.TextChoices):
    SITE = 'SITE', 'Site'
    ADMIN = 'ADMIN', 'Painel'
    PDV = 'PDV', 'PDV'
    REPRESENTANTE = 'REPRESENTANTE', 'Representante'
    API = 'API', 'API'


class StockState(models.TextChoices):
    NONE = 'NONE', 'Não lançado'
    RESERVED = 'RESERVED', 'Reservado'
    DEDUCTED = 'DEDUCTED', 'Baixado'


class PaymentKind(models.TextChoices):
    DINHEIRO = 'DINHEIRO', 'Dinheiro'
    PIX = 'PIX', 'PIX'
    CARTAO_CREDITO = 'CARTAO_CREDITO', 'Cartão de Crédito'
    CARTAO_DEBITO = 'CARTAO_DEBITO', 'Cartão de Débito'
    BOLETO = 'BOLETO', 'Boleto'
    FIADO = 'FIADO', 'Fiado'
    OUTRO = 'OUTRO', 'Outro'


class PaymentType(TenantMixin):
    """Forma de pagamento aceita pela loja"""
    name = models.CharField(max_length=100)
    kind = models.CharField(max_length=20, choices=PaymentKind.choices, default=PaymentKind.OUTRO)
    is_store_credit = models.BooleanField(default=False, verbose_name="Gera Fiado")
    installments = models.PositiveSmallIntegerField(default=1, verbose_name="Parcelas Padrão")
    first_due_days = models.PositiveSmallIntegerField(default=30, verbose_name="Dias até a 1ª Parcela")
    interval_days = models.PositiveSmallIntegerField(default=30, verbose_name="Intervalo entre Parcelas")
    active = models.BooleanField(default=True)
    sort_order = models.PositiveIntegerField(default=0)

    class Meta:
        verbose_name = "Forma de Pagamento"
        verbose_name_plural = "Formas de Pagamento"
        ordering = ['sort_order', 'name']

    def __str__(self):
        return self.name


class DiscountType(models.TextChoices):
    PERCENTUAL = 'PERCENTUAL', 'Percentual'
    FIXO = 'FIXO', 'Valor Fixo'


class Coupon(TenantMixin):
    code = models.CharField(max_length=40, verbose_name="Código")
    name = models.CharField(max_length=100, blank=True)
    discount_type = models.CharField(max_length=10, choices=DiscountType.choices, default=DiscountType.PERCENTUAL)
    discount_value = models.DecimalField(max_digits=10, decimal_places=2)
    min_order_value = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    max_uses = models.PositiveIntegerField(null=True, blank=True, help_text="Vazio = ilimitado")
    used_count = models.PositiveIntegerField(default=0)
    valid_from = models.DateTimeField(null=True, blank=True)
    valid_until = models.DateTimeField(null=True, blank=True)
    active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Cupom"
        verbose_name_plural = "Cupons"
        unique_together = ['tenant', 'code']
        ordering = ['-created_at']

    def __str__(self):
        return self.code

    def save(self, *args, **kwargs):
        self.code = self.code.strip().upper()
        super().save(*args, **kwargs)

    def validate(self, subtotal, now=None):
        """Raises CouponError when the coupon can't be applied to this subtotal"""
        now = now or timezone.now()
        subtotal = Decimal(str(subtotal))
        if not self.active:
            raise CouponError("Cupom inativo.")
        if self.valid_from and now < self.valid_from:
            raise CouponError("Cupom ainda não está válido.")
        if self.valid_until and now > self.valid_until:
            raise CouponError("Cupom expirado.")
        if self.max_uses is not None and self.used_count >= self.max_uses:
            raise CouponError("Cupom atingiu o limite de usos.")
        if subtotal < self.min_order_value:
            raise CouponError(f"Pedido mínimo para este cupom: R$ {self.min_order_value}")

    def discount_for(self, subtotal):
        subtotal = Decimal(str(subtotal))
        if self.discount_type == DiscountType.PERCENTUAL:
            discount = subtotal * self.discount_value / Decimal('100')
        else:
            discount = self.discount_value
        return min(discount, subtotal).quantize(CENTS, rounding=ROUND_HALF_UP)


class Order(TenantMixin):
    order_number = models.PositiveIntegerField(verbose_name="Número")
    customer = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='orders'
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )
    channel = models.CharField(max_length=20, choices=OrderChannel.choices, default=OrderChannel.ADMIN)
    status = models.CharField(max_length=20, choices=OrderStatus.choices, default=OrderStatus.ORCAMENTO, db_index=True)
    stage = models.CharField(max_length=30, choices=OrderStage.choices, default=OrderStage.AGUARDANDO_IMPRESSAO)
    stock_state = models.CharField(max_length=10, choices=StockState.choices, default=StockState.NONE)
    accounts_posted = models.BooleanField(default=False, verbose_name="Contas Lançadas")

    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    discount_total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    shipping_cost = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    coupon = models.ForeignKey(Coupon, on_delete=models.SET_NULL, null=True, blank=True, related_name='orders')
    coupon_code = models.CharField(max_length=40, blank=True)

    guest_name = models.CharField(max_length=150, blank=True)
    guest_email = models.EmailField(blank=True)
    guest_phone = models.CharField(max_length=20, blank=True)
    guest_document = models.CharField(max_length=18, blank=True)

    shipping_address = models.JSONField(null=True, blank=True)
    shipping_method = models.CharField(max_length=30, blank=True)
    payment_type = models.ForeignKey(PaymentType, on_delete=models.SET_NULL, null=True, blank=True, related_name='orders')
    payment_notes = models.CharField(max_length=255, blank=True)
    fiado_installments = models.PositiveSmallIntegerField(null=True, blank=True)
    notes = models.TextField(blank=True)

    printed = models.BooleanField(default=False)
    printed_at = models.DateTimeField(null=True, blank=True)
    printed_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    reserved_at = models.DateTimeField(null=True, blank=True)
    reserved_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    invoiced_at = models.DateTimeField(null=True, blank=True)
    invoiced_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    cancelled_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Pedido"
        verbose_name_plural = "Pedidos"
        unique_together = ['tenant', 'order_number']
        ordering = ['-created_at', '-id']

    def __str__(self):
        return f"Pedido #{self.order_number}"

    @property
    def stock_posted(self):
        return self.stock_state != StockState.NONE

    @property
    def is_guest_order(self):
        return self.customer_id is None

    @property
    def customer_name(self):
        if self.customer_id:
            return self.customer.get_full_name() or self.customer.username
        return self.guest_name

    def snapshot(self):
        return {
            'status': self.status,
            'stage': self.stage,
            'stock_state': self.stock_state,
            'accounts_posted': self.accounts_posted,
            'total': str(self.total),
        }


class OrderItem(models.Model):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey(Product, on_delete=models.SET_NULL, null=True, blank=True, related_name='order_items')
    sku_snapshot = models.CharField(max_length=50, blank=True)
    description_snapshot = models.CharField(max_length=255, blank=True)
    quantity = models.PositiveIntegerField()
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    discount_percent = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('0'))
    line_total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))

    class Meta:
        verbose_name = "Item do Pedido"
        verbose_name_plural = "Itens do Pedido"
        ordering = ['id']

    def __str__(self):
        return f"{self.quantity} x {self.description_snapshot}"

    @staticmethod
    def calculate_line_total(quantity, unit_price, discount_percent=0):
        gross = Decimal(quantity) * Decimal(str(unit_price))
        factor = (Decimal('100') - Decimal(str(discount_percent))) / Decimal('100')
        return (gross * factor).quantize(CENTS, rounding=ROUND_HALF_UP)

    def save(self, *args, **kwargs):
        self.line_total = self.calculate_line_total(self.quantity, self.unit_price, self.discount_percent)
        super().save(*args, **kwargs)
