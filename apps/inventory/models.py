"""
Inventory App - Stock ledger
"""
from django.conf import settings
from django.db import models

from apps.products.models import Product
from apps.tenants.models import TenantMixin


class MovementType(models.TextChoices):
    IN = 'IN', 'Entrada'
    OUT = 'OUT', 'Saída'
    ADJ = 'ADJ', 'Ajuste'
    RESERVE = 'RESERVE', 'Reserva'
    RELEASE = 'RELEASE', 'Liberação de Reserva'


class MovementSource(models.TextChoices):
    MANUAL = 'MANUAL', 'Manual'
    ORDER = 'ORDER', 'Pedido'
    IMPORT = 'IMPORT', 'Importação'
    PURCHASE = 'PURCHASE', 'Compra'
    API = 'API', 'API'


class StockMovement(TenantMixin):
    """Immutable record of any stock or reservation change"""
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='movements')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True)
    type = models.CharField(max_length=10, choices=MovementType.choices)
    quantity = models.IntegerField()
    balance_after = models.IntegerField(verbose_name="Saldo Após")
    reserved_after = models.IntegerField(default=0, verbose_name="Reservado Após")
    reason = models.CharField(max_length=255, blank=True)
    source = models.CharField(max_length=10, choices=MovementSource.choices, default=MovementSource.MANUAL)
    order = models.ForeignKey(
        'orders.Order', on_delete=models.SET_NULL, null=True, blank=True, related_name='stock_movements'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Movimentação de Estoque"
        verbose_name_plural = "Movimentações de Estoque"
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['tenant', 'product', '-created_at']),
        ]

    def __str__(self):
        return f"{self.get_type_display()} {self.quantity} x {self.product.sku}"

    def save(self, *args, **kwargs):
        if self.pk:
            raise ValueError("Movimentações de estoque são imutáveis.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("Movimentações de estoque são imutáveis.")
