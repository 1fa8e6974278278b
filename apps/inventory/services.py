import logging

from django.db import transaction
from django.db.models import F

from apps.core.exceptions import BusinessError, InsufficientStockError
from apps.products.models import Product, ProductStatus

from .models import MovementSource, MovementType, StockMovement

logger = logging.getLogger(__name__)


class StockService:
    """
    Every change to Product.stock / Product.reserved_stock goes through here:
    the product row is locked, balances are recalculated and an immutable
    StockMovement is written with the resulting balances.
    """

    @staticmethod
    def _lock(product):
        return Product.objects.select_for_update().get(pk=product.pk)

    @staticmethod
    def _quantity(quantity, allow_zero=False):
        try:
            quantity = int(quantity)
        except (TypeError, ValueError):
            raise BusinessError(f"Quantidade inválida: {quantity}")
        if quantity < 0 or (quantity == 0 and not allow_zero):
            raise BusinessError("Quantidade deve ser maior que zero.")
        return quantity

    @staticmethod
    def _apply(target, user, movement_type, quantity, stock, reserved, reason, source, order):
        target.stock = stock
        target.reserved_stock = reserved
        target._allow_stock_change = True  # Unlock ledger for this authorized movement
        target.save()
        target._allow_stock_change = False
        logger.info(f"Estoque {target.sku}: {movement_type} {quantity} -> saldo {stock}, reservado {reserved}")

        return StockMovement.objects.create(
            tenant=target.tenant,
            product=target,
            user=user,
            type=movement_type,
            quantity=quantity,
            balance_after=stock,
            reserved_after=reserved,
            reason=reason,
            source=source,
            order=order,
        )

    @staticmethod
    @transaction.atomic
    def create_movement(product, user, movement_type, quantity, reason='', source=MovementSource.MANUAL, order=None):
        """
        Manual ledger entry.
        IN adds, OUT subtracts (never below the reserved quantity), ADJ sets the absolute balance.
        """
        quantity = StockService._quantity(quantity, allow_zero=movement_type == MovementType.ADJ)
        target = StockService._lock(product)

        if movement_type == MovementType.IN:
            new_stock = target.stock + quantity
        elif movement_type == MovementType.OUT:
            new_stock = target.stock - quantity
            if new_stock < target.reserved_stock:
                raise InsufficientStockError(
                    f"Estoque insuficiente para {target.sku}. Disponível: {target.stock - target.reserved_stock}"
                )
        elif movement_type == MovementType.ADJ:
            if quantity < target.reserved_stock:
                raise BusinessError(
                    f"Ajuste de {target.sku} abaixo do reservado ({target.reserved_stock}). Libere as reservas antes."
                )
            new_stock = quantity
        else:
            raise BusinessError(f"Tipo de movimento inválido: {movement_type}")

        movement = StockService._apply(
            target, user, movement_type, quantity, new_stock, target.reserved_stock, reason, source, order
        )
        product.stock, product.reserved_stock = target.stock, target.reserved_stock
        return movement

    @staticmethod
    @transaction.atomic
    def reserve(product, quantity, user=None, reason='', order=None):
        """Commit stock to a generated order; fails when available stock is short"""
        quantity = StockService._quantity(quantity)
        target = StockService._lock(product)

        if target.stock - target.reserved_stock < quantity:
            raise InsufficientStockError(
                f"Estoque insuficiente para {target.sku}. "
                f"Disponível: {target.stock - target.reserved_stock}, solicitado: {quantity}"
            )

        movement = StockService._apply(
            target, user, MovementType.RESERVE, quantity,
            target.stock, target.reserved_stock + quantity,
            reason, MovementSource.ORDER if order else MovementSource.MANUAL, order
        )
        product.stock, product.reserved_stock = target.stock, target.reserved_stock
        return movement

    @staticmethod
    @transaction.atomic
    def release(product, quantity, user=None, reason='', order=None):
        """Return reserved quantity to the available pool (never below zero)"""
        quantity = StockService._quantity(quantity)
        target = StockService._lock(product)

        movement = StockService._apply(
            target, user, MovementType.RELEASE, quantity,
            target.stock, max(target.reserved_stock - quantity, 0),
            reason, MovementSource.ORDER if order else MovementSource.MANUAL, order
        )
        product.stock, product.reserved_stock = target.stock, target.reserved_stock
        return movement

    @staticmethod
    @transaction.atomic
    def deduct_reserved(product, quantity, user=None, reason='', order=None):
        """Invoicing: reserved items physically leave the stock"""
        quantity = StockService._quantity(quantity)
        target = StockService._lock(product)

        movement = StockService._apply(
            target, user, MovementType.OUT, quantity,
            target.stock - quantity, max(target.reserved_stock - quantity, 0),
            reason, MovementSource.ORDER if order else MovementSource.MANUAL, order
        )
        product.stock, product.reserved_stock = target.stock, target.reserved_stock
        return movement

    @staticmethod
    @transaction.atomic
    def restock(product, quantity, user=None, reason='', order=None):
        """Items of a cancelled invoiced order come back"""
        quantity = StockService._quantity(quantity)
        target = StockService._lock(product)

        movement = StockService._apply(
            target, user, MovementType.IN, quantity,
            target.stock + quantity, target.reserved_stock,
            reason, MovementSource.ORDER if order else MovementSource.MANUAL, order
        )
        product.stock, product.reserved_stock = target.stock, target.reserved_stock
        return movement

    @staticmethod
    @transaction.atomic
    def unpost_to_reserved(product, quantity, user=None, reason='', order=None):
        """Un-invoice: items return to stock but stay committed to the order"""
        quantity = StockService._quantity(quantity)
        target = StockService._lock(product)

        movement = StockService._apply(
            target, user, MovementType.IN, quantity,
            target.stock + quantity, target.reserved_stock + quantity,
            reason, MovementSource.ORDER if order else MovementSource.MANUAL, order
        )
        product.stock, product.reserved_stock = target.stock, target.reserved_stock
        return movement

    @staticmethod
    def low_stock(tenant):
        """Active products at or below their minimum"""
        return Product.objects.filter(
            tenant=tenant,
            status=ProductStatus.ATIVO,
            stock__lte=F('min_stock'),
        ).select_related('category').order_by('stock', 'name')
