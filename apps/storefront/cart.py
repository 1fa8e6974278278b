"""
Session cart, one per store slug.

Stored as {product_id: quantity}; prices are always read live from the catalog the
viewer can see, so hidden or deactivated products drop out on the next read.
"""
from decimal import Decimal

from django.conf import settings

from apps.core.exceptions import BusinessError
from apps.products.models import Product, ProductStatus


class Cart:
    def __init__(self, request, tenant, products=None):
        self.session = request.session
        self.tenant = tenant
        if products is None:
            products = Product.objects.filter(tenant=tenant, status=ProductStatus.ATIVO)
        self.products = products
        self.key = f"{settings.CART_SESSION_KEY}:{tenant.slug}"
        self.data = self.session.get(self.key, {})

    def _save(self):
        self.session[self.key] = self.data
        self.session.modified = True

    def _product(self, product_id):
        product = self.products.filter(pk=product_id).first()
        if product is None:
            raise BusinessError("Produto não encontrado.")
        return product

    @staticmethod
    def _check_stock(product, quantity, enforce_stock):
        if enforce_stock and quantity > product.available_stock:
            raise BusinessError(
                f"Quantidade indisponível para '{product.name}'. Disponível: {max(product.available_stock, 0)}"
            )

    def add(self, product_id, quantity=1, enforce_stock=True):
        """Adding a product already in the cart merges the quantities"""
        quantity = int(quantity)
        if quantity <= 0:
            raise BusinessError("Quantidade deve ser maior que zero.")
        product = self._product(product_id)
        key = str(product.pk)
        new_quantity = self.data.get(key, 0) + quantity
        self._check_stock(product, new_quantity, enforce_stock)
        self.data[key] = new_quantity
        self._save()

    def update(self, product_id, quantity, enforce_stock=True):
        """Quantity <= 0 removes the item"""
        quantity = int(quantity)
        key = str(product_id)
        if quantity <= 0:
            self.remove(product_id)
            return
        if key not in self.data:
            raise BusinessError("Produto não está no carrinho.")
        self._check_stock(self._product(product_id), quantity, enforce_stock)
        self.data[key] = quantity
        self._save()

    def remove(self, product_id):
        if self.data.pop(str(product_id), None) is not None:
            self._save()

    def clear(self):
        self.data = {}
        self._save()

    def __len__(self):
        return sum(self.data.values())

    def is_empty(self):
        return not self.data

    def lines(self, customer_type=None):
        """Cart lines with live prices; products that left the catalog are pruned"""
        by_id = {str(p.pk): p for p in self.products.filter(pk__in=[int(pk) for pk in self.data])}
        stale = [key for key in self.data if key not in by_id]
        if stale:
            for key in stale:
                del self.data[key]
            self._save()

        result = []
        for key, quantity in self.data.items():
            product = by_id[key]
            unit_price = product.price_for(customer_type)
            result.append({
                'product': product,
                'quantity': quantity,
                'unit_price': unit_price,
                'line_total': unit_price * quantity,
            })
        return result

    def summary(self, customer_type=None):
        lines = self.lines(customer_type)
        return {
            'items': lines,
            'item_count': sum(line['quantity'] for line in lines),
            'subtotal': sum((line['line_total'] for line in lines), Decimal('0.00')),
        }

    def as_order_items(self, customer_type=None):
        return [{'product': line['product'], 'quantity': line['quantity']} for line in self.lines(customer_type)]
