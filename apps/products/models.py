"""
Products App - Catalog (categories, brands, products)
"""
from decimal import Decimal

from django.db import models
from django.utils.text import slugify

from apps.tenants.models import TenantMixin


class Category(TenantMixin):
    """Product category, optionally nested, optionally hidden from retail viewers"""
    name = models.CharField(max_length=100)
    slug = models.SlugField(max_length=120, blank=True)
    parent = models.ForeignKey('self', on_delete=models.SET_NULL, null=True, blank=True, related_name='children')
    hide_from_retail = models.BooleanField(
        default=False, verbose_name="Ocultar do Varejo",
        help_text="Visível apenas para clientes de atacado/distribuidores"
    )
    sort_order = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)

    class Meta:
        verbose_name = "Categoria"
        verbose_name_plural = "Categorias"
        unique_together = ['tenant', 'slug']
        ordering = ['sort_order', 'name']

    def __str__(self):
        return f"{self.parent.name} > {self.name}" if self.parent_id else self.name

    def save(self, *args, **kwargs):
        if not self.slug:
            base = slugify(self.name) or 'categoria'
            slug, n = base, 2
            while Category.objects.filter(tenant_id=self.tenant_id, slug=slug).exclude(pk=self.pk).exists():
                slug = f"{base}-{n}"
                n += 1
            self.slug = slug
        super().save(*args, **kwargs)

    def descendant_ids(self):
        """This category plus every subcategory below it"""
        ids = [self.pk]
        frontier = [self.pk]
        while frontier:
            frontier = list(
                Category.objects.filter(tenant_id=self.tenant_id, parent_id__in=frontier).values_list('pk', flat=True)
            )
            frontier = [pk for pk in frontier if pk not in ids]
            ids.extend(frontier)
        return ids


class Brand(TenantMixin):
    """Product brand/manufacturer"""
    name = models.CharField(max_length=100)

    class Meta:
        verbose_name = "Marca"
        verbose_name_plural = "Marcas"
        unique_together = ['tenant', 'name']
        ordering = ['name']

    def __str__(self):
        return self.name


class ProductStatus(models.TextChoices):
    ATIVO = 'ATIVO', 'Ativo'
    INATIVO = 'INATIVO', 'Inativo'
    RASCUNHO = 'RASCUNHO', 'Rascunho'


class Product(TenantMixin):
    """
    Produto do catálogo.
    `stock` é o saldo físico, `reserved_stock` o que está comprometido em pedidos gerados.
    Ambos só mudam via StockService (lockdown no save).
    """
    sku = models.CharField(max_length=50, blank=True, null=True, verbose_name="SKU")
    _allow_stock_change = False  # Flag interna para permitir alteração de estoque via StockService
    name = models.CharField(max_length=255, verbose_name="Nome do Produto")
    description = models.TextField(blank=True, verbose_name="Descrição")
    category = models.ForeignKey('Category', on_delete=models.SET_NULL, null=True, blank=True, related_name='products')
    brand = models.ForeignKey('Brand', on_delete=models.SET_NULL, null=True, blank=True, related_name='products')
    unit = models.CharField(max_length=10, default='UN', verbose_name="Unidade")
    gtin = models.CharField(max_length=14, blank=True, verbose_name="GTIN/EAN")

    price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'), verbose_name="Preço Varejo")
    wholesale_price = models.DecimalField(
        max_digits=12, decimal_places=2, null=True, blank=True, verbose_name="Preço Atacado"
    )
    cost = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True, verbose_name="Custo")

    stock = models.IntegerField(default=0, verbose_name="Estoque")
    reserved_stock = models.IntegerField(default=0, verbose_name="Estoque Reservado")
    min_stock = models.IntegerField(default=0, verbose_name="Estoque Mínimo")
    max_stock = models.IntegerField(null=True, blank=True, verbose_name="Estoque Máximo")

    image_url = models.URLField(blank=True, verbose_name="Imagem Principal")
    images = models.JSONField(default=list, blank=True, verbose_name="Galeria")
    featured = models.BooleanField(default=False, verbose_name="Destaque")
    status = models.CharField(max_length=10, choices=ProductStatus.choices, default=ProductStatus.ATIVO)
    weight = models.DecimalField(max_digits=10, decimal_places=3, null=True, blank=True, verbose_name="Peso (kg)")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Produto"
        verbose_name_plural = "Produtos"
        unique_together = ['tenant', 'sku']
        ordering = ['name']

    def generate_sku(self):
        """Gera SKU padronizado: [CAT]-[ID]"""
        cat_code = "GER"
        if self.category:
            cat_code = "".join(filter(str.isalnum, self.category.name)).upper()[:3] or "GER"
        return f"{cat_code}-{self.id:04d}"

    def save(self, *args, **kwargs):
        is_new = self._state.adding

        # LOCKDOWN: saldo e reserva só mudam com a flag do StockService
        if not is_new and not getattr(self, '_allow_stock_change', False):
            current = Product.objects.filter(pk=self.pk).values('stock', 'reserved_stock').first()
            if current:
                self.stock = current['stock']
                self.reserved_stock = current['reserved_stock']

        if self.sku is not None:
            self.sku = self.sku.strip() or None

        super().save(*args, **kwargs)
        if not self.sku:
            self.sku = self.generate_sku()
            Product.objects.filter(pk=self.pk).update(sku=self.sku)

    def __str__(self):
        return f"{self.sku} - {self.name}" if self.sku else self.name

    @property
    def available_stock(self):
        return self.stock - self.reserved_stock

    @property
    def is_low_stock(self):
        return self.stock <= self.min_stock

    @property
    def is_active(self):
        return self.status == ProductStatus.ATIVO

    def price_for(self, customer_type=None):
        """Wholesale customers pay the wholesale price when one is set"""
        if customer_type in ('ATACADO', 'DISTRIBUIDOR') and self.wholesale_price is not None:
            return self.wholesale_price
        return self.price
