"""
Core App - Store appearance, catalog content and audit trail
"""
from decimal import Decimal

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from apps.tenants.models import TenantMixin


class PrimaryColor(models.TextChoices):
    ORANGE = 'orange', 'Laranja'
    BLUE = 'blue', 'Azul'
    GREEN = 'green', 'Verde'
    PURPLE = 'purple', 'Roxo'
    RED = 'red', 'Vermelho'
    TEAL = 'teal', 'Turquesa'
    PINK = 'pink', 'Rosa'
    AMBER = 'amber', 'Âmbar'


# HSL triplets consumed by the storefront theme
COLOR_PALETTE = {
    'orange': '25 95% 53%',
    'blue': '217 91% 60%',
    'green': '142 71% 45%',
    'purple': '271 81% 56%',
    'red': '0 84% 60%',
    'teal': '173 80% 40%',
    'pink': '330 81% 60%',
    'amber': '38 92% 50%',
}


class DesignTemplate(models.TextChoices):
    CLASSIC = 'classic', 'Clássico'
    MODERN = 'modern', 'Moderno'
    MINIMAL = 'minimal', 'Minimalista'


class CategoryPosition(models.TextChoices):
    TOP = 'top', 'Topo'
    SIDEBAR = 'sidebar', 'Lateral'


class StoreSettings(TenantMixin):
    """White-label appearance and store-wide switches (one row per company)"""
    store_name = models.CharField(max_length=100, default="Minha Loja")
    store_cnpj = models.CharField(max_length=18, blank=True)
    store_phone = models.CharField(max_length=20, blank=True)
    store_email = models.EmailField(blank=True)
    store_address = models.CharField(max_length=255, blank=True)
    store_logo = models.URLField(blank=True)

    primary_color = models.CharField(max_length=10, choices=PrimaryColor.choices, default=PrimaryColor.ORANGE)
    design_template = models.CharField(max_length=10, choices=DesignTemplate.choices, default=DesignTemplate.CLASSIC)
    products_per_row = models.PositiveSmallIntegerField(
        default=4, validators=[MinValueValidator(2), MaxValueValidator(6)]
    )
    category_position = models.CharField(max_length=10, choices=CategoryPosition.choices, default=CategoryPosition.TOP)

    wholesale_mode = models.BooleanField(default=False, verbose_name="Modo Atacado")
    delivery_catalog_mode = models.BooleanField(default=False, verbose_name="Catálogo de Entrega (sem estoque)")

    # Fiado charges
    interest_rate_monthly = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('0'))
    late_fee_percent = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('0'))

    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Configuração da Loja"
        verbose_name_plural = "Configurações da Loja"
        constraints = [
            models.UniqueConstraint(fields=['tenant'], name='unique_store_settings_per_tenant'),
        ]

    def __str__(self):
        return f"Configurações de {self.store_name}"

    @classmethod
    def get_settings(cls, tenant):
        if not tenant:
            return None
        obj, created = cls.objects.get_or_create(
            tenant=tenant,
            defaults={'store_name': tenant.display_name, 'store_cnpj': tenant.cnpj or ''},
        )
        return obj

    @property
    def primary_color_hsl(self):
        return COLOR_PALETTE.get(self.primary_color, COLOR_PALETTE['orange'])


class CatalogSlide(TenantMixin):
    """Hero carousel slide on the storefront"""
    title = models.CharField(max_length=150, blank=True)
    subtitle = models.CharField(max_length=255, blank=True)
    button_text = models.CharField(max_length=50, blank=True)
    button_link = models.CharField(max_length=255, blank=True)
    image_url = models.URLField()
    mobile_image_url = models.URLField(blank=True)
    order = models.PositiveIntegerField(default=0)
    active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Slide do Catálogo"
        verbose_name_plural = "Slides do Catálogo"
        ordering = ['order', 'id']

    def __str__(self):
        return self.title or f"Slide {self.pk}"


class BannerPosition(models.TextChoices):
    TOPO = 'TOPO', 'Topo'
    MEIO = 'MEIO', 'Meio'
    RODAPE = 'RODAPE', 'Rodapé'
    LATERAL = 'LATERAL', 'Lateral'


class CatalogBanner(TenantMixin):
    title = models.CharField(max_length=150, blank=True)
    image_url = models.URLField(blank=True)
    link = models.CharField(max_length=255, blank=True)
    position = models.CharField(max_length=10, choices=BannerPosition.choices, default=BannerPosition.TOPO)
    background_color = models.CharField(max_length=20, default='#ffffff')
    text_color = models.CharField(max_length=20, default='#000000')
    order = models.PositiveIntegerField(default=0)
    active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Banner do Catálogo"
        verbose_name_plural = "Banners do Catálogo"
        ordering = ['position', 'order', 'id']

    def __str__(self):
        return f"{self.get_position_display()}: {self.title or self.pk}"


class VisualAuditLog(TenantMixin):
    """
    Stores snapshots of state changes for auditing.
    Tracks 'Before' and 'After' states for products, orders and credits.
    """
    entity_type = models.CharField(max_length=50, db_index=True)  # 'PRODUCT', 'ORDER', 'CREDIT'
    entity_id = models.CharField(max_length=100)

    action = models.CharField(max_length=20)  # 'CREATE', 'UPDATE', 'STATUS', 'DELETE'
    source = models.CharField(max_length=50, default='API')  # 'API', 'PDV', 'SITE', 'SYSTEM'

    before_state = models.JSONField(null=True, blank=True)
    after_state = models.JSONField(null=True, blank=True)
    diff = models.JSONField(null=True, blank=True)

    external_ref = models.CharField(max_length=100, blank=True, null=True)  # e.g. order number

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at', '-id']
        verbose_name = "Auditoria"
        verbose_name_plural = "Auditorias"

    def __str__(self):
        return f"{self.action} on {self.entity_type} ({self.entity_id}) at {self.created_at}"

    @classmethod
    def record(cls, tenant, entity_type, entity_id, action, before=None, after=None, user=None,
               source='API', external_ref=None):
        diff = None
        if before is not None and after is not None:
            diff = {
                key: {'from': before.get(key), 'to': value}
                for key, value in after.items()
                if before.get(key) != value
            }
        return cls.objects.create(
            tenant=tenant,
            entity_type=entity_type,
            entity_id=str(entity_id),
            action=action,
            source=source,
            before_state=before,
            after_state=after,
            diff=diff,
            external_ref=external_ref,
            user=user,
        )
