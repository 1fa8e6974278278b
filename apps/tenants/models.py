"""
Tenants App - Companies (stores) and Plan Management
"""
from datetime import timedelta

from django.db import models
from django.utils import timezone
from django.utils.text import slugify


class Plan(models.Model):
    """Subscription plans with limits"""
    PLAN_TYPES = [
        ('GRATUITO', 'Gratuito'),
        ('INICIAL', 'Inicial'),
        ('PROFISSIONAL', 'Profissional'),
        ('CORPORATIVO', 'Corporativo'),
    ]
    name = models.CharField(max_length=50, choices=PLAN_TYPES, unique=True)
    display_name = models.CharField(max_length=100, default="Plano")
    price = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    max_products = models.PositiveIntegerField(default=50, help_text="Limite de produtos cadastrados")
    max_users = models.PositiveIntegerField(default=3, help_text="Limite de usuários da equipe")
    features = models.TextField(blank=True, help_text="Lista de features separadas por vírgula")

    class Meta:
        verbose_name = "Plano"
        verbose_name_plural = "Planos"
        ordering = ['price']

    def __str__(self):
        return self.display_name

    @property
    def feature_list(self):
        return [f.strip() for f in self.features.split(',') if f.strip()]


class SubscriptionStatus(models.TextChoices):
    TRIAL = 'TRIAL', 'Em Teste'
    ACTIVE = 'ACTIVE', 'Ativo'
    SUSPENDED = 'SUSPENDED', 'Suspenso'
    CANCELLED = 'CANCELLED', 'Cancelado'


class ApprovalStatus(models.TextChoices):
    PENDENTE = 'PENDENTE', 'Pendente'
    APROVADO = 'APROVADO', 'Aprovado'
    REJEITADO = 'REJEITADO', 'Rejeitado'
    BLOQUEADO = 'BLOQUEADO', 'Bloqueado'


class Tenant(models.Model):
    """Company (store) entity for multi-tenancy"""
    name = models.CharField(max_length=100, verbose_name="Razão Social")
    trade_name = models.CharField(max_length=100, blank=True, verbose_name="Nome Fantasia")
    cnpj = models.CharField(max_length=18, unique=True, blank=True, null=True, verbose_name="CNPJ", help_text="XX.XXX.XXX/XXXX-XX")
    slug = models.SlugField(max_length=100, unique=True, blank=True)
    email = models.EmailField(blank=True, verbose_name="E-mail")
    phone = models.CharField(max_length=20, blank=True, verbose_name="Telefone")
    city = models.CharField(max_length=100, blank=True, verbose_name="Cidade")
    state = models.CharField(max_length=2, blank=True, verbose_name="UF")
    plan = models.ForeignKey(Plan, on_delete=models.SET_NULL, null=True, blank=True, related_name='tenants')
    subscription_status = models.CharField(
        max_length=20, choices=SubscriptionStatus.choices, default=SubscriptionStatus.TRIAL,
        verbose_name="Status da Assinatura"
    )
    approval_status = models.CharField(
        max_length=20, choices=ApprovalStatus.choices, default=ApprovalStatus.APROVADO,
        verbose_name="Status de Aprovação"
    )
    trial_ends_at = models.DateTimeField(null=True, blank=True, verbose_name="Fim do Período de Teste")
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Empresa"
        verbose_name_plural = "Empresas"
        ordering = ['name']

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = self._unique_slug()
        if not self.pk and not self.trial_ends_at:
            self.trial_ends_at = timezone.now() + timedelta(days=14)
        super().save(*args, **kwargs)

    def _unique_slug(self):
        base = slugify(self.trade_name or self.name) or 'loja'
        slug, n = base, 2
        while Tenant.objects.filter(slug=slug).exclude(pk=self.pk).exists():
            slug = f"{base}-{n}"
            n += 1
        return slug

    def __str__(self):
        return self.trade_name or self.name

    @property
    def display_name(self):
        return self.trade_name or self.name

    @property
    def is_trial_expired(self):
        if self.subscription_status == SubscriptionStatus.TRIAL and self.trial_ends_at:
            return timezone.now() > self.trial_ends_at
        return False

    @property
    def is_blocked(self):
        return (
            not self.is_active
            or self.approval_status in (ApprovalStatus.BLOQUEADO, ApprovalStatus.REJEITADO)
            or self.subscription_status in (SubscriptionStatus.SUSPENDED, SubscriptionStatus.CANCELLED)
        )

    @property
    def products_count(self):
        from apps.products.models import Product
        return Product.objects.filter(tenant=self).count()

    @property
    def users_count(self):
        """Active staff members (customers don't count against the plan)"""
        from apps.accounts.models import MembershipRole
        return self.memberships.filter(is_active=True).exclude(role=MembershipRole.CUSTOMER).count()

    @property
    def products_limit_reached(self):
        if self.plan and self.plan.max_products:
            return self.products_count >= self.plan.max_products
        return False

    @property
    def users_limit_reached(self):
        if self.plan and self.plan.max_users:
            return self.users_count >= self.plan.max_users
        return False


class TenantMixin(models.Model):
    """Abstract base model for tenant-scoped entities"""
    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, verbose_name="Empresa")

    class Meta:
        abstract = True
