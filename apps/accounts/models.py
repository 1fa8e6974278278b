"""
Accounts App - TenantMembership, module permissions, customer profiles and invites

A user can belong to multiple companies, with a role in each:
- Staff roles (OWNER, ADMIN, EMPLOYEE, SALES) operate the back-office
- CUSTOMER buys through the storefront and needs approval
"""
import uuid
from datetime import timedelta

from django.conf import settings
from django.db import models, transaction
from django.utils import timezone

from apps.core.exceptions import BusinessError
from apps.tenants.models import Tenant


class MembershipRole(models.TextChoices):
    OWNER = 'OWNER', 'Proprietário'
    ADMIN = 'ADMIN', 'Administrador'
    EMPLOYEE = 'EMPLOYEE', 'Funcionário'
    SALES = 'SALES', 'Vendedor'
    CUSTOMER = 'CUSTOMER', 'Cliente'


class SystemModule(models.TextChoices):
    DASHBOARD = 'dashboard', 'Dashboard'
    USERS = 'users', 'Usuários'
    SALES_CATALOG = 'sales_catalog', 'Catálogo de Vendas'
    PRODUCTS = 'products', 'Produtos'
    ORDERS = 'orders', 'Pedidos'
    CREDITS = 'credits', 'Fiado'
    SETTINGS = 'settings', 'Configurações'
    PURCHASES = 'purchases', 'Compras'


ROLE_DEFAULT_MODULES = {
    MembershipRole.OWNER: [m.value for m in SystemModule],
    MembershipRole.ADMIN: [m.value for m in SystemModule],
    MembershipRole.EMPLOYEE: ['dashboard', 'products', 'orders', 'users'],
    MembershipRole.SALES: ['sales_catalog', 'orders', 'users', 'credits'],
    MembershipRole.CUSTOMER: ['sales_catalog', 'orders'],
}

STAFF_ROLES = [MembershipRole.OWNER, MembershipRole.ADMIN, MembershipRole.EMPLOYEE, MembershipRole.SALES]


class TenantMembership(models.Model):
    """
    Links a User to a Tenant with a specific role.
    """
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='memberships'
    )
    tenant = models.ForeignKey(
        Tenant,
        on_delete=models.CASCADE,
        related_name='memberships'
    )
    role = models.CharField(
        max_length=20,
        choices=MembershipRole.choices,
        default=MembershipRole.EMPLOYEE,
        verbose_name="Papel"
    )
    is_active = models.BooleanField(default=True)
    approved = models.BooleanField(default=True, verbose_name="Aprovado")
    joined_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Membro da Empresa"
        verbose_name_plural = "Membros das Empresas"
        unique_together = ['user', 'tenant']
        ordering = ['-joined_at']

    def __str__(self):
        return f"{self.user.username} @ {self.tenant} ({self.get_role_display()})"

    @property
    def is_owner(self):
        return self.role == MembershipRole.OWNER

    @property
    def is_admin(self):
        return self.role in [MembershipRole.OWNER, MembershipRole.ADMIN]

    @property
    def is_staff_member(self):
        return self.role in STAFF_ROLES

    @property
    def is_customer(self):
        return self.role == MembershipRole.CUSTOMER

    @property
    def can_manage_users(self):
        return self.is_admin

    @property
    def can_manage_billing(self):
        return self.is_owner

    @property
    def customer_type(self):
        profile = getattr(self, 'customer_profile', None)
        return profile.customer_type if profile else CustomerType.VAREJO

    @property
    def allowed_modules(self):
        """Explicit permissions replace the role defaults"""
        explicit = [p.module for p in self.module_permissions.all()]
        if explicit:
            return sorted(explicit)
        return list(ROLE_DEFAULT_MODULES.get(self.role, []))

    def has_module(self, module):
        if self.is_owner:
            return True
        return module in self.allowed_modules

    @transaction.atomic
    def set_modules(self, modules):
        """Replace all explicit module permissions; empty list resets to role defaults"""
        valid = set(SystemModule.values)
        unknown = [m for m in modules if m not in valid]
        if unknown:
            raise BusinessError(f"Módulo(s) inválido(s): {', '.join(unknown)}")
        self.module_permissions.all().delete()
        ModulePermission.objects.bulk_create([
            ModulePermission(membership=self, module=m) for m in sorted(set(modules))
        ])
        return sorted(set(modules)) or list(ROLE_DEFAULT_MODULES.get(self.role, []))


class ModulePermission(models.Model):
    """Explicit module access granted to a membership"""
    membership = models.ForeignKey(TenantMembership, on_delete=models.CASCADE, related_name='module_permissions')
    module = models.CharField(max_length=30, choices=SystemModule.choices)

    class Meta:
        verbose_name = "Permissão de Módulo"
        verbose_name_plural = "Permissões de Módulo"
        unique_together = ['membership', 'module']

    def __str__(self):
        return f"{self.membership} -> {self.module}"


class PersonType(models.TextChoices):
    PF = 'PF', 'Pessoa Física'
    PJ = 'PJ', 'Pessoa Jurídica'


class CustomerType(models.TextChoices):
    VAREJO = 'VAREJO', 'Varejo'
    ATACADO = 'ATACADO', 'Atacado'
    DISTRIBUIDOR = 'DISTRIBUIDOR', 'Distribuidor'


class CustomerProfile(models.Model):
    """Registration data for a customer (or staff) inside one company"""
    membership = models.OneToOneField(TenantMembership, on_delete=models.CASCADE, related_name='customer_profile')
    person_type = models.CharField(max_length=2, choices=PersonType.choices, default=PersonType.PF)
    cpf = models.CharField(max_length=14, blank=True, verbose_name="CPF")
    cnpj = models.CharField(max_length=18, blank=True, verbose_name="CNPJ")
    company_name = models.CharField(max_length=150, blank=True, verbose_name="Razão Social")
    trade_name = models.CharField(max_length=150, blank=True, verbose_name="Nome Fantasia")
    state_registration = models.CharField(max_length=30, blank=True, verbose_name="Inscrição Estadual")
    phone = models.CharField(max_length=20, blank=True, verbose_name="Telefone")
    cep = models.CharField(max_length=9, blank=True, verbose_name="CEP")
    address = models.CharField(max_length=200, blank=True, verbose_name="Endereço")
    number = models.CharField(max_length=20, blank=True, verbose_name="Número")
    complement = models.CharField(max_length=100, blank=True, verbose_name="Complemento")
    neighborhood = models.CharField(max_length=100, blank=True, verbose_name="Bairro")
    city = models.CharField(max_length=100, blank=True, verbose_name="Cidade")
    state = models.CharField(max_length=2, blank=True, verbose_name="UF")
    customer_type = models.CharField(
        max_length=20, choices=CustomerType.choices, default=CustomerType.VAREJO,
        verbose_name="Tipo de Cliente"
    )
    notes = models.TextField(blank=True, verbose_name="Observações")

    class Meta:
        verbose_name = "Cadastro de Cliente"
        verbose_name_plural = "Cadastros de Clientes"

    def __str__(self):
        return f"{self.display_name} ({self.get_customer_type_display()})"

    @property
    def document(self):
        return self.cnpj if self.person_type == PersonType.PJ else self.cpf

    @property
    def display_name(self):
        if self.person_type == PersonType.PJ and (self.trade_name or self.company_name):
            return self.trade_name or self.company_name
        return self.membership.user.get_full_name() or self.membership.user.username

    def shipping_address(self):
        return {
            'cep': self.cep,
            'address': self.address,
            'number': self.number,
            'complement': self.complement,
            'neighborhood': self.neighborhood,
            'city': self.city,
            'state': self.state,
        }


class TenantInvite(models.Model):
    """
    Invite to join a tenant. Single-use, expires in 7 days.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant = models.ForeignKey(
        Tenant,
        on_delete=models.CASCADE,
        related_name='invites'
    )
    email = models.EmailField(verbose_name="E-mail do Convidado")
    role = models.CharField(
        max_length=20,
        choices=MembershipRole.choices,
        default=MembershipRole.EMPLOYEE
    )
    invited_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name='sent_invites'
    )
    token = models.CharField(max_length=64, unique=True, editable=False)
    created_at = models.DateTimeField(auto_now_add=True)
    expires_at = models.DateTimeField()
    accepted_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        verbose_name = "Convite"
        verbose_name_plural = "Convites"
        ordering = ['-created_at']

    def save(self, *args, **kwargs):
        if not self.token:
            self.token = uuid.uuid4().hex
        if not self.expires_at:
            self.expires_at = timezone.now() + timedelta(days=7)
        super().save(*args, **kwargs)

    def __str__(self):
        return f"Convite para {self.email} em {self.tenant}"

    @property
    def is_valid(self):
        return not self.accepted_at and timezone.now() <= self.expires_at

    @transaction.atomic
    def accept(self, user):
        """Accept invite and create membership"""
        if not self.is_valid:
            raise BusinessError("Convite inválido ou expirado")

        if TenantMembership.objects.filter(user=user, tenant=self.tenant).exists():
            raise BusinessError("Usuário já é membro desta empresa")

        membership = TenantMembership.objects.create(
            user=user,
            tenant=self.tenant,
            role=self.role,
            approved=True,
        )

        self.accepted_at = timezone.now()
        self.save()

        return membership
