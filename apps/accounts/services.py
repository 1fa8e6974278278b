import logging

from django.contrib.auth import get_user_model
from django.db import transaction

from apps.core.exceptions import BusinessError
from apps.tenants.middleware import check_plan_limit

from .models import CustomerProfile, MembershipRole, PersonType, TenantMembership
from .validators import format_cnpj, format_cpf, is_valid_cnpj, is_valid_cpf

logger = logging.getLogger(__name__)

User = get_user_model()

MIN_PASSWORD_LENGTH = 6


def unique_username(email, suffix=None):
    """Username derived from the e-mail, suffixed on collision"""
    base = email.split('@')[0][:30] or 'usuario'
    username = base
    if suffix and User.objects.filter(username=username).exists():
        username = f"{base}_{suffix}"
    n = 2
    while User.objects.filter(username=username).exists():
        username = f"{base}_{n}"
        n += 1
    return username


def create_user(email, password, first_name='', last_name='', suffix=None):
    if len(password or '') < MIN_PASSWORD_LENGTH:
        raise BusinessError(f"Senha deve ter pelo menos {MIN_PASSWORD_LENGTH} caracteres.")
    return User.objects.create_user(
        username=unique_username(email, suffix),
        email=email,
        password=password,
        first_name=first_name,
        last_name=last_name,
    )


def clean_document(person_type, cpf='', cnpj=''):
    """Validates the document that matches the person type and returns it formatted"""
    if person_type == PersonType.PJ:
        if not is_valid_cnpj(cnpj):
            raise BusinessError("CNPJ inválido.")
        return '', format_cnpj(cnpj)
    if not is_valid_cpf(cpf):
        raise BusinessError("CPF inválido.")
    return format_cpf(cpf), ''


PROFILE_FIELDS = [
    'company_name', 'trade_name', 'state_registration', 'phone', 'cep', 'address',
    'number', 'complement', 'neighborhood', 'city', 'state', 'customer_type', 'notes',
]


class MembershipService:
    """Members of a company: staff created by admins and storefront customers"""

    @staticmethod
    def _save_profile(membership, profile_data):
        profile, _ = CustomerProfile.objects.get_or_create(membership=membership)
        if 'person_type' in profile_data or 'cpf' in profile_data or 'cnpj' in profile_data:
            person_type = profile_data.get('person_type', profile.person_type)
            profile.person_type = person_type
            profile.cpf, profile.cnpj = clean_document(
                person_type, profile_data.get('cpf', profile.cpf), profile_data.get('cnpj', profile.cnpj)
            )
        for field in PROFILE_FIELDS:
            if field in profile_data:
                setattr(profile, field, profile_data[field])
        profile.save()
        return profile

    @staticmethod
    @transaction.atomic
    def register_customer(tenant, email, password, first_name='', last_name='', profile=None):
        """
        Storefront self-registration: a CUSTOMER membership waiting for approval.
        An existing account may join another store after a password check.
        """
        email = email.strip().lower()
        user = User.objects.filter(email__iexact=email).order_by('id').first()
        if user is not None:
            if not user.check_password(password):
                raise BusinessError("E-mail já cadastrado. Informe a senha da sua conta para continuar.")
            if TenantMembership.objects.filter(user=user, tenant=tenant).exists():
                raise BusinessError("Você já possui cadastro nesta loja.")
        else:
            user = create_user(email, password, first_name, last_name, suffix=tenant.pk)

        membership = TenantMembership.objects.create(
            user=user, tenant=tenant, role=MembershipRole.CUSTOMER, approved=False,
        )
        MembershipService._save_profile(membership, profile or {})
        logger.info(f"Cliente {user.pk} cadastrado na loja {tenant.slug}, aguardando aprovação")
        return membership

    @staticmethod
    @transaction.atomic
    def create_member(tenant, email, password, role, first_name='', last_name='', profile=None):
        """Back-office creation of a staff member or an already approved customer"""
        if role == MembershipRole.OWNER:
            raise BusinessError("Não é possível criar outro proprietário.")
        if role != MembershipRole.CUSTOMER:
            check_plan_limit(tenant, 'users')

        email = email.strip().lower()
        user = User.objects.filter(email__iexact=email).order_by('id').first()
        if user is None:
            user = create_user(email, password, first_name, last_name, suffix=tenant.pk)
        elif TenantMembership.objects.filter(user=user, tenant=tenant).exists():
            raise BusinessError("Este usuário já é membro da empresa.")

        membership = TenantMembership.objects.create(user=user, tenant=tenant, role=role, approved=True)
        if profile or role == MembershipRole.CUSTOMER:
            MembershipService._save_profile(membership, profile or {})
        logger.info(f"Membro {user.pk} criado na empresa {tenant.pk} como {role}")
        return membership

    @staticmethod
    @transaction.atomic
    def update_member(membership, data, acting):
        """data: first_name, last_name, role, is_active, profile"""
        if 'role' in data and data['role'] != membership.role:
            if acting is not None and not acting.is_admin:
                raise BusinessError("Apenas administradores podem alterar papéis.")
            if data['role'] == MembershipRole.OWNER or membership.is_owner:
                raise BusinessError("O papel de proprietário não pode ser alterado pela API.")
            if membership.role == MembershipRole.CUSTOMER:
                check_plan_limit(membership.tenant, 'users')
            membership.role = data['role']

        if 'is_active' in data:
            if acting is not None and not acting.is_admin and not membership.is_customer:
                raise BusinessError("Apenas administradores podem ativar ou desativar membros da equipe.")
            if membership.is_owner and not data['is_active']:
                raise BusinessError("O proprietário não pode ser desativado.")
            membership.is_active = data['is_active']
        membership.save()

        user = membership.user
        for field in ('first_name', 'last_name'):
            if field in data:
                setattr(user, field, data[field])
        user.save()

        if 'profile' in data:
            MembershipService._save_profile(membership, data['profile'])
        return membership

    @staticmethod
    def deactivate(membership):
        if membership.is_owner:
            raise BusinessError("O proprietário não pode ser desativado.")
        membership.is_active = False
        membership.save(update_fields=['is_active'])
        logger.info(f"Membro {membership.user_id} desativado na empresa {membership.tenant_id}")

    @staticmethod
    def set_approval(membership, approved):
        if not membership.is_customer:
            raise BusinessError("Apenas cadastros de clientes passam por aprovação.")
        membership.approved = approved
        membership.save(update_fields=['approved'])
        logger.info(f"Cliente {membership.user_id} {'aprovado' if approved else 'reprovado'} na empresa {membership.tenant_id}")
        return membership
