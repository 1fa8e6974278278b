from django.db.models import Q
from django.http import Http404
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import SAFE_METHODS, AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.core.api.views import TenantScopedMixin
from apps.core.exceptions import BusinessError
from apps.storefront.services import CatalogService
from apps.tenants.middleware import TenantRequired, attach_tenant, check_plan_limit
from apps.tenants.serializers import TenantSerializer

from .models import MembershipRole, TenantInvite, TenantMembership
from .permissions import HasModule, IsStaffMember, IsTenantAdmin
from .serializers import (
    CustomerRegisterSerializer,
    InviteSerializer,
    MemberCreateSerializer,
    MembershipSerializer,
    MemberUpdateSerializer,
    ModulesSerializer,
    SwitchCompanySerializer,
    UserSerializer,
)
from .services import MembershipService


class MeView(APIView):
    """Current user, active company and what they may do there"""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        membership = attach_tenant(request)
        memberships = TenantMembership.objects.filter(
            user=request.user, is_active=True
        ).select_related('tenant').order_by('joined_at', 'pk')

        return Response({
            'user': UserSerializer(request.user).data,
            'company': TenantSerializer(membership.tenant).data if membership else None,
            'role': membership.role if membership else None,
            'approved': membership.approved if membership else None,
            'modules': membership.allowed_modules if membership else [],
            'memberships': [
                {
                    'tenant_id': m.tenant_id,
                    'tenant_name': m.tenant.display_name,
                    'slug': m.tenant.slug,
                    'role': m.role,
                    'approved': m.approved,
                }
                for m in memberships
            ],
        })


class SwitchCompanyView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = SwitchCompanySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        tenant_id = serializer.validated_data['tenant_id']

        membership = TenantMembership.objects.filter(
            user=request.user, tenant_id=tenant_id, is_active=True, tenant__is_active=True
        ).select_related('tenant').first()
        if membership is None:
            raise Http404("Você não tem acesso a esta empresa.")

        request.session['active_tenant_id'] = tenant_id
        return Response({'tenant_id': tenant_id, 'tenant_name': membership.tenant.display_name})


class MemberViewSet(TenantScopedMixin, mixins.ListModelMixin, mixins.RetrieveModelMixin,
                    mixins.DestroyModelMixin, viewsets.GenericViewSet):
    """
    Members of the active company (staff and customers).
    Resource id is the membership id.
    """
    serializer_class = MembershipSerializer
    permission_classes = [IsAuthenticated, TenantRequired, IsStaffMember, HasModule]
    required_modules = ['users']

    def get_queryset(self):
        qs = TenantMembership.objects.filter(tenant=self.get_tenant()).select_related(
            'user', 'customer_profile'
        ).prefetch_related('module_permissions').order_by('-joined_at')
        params = self.request.query_params

        if params.get('role'):
            qs = qs.filter(role=params['role'])
        if params.get('approved') in ('true', 'false'):
            qs = qs.filter(approved=params['approved'] == 'true')
        search = params.get('search')
        if search:
            qs = qs.filter(
                Q(user__first_name__icontains=search) | Q(user__last_name__icontains=search)
                | Q(user__email__icontains=search) | Q(customer_profile__cpf__icontains=search)
                | Q(customer_profile__cnpj__icontains=search)
                | Q(customer_profile__company_name__icontains=search)
            )
        return qs

    def _require_admin(self):
        membership = self.get_membership()
        if not (membership and membership.is_admin) and not self.request.user.is_superuser:
            raise PermissionDenied("Apenas administradores podem gerenciar papéis e permissões.")

    def create(self, request, *args, **kwargs):
        serializer = MemberCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        if data['role'] != MembershipRole.CUSTOMER:
            self._require_admin()

        membership = MembershipService.create_member(
            self.get_tenant(),
            data['email'],
            data['password'],
            data['role'],
            first_name=data['first_name'],
            last_name=data['last_name'],
            profile=data.get('profile'),
        )
        return Response(MembershipSerializer(membership).data, status=status.HTTP_201_CREATED)

    def partial_update(self, request, *args, **kwargs):
        membership = self.get_object()
        serializer = MemberUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        if 'role' in data or ('is_active' in data and not membership.is_customer):
            self._require_admin()
        membership = MembershipService.update_member(membership, data, self.get_membership())
        return Response(MembershipSerializer(membership).data)

    def perform_destroy(self, instance):
        if not instance.is_customer:
            self._require_admin()
        MembershipService.deactivate(instance)

    @action(detail=True, methods=['post'])
    def approve(self, request, pk=None):
        membership = MembershipService.set_approval(self.get_object(), True)
        return Response(MembershipSerializer(membership).data)

    @action(detail=True, methods=['post'])
    def reject(self, request, pk=None):
        membership = MembershipService.set_approval(self.get_object(), False)
        return Response(MembershipSerializer(membership).data)

    @action(detail=True, methods=['get', 'put'], url_path='permissions')
    def modules(self, request, pk=None):
        membership = self.get_object()
        if request.method in SAFE_METHODS:
            return Response({'role': membership.role, 'modules': membership.allowed_modules})

        self._require_admin()
        if membership.is_owner:
            raise BusinessError("As permissões do proprietário não podem ser alteradas.")
        serializer = ModulesSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        modules = membership.set_modules(serializer.validated_data['modules'])
        return Response({'role': membership.role, 'modules': modules})


class InviteViewSet(TenantScopedMixin, mixins.ListModelMixin, mixins.CreateModelMixin,
                    mixins.DestroyModelMixin, viewsets.GenericViewSet):
    serializer_class = InviteSerializer
    permission_classes = [IsAuthenticated, TenantRequired, IsTenantAdmin]

    def get_queryset(self):
        return TenantInvite.objects.filter(tenant=self.get_tenant())

    def perform_create(self, serializer):
        tenant = self.get_tenant()
        check_plan_limit(tenant, 'users')
        email = serializer.validated_data['email'].strip().lower()

        if TenantMembership.objects.filter(user__email__iexact=email, tenant=tenant).exists():
            raise BusinessError("Este usuário já é membro da empresa.")
        if TenantInvite.objects.filter(
            email__iexact=email, tenant=tenant, accepted_at__isnull=True, expires_at__gt=timezone.now()
        ).exists():
            raise BusinessError("Já existe um convite pendente para este e-mail.")

        serializer.save(tenant=tenant, email=email, invited_by=self.request.user)


class AcceptInviteView(APIView):
    """Accept an invitation to join a company"""
    permission_classes = [IsAuthenticated]

    def post(self, request, token):
        invite = get_object_or_404(TenantInvite, token=token)
        if invite.email.lower() != (request.user.email or '').lower():
            raise BusinessError(f"Este convite foi enviado para {invite.email}.")
        if invite.role != MembershipRole.CUSTOMER:
            check_plan_limit(invite.tenant, 'users')

        membership = invite.accept(request.user)
        request.session['active_tenant_id'] = membership.tenant_id
        return Response(MembershipSerializer(membership).data, status=status.HTTP_201_CREATED)


class CustomerRegisterView(APIView):
    """Storefront registration; the store approves the customer afterwards"""
    permission_classes = [AllowAny]

    def post(self, request, slug):
        tenant = CatalogService.get_store(slug)
        if tenant is None:
            raise Http404("Loja não encontrada.")

        serializer = CustomerRegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        membership = MembershipService.register_customer(
            tenant,
            data['email'],
            data['password'],
            first_name=data['first_name'],
            last_name=data['last_name'],
            profile=serializer.profile_data(),
        )
        return Response({
            'id': membership.pk,
            'approved': membership.approved,
            'message': "Cadastro recebido! Aguarde a aprovação da loja.",
        }, status=status.HTTP_201_CREATED)
