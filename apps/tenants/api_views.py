from django.db.models import Q
from django.shortcuts import get_object_or_404
from rest_framework import generics, mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import SAFE_METHODS, AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.tokens import RefreshToken

from apps.accounts.permissions import IsStaffMember, IsSuperUser, IsTenantAdmin, IsTenantOwner
from apps.core.api.views import TenantScopedMixin
from apps.reports.services import PlatformMetricsService

from .middleware import TenantRequired
from .models import Plan, Tenant
from .serializers import PlanSerializer, SignupSerializer, TenantSerializer
from .services import BillingService, PlatformAdminService, SignupService


class SignupView(APIView):
    """Creates the company with its owner and returns JWT tokens"""
    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request):
        serializer = SignupSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        membership = SignupService.signup(
            data['company_name'],
            data['email'],
            data['password'],
            first_name=data['first_name'],
            last_name=data['last_name'],
            cnpj=data['cnpj'],
            plan=data['plan'] or None,
        )
        refresh = RefreshToken.for_user(membership.user)
        return Response({
            'refresh': str(refresh),
            'access': str(refresh.access_token),
            'company': TenantSerializer(membership.tenant).data,
        }, status=status.HTTP_201_CREATED)


class CompanyView(TenantScopedMixin, generics.RetrieveUpdateAPIView):
    """Profile of the active company"""
    serializer_class = TenantSerializer
    permission_classes = [IsAuthenticated, TenantRequired, IsStaffMember]

    def get_permissions(self):
        permissions = super().get_permissions()
        if self.request.method not in SAFE_METHODS:
            permissions.append(IsTenantAdmin())
        return permissions

    def get_object(self):
        return self.get_tenant()


class BillingView(TenantScopedMixin, APIView):
    permission_classes = [IsAuthenticated, TenantRequired, IsStaffMember]
    # Suspended companies must still reach billing to regularize
    allow_blocked_tenant = True

    def get(self, request):
        tenant = self.get_tenant()
        return Response({
            'current_plan': PlanSerializer(tenant.plan).data if tenant.plan else None,
            'subscription_status': tenant.subscription_status,
            'trial_ends_at': tenant.trial_ends_at,
            'is_trial_expired': tenant.is_trial_expired,
            'products_count': tenant.products_count,
            'users_count': tenant.users_count,
            'plans': PlanSerializer(Plan.objects.all().order_by('price'), many=True).data,
        })


class BillingUpgradeView(TenantScopedMixin, APIView):
    permission_classes = [IsAuthenticated, TenantRequired, IsTenantOwner]
    allow_blocked_tenant = True

    def post(self, request, plan_id):
        plan = get_object_or_404(Plan, pk=plan_id)
        tenant = BillingService.upgrade(self.get_tenant(), plan)
        return Response(TenantSerializer(tenant).data)


class SuperAdminCompanyViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """Admin panel for managing all tenants - superuser only"""
    serializer_class = TenantSerializer
    permission_classes = [IsAuthenticated, IsSuperUser]

    def get_queryset(self):
        tenants = Tenant.objects.select_related('plan').order_by('-created_at')
        params = self.request.query_params

        q = params.get('q', '')
        if q:
            tenants = tenants.filter(Q(name__icontains=q) | Q(trade_name__icontains=q) | Q(cnpj__icontains=q))
        if params.get('status'):
            tenants = tenants.filter(Q(subscription_status=params['status']) | Q(approval_status=params['status']))
        if params.get('plan'):
            tenants = tenants.filter(plan_id=params['plan'])
        return tenants

    @action(detail=True, methods=['post'])
    def block(self, request, pk=None):
        return Response(TenantSerializer(PlatformAdminService.toggle_block(self.get_object())).data)

    @action(detail=True, methods=['post'])
    def approve(self, request, pk=None):
        return Response(TenantSerializer(PlatformAdminService.approve(self.get_object())).data)


class SuperAdminMetricsView(APIView):
    permission_classes = [IsAuthenticated, IsSuperUser]

    def get(self, request):
        return Response(PlatformMetricsService.metrics())
