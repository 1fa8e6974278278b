from django.http import Http404
from rest_framework import permissions, viewsets
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.accounts.permissions import IsStaffMember, IsTenantAdmin
from apps.tenants.middleware import TenantRequired

from .api.views import BaseTenantViewSet, TenantScopedMixin
from .models import CatalogBanner, CatalogSlide, VisualAuditLog
from .serializers import (
    AuditLogSerializer,
    CatalogBannerSerializer,
    CatalogSlideSerializer,
    SettingValueSerializer,
)
from .services import AppearanceService


class CanEditSettings(permissions.BasePermission):
    """Reads for any staff member; writes for admins or the settings module"""
    message = "Você não tem permissão para alterar as configurações."

    def has_permission(self, request, view):
        if request.method in permissions.SAFE_METHODS or request.user.is_superuser:
            return True
        membership = getattr(request, 'membership', None)
        return bool(membership and (membership.is_admin or membership.has_module('settings')))


class SettingsView(TenantScopedMixin, APIView):
    permission_classes = [IsAuthenticated, TenantRequired, IsStaffMember]

    def get(self, request):
        return Response(AppearanceService.all_settings(self.get_tenant()))


class SettingDetailView(TenantScopedMixin, APIView):
    permission_classes = [IsAuthenticated, TenantRequired, IsStaffMember, CanEditSettings]

    def get(self, request, key):
        try:
            value = AppearanceService.get_setting(self.get_tenant(), key)
        except KeyError:
            raise Http404(f"Configuração '{key}' não encontrada.")
        return Response({'key': key, 'value': value})

    def post(self, request, key):
        serializer = SettingValueSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            value = AppearanceService.set_setting(
                self.get_tenant(), key, serializer.validated_data['value'], user=request.user
            )
        except KeyError:
            raise Http404(f"Configuração '{key}' não encontrada.")
        return Response({'key': key, 'value': value})


class CatalogSlideViewSet(BaseTenantViewSet):
    queryset = CatalogSlide.objects.all()
    serializer_class = CatalogSlideSerializer
    required_modules = ['settings']


class CatalogBannerViewSet(BaseTenantViewSet):
    queryset = CatalogBanner.objects.all()
    serializer_class = CatalogBannerSerializer
    required_modules = ['settings']

    def get_queryset(self):
        qs = super().get_queryset()
        position = self.request.query_params.get('position')
        if position:
            qs = qs.filter(position=position.upper())
        return qs


class AuditLogViewSet(TenantScopedMixin, viewsets.ReadOnlyModelViewSet):
    """Change history; admins only"""
    serializer_class = AuditLogSerializer
    permission_classes = [IsAuthenticated, TenantRequired, IsTenantAdmin]

    def get_queryset(self):
        qs = VisualAuditLog.objects.filter(tenant=self.get_tenant()).select_related('user')
        params = self.request.query_params
        if params.get('entity_type'):
            qs = qs.filter(entity_type=params['entity_type'].upper())
        if params.get('entity_id'):
            qs = qs.filter(entity_id=params['entity_id'])
        if params.get('action'):
            qs = qs.filter(action=params['action'].upper())
        return qs
