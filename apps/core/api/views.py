from rest_framework import serializers, viewsets
from rest_framework.permissions import IsAuthenticated

from apps.accounts.permissions import HasModule
from apps.tenants.middleware import TenantRequired, resolve_tenant


class TenantSerializerMixin(metaclass=serializers.SerializerMetaclass):
    """
    Mixin to automatically handle tenant assignment during creation.
    """
    def create(self, validated_data):
        if 'tenant' not in validated_data:
            validated_data['tenant'] = resolve_tenant(self.context['request'])
        return super().create(validated_data)


class TenantScopedMixin:
    """Resolves the tenant for API views (JWT requests skip the middleware)"""
    permission_classes = [IsAuthenticated, TenantRequired, HasModule]
    required_modules = None
    write_modules = None

    def get_tenant(self):
        return resolve_tenant(self.request)

    def get_membership(self):
        self.get_tenant()
        return getattr(self.request, 'membership', None)


class BaseTenantViewSet(TenantScopedMixin, viewsets.ModelViewSet):
    """
    Base ViewSet that automatically filters querysets by the request's tenant.
    All API views for multi-tenant models should inherit from this.
    """

    def get_queryset(self):
        queryset = super().get_queryset()
        tenant = self.get_tenant()
        if tenant:
            return queryset.filter(tenant=tenant)
        return queryset.none()

    def perform_create(self, serializer):
        serializer.save(tenant=self.get_tenant())
