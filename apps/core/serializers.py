from rest_framework import serializers

from apps.core.api.views import TenantSerializerMixin

from .models import CatalogBanner, CatalogSlide, VisualAuditLog


class SettingValueSerializer(serializers.Serializer):
    value = serializers.JSONField()


class CatalogSlideSerializer(TenantSerializerMixin, serializers.ModelSerializer):
    class Meta:
        model = CatalogSlide
        fields = [
            'id', 'title', 'subtitle', 'button_text', 'button_link', 'image_url',
            'mobile_image_url', 'order', 'active', 'created_at',
        ]
        read_only_fields = ['created_at']


class CatalogBannerSerializer(TenantSerializerMixin, serializers.ModelSerializer):
    class Meta:
        model = CatalogBanner
        fields = [
            'id', 'title', 'image_url', 'link', 'position', 'background_color',
            'text_color', 'order', 'active', 'created_at',
        ]
        read_only_fields = ['created_at']


class AuditLogSerializer(serializers.ModelSerializer):
    user_name = serializers.SerializerMethodField()

    class Meta:
        model = VisualAuditLog
        fields = [
            'id', 'entity_type', 'entity_id', 'action', 'source', 'before_state',
            'after_state', 'diff', 'external_ref', 'user', 'user_name', 'created_at',
        ]
        read_only_fields = fields

    def get_user_name(self, obj):
        if obj.user is None:
            return None
        return obj.user.get_full_name() or obj.user.username
