from django.contrib import admin

from .models import CatalogBanner, CatalogSlide, StoreSettings, VisualAuditLog


@admin.register(StoreSettings)
class StoreSettingsAdmin(admin.ModelAdmin):
    list_display = ['tenant', 'store_name', 'primary_color', 'design_template', 'wholesale_mode', 'delivery_catalog_mode']
    list_filter = ['design_template', 'wholesale_mode', 'delivery_catalog_mode']


@admin.register(CatalogSlide)
class CatalogSlideAdmin(admin.ModelAdmin):
    list_display = ['title', 'tenant', 'order', 'active']
    list_filter = ['active', 'tenant']
    list_editable = ['order', 'active']


@admin.register(CatalogBanner)
class CatalogBannerAdmin(admin.ModelAdmin):
    list_display = ['title', 'tenant', 'position', 'order', 'active']
    list_filter = ['position', 'active', 'tenant']
    list_editable = ['order', 'active']


@admin.register(VisualAuditLog)
class VisualAuditLogAdmin(admin.ModelAdmin):
    list_display = ['created_at', 'tenant', 'entity_type', 'entity_id', 'action', 'source', 'user']
    list_filter = ['entity_type', 'action', 'source', 'tenant']
    search_fields = ['entity_id', 'external_ref']
    date_hierarchy = 'created_at'
    readonly_fields = ['before_state', 'after_state', 'diff', 'created_at']

    def has_add_permission(self, request):
        return False
