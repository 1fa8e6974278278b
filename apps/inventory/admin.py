"""
Inventory App - Admin Configuration
"""
from django.contrib import admin

from .models import StockMovement


@admin.register(StockMovement)
class StockMovementAdmin(admin.ModelAdmin):
    list_display = [
        'created_at', 'type', 'product_sku', 'quantity',
        'balance_after', 'reserved_after', 'user', 'source'
    ]
    list_filter = ['type', 'source', 'created_at', 'tenant']
    search_fields = ['product__name', 'product__sku', 'reason']
    date_hierarchy = 'created_at'
    readonly_fields = [
        'id', 'created_at', 'balance_after', 'reserved_after', 'product',
        'order', 'user', 'tenant'
    ]
    raw_id_fields = ['product', 'order']
    ordering = ['-created_at']

    def product_sku(self, obj):
        return obj.product.sku if obj.product else '-'
    product_sku.short_description = 'Produto/SKU'

    def has_add_permission(self, request):
        return False  # Movimentações só pelo StockService
