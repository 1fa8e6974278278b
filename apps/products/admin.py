from django.contrib import admin

from .models import Brand, Category, Product

@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['sku', 'name', 'tenant', 'price', 'stock', 'reserved_stock', 'featured', 'status']
    readonly_fields = ['stock', 'reserved_stock']
    search_fields = ['sku', 'name', 'gtin']
    list_filter = ['status', 'featured', 'tenant']
    raw_id_fields = ['category', 'brand']

@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ['name', 'tenant', 'parent', 'hide_from_retail', 'sort_order', 'is_active']
    list_filter = ['hide_from_retail', 'is_active', 'tenant']
    search_fields = ['name', 'slug']

admin.site.register(Brand)
