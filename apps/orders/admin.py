from django.contrib import admin

from .models import Coupon, Order, OrderItem, PaymentType


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    raw_id_fields = ['product']
    readonly_fields = ['line_total']


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = [
        'order_number', 'tenant', 'customer', 'channel', 'status', 'stage',
        'stock_state', 'accounts_posted', 'total', 'created_at'
    ]
    list_filter = ['status', 'stage', 'channel', 'stock_state', 'tenant']
    search_fields = ['order_number', 'guest_name', 'customer__email']
    date_hierarchy = 'created_at'
    raw_id_fields = ['customer', 'created_by', 'coupon', 'payment_type']
    readonly_fields = ['stock_state', 'accounts_posted', 'subtotal', 'discount_total', 'total']
    inlines = [OrderItemInline]


@admin.register(PaymentType)
class PaymentTypeAdmin(admin.ModelAdmin):
    list_display = ['name', 'tenant', 'kind', 'is_store_credit', 'installments', 'active']
    list_filter = ['kind', 'is_store_credit', 'active', 'tenant']


@admin.register(Coupon)
class CouponAdmin(admin.ModelAdmin):
    list_display = ['code', 'tenant', 'discount_type', 'discount_value', 'used_count', 'max_uses', 'active']
    list_filter = ['discount_type', 'active', 'tenant']
    search_fields = ['code', 'name']
