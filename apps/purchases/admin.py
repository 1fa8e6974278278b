from django.contrib import admin

from .models import Payable, PayablePayment, PaymentTerm, PurchaseOrder, PurchaseOrderItem, Supplier


@admin.register(Supplier)
class SupplierAdmin(admin.ModelAdmin):
    list_display = ['display_name', 'cnpj', 'tenant', 'phone', 'is_active']
    list_filter = ['is_active', 'tenant']
    search_fields = ['name', 'trade_name', 'cnpj', 'email']


@admin.register(PaymentTerm)
class PaymentTermAdmin(admin.ModelAdmin):
    list_display = ['name', 'tenant', 'installment_count', 'first_payment_days', 'interval_days', 'active']
    list_filter = ['active', 'tenant']


class PurchaseOrderItemInline(admin.TabularInline):
    model = PurchaseOrderItem
    extra = 0
    raw_id_fields = ['product']


@admin.register(PurchaseOrder)
class PurchaseOrderAdmin(admin.ModelAdmin):
    list_display = ['code', 'tenant', 'supplier', 'status', 'total', 'created_at']
    list_filter = ['status', 'tenant']
    raw_id_fields = ['supplier', 'payment_term', 'created_by']
    readonly_fields = ['total', 'finalized_at', 'posted_at', 'reversed_at']
    inlines = [PurchaseOrderItemInline]


class PayablePaymentInline(admin.TabularInline):
    model = PayablePayment
    extra = 0
    readonly_fields = ['amount', 'payment_date', 'created_at', 'reversed_at']


@admin.register(Payable)
class PayableAdmin(admin.ModelAdmin):
    list_display = [
        'description', 'tenant', 'supplier', 'amount', 'paid_amount',
        'due_date', 'installment_number', 'installment_count', 'status'
    ]
    list_filter = ['status', 'tenant']
    search_fields = ['description', 'supplier__name', 'supplier__trade_name']
    date_hierarchy = 'due_date'
    raw_id_fields = ['supplier', 'purchase_order', 'created_by']
    readonly_fields = ['paid_amount', 'paid_at', 'cancelled_at']
    inlines = [PayablePaymentInline]
