from django.contrib import admin

from .models import CreditPayment, CustomerCredit


class CreditPaymentInline(admin.TabularInline):
    model = CreditPayment
    extra = 0
    fk_name = 'credit'
    readonly_fields = ['amount', 'created_at', 'reversed_at']


@admin.register(CustomerCredit)
class CustomerCreditAdmin(admin.ModelAdmin):
    list_display = [
        'customer', 'tenant', 'order', 'kind', 'amount', 'paid_amount',
        'due_date', 'installment_number', 'installment_count', 'status'
    ]
    list_filter = ['status', 'kind', 'tenant']
    search_fields = ['customer__email', 'customer__first_name', 'description']
    date_hierarchy = 'due_date'
    raw_id_fields = ['customer', 'order', 'created_by']
    readonly_fields = ['paid_amount', 'paid_at', 'cancelled_at']
    inlines = [CreditPaymentInline]
