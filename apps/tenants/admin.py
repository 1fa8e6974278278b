from django.contrib import admin
from .models import Plan, Tenant

@admin.register(Plan)
class PlanAdmin(admin.ModelAdmin):
    list_display = ('display_name', 'name', 'price', 'max_products', 'max_users')
    search_fields = ('name', 'display_name')

@admin.register(Tenant)
class TenantAdmin(admin.ModelAdmin):
    list_display = ('name', 'plan', 'subscription_status', 'approval_status', 'is_active', 'trial_ends_at', 'created_at')
    list_filter = ('subscription_status', 'approval_status', 'is_active', 'plan')
    search_fields = ('name', 'trade_name', 'cnpj', 'slug')
    list_editable = ('is_active', 'subscription_status', 'approval_status', 'plan')
    prepopulated_fields = {'slug': ('name',)}
