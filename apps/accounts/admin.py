from django.contrib import admin

from .models import CustomerProfile, ModulePermission, TenantInvite, TenantMembership


class ModulePermissionInline(admin.TabularInline):
    model = ModulePermission
    extra = 0


@admin.register(TenantMembership)
class TenantMembershipAdmin(admin.ModelAdmin):
    list_display = ('user', 'tenant', 'role', 'approved', 'is_active', 'joined_at')
    list_filter = ('role', 'approved', 'is_active', 'tenant')
    search_fields = ('user__username', 'user__email', 'tenant__name')
    raw_id_fields = ('user', 'tenant')
    inlines = [ModulePermissionInline]


@admin.register(CustomerProfile)
class CustomerProfileAdmin(admin.ModelAdmin):
    list_display = ('membership', 'person_type', 'cpf', 'cnpj', 'customer_type', 'city', 'state')
    list_filter = ('person_type', 'customer_type')
    search_fields = ('cpf', 'cnpj', 'company_name', 'membership__user__email')


@admin.register(TenantInvite)
class TenantInviteAdmin(admin.ModelAdmin):
    list_display = ('email', 'tenant', 'role', 'created_at', 'expires_at', 'accepted_at')
    list_filter = ('role', 'tenant')
    search_fields = ('email',)
    readonly_fields = ('token',)
