from rest_framework import permissions


class HasModule(permissions.BasePermission):
    """
    Grants access when the membership may use the module declared on the view.

    Views declare `required_modules` (any of them is enough) and optionally
    `write_modules` for unsafe methods.
    """
    message = "Você não tem permissão para acessar este módulo."

    def has_permission(self, request, view):
        if request.user.is_superuser:
            return True

        modules = getattr(view, 'required_modules', None)
        if request.method not in permissions.SAFE_METHODS:
            modules = getattr(view, 'write_modules', None) or modules
        if not modules:
            return True

        membership = getattr(request, 'membership', None)
        if membership is None:
            return False
        return any(membership.has_module(m) for m in modules)


class IsTenantAdmin(permissions.BasePermission):
    """OWNER or ADMIN of the active company"""
    message = "Acesso restrito a administradores."

    def has_permission(self, request, view):
        membership = getattr(request, 'membership', None)
        return bool(membership and membership.is_admin)


class IsTenantOwner(permissions.BasePermission):
    message = "Acesso restrito ao proprietário da empresa."

    def has_permission(self, request, view):
        membership = getattr(request, 'membership', None)
        return bool(membership and membership.is_owner)


class IsStaffMember(permissions.BasePermission):
    """Any back-office role; customers are refused"""
    message = "Acesso restrito à equipe da loja."

    def has_permission(self, request, view):
        membership = getattr(request, 'membership', None)
        return bool(membership and membership.is_staff_member)


class IsSuperUser(permissions.BasePermission):
    message = "Acesso restrito ao administrador da plataforma."

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_superuser)


class CustomerReadOnly(permissions.BasePermission):
    """Customers of the store may only read"""
    message = "Clientes têm acesso somente leitura."

    def has_permission(self, request, view):
        membership = getattr(request, 'membership', None)
        if membership is not None and membership.is_customer:
            return request.method in permissions.SAFE_METHODS
        return True
