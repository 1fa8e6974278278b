from rest_framework import serializers

from .models import Plan, Tenant


class PlanSerializer(serializers.ModelSerializer):
    feature_list = serializers.ReadOnlyField()

    class Meta:
        model = Plan
        fields = ['id', 'name', 'display_name', 'price', 'max_products', 'max_users', 'feature_list']


class TenantSerializer(serializers.ModelSerializer):
    plan = PlanSerializer(read_only=True)
    products_count = serializers.ReadOnlyField()
    users_count = serializers.ReadOnlyField()
    is_trial_expired = serializers.ReadOnlyField()
    is_blocked = serializers.ReadOnlyField()

    class Meta:
        model = Tenant
        fields = [
            'id', 'name', 'trade_name', 'cnpj', 'slug', 'email', 'phone', 'city', 'state',
            'plan', 'subscription_status', 'approval_status', 'trial_ends_at', 'is_active',
            'is_trial_expired', 'is_blocked', 'products_count', 'users_count', 'created_at',
        ]
        read_only_fields = [
            'slug', 'plan', 'subscription_status', 'approval_status', 'trial_ends_at', 'is_active', 'created_at',
        ]

    def validate_cnpj(self, value):
        value = (value or '').strip() or None
        if value and Tenant.objects.filter(cnpj=value).exclude(pk=getattr(self.instance, 'pk', None)).exists():
            raise serializers.ValidationError("Já existe uma empresa com este CNPJ.")
        return value


class SignupSerializer(serializers.Serializer):
    company_name = serializers.CharField(max_length=100)
    first_name = serializers.CharField(max_length=150)
    last_name = serializers.CharField(max_length=150, required=False, allow_blank=True, default='')
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True)
    cnpj = serializers.CharField(max_length=18, required=False, allow_blank=True, default='')
    plan = serializers.CharField(max_length=50, required=False, allow_blank=True, default='')

    def validate_password(self, value):
        if len(value) < 6:
            raise serializers.ValidationError("Senha deve ter pelo menos 6 caracteres.")
        return value
