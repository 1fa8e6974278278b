from django.contrib.auth import get_user_model
from rest_framework import serializers

from .models import (
    CustomerProfile,
    CustomerType,
    MembershipRole,
    PersonType,
    TenantInvite,
    TenantMembership,
)


class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = get_user_model()
        fields = ['id', 'username', 'email', 'first_name', 'last_name', 'is_superuser']
        read_only_fields = fields


class CustomerProfileSerializer(serializers.ModelSerializer):
    document = serializers.ReadOnlyField()

    class Meta:
        model = CustomerProfile
        fields = [
            'person_type', 'cpf', 'cnpj', 'document', 'company_name', 'trade_name',
            'state_registration', 'phone', 'cep', 'address', 'number', 'complement',
            'neighborhood', 'city', 'state', 'customer_type', 'notes',
        ]


class ProfileInputSerializer(serializers.Serializer):
    person_type = serializers.ChoiceField(choices=PersonType.choices, required=False)
    cpf = serializers.CharField(max_length=14, required=False, allow_blank=True)
    cnpj = serializers.CharField(max_length=18, required=False, allow_blank=True)
    company_name = serializers.CharField(max_length=150, required=False, allow_blank=True)
    trade_name = serializers.CharField(max_length=150, required=False, allow_blank=True)
    state_registration = serializers.CharField(max_length=30, required=False, allow_blank=True)
    phone = serializers.CharField(max_length=20, required=False, allow_blank=True)
    cep = serializers.CharField(max_length=9, required=False, allow_blank=True)
    address = serializers.CharField(max_length=200, required=False, allow_blank=True)
    number = serializers.CharField(max_length=20, required=False, allow_blank=True)
    complement = serializers.CharField(max_length=100, required=False, allow_blank=True)
    neighborhood = serializers.CharField(max_length=100, required=False, allow_blank=True)
    city = serializers.CharField(max_length=100, required=False, allow_blank=True)
    state = serializers.CharField(max_length=2, required=False, allow_blank=True)
    customer_type = serializers.ChoiceField(choices=CustomerType.choices, required=False)
    notes = serializers.CharField(required=False, allow_blank=True)


class MembershipSerializer(serializers.ModelSerializer):
    """A member as listed in /users/: the membership id is the resource id"""
    user = UserSerializer(read_only=True)
    name = serializers.SerializerMethodField()
    profile = CustomerProfileSerializer(source='customer_profile', read_only=True)
    allowed_modules = serializers.ReadOnlyField()

    class Meta:
        model = TenantMembership
        fields = ['id', 'user', 'name', 'role', 'is_active', 'approved', 'joined_at', 'allowed_modules', 'profile']
        read_only_fields = fields

    def get_name(self, obj):
        return obj.user.get_full_name() or obj.user.username


class MemberCreateSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, min_length=6)
    first_name = serializers.CharField(max_length=150, required=False, allow_blank=True, default='')
    last_name = serializers.CharField(max_length=150, required=False, allow_blank=True, default='')
    role = serializers.ChoiceField(
        choices=[r for r in MembershipRole.choices if r[0] != MembershipRole.OWNER],
        default=MembershipRole.EMPLOYEE,
    )
    profile = ProfileInputSerializer(required=False)


class MemberUpdateSerializer(serializers.Serializer):
    first_name = serializers.CharField(max_length=150, required=False, allow_blank=True)
    last_name = serializers.CharField(max_length=150, required=False, allow_blank=True)
    role = serializers.ChoiceField(choices=MembershipRole.choices, required=False)
    is_active = serializers.BooleanField(required=False)
    profile = ProfileInputSerializer(required=False)


class ModulesSerializer(serializers.Serializer):
    modules = serializers.ListField(child=serializers.CharField(max_length=30), allow_empty=True)


class SwitchCompanySerializer(serializers.Serializer):
    tenant_id = serializers.IntegerField()


class InviteSerializer(serializers.ModelSerializer):
    is_valid = serializers.ReadOnlyField()

    class Meta:
        model = TenantInvite
        fields = ['id', 'email', 'role', 'token', 'created_at', 'expires_at', 'accepted_at', 'is_valid']
        read_only_fields = ['id', 'token', 'created_at', 'expires_at', 'accepted_at']

    def validate_role(self, value):
        if value in (MembershipRole.OWNER, MembershipRole.CUSTOMER):
            raise serializers.ValidationError("Convites são apenas para a equipe (sem proprietário).")
        return value


class CustomerRegisterSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, min_length=6)
    first_name = serializers.CharField(max_length=150)
    last_name = serializers.CharField(max_length=150, required=False, allow_blank=True, default='')
    person_type = serializers.ChoiceField(choices=PersonType.choices, default=PersonType.PF)
    cpf = serializers.CharField(max_length=14, required=False, allow_blank=True, default='')
    cnpj = serializers.CharField(max_length=18, required=False, allow_blank=True, default='')
    company_name = serializers.CharField(max_length=150, required=False, allow_blank=True, default='')
    trade_name = serializers.CharField(max_length=150, required=False, allow_blank=True, default='')
    state_registration = serializers.CharField(max_length=30, required=False, allow_blank=True, default='')
    phone = serializers.CharField(max_length=20, required=False, allow_blank=True, default='')
    cep = serializers.CharField(max_length=9, required=False, allow_blank=True, default='')
    address = serializers.CharField(max_length=200, required=False, allow_blank=True, default='')
    number = serializers.CharField(max_length=20, required=False, allow_blank=True, default='')
    complement = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    neighborhood = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    city = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    state = serializers.CharField(max_length=2, required=False, allow_blank=True, default='')

    def profile_data(self):
        data = dict(self.validated_data)
        for key in ('email', 'password', 'first_name', 'last_name'):
            data.pop(key)
        return data
