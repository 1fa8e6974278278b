from rest_framework import serializers

from apps.accounts.models import TenantMembership
from apps.tenants.middleware import resolve_tenant

from .models import CreditPayment, CustomerCredit


class CreditPaymentSerializer(serializers.ModelSerializer):
    received_by_name = serializers.ReadOnlyField(source='received_by.username')
    is_reversed = serializers.ReadOnlyField()
    credit_description = serializers.ReadOnlyField(source='credit.description')

    class Meta:
        model = CreditPayment
        fields = [
            'id', 'credit', 'credit_description', 'amount', 'payment_method', 'notes',
            'received_by', 'received_by_name', 'created_at', 'reversed_at', 'is_reversed',
        ]
        read_only_fields = fields


class CustomerCreditSerializer(serializers.ModelSerializer):
    customer_name = serializers.SerializerMethodField()
    order_number = serializers.ReadOnlyField(source='order.order_number')
    pending_amount = serializers.ReadOnlyField()
    is_overdue = serializers.ReadOnlyField()
    days_overdue = serializers.ReadOnlyField()

    class Meta:
        model = CustomerCredit
        fields = [
            'id', 'customer', 'customer_name', 'order', 'order_number', 'kind',
            'amount', 'paid_amount', 'pending_amount', 'description',
            'due_date', 'installment_number', 'installment_count',
            'status', 'is_overdue', 'days_overdue', 'paid_at', 'cancelled_at', 'created_at',
        ]
        read_only_fields = fields

    def get_customer_name(self, obj):
        return obj.customer.get_full_name() or obj.customer.username


class CustomerCreditDetailSerializer(CustomerCreditSerializer):
    payments = CreditPaymentSerializer(many=True, read_only=True)

    class Meta(CustomerCreditSerializer.Meta):
        fields = CustomerCreditSerializer.Meta.fields + ['payments']
        read_only_fields = fields


class ManualCreditSerializer(serializers.Serializer):
    customer = serializers.IntegerField()
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    due_date = serializers.DateField()
    description = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')

    def validate_customer(self, value):
        membership = TenantMembership.objects.filter(
            tenant=resolve_tenant(self.context['request']), user_id=value, is_active=True
        ).select_related('user').first()
        if membership is None:
            raise serializers.ValidationError("Cliente não pertence a esta empresa.")
        return membership.user


class PaymentInputSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    payment_method = serializers.CharField(max_length=50, required=False, allow_blank=True, default='')
    notes = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')
