from django.contrib.auth import get_user_model
from rest_framework import serializers

from apps.core.api.views import TenantSerializerMixin
from apps.tenants.middleware import resolve_tenant

from .models import (
    Coupon,
    DiscountType,
    Order,
    OrderChannel,
    OrderItem,
    OrderStage,
    OrderStatus,
    PaymentType,
)


class PaymentTypeSerializer(TenantSerializerMixin, serializers.ModelSerializer):
    class Meta:
        model = PaymentType
        fields = [
            'id', 'name', 'kind', 'is_store_credit', 'installments',
            'first_due_days', 'interval_days', 'active', 'sort_order',
        ]

    def validate_installments(self, value):
        if value < 1:
            raise serializers.ValidationError("Mínimo de 1 parcela.")
        return value


class CouponSerializer(TenantSerializerMixin, serializers.ModelSerializer):
    class Meta:
        model = Coupon
        fields = [
            'id', 'code', 'name', 'discount_type', 'discount_value', 'min_order_value',
            'max_uses', 'used_count', 'valid_from', 'valid_until', 'active', 'created_at',
        ]
        read_only_fields = ['used_count', 'created_at']

    def validate_code(self, value):
        value = value.strip().upper()
        qs = Coupon.objects.filter(tenant=resolve_tenant(self.context['request']), code=value)
        if self.instance:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise serializers.ValidationError("Já existe um cupom com este código.")
        return value

    def validate(self, attrs):
        discount_type = attrs.get('discount_type', getattr(self.instance, 'discount_type', DiscountType.PERCENTUAL))
        value = attrs.get('discount_value', getattr(self.instance, 'discount_value', None))
        if value is not None and value <= 0:
            raise serializers.ValidationError({'discount_value': "O desconto deve ser maior que zero."})
        if discount_type == DiscountType.PERCENTUAL and value is not None and value > 100:
            raise serializers.ValidationError({'discount_value': "Percentual máximo é 100%."})
        start = attrs.get('valid_from', getattr(self.instance, 'valid_from', None))
        end = attrs.get('valid_until', getattr(self.instance, 'valid_until', None))
        if start and end and end < start:
            raise serializers.ValidationError({'valid_until': "Fim da validade antes do início."})
        return attrs


class CouponValidateSerializer(serializers.Serializer):
    code = serializers.CharField(max_length=40)
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)


class OrderItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderItem
        fields = [
            'id', 'product', 'sku_snapshot', 'description_snapshot',
            'quantity', 'unit_price', 'discount_percent', 'line_total',
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    items = OrderItemSerializer(many=True, read_only=True)
    customer_name = serializers.ReadOnlyField()
    payment_type_name = serializers.ReadOnlyField(source='payment_type.name')
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    stage_display = serializers.CharField(source='get_stage_display', read_only=True)

    class Meta:
        model = Order
        fields = [
            'id', 'order_number', 'customer', 'customer_name', 'channel',
            'status', 'status_display', 'stage', 'stage_display', 'stock_state', 'accounts_posted',
            'subtotal', 'discount_total', 'shipping_cost', 'total', 'coupon_code',
            'guest_name', 'guest_email', 'guest_phone', 'guest_document',
            'shipping_address', 'shipping_method',
            'payment_type', 'payment_type_name', 'payment_notes', 'fiado_installments', 'notes',
            'printed', 'printed_at', 'reserved_at', 'invoiced_at', 'cancelled_at',
            'created_at', 'updated_at', 'items',
        ]
        read_only_fields = fields


class OrderLineSerializer(serializers.Serializer):
    product = serializers.IntegerField()
    quantity = serializers.IntegerField(min_value=1)
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    discount_percent = serializers.DecimalField(max_digits=5, decimal_places=2, required=False, allow_null=True)


class GuestSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=150)
    email = serializers.EmailField(required=False, allow_blank=True)
    phone = serializers.CharField(max_length=20, required=False, allow_blank=True)
    document = serializers.CharField(max_length=18, required=False, allow_blank=True)


class OrderCreateSerializer(serializers.Serializer):
    items = OrderLineSerializer(many=True)
    customer = serializers.IntegerField(required=False, allow_null=True)
    guest = GuestSerializer(required=False)
    channel = serializers.ChoiceField(
        choices=[OrderChannel.ADMIN, OrderChannel.REPRESENTANTE, OrderChannel.API],
        default=OrderChannel.ADMIN,
    )
    status = serializers.ChoiceField(
        choices=[OrderStatus.ORCAMENTO, OrderStatus.PEDIDO_GERADO], default=OrderStatus.ORCAMENTO
    )
    payment_type = serializers.IntegerField(required=False, allow_null=True)
    payment_notes = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')
    fiado_installments = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    coupon_code = serializers.CharField(max_length=40, required=False, allow_blank=True, default='')
    shipping_cost = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0, default=0)
    shipping_method = serializers.CharField(max_length=30, required=False, allow_blank=True, default='')
    shipping_address = serializers.JSONField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, default='')

    def validate_items(self, value):
        if not value:
            raise serializers.ValidationError("O pedido precisa de pelo menos um item.")
        return value

    def validate_customer(self, value):
        if value is None:
            return None
        user = get_user_model().objects.filter(pk=value).first()
        if user is None:
            raise serializers.ValidationError("Cliente não encontrado.")
        return user


class OrderUpdateSerializer(serializers.Serializer):
    """PATCH: status goes through the state machine, items only via /items/"""
    status = serializers.ChoiceField(choices=OrderStatus.choices, required=False)
    stage = serializers.ChoiceField(choices=OrderStage.choices, required=False)
    notes = serializers.CharField(required=False, allow_blank=True)


class OrderItemsSerializer(serializers.Serializer):
    items = OrderLineSerializer(many=True)


class BulkDeleteSerializer(serializers.Serializer):
    ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=False)
    reverse_stock = serializers.BooleanField(default=False)


class PdvOrderSerializer(serializers.Serializer):
    customer = serializers.IntegerField()
    items = OrderLineSerializer(many=True)
    payment_type = serializers.IntegerField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    fiado_installments = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    generate = serializers.BooleanField(default=False)

    def validate_customer(self, value):
        user = get_user_model().objects.filter(pk=value).first()
        if user is None:
            raise serializers.ValidationError("Cliente não encontrado.")
        return user
