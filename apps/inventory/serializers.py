from rest_framework import serializers

from apps.products.models import Product
from apps.products.serializers import TenantRelatedField

from .models import MovementType, StockMovement


class StockMovementSerializer(serializers.ModelSerializer):
    product_name = serializers.ReadOnlyField(source='product.name')
    product_sku = serializers.ReadOnlyField(source='product.sku')
    user_name = serializers.ReadOnlyField(source='user.username')
    order_number = serializers.ReadOnlyField(source='order.order_number')

    class Meta:
        model = StockMovement
        fields = [
            'id', 'product', 'product_name', 'product_sku', 'type', 'quantity',
            'balance_after', 'reserved_after', 'reason', 'source',
            'order', 'order_number', 'user', 'user_name', 'created_at',
        ]
        read_only_fields = fields


class ManualMovementSerializer(serializers.Serializer):
    """Only IN/OUT/ADJ can be launched by hand; reservations belong to orders"""
    product = TenantRelatedField(queryset=Product.objects.all())
    type = serializers.ChoiceField(choices=[MovementType.IN, MovementType.OUT, MovementType.ADJ])
    quantity = serializers.IntegerField(min_value=0)
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')


class LowStockSerializer(serializers.ModelSerializer):
    category_name = serializers.ReadOnlyField(source='category.name')
    available_stock = serializers.ReadOnlyField()

    class Meta:
        model = Product
        fields = ['id', 'sku', 'name', 'category_name', 'stock', 'reserved_stock', 'available_stock', 'min_stock']
