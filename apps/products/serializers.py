from rest_framework import serializers

from apps.core.api.views import TenantSerializerMixin
from apps.tenants.middleware import resolve_tenant

from .models import Brand, Category, Product


class TenantRelatedField(serializers.PrimaryKeyRelatedField):
    """PK field limited to objects of the request's company"""

    def get_queryset(self):
        request = self.context.get('request')
        tenant = resolve_tenant(request) if request else None
        return super().get_queryset().filter(tenant=tenant)


class CategorySerializer(TenantSerializerMixin, serializers.ModelSerializer):
    parent = TenantRelatedField(queryset=Category.objects.all(), required=False, allow_null=True)

    class Meta:
        model = Category
        fields = ['id', 'name', 'slug', 'parent', 'hide_from_retail', 'sort_order', 'is_active']
        read_only_fields = ['slug']

    def validate_parent(self, parent):
        if parent and self.instance:
            if parent.pk in self.instance.descendant_ids():
                raise serializers.ValidationError("Uma categoria não pode ficar dentro dela mesma.")
        return parent


class BrandSerializer(TenantSerializerMixin, serializers.ModelSerializer):
    class Meta:
        model = Brand
        fields = ['id', 'name']

    def validate_name(self, value):
        qs = Brand.objects.filter(tenant=resolve_tenant(self.context['request']), name__iexact=value)
        if self.instance:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise serializers.ValidationError("Marca já cadastrada.")
        return value


class ProductSerializer(TenantSerializerMixin, serializers.ModelSerializer):
    category = TenantRelatedField(queryset=Category.objects.all(), required=False, allow_null=True)
    brand = TenantRelatedField(queryset=Brand.objects.all(), required=False, allow_null=True)
    category_name = serializers.ReadOnlyField(source='category.name')
    brand_name = serializers.ReadOnlyField(source='brand.name')
    available_stock = serializers.ReadOnlyField()
    is_low_stock = serializers.ReadOnlyField()

    class Meta:
        model = Product
        fields = [
            'id', 'sku', 'name', 'description',
            'category', 'category_name', 'brand', 'brand_name',
            'unit', 'gtin', 'price', 'wholesale_price', 'cost',
            'stock', 'reserved_stock', 'available_stock', 'min_stock', 'max_stock', 'is_low_stock',
            'image_url', 'images', 'featured', 'status', 'weight',
            'created_at', 'updated_at',
        ]
        read_only_fields = ['stock', 'reserved_stock', 'created_at', 'updated_at']

    def validate_sku(self, value):
        value = (value or '').strip() or None
        if value:
            tenant = resolve_tenant(self.context['request'])
            qs = Product.objects.filter(tenant=tenant, sku=value)
            if self.instance:
                qs = qs.exclude(pk=self.instance.pk)
            if qs.exists():
                raise serializers.ValidationError("Já existe um produto com este SKU.")
        return value

    def validate_price(self, value):
        if value < 0:
            raise serializers.ValidationError("Preço não pode ser negativo.")
        return value


class AdjustStockSerializer(serializers.Serializer):
    quantity = serializers.IntegerField(min_value=0)
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')


class ImportSerializer(serializers.Serializer):
    file = serializers.FileField()
