from rest_framework import serializers

from apps.core.models import CatalogBanner, CatalogSlide
from apps.products.models import Product


class PublicProductSerializer(serializers.ModelSerializer):
    """Catalog view of a product: the price is the one the viewer pays"""
    price = serializers.SerializerMethodField()
    retail_price = serializers.DecimalField(source='price', max_digits=12, decimal_places=2, read_only=True)
    category_name = serializers.ReadOnlyField(source='category.name')
    brand_name = serializers.ReadOnlyField(source='brand.name')
    available_stock = serializers.SerializerMethodField()

    class Meta:
        model = Product
        fields = [
            'id', 'sku', 'name', 'description', 'category', 'category_name', 'brand_name',
            'unit', 'price', 'retail_price', 'available_stock', 'image_url', 'images', 'featured',
        ]

    def get_price(self, obj):
        return str(obj.price_for(self.context.get('customer_type')))

    def get_available_stock(self, obj):
        # Quote-style catalogs don't expose quantities
        if self.context.get('hide_stock'):
            return None
        return max(obj.available_stock, 0)


class PublicSlideSerializer(serializers.ModelSerializer):
    class Meta:
        model = CatalogSlide
        fields = ['id', 'title', 'subtitle', 'button_text', 'button_link', 'image_url', 'mobile_image_url', 'order']


class PublicBannerSerializer(serializers.ModelSerializer):
    class Meta:
        model = CatalogBanner
        fields = ['id', 'title', 'image_url', 'link', 'position', 'background_color', 'text_color', 'order']


class CartItemSerializer(serializers.Serializer):
    product_id = serializers.IntegerField()
    quantity = serializers.IntegerField(default=1)


class CartQuantitySerializer(serializers.Serializer):
    quantity = serializers.IntegerField()


class CheckoutSerializer(serializers.Serializer):
    shipping_method = serializers.CharField(max_length=30)
    payment_type = serializers.IntegerField(required=False, allow_null=True)
    coupon_code = serializers.CharField(max_length=40, required=False, allow_blank=True, default='')
    shipping_address = serializers.JSONField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, default='')
