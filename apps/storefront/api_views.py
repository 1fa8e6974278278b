"""
Public storefront API, addressed by store slug: /api/v1/public/{slug}/...
"""
from django.http import Http404
from rest_framework import generics, status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.core.models import BannerPosition, CatalogBanner, CatalogSlide
from apps.core.services import AppearanceService
from apps.orders.serializers import OrderSerializer

from .cart import Cart
from .serializers import (
    CartItemSerializer,
    CartQuantitySerializer,
    CheckoutSerializer,
    PublicBannerSerializer,
    PublicProductSerializer,
    PublicSlideSerializer,
)
from .services import SHIPPING_OPTIONS, CatalogService, CheckoutService


class StoreMixin:
    """Resolves the store from the slug; unknown or blocked stores are 404"""
    permission_classes = [AllowAny]

    def get_store(self):
        if not hasattr(self, '_store'):
            self._store = CatalogService.get_store(self.kwargs['slug'])
            if self._store is None:
                raise Http404("Loja não encontrada.")
        return self._store

    def get_viewer(self):
        if not hasattr(self, '_viewer'):
            self._viewer = CatalogService.viewer_membership(self.get_store(), self.request.user)
        return self._viewer

    def get_customer_type(self):
        return CatalogService.viewer_customer_type(self.get_viewer())

    def get_cart(self):
        store = self.get_store()
        return Cart(self.request, store, products=CatalogService.visible_products(store, self.get_viewer()))

    def cart_payload(self, cart):
        summary = cart.summary(self.get_customer_type())
        return {
            'items': [
                {
                    'product_id': line['product'].pk,
                    'sku': line['product'].sku,
                    'name': line['product'].name,
                    'image_url': line['product'].image_url,
                    'quantity': line['quantity'],
                    'unit_price': str(line['unit_price']),
                    'line_total': str(line['line_total']),
                }
                for line in summary['items']
            ],
            'item_count': summary['item_count'],
            'subtotal': str(summary['subtotal']),
        }


class StoreInfoView(StoreMixin, APIView):
    def get(self, request, slug):
        store = self.get_store()
        viewer = self.get_viewer()
        return Response({
            'slug': store.slug,
            'name': store.display_name,
            'phone': store.phone,
            'email': store.email,
            'city': store.city,
            'state': store.state,
            'theme': AppearanceService.public_theme(store),
            'viewer': {
                'authenticated': request.user.is_authenticated,
                'is_member': viewer is not None,
                'approved': viewer.approved if viewer else False,
                'customer_type': CatalogService.viewer_customer_type(viewer),
            },
        })


class StoreCategoriesView(StoreMixin, APIView):
    def get(self, request, slug):
        categories = list(CatalogService.visible_categories(self.get_store(), self.get_viewer()))
        return Response(CatalogService.category_tree(categories))


class PublicProductMixin(StoreMixin):
    serializer_class = PublicProductSerializer

    def get_serializer_context(self):
        context = super().get_serializer_context()
        context['customer_type'] = self.get_customer_type()
        context['hide_stock'] = not CheckoutService.enforce_stock(self.get_store())
        return context


class StoreProductListView(PublicProductMixin, generics.ListAPIView):
    def get_queryset(self):
        params = self.request.query_params
        return CatalogService.visible_products(
            self.get_store(),
            self.get_viewer(),
            search=params.get('search'),
            category=params.get('category'),
            featured=params.get('featured', '').lower() in ('1', 'true'),
        )


class StoreProductDetailView(PublicProductMixin, generics.RetrieveAPIView):
    def get_queryset(self):
        return CatalogService.visible_products(self.get_store(), self.get_viewer())


class StoreSlidesView(StoreMixin, APIView):
    def get(self, request, slug):
        slides = CatalogSlide.objects.filter(tenant=self.get_store(), active=True).order_by('order', 'id')
        return Response(PublicSlideSerializer(slides, many=True).data)


class StoreBannersView(StoreMixin, APIView):
    def get(self, request, slug):
        banners = CatalogBanner.objects.filter(tenant=self.get_store(), active=True)
        position = request.query_params.get('position')
        if position:
            if position.upper() not in BannerPosition.values:
                return Response([])
            banners = banners.filter(position=position.upper())
        return Response(PublicBannerSerializer(banners.order_by('position', 'order', 'id'), many=True).data)


class CartView(StoreMixin, APIView):
    def get(self, request, slug):
        return Response(self.cart_payload(self.get_cart()))

    def delete(self, request, slug):
        cart = self.get_cart()
        cart.clear()
        return Response(self.cart_payload(cart))


class CartItemsView(StoreMixin, APIView):
    def post(self, request, slug):
        serializer = CartItemSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        cart = self.get_cart()
        cart.add(
            serializer.validated_data['product_id'],
            serializer.validated_data['quantity'],
            enforce_stock=CheckoutService.enforce_stock(self.get_store()),
        )
        return Response(self.cart_payload(cart), status=status.HTTP_201_CREATED)


class CartItemDetailView(StoreMixin, APIView):
    def patch(self, request, slug, product_id):
        serializer = CartQuantitySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        cart = self.get_cart()
        cart.update(
            product_id,
            serializer.validated_data['quantity'],
            enforce_stock=CheckoutService.enforce_stock(self.get_store()),
        )
        return Response(self.cart_payload(cart))

    def delete(self, request, slug, product_id):
        cart = self.get_cart()
        cart.remove(product_id)
        return Response(self.cart_payload(cart))


class ShippingOptionsView(StoreMixin, APIView):
    def get(self, request, slug):
        return Response([{**option, 'price': str(option['price'])} for option in SHIPPING_OPTIONS])


class CheckoutView(StoreMixin, APIView):
    def post(self, request, slug):
        if not request.user.is_authenticated:
            return Response(
                {'detail': "Faça login para finalizar o pedido.", 'code': 'not_authenticated',
                 'errors': ["Faça login para finalizar o pedido."]},
                status=status.HTTP_401_UNAUTHORIZED,
            )

        serializer = CheckoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        order = CheckoutService.checkout(
            self.get_store(),
            request.user,
            self.get_cart(),
            data['shipping_method'],
            payment_type=data.get('payment_type'),
            coupon_code=data['coupon_code'],
            shipping_address=data.get('shipping_address'),
            notes=data['notes'],
        )
        return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)
