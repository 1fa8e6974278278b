from django.db.models import Q
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.accounts.permissions import CustomerReadOnly, HasModule, IsStaffMember
from apps.core.api.views import BaseTenantViewSet, TenantScopedMixin
from apps.core.exceptions import BusinessError, CouponError
from apps.tenants.middleware import TenantRequired

from .models import Coupon, Order, PaymentType
from .serializers import (
    BulkDeleteSerializer,
    CouponSerializer,
    CouponValidateSerializer,
    OrderCreateSerializer,
    OrderItemsSerializer,
    OrderSerializer,
    OrderUpdateSerializer,
    PaymentTypeSerializer,
    PdvOrderSerializer,
)
from .services import OrderService


class OrderViewSet(TenantScopedMixin, mixins.ListModelMixin, mixins.RetrieveModelMixin,
                   mixins.DestroyModelMixin, viewsets.GenericViewSet):
    """
    Orders of the active company.
    Every state change goes through OrderService; customers only read their own orders.
    """
    serializer_class = OrderSerializer
    permission_classes = [IsAuthenticated, TenantRequired, HasModule, CustomerReadOnly]
    required_modules = ['orders', 'sales_catalog']

    def get_queryset(self):
        qs = Order.objects.filter(tenant=self.get_tenant()).select_related(
            'customer', 'payment_type'
        ).prefetch_related('items')

        membership = self.get_membership()
        if membership is not None and membership.is_customer:
            qs = qs.filter(customer=self.request.user)

        params = self.request.query_params
        for field in ('status', 'stage', 'channel'):
            if params.get(field):
                qs = qs.filter(**{field: params[field]})
        if params.get('customer'):
            qs = qs.filter(customer_id=params['customer'])
        search = params.get('search')
        if search:
            lookup = Q(guest_name__icontains=search) | Q(customer__first_name__icontains=search)
            if search.isdigit():
                lookup |= Q(order_number=int(search))
            qs = qs.filter(lookup)
        if params.get('date_from'):
            qs = qs.filter(created_at__date__gte=params['date_from'])
        if params.get('date_to'):
            qs = qs.filter(created_at__date__lte=params['date_to'])
        return qs

    def _respond(self, order, status_code=status.HTTP_200_OK):
        order = Order.objects.select_related('customer', 'payment_type').prefetch_related('items').get(pk=order.pk)
        return Response(OrderSerializer(order).data, status=status_code)

    def create(self, request, *args, **kwargs):
        serializer = OrderCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        order = OrderService.create_order(
            self.get_tenant(),
            data['items'],
            user=request.user,
            customer=data.get('customer'),
            channel=data['channel'],
            payment_type=data.get('payment_type'),
            coupon_code=data['coupon_code'],
            shipping_cost=data['shipping_cost'],
            shipping_method=data['shipping_method'],
            shipping_address=data.get('shipping_address'),
            notes=data['notes'],
            payment_notes=data['payment_notes'],
            fiado_installments=data.get('fiado_installments'),
            guest=data.get('guest'),
            status=data['status'],
        )
        return self._respond(order, status.HTTP_201_CREATED)

    def partial_update(self, request, *args, **kwargs):
        order = self.get_object()
        serializer = OrderUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        if 'status' in data and data['status'] != order.status:
            order = OrderService.change_status(order, data['status'], user=request.user)
        if 'stage' in data and data['stage'] != order.stage:
            order = OrderService.update_stage(order, data['stage'], user=request.user)
        if 'notes' in data:
            order.notes = data['notes']
            order.save(update_fields=['notes', 'updated_at'])
        return self._respond(order)

    def perform_destroy(self, instance):
        result = OrderService.bulk_delete(instance.tenant, [instance.pk], reverse_stock=True, user=self.request.user)
        if not result['processed']:
            raise BusinessError("Pedido com contas lançadas não pode ser excluído. Estorne as contas antes.")

    @action(detail=True, methods=['post'])
    def reserve(self, request, pk=None):
        return self._respond(OrderService.post_stock(self.get_object(), user=request.user))

    @action(detail=True, methods=['post'])
    def unreserve(self, request, pk=None):
        return self._respond(OrderService.reverse_stock(self.get_object(), user=request.user))

    @action(detail=True, methods=['post'], url_path='post-accounts')
    def post_accounts(self, request, pk=None):
        return self._respond(OrderService.post_accounts(self.get_object(), user=request.user))

    @action(detail=True, methods=['post'], url_path='reverse-accounts')
    def reverse_accounts(self, request, pk=None):
        return self._respond(OrderService.reverse_accounts(self.get_object(), user=request.user))

    @action(detail=True, methods=['post'], url_path='print')
    def mark_printed(self, request, pk=None):
        return self._respond(OrderService.mark_printed(self.get_object(), user=request.user))

    @action(detail=True, methods=['put'], url_path='items')
    def replace_items(self, request, pk=None):
        order = self.get_object()
        serializer = OrderItemsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return self._respond(OrderService.update_items(order, serializer.validated_data['items'], user=request.user))

    @action(detail=False, methods=['post'], url_path='bulk-delete')
    def bulk_delete(self, request):
        serializer = BulkDeleteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = OrderService.bulk_delete(
            self.get_tenant(),
            serializer.validated_data['ids'],
            reverse_stock=serializer.validated_data['reverse_stock'],
            user=request.user,
        )
        return Response(result)


class PaymentTypeViewSet(BaseTenantViewSet):
    queryset = PaymentType.objects.all()
    serializer_class = PaymentTypeSerializer
    required_modules = ['orders', 'sales_catalog', 'settings']
    write_modules = ['settings']

    def get_queryset(self):
        qs = super().get_queryset()
        if self.request.query_params.get('active', '').lower() in ('1', 'true'):
            qs = qs.filter(active=True)
        return qs


class CouponViewSet(BaseTenantViewSet):
    queryset = Coupon.objects.all()
    serializer_class = CouponSerializer
    required_modules = ['orders', 'settings']
    write_modules = ['settings', 'orders']

    def get_permissions(self):
        permissions = super().get_permissions()
        if self.action != 'validate_coupon':
            permissions.append(CustomerReadOnly())
        return permissions

    @action(detail=False, methods=['post'], url_path='validate')
    def validate_coupon(self, request):
        serializer = CouponValidateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        code = serializer.validated_data['code']
        subtotal = serializer.validated_data['subtotal']

        try:
            coupon = OrderService._find_coupon(self.get_tenant(), code)
            coupon.validate(subtotal)
        except CouponError as e:
            return Response({'valid': False, 'discount': '0.00', 'message': str(e)})

        discount = coupon.discount_for(subtotal)
        return Response({
            'valid': True,
            'discount': str(discount),
            'message': f"Cupom {coupon.code} aplicado: desconto de R$ {discount}",
        })


class PdvOrderView(TenantScopedMixin, APIView):
    """Quick counter sale for a registered customer"""
    permission_classes = [IsAuthenticated, TenantRequired, IsStaffMember, HasModule]
    required_modules = ['orders', 'sales_catalog']

    def post(self, request):
        serializer = PdvOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        order = OrderService.create_pdv_order(
            self.get_tenant(),
            request.user,
            data['customer'],
            data['items'],
            payment_type=data.get('payment_type'),
            notes=data['notes'],
            fiado_installments=data.get('fiado_installments'),
            generate=data['generate'],
        )
        return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)
