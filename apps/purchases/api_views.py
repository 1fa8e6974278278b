from django.utils import timezone
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from apps.accounts.permissions import HasModule, IsStaffMember
from apps.core.api.views import BaseTenantViewSet, TenantScopedMixin
from apps.tenants.middleware import TenantRequired

from .models import OPEN_PAYABLE_STATUSES, Payable, PayablePayment, PaymentTerm, PurchaseOrder, Supplier
from .serializers import (
    CancelPayableSerializer,
    ManualPayableSerializer,
    PayableDetailSerializer,
    PayablePaymentInputSerializer,
    PayablePaymentSerializer,
    PayableSerializer,
    PaymentTermSerializer,
    PurchaseOrderInputSerializer,
    PurchaseOrderSerializer,
    SupplierSerializer,
)
from .services import PayableService, PurchaseService, SupplierService

STAFF_PERMISSIONS = [IsAuthenticated, TenantRequired, IsStaffMember, HasModule]


class SupplierViewSet(BaseTenantViewSet):
    """Suppliers are deactivated, never deleted: purchase history keeps pointing at them"""
    queryset = Supplier.objects.all()
    serializer_class = SupplierSerializer
    permission_classes = STAFF_PERMISSIONS
    required_modules = ['purchases']

    def get_queryset(self):
        qs = super().get_queryset()
        params = self.request.query_params
        if params.get('search'):
            qs = SupplierService.search(qs, params['search'])
        if params.get('active') in ('true', 'false'):
            qs = qs.filter(is_active=params['active'] == 'true')
        return qs

    def perform_destroy(self, instance):
        instance.is_active = False
        instance.save(update_fields=['is_active', 'updated_at'])


class PaymentTermViewSet(BaseTenantViewSet):
    queryset = PaymentTerm.objects.all()
    serializer_class = PaymentTermSerializer
    permission_classes = STAFF_PERMISSIONS
    required_modules = ['purchases']

    def get_queryset(self):
        qs = super().get_queryset()
        if self.request.query_params.get('active') == 'true':
            qs = qs.filter(active=True)
        return qs

    def perform_destroy(self, instance):
        instance.active = False
        instance.save(update_fields=['active', 'updated_at'])


class PurchaseOrderViewSet(TenantScopedMixin, mixins.ListModelMixin, mixins.RetrieveModelMixin,
                           mixins.DestroyModelMixin, viewsets.GenericViewSet):
    """
    Purchase orders of the active company.
    Editing is allowed only while the order is a draft; stock moves on post-stock / reverse-stock.
    """
    serializer_class = PurchaseOrderSerializer
    permission_classes = STAFF_PERMISSIONS
    required_modules = ['purchases']

    def get_queryset(self):
        qs = PurchaseOrder.objects.filter(tenant=self.get_tenant()).select_related(
            'supplier', 'payment_term'
        ).prefetch_related('items')
        params = self.request.query_params
        if params.get('status'):
            qs = qs.filter(status=params['status'])
        if params.get('supplier'):
            qs = qs.filter(supplier_id=params['supplier'])
        return qs

    def _input(self, partial=False):
        serializer = PurchaseOrderInputSerializer(data=self.request.data, context=self.get_serializer_context())
        serializer.is_valid(raise_exception=True)
        if not partial and 'items' not in serializer.validated_data:
            return serializer, {'items': ["Informe ao menos um item."]}
        return serializer, None

    def create(self, request, *args, **kwargs):
        serializer, errors = self._input()
        if errors:
            return Response(
                {'detail': errors['items'][0], 'code': 'validation_error', 'errors': errors['items']},
                status=status.HTTP_400_BAD_REQUEST,
            )
        data = serializer.validated_data
        order = PurchaseService.create(
            self.get_tenant(),
            data['items'],
            supplier=data.get('supplier'),
            payment_term=data.get('payment_term'),
            notes=data.get('notes', ''),
            user=request.user,
        )
        return Response(PurchaseOrderSerializer(order).data, status=status.HTTP_201_CREATED)

    def partial_update(self, request, *args, **kwargs):
        serializer, _ = self._input(partial=True)
        order = PurchaseService.update(self.get_object(), serializer.validated_data, user=request.user)
        return Response(PurchaseOrderSerializer(self.get_queryset().get(pk=order.pk)).data)

    def perform_destroy(self, instance):
        PurchaseService.delete(instance)

    def _transition(self, method):
        order = method(self.get_object(), user=self.request.user)
        return Response(PurchaseOrderSerializer(self.get_queryset().get(pk=order.pk)).data)

    @action(detail=True, methods=['post'])
    def finalize(self, request, pk=None):
        return self._transition(PurchaseService.finalize)

    @action(detail=True, methods=['post'], url_path='post-stock')
    def post_stock(self, request, pk=None):
        return self._transition(PurchaseService.post_stock)

    @action(detail=True, methods=['post'], url_path='reverse-stock')
    def reverse_stock(self, request, pk=None):
        return self._transition(PurchaseService.reverse_stock)


class PayableViewSet(TenantScopedMixin, mixins.ListModelMixin, mixins.RetrieveModelMixin,
                     mixins.CreateModelMixin, viewsets.GenericViewSet):
    """Accounts payable of the active company"""
    permission_classes = STAFF_PERMISSIONS
    required_modules = ['purchases']

    def get_serializer_class(self):
        if self.action == 'retrieve':
            return PayableDetailSerializer
        return PayableSerializer

    def get_queryset(self):
        qs = Payable.objects.filter(tenant=self.get_tenant()).select_related('supplier', 'purchase_order')
        params = self.request.query_params
        if params.get('status'):
            qs = qs.filter(status=params['status'])
        if params.get('supplier'):
            qs = qs.filter(supplier_id=params['supplier'])
        if params.get('purchase_order'):
            qs = qs.filter(purchase_order_id=params['purchase_order'])
        if params.get('overdue', '').lower() in ('1', 'true'):
            qs = qs.filter(status__in=OPEN_PAYABLE_STATUSES, due_date__lt=timezone.localdate())
        if self.action == 'retrieve':
            qs = qs.prefetch_related('payments')
        return qs

    def create(self, request, *args, **kwargs):
        serializer = ManualPayableSerializer(data=request.data, context=self.get_serializer_context())
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        payable = PayableService.create_manual(
            self.get_tenant(), data['amount'], data['due_date'],
            supplier=data.get('supplier'), description=data['description'], user=request.user,
        )
        return Response(PayableSerializer(payable).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'])
    def payments(self, request, pk=None):
        payable = self.get_object()
        serializer = PayablePaymentInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        payment = PayableService.record_payment(
            payable,
            data['amount'],
            user=request.user,
            payment_method=data['payment_method'],
            notes=data['notes'],
            payment_date=data.get('payment_date'),
        )
        payable.refresh_from_db()
        return Response({
            'payment': PayablePaymentSerializer(payment).data,
            'payable': PayableSerializer(payable).data,
        }, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        serializer = CancelPayableSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        payable = PayableService.cancel(self.get_object(), reason=serializer.validated_data['reason'],
                                        user=request.user)
        return Response(PayableSerializer(payable).data)

    @action(detail=True, methods=['post'])
    def reopen(self, request, pk=None):
        payable = PayableService.reopen(self.get_object())
        return Response(PayableSerializer(payable).data)

    @action(detail=False, methods=['get'])
    def dashboard(self, request):
        data = PayableService.dashboard(self.get_tenant())
        return Response({
            'overview': data['overview'],
            'upcoming': PayableSerializer(data['upcoming'], many=True).data,
            'overdue': PayableSerializer(data['overdue'], many=True).data,
        })


class PayablePaymentViewSet(TenantScopedMixin, mixins.ListModelMixin, mixins.RetrieveModelMixin,
                            viewsets.GenericViewSet):
    serializer_class = PayablePaymentSerializer
    permission_classes = STAFF_PERMISSIONS
    required_modules = ['purchases']

    def get_queryset(self):
        qs = PayablePayment.objects.filter(payable__tenant=self.get_tenant()).select_related('payable', 'paid_by')
        if self.request.query_params.get('payable'):
            qs = qs.filter(payable_id=self.request.query_params['payable'])
        return qs

    @action(detail=True, methods=['post'])
    def reverse(self, request, pk=None):
        payable = PayableService.reverse_payment(self.get_object(), user=request.user)
        return Response({
            'payment': PayablePaymentSerializer(PayablePayment.objects.get(pk=pk)).data,
            'payable': PayableSerializer(payable).data,
        })
