from decimal import Decimal, InvalidOperation

from django.utils import timezone
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from apps.accounts.permissions import HasModule, IsStaffMember
from apps.core.api.views import TenantScopedMixin
from apps.tenants.middleware import TenantRequired

from .models import OPEN_STATUSES, CreditPayment, CustomerCredit
from .serializers import (
    CreditPaymentSerializer,
    CustomerCreditDetailSerializer,
    CustomerCreditSerializer,
    ManualCreditSerializer,
    PaymentInputSerializer,
)
from .services import CreditService


def _percent_param(request, name):
    raw = request.query_params.get(name)
    if raw in (None, ''):
        return None
    try:
        value = Decimal(raw.replace(',', '.'))
    except InvalidOperation:
        raise ValidationError({name: "Percentual inválido."})
    if not value.is_finite():
        raise ValidationError({name: "Percentual inválido."})
    if not Decimal('0') <= value <= Decimal('100'):
        raise ValidationError({name: "Percentual deve estar entre 0 e 100."})
    return value


class CustomerCreditViewSet(TenantScopedMixin, mixins.ListModelMixin, mixins.RetrieveModelMixin,
                            mixins.CreateModelMixin, viewsets.GenericViewSet):
    """Fiado ledger of the active company"""
    permission_classes = [IsAuthenticated, TenantRequired, IsStaffMember]
    required_modules = ['credits']

    def get_permissions(self):
        permissions = super().get_permissions()
        if self.action != 'my_balance':
            permissions.append(HasModule())
        return permissions

    def get_serializer_class(self):
        if self.action == 'retrieve':
            return CustomerCreditDetailSerializer
        return CustomerCreditSerializer

    def get_queryset(self):
        qs = CustomerCredit.objects.filter(tenant=self.get_tenant()).select_related('customer', 'order')
        params = self.request.query_params
        if params.get('customer'):
            qs = qs.filter(customer_id=params['customer'])
        if params.get('status'):
            qs = qs.filter(status=params['status'])
        if params.get('overdue', '').lower() in ('1', 'true'):
            qs = qs.filter(status__in=OPEN_STATUSES, due_date__lt=timezone.localdate())
        if self.action == 'retrieve':
            qs = qs.prefetch_related('payments')
        return qs

    def create(self, request, *args, **kwargs):
        serializer = ManualCreditSerializer(data=request.data, context=self.get_serializer_context())
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        credit = CreditService.create_manual(
            self.get_tenant(), data['customer'], data['amount'], data['due_date'],
            description=data['description'], user=request.user,
        )
        return Response(CustomerCreditSerializer(credit).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'])
    def payments(self, request, pk=None):
        credit = self.get_object()
        serializer = PaymentInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        payment = CreditService.record_payment(
            credit,
            serializer.validated_data['amount'],
            user=request.user,
            payment_method=serializer.validated_data['payment_method'],
            notes=serializer.validated_data['notes'],
        )
        credit.refresh_from_db()
        return Response({
            'payment': CreditPaymentSerializer(payment).data,
            'credit': CustomerCreditSerializer(credit).data,
        }, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        credit = CreditService.cancel_credit(self.get_object(), user=request.user)
        return Response(CustomerCreditSerializer(credit).data)

    @action(detail=True, methods=['get'])
    def financial(self, request, pk=None):
        credit = self.get_object()
        view = CreditService.financial_view(
            credit, rate=_percent_param(request, 'rate'), fine=_percent_param(request, 'fine')
        )
        return Response({'credit': credit.pk, **view})

    @action(detail=False, methods=['get'])
    def dashboard(self, request):
        data = CreditService.dashboard(self.get_tenant())
        return Response({
            'overview': data['overview'],
            'customer_summaries': data['customer_summaries'],
            'upcoming_payments': CustomerCreditSerializer(data['upcoming_payments'], many=True).data,
            'overdue_payments': CustomerCreditSerializer(data['overdue_payments'], many=True).data,
            'recent_payments': CreditPaymentSerializer(data['recent_payments'], many=True).data,
        })

    @action(detail=False, methods=['get'])
    def balance(self, request):
        customer_id = request.query_params.get('customer')
        if not customer_id or not customer_id.isdigit():
            raise ValidationError({'customer': "Informe o cliente."})
        balance = CreditService.customer_balance(self.get_tenant(), int(customer_id))
        return Response({'customer': int(customer_id), **balance})

    @action(detail=False, methods=['get'], url_path='my-balance',
            permission_classes=[IsAuthenticated, TenantRequired])
    def my_balance(self, request):
        tenant = self.get_tenant()
        balance = CreditService.customer_balance(tenant, request.user)
        open_credits = CustomerCredit.objects.filter(
            tenant=tenant, customer=request.user, status__in=OPEN_STATUSES
        ).select_related('order')
        return Response({
            **balance,
            'credits': CustomerCreditSerializer(open_credits, many=True).data,
        })


class CreditPaymentViewSet(TenantScopedMixin, mixins.ListModelMixin, mixins.RetrieveModelMixin,
                           viewsets.GenericViewSet):
    serializer_class = CreditPaymentSerializer
    permission_classes = [IsAuthenticated, TenantRequired, IsStaffMember, HasModule]
    required_modules = ['credits']

    def get_queryset(self):
        qs = CreditPayment.objects.filter(credit__tenant=self.get_tenant()).select_related('credit', 'received_by')
        if self.request.query_params.get('credit'):
            qs = qs.filter(credit_id=self.request.query_params['credit'])
        return qs

    @action(detail=True, methods=['post'])
    def reverse(self, request, pk=None):
        credit = CreditService.reverse_payment(self.get_object(), user=request.user)
        return Response({
            'payment': CreditPaymentSerializer(CreditPayment.objects.get(pk=pk)).data,
            'credit': CustomerCreditSerializer(credit).data,
        })
