from rest_framework import serializers

from apps.core.api.views import TenantSerializerMixin
from apps.tenants.middleware import resolve_tenant

from .models import Payable, PayablePayment, PaymentTerm, PurchaseOrder, PurchaseOrderItem, Supplier
from .services import SupplierService


class SupplierSerializer(TenantSerializerMixin, serializers.ModelSerializer):
    cnpj = serializers.CharField(max_length=18, required=False, allow_blank=True)
    formatted_cnpj = serializers.ReadOnlyField()
    display_name = serializers.ReadOnlyField()

    class Meta:
        model = Supplier
        fields = [
            'id', 'name', 'trade_name', 'display_name', 'cnpj', 'formatted_cnpj', 'email', 'phone',
            'contact_name', 'lead_time_days', 'city', 'state', 'notes', 'is_active', 'created_at',
        ]
        read_only_fields = ['created_at']

    def validate_cnpj(self, value):
        return SupplierService.clean_cnpj(resolve_tenant(self.context['request']), value, exclude=self.instance)

    def validate_state(self, value):
        value = (value or '').strip().upper()
        if value and (len(value) != 2 or not value.isalpha()):
            raise serializers.ValidationError("UF deve ter 2 letras.")
        return value


class PaymentTermSerializer(TenantSerializerMixin, serializers.ModelSerializer):
    class Meta:
        model = PaymentTerm
        fields = [
            'id', 'name', 'installment_count', 'first_payment_days', 'interval_days',
            'sort_order', 'active', 'created_at',
        ]
        read_only_fields = ['created_at']

    def validate_installment_count(self, value):
        if value < 1:
            raise serializers.ValidationError("Mínimo de 1 parcela.")
        return value


class PurchaseOrderItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = PurchaseOrderItem
        fields = ['id', 'product', 'sku_snapshot', 'description_snapshot', 'quantity', 'unit_cost', 'line_total']
        read_only_fields = fields


class PurchaseOrderSerializer(serializers.ModelSerializer):
    code = serializers.ReadOnlyField()
    supplier_name = serializers.ReadOnlyField(source='supplier.display_name')
    payment_term_name = serializers.ReadOnlyField(source='payment_term.name')
    items = PurchaseOrderItemSerializer(many=True, read_only=True)

    class Meta:
        model = PurchaseOrder
        fields = [
            'id', 'number', 'code', 'status', 'supplier', 'supplier_name', 'payment_term', 'payment_term_name',
            'notes', 'total', 'items', 'created_at', 'finalized_at', 'posted_at', 'reversed_at',
        ]
        read_only_fields = fields


class PurchaseLineSerializer(serializers.Serializer):
    product = serializers.IntegerField()
    quantity = serializers.IntegerField(min_value=1)
    unit_cost = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0, required=False)


class TenantLookupMixin:
    """Resolves supplier / payment term ids inside the active company"""

    def _tenant(self):
        return resolve_tenant(self.context['request'])

    def validate_supplier(self, value):
        if value is None:
            return None
        supplier = Supplier.objects.filter(tenant=self._tenant(), pk=value).first()
        if supplier is None:
            raise serializers.ValidationError("Fornecedor não encontrado.")
        return supplier

    def validate_payment_term(self, value):
        if value is None:
            return None
        term = PaymentTerm.objects.filter(tenant=self._tenant(), pk=value).first()
        if term is None:
            raise serializers.ValidationError("Condição de prazo não encontrada.")
        return term


class PurchaseOrderInputSerializer(TenantLookupMixin, serializers.Serializer):
    supplier = serializers.IntegerField(required=False, allow_null=True)
    payment_term = serializers.IntegerField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True)
    items = PurchaseLineSerializer(many=True, required=False)

    def validate_items(self, value):
        if not value:
            raise serializers.ValidationError("Informe ao menos um item.")
        return value


class PayablePaymentSerializer(serializers.ModelSerializer):
    paid_by_name = serializers.ReadOnlyField(source='paid_by.username')
    is_reversed = serializers.ReadOnlyField()

    class Meta:
        model = PayablePayment
        fields = [
            'id', 'payable', 'amount', 'payment_method', 'payment_date', 'notes',
            'paid_by', 'paid_by_name', 'created_at', 'reversed_at', 'is_reversed',
        ]
        read_only_fields = fields


class PayableSerializer(serializers.ModelSerializer):
    supplier_name = serializers.ReadOnlyField(source='supplier.display_name')
    purchase_code = serializers.ReadOnlyField(source='purchase_order.code')
    pending_amount = serializers.ReadOnlyField()
    is_overdue = serializers.ReadOnlyField()

    class Meta:
        model = Payable
        fields = [
            'id', 'supplier', 'supplier_name', 'purchase_order', 'purchase_code', 'description',
            'amount', 'paid_amount', 'pending_amount', 'due_date', 'installment_number', 'installment_count',
            'status', 'is_overdue', 'paid_at', 'cancelled_at', 'cancel_reason', 'created_at',
        ]
        read_only_fields = fields


class PayableDetailSerializer(PayableSerializer):
    payments = PayablePaymentSerializer(many=True, read_only=True)

    class Meta(PayableSerializer.Meta):
        fields = PayableSerializer.Meta.fields + ['payments']
        read_only_fields = fields


class ManualPayableSerializer(TenantLookupMixin, serializers.Serializer):
    supplier = serializers.IntegerField(required=False, allow_null=True)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    due_date = serializers.DateField()
    description = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')


class PayablePaymentInputSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    payment_method = serializers.CharField(max_length=50, required=False, allow_blank=True, default='')
    payment_date = serializers.DateField(required=False)
    notes = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')


class CancelPayableSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')
