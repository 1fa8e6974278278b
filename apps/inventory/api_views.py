from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.core.api.views import TenantScopedMixin

from .models import StockMovement
from .serializers import LowStockSerializer, ManualMovementSerializer, StockMovementSerializer
from .services import StockService


class StockMovementViewSet(TenantScopedMixin, mixins.ListModelMixin, mixins.RetrieveModelMixin,
                           mixins.CreateModelMixin, viewsets.GenericViewSet):
    """
    Stock ledger: list/retrieve movements and launch manual IN/OUT/ADJ.
    Movements are immutable, so there is no update or delete.
    """
    serializer_class = StockMovementSerializer
    required_modules = ['products']

    def get_queryset(self):
        qs = StockMovement.objects.filter(tenant=self.get_tenant()).select_related('product', 'user', 'order')
        params = self.request.query_params
        if params.get('product'):
            qs = qs.filter(product_id=params['product'])
        if params.get('type'):
            qs = qs.filter(type=params['type'])
        if params.get('order'):
            qs = qs.filter(order_id=params['order'])
        return qs

    def create(self, request, *args, **kwargs):
        serializer = ManualMovementSerializer(data=request.data, context=self.get_serializer_context())
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        movement = StockService.create_movement(
            data['product'], request.user, data['type'], data['quantity'], reason=data['reason'],
        )
        return Response(StockMovementSerializer(movement).data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=['get'], url_path='low-stock')
    def low_stock(self, request):
        products = StockService.low_stock(self.get_tenant())
        page = self.paginate_queryset(products)
        if page is not None:
            return self.get_paginated_response(LowStockSerializer(page, many=True).data)
        return Response(LowStockSerializer(products, many=True).data)
