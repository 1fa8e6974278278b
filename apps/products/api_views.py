import io
import logging

from django.conf import settings
from django.db import transaction
from django.db.models import F, Q
from django.http import HttpResponse
from kombu.exceptions import OperationalError
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.response import Response

from apps.core.api.views import BaseTenantViewSet
from apps.core.models import VisualAuditLog
from apps.inventory.models import MovementType
from apps.inventory.services import StockService
from apps.tenants.middleware import check_plan_limit

from .models import Brand, Category, Product
from .serializers import (
    AdjustStockSerializer,
    BrandSerializer,
    CategorySerializer,
    ImportSerializer,
    ProductSerializer,
)
from .services import ProductExporter, ProductImportService
from .tasks import import_products_task

logger = logging.getLogger(__name__)

TRUE_VALUES = ('1', 'true', 'sim', 'yes')


class ProductViewSet(BaseTenantViewSet):
    """
    API endpoint that allows products to be viewed or edited.
    Automatically identifies the tenant and filters results.
    """
    queryset = Product.objects.all().select_related('category', 'brand')
    serializer_class = ProductSerializer
    required_modules = ['products', 'sales_catalog', 'orders']
    write_modules = ['products']
    parser_classes = [JSONParser, MultiPartParser, FormParser]

    def get_queryset(self):
        qs = super().get_queryset()
        params = self.request.query_params

        search = params.get('search')
        if search:
            qs = qs.filter(Q(name__icontains=search) | Q(sku__icontains=search) | Q(gtin__icontains=search))
        if params.get('category'):
            qs = qs.filter(category_id=params['category'])
        if params.get('brand'):
            qs = qs.filter(brand_id=params['brand'])
        if params.get('status'):
            qs = qs.filter(status=params['status'])
        if params.get('featured', '').lower() in TRUE_VALUES:
            qs = qs.filter(featured=True)
        if params.get('low_stock', '').lower() in TRUE_VALUES:
            qs = qs.filter(stock__lte=F('min_stock'))
        return qs

    def create(self, request, *args, **kwargs):
        tenant = self.get_tenant()
        check_plan_limit(tenant, 'products')

        response = super().create(request, *args, **kwargs)

        VisualAuditLog.record(
            tenant, 'PRODUCT', response.data.get('id'), 'CREATE',
            after={k: str(v) for k, v in response.data.items() if k in ('sku', 'name', 'price', 'status')},
            user=request.user,
            source='API',
        )
        return response

    def perform_update(self, serializer):
        before = {'name': serializer.instance.name, 'price': str(serializer.instance.price),
                  'status': serializer.instance.status}
        product = serializer.save()
        VisualAuditLog.record(
            product.tenant, 'PRODUCT', product.pk, 'UPDATE', before=before,
            after={'name': product.name, 'price': str(product.price), 'status': product.status},
            user=self.request.user,
        )

    @action(detail=True, methods=['post'], url_path='toggle-featured')
    def toggle_featured(self, request, pk=None):
        product = self.get_object()
        product.featured = not product.featured
        product.save(update_fields=['featured', 'updated_at'])
        return Response({'id': product.pk, 'featured': product.featured})

    @action(detail=True, methods=['post'], url_path='adjust-stock')
    def adjust_stock(self, request, pk=None):
        product = self.get_object()
        serializer = AdjustStockSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        movement = StockService.create_movement(
            product,
            request.user,
            MovementType.ADJ,
            serializer.validated_data['quantity'],
            reason=serializer.validated_data['reason'] or "Ajuste manual",
        )
        return Response({
            'id': product.pk,
            'stock': product.stock,
            'reserved_stock': product.reserved_stock,
            'available_stock': product.available_stock,
            'movement_id': movement.pk,
        })

    @action(detail=False, methods=['post'], url_path='import')
    def import_csv(self, request):
        serializer = ImportSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        tenant = self.get_tenant()
        upload = serializer.validated_data['file']

        if upload.size > settings.PRODUCT_IMPORT_ASYNC_BYTES:
            content = ProductImportService.decode(upload)
            try:
                task = import_products_task.delay(tenant.pk, request.user.pk, content)
            except OperationalError as e:
                logger.warning(f"Fila indisponível, importando de forma síncrona para empresa {tenant.pk}: {e}")
            else:
                logger.info(f"Importação enviada para a fila: empresa {tenant.pk}, tarefa {task.id}")
                return Response({'status': 'queued', 'task_id': task.id}, status=status.HTTP_202_ACCEPTED)
            result = ProductImportService.import_csv(tenant, request.user, io.StringIO(content))
        else:
            result = ProductImportService.import_csv(tenant, request.user, upload)
        return Response(result, status=status.HTTP_200_OK)

    @action(detail=False, methods=['get'], url_path='export')
    def export_csv(self, request):
        content = ProductExporter(self.get_tenant()).to_csv()
        response = HttpResponse(content, content_type='text/csv; charset=utf-8')
        response['Content-Disposition'] = 'attachment; filename="produtos.csv"'
        return response


class CategoryViewSet(BaseTenantViewSet):
    queryset = Category.objects.all().select_related('parent')
    serializer_class = CategorySerializer
    required_modules = ['products', 'sales_catalog', 'orders']
    write_modules = ['products']

    @transaction.atomic
    def perform_destroy(self, instance):
        # Children move up one level
        Category.objects.filter(tenant=instance.tenant, parent=instance).update(parent=instance.parent_id)
        instance.delete()


class BrandViewSet(BaseTenantViewSet):
    queryset = Brand.objects.all()
    serializer_class = BrandSerializer
    required_modules = ['products', 'sales_catalog', 'orders']
    write_modules = ['products']
