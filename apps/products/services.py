"""
Product CSV import/export
"""
import csv
import io
import logging
from decimal import Decimal, InvalidOperation

import pandas as pd
from django.db import transaction

from apps.core.exceptions import BusinessError
from apps.inventory.models import MovementSource, MovementType
from apps.inventory.services import StockService
from apps.tenants.middleware import check_plan_limit

from .models import Brand, Category, Product

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = [
    'sku', 'name', 'category', 'brand', 'unit', 'price', 'wholesale_price',
    'cost', 'stock', 'reserved_stock', 'min_stock', 'status', 'featured', 'image_url',
]


def _text(row, column, default=''):
    value = row.get(column)
    if value is None or pd.isna(value):
        return default
    return str(value).strip()


def _money(row, column):
    raw = _text(row, column)
    if not raw:
        return None
    try:
        return Decimal(raw.replace('R$', '').replace(' ', '').replace(',', '.')).quantize(Decimal('0.01'))
    except InvalidOperation:
        raise BusinessError(f"Valor inválido em '{column}': {raw}")


def _int(row, column):
    raw = _text(row, column)
    if not raw:
        return None
    try:
        return int(float(raw.replace(',', '.')))
    except ValueError:
        raise BusinessError(f"Número inválido em '{column}': {raw}")


class ProductImportService:
    """
    Upsert products by SKU from a CSV.
    Columns: sku, name, price, wholesale_price, cost, stock, min_stock,
    category, brand, unit, description, image_url
    """

    @staticmethod
    def decode(file_obj):
        raw = file_obj.read()
        if isinstance(raw, bytes):
            try:
                raw = raw.decode('utf-8-sig')
            except UnicodeDecodeError:
                # Spreadsheets saved on Windows
                raw = raw.decode('latin-1')
        return raw

    @classmethod
    def read(cls, file_obj):
        raw = cls.decode(file_obj)
        try:
            df = pd.read_csv(io.StringIO(raw), dtype=str, sep=None, engine='python')
        except (pd.errors.ParserError, pd.errors.EmptyDataError, csv.Error) as e:
            raise BusinessError(f"Arquivo CSV inválido: {e}")
        df.columns = [str(c).strip().lower() for c in df.columns]
        if 'name' not in df.columns:
            raise BusinessError("O arquivo precisa da coluna 'name'.")
        return df

    @staticmethod
    def import_dataframe(tenant, user, df):
        created, updated, errors = 0, 0, []

        for index, row in df.iterrows():
            line = index + 2  # header + 1-based
            try:
                with transaction.atomic():
                    name = _text(row, 'name')
                    if not name:
                        raise BusinessError("Nome obrigatório.")

                    sku = _text(row, 'sku') or None
                    product = Product.objects.filter(tenant=tenant, sku=sku).first() if sku else None
                    is_new = product is None
                    if is_new:
                        check_plan_limit(tenant, 'products')
                        product = Product(tenant=tenant, sku=sku)

                    product.name = name
                    category_name = _text(row, 'category')
                    if category_name:
                        product.category = Category.objects.filter(tenant=tenant, name__iexact=category_name).first() \
                            or Category.objects.create(tenant=tenant, name=category_name)
                    brand_name = _text(row, 'brand')
                    if brand_name:
                        product.brand, _ = Brand.objects.get_or_create(tenant=tenant, name=brand_name)

                    price = _money(row, 'price')
                    if price is not None:
                        product.price = price
                    wholesale = _money(row, 'wholesale_price')
                    if wholesale is not None:
                        product.wholesale_price = wholesale
                    cost = _money(row, 'cost')
                    if cost is not None:
                        product.cost = cost
                    min_stock = _int(row, 'min_stock')
                    if min_stock is not None:
                        product.min_stock = min_stock
                    product.unit = _text(row, 'unit', product.unit or 'UN')[:10]
                    product.description = _text(row, 'description', product.description)
                    product.image_url = _text(row, 'image_url', product.image_url)
                    product.save()

                    stock = _int(row, 'stock')
                    if stock is not None and stock != product.stock:
                        StockService.create_movement(
                            product, user, MovementType.ADJ, stock,
                            reason="Importação CSV", source=MovementSource.IMPORT,
                        )

                    if is_new:
                        created += 1
                    else:
                        updated += 1
            except BusinessError as e:
                errors.append({'line': line, 'error': str(e)})

        logger.info(f"Importação CSV empresa {tenant.pk}: {created} criados, {updated} atualizados, {len(errors)} erros")
        return {'created': created, 'updated': updated, 'errors': errors}

    @classmethod
    def import_csv(cls, tenant, user, file_obj):
        return cls.import_dataframe(tenant, user, cls.read(file_obj))


class ProductExporter:
    """Catalog export as CSV"""

    def __init__(self, tenant):
        self.tenant = tenant

    def get_products(self):
        return Product.objects.filter(tenant=self.tenant).select_related('category', 'brand').order_by('name')

    def _row(self, product):
        return {
            'sku': product.sku,
            'name': product.name,
            'category': product.category.name if product.category else '',
            'brand': product.brand.name if product.brand else '',
            'unit': product.unit,
            'price': product.price,
            'wholesale_price': product.wholesale_price if product.wholesale_price is not None else '',
            'cost': product.cost if product.cost is not None else '',
            'stock': product.stock,
            'reserved_stock': product.reserved_stock,
            'min_stock': product.min_stock,
            'status': product.status,
            'featured': 'sim' if product.featured else 'não',
            'image_url': product.image_url,
        }

    def to_csv(self):
        output = io.StringIO()
        writer = csv.DictWriter(output, fieldnames=EXPORT_COLUMNS)
        writer.writeheader()
        for product in self.get_products():
            writer.writerow(self._row(product))
        return output.getvalue()
