import pytest
from rest_framework import status

from apps.core.exceptions import BusinessError, InsufficientStockError
from apps.inventory.models import MovementType, StockMovement
from apps.inventory.services import StockService
from tests.conftest import login
from tests.factories import ProductFactory, TenantMembershipFactory


@pytest.mark.django_db
class TestInventoryLogic:
    def test_stock_movement_logic(self, tenant, user):
        """Verify IN, OUT and ADJ keep the ledger consistent"""
        product = ProductFactory(tenant=tenant, stock=0)

        # Valid IN
        StockService.create_movement(product, user, MovementType.IN, 10, "Initial stock")
        product.refresh_from_db()
        assert product.stock == 10

        # Valid OUT
        StockService.create_movement(product, user, MovementType.OUT, 3, "Sale")
        product.refresh_from_db()
        assert product.stock == 7

        # ADJ sets the absolute balance
        movement = StockService.create_movement(product, user, MovementType.ADJ, 2, "Inventory count")
        product.refresh_from_db()
        assert product.stock == 2
        assert movement.balance_after == 2

        assert StockMovement.objects.filter(product=product).count() == 3

    def test_out_beyond_stock(self, tenant, user):
        product = ProductFactory(tenant=tenant, stock=5)
        with pytest.raises(InsufficientStockError):
            StockService.create_movement(product, user, MovementType.OUT, 6)
        product.refresh_from_db()
        assert product.stock == 5
        assert not StockMovement.objects.filter(product=product).exists()

    def test_out_cannot_consume_reserved(self, tenant, user):
        product = ProductFactory(tenant=tenant, stock=10)
        StockService.reserve(product, 8)
        with pytest.raises(InsufficientStockError):
            StockService.create_movement(product, user, MovementType.OUT, 3)

    def test_adjust_below_reserved(self, tenant, user):
        product = ProductFactory(tenant=tenant, stock=10)
        StockService.reserve(product, 4)
        with pytest.raises(BusinessError):
            StockService.create_movement(product, user, MovementType.ADJ, 3)

    def test_quantity_rules(self, tenant, user):
        product = ProductFactory(tenant=tenant, stock=10)
        with pytest.raises(BusinessError):
            StockService.create_movement(product, user, MovementType.IN, 0)
        with pytest.raises(BusinessError):
            StockService.create_movement(product, user, MovementType.IN, -2)

        # Zeroing the stock is a valid adjustment
        StockService.create_movement(product, user, MovementType.ADJ, 0)
        assert product.stock == 0

    def test_reservation_cycle(self, tenant):
        product = ProductFactory(tenant=tenant, stock=10)

        StockService.reserve(product, 4)
        assert (product.stock, product.reserved_stock, product.available_stock) == (10, 4, 6)

        with pytest.raises(InsufficientStockError):
            StockService.reserve(product, 7)

        StockService.deduct_reserved(product, 4)
        assert (product.stock, product.reserved_stock) == (6, 0)

        StockService.unpost_to_reserved(product, 4)
        assert (product.stock, product.reserved_stock) == (10, 4)

        StockService.release(product, 4)
        assert (product.stock, product.reserved_stock) == (10, 0)

        StockService.restock(product, 2)
        product.refresh_from_db()
        assert (product.stock, product.reserved_stock) == (12, 0)

    def test_release_never_goes_negative(self, tenant):
        product = ProductFactory(tenant=tenant, stock=10)
        StockService.reserve(product, 2)
        StockService.release(product, 5)
        assert product.reserved_stock == 0

    def test_movements_are_immutable(self, tenant, user):
        product = ProductFactory(tenant=tenant, stock=1)
        movement = StockService.create_movement(product, user, MovementType.IN, 1)
        movement.quantity = 50
        with pytest.raises(ValueError):
            movement.save()
        with pytest.raises(ValueError):
            movement.delete()

    def test_low_stock(self, tenant):
        low = ProductFactory(tenant=tenant, stock=2, min_stock=5)
        ProductFactory(tenant=tenant, stock=20, min_stock=5)
        ProductFactory(tenant=tenant, stock=0, min_stock=5, status='INATIVO')

        assert list(StockService.low_stock(tenant)) == [low]


@pytest.mark.django_db
class TestStockMovementAPI:
    def test_manual_movement(self, auth_client, tenant):
        product = ProductFactory(tenant=tenant, stock=5)
        response = auth_client.post('/api/v1/movements/', {
            'product': product.pk, 'type': 'IN', 'quantity': 7, 'reason': 'Compra',
        }, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['balance_after'] == 12
        product.refresh_from_db()
        assert product.stock == 12

    def test_reservations_are_not_manual(self, auth_client, tenant):
        product = ProductFactory(tenant=tenant, stock=5)
        response = auth_client.post('/api/v1/movements/', {
            'product': product.pk, 'type': 'RESERVE', 'quantity': 1,
        }, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_insufficient_stock_envelope(self, auth_client, tenant):
        product = ProductFactory(tenant=tenant, stock=1)
        response = auth_client.post('/api/v1/movements/', {
            'product': product.pk, 'type': 'OUT', 'quantity': 2,
        }, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['code'] == 'insufficient_stock'

    def test_movements_cannot_be_deleted(self, auth_client, tenant, user):
        product = ProductFactory(tenant=tenant, stock=1)
        movement = StockService.create_movement(product, user, MovementType.IN, 1)
        response = auth_client.delete(f'/api/v1/movements/{movement.pk}/')
        assert response.status_code == status.HTTP_405_METHOD_NOT_ALLOWED

    def test_filter_by_product(self, auth_client, tenant, user):
        first = ProductFactory(tenant=tenant, stock=1)
        second = ProductFactory(tenant=tenant, stock=1)
        StockService.create_movement(first, user, MovementType.IN, 1)
        StockService.create_movement(second, user, MovementType.IN, 1)

        response = auth_client.get('/api/v1/movements/', {'product': first.pk})
        assert [m['product'] for m in response.data['results']] == [first.pk]

    def test_low_stock_endpoint(self, auth_client, tenant):
        ProductFactory(tenant=tenant, stock=0, min_stock=3, name="Cola")
        response = auth_client.get('/api/v1/movements/low-stock/')
        assert response.status_code == status.HTTP_200_OK
        assert [p['name'] for p in response.data['results']] == ["Cola"]

    def test_sales_role_has_no_stock_access(self, client, tenant):
        seller = TenantMembershipFactory(tenant=tenant, role='SALES')
        login(client, seller.user)
        assert client.get('/api/v1/movements/').status_code == status.HTTP_403_FORBIDDEN
