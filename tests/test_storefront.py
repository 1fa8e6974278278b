from decimal import Decimal

import pytest
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from apps.core.models import StoreSettings
from apps.orders.models import Order
from apps.storefront.services import CatalogService
from tests.conftest import login
from tests.factories import (
    CatalogBannerFactory,
    CatalogSlideFactory,
    CategoryFactory,
    CouponFactory,
    CustomerMembershipFactory,
    CustomerProfileFactory,
    ProductFactory,
    TenantFactory,
)


def store_url(name, tenant, **kwargs):
    return reverse(name, kwargs={'slug': tenant.slug, **kwargs})


@pytest.fixture
def wholesale_client(tenant):
    membership = CustomerMembershipFactory(tenant=tenant)
    CustomerProfileFactory(membership=membership, customer_type='ATACADO')
    return login(APIClient(), membership.user)


@pytest.fixture
def catalog(tenant):
    """A retail tree plus a wholesale-only tree"""
    papelaria = CategoryFactory(tenant=tenant, name="Papelaria")
    cadernos = CategoryFactory(tenant=tenant, name="Cadernos", parent=papelaria)
    atacado = CategoryFactory(tenant=tenant, name="Atacado", hide_from_retail=True)
    caixas = CategoryFactory(tenant=tenant, name="Caixas fechadas", parent=atacado)
    return {
        'papelaria': papelaria,
        'cadernos': cadernos,
        'atacado': atacado,
        'caixas': caixas,
        'caderno': ProductFactory(tenant=tenant, category=cadernos, name="Caderno", stock=5,
                                  price=Decimal('20.00'), wholesale_price=Decimal('15.00')),
        'caixa': ProductFactory(tenant=tenant, category=caixas, name="Caixa de canetas", stock=50),
    }


@pytest.mark.django_db
class TestStoreInfo:
    def test_public_info(self, client, tenant):
        response = client.get(store_url('public-info', tenant))
        assert response.status_code == status.HTTP_200_OK
        assert response.data['slug'] == tenant.slug
        assert response.data['theme']['primary_color'] == 'orange'
        assert response.data['viewer'] == {
            'authenticated': False, 'is_member': False, 'approved': False, 'customer_type': None,
        }

    def test_viewer_of_wholesale_customer(self, wholesale_client, tenant):
        response = wholesale_client.get(store_url('public-info', tenant))
        assert response.data['viewer']['is_member'] is True
        assert response.data['viewer']['customer_type'] == 'ATACADO'

    def test_unknown_or_blocked_store(self, client):
        assert client.get(reverse('public-info', kwargs={'slug': 'nada'})).status_code == status.HTTP_404_NOT_FOUND
        blocked = TenantFactory(approval_status='BLOQUEADO')
        assert client.get(store_url('public-info', blocked)).status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.django_db
class TestCatalogVisibility:
    def test_retail_tree_hides_wholesale_branch(self, client, tenant, catalog):
        response = client.get(store_url('public-categories', tenant))
        assert [c['name'] for c in response.data] == ["Papelaria"]
        assert [c['name'] for c in response.data[0]['children']] == ["Cadernos"]

    def test_wholesale_customer_sees_everything(self, wholesale_client, tenant, catalog):
        response = wholesale_client.get(store_url('public-categories', tenant))
        assert [c['name'] for c in response.data] == ["Atacado", "Papelaria"]

    def test_pending_wholesale_customer_sees_retail(self, tenant, catalog):
        pending = CustomerMembershipFactory(tenant=tenant, approved=False)
        CustomerProfileFactory(membership=pending, customer_type='ATACADO')
        ids = set(CatalogService.visible_categories(tenant, pending).values_list('pk', flat=True))
        assert ids == {catalog['papelaria'].pk, catalog['cadernos'].pk}

    def test_staff_sees_hidden_categories(self, tenant, member, catalog):
        assert CatalogService.visible_categories(tenant, member).count() == 4

    def test_retail_products(self, client, tenant, catalog):
        ProductFactory(tenant=tenant, category=catalog['papelaria'], status='INATIVO')

        response = client.get(store_url('public-products', tenant))
        products = response.data['results']
        assert [p['name'] for p in products] == ["Caderno"]
        assert products[0]['price'] == '20.00'
        assert products[0]['available_stock'] == 5

    def test_wholesale_prices(self, wholesale_client, tenant, catalog):
        response = wholesale_client.get(store_url('public-products', tenant))
        by_name = {p['name']: p for p in response.data['results']}
        assert set(by_name) == {"Caderno", "Caixa de canetas"}
        assert by_name["Caderno"]['price'] == '15.00'
        assert by_name["Caderno"]['retail_price'] == '20.00'
        # Without a wholesale price the retail one applies
        assert by_name["Caixa de canetas"]['price'] == '10.00'

    def test_filter_by_category_includes_children(self, client, tenant, catalog):
        response = client.get(store_url('public-products', tenant), {'category': 'papelaria'})
        assert [p['name'] for p in response.data['results']] == ["Caderno"]

        response = client.get(store_url('public-products', tenant), {'category': 'atacado'})
        assert response.data['results'] == []

    def test_search_and_featured(self, client, tenant, catalog):
        ProductFactory(tenant=tenant, category=catalog['papelaria'], name="Lápis", featured=True)

        response = client.get(store_url('public-products', tenant), {'search': 'cad'})
        assert [p['name'] for p in response.data['results']] == ["Caderno"]

        response = client.get(store_url('public-products', tenant), {'featured': 'true'})
        assert [p['name'] for p in response.data['results']] == ["Lápis"]

    def test_hidden_product_detail(self, client, wholesale_client, tenant, catalog):
        caixa = catalog['caixa']
        url = store_url('public-product-detail', tenant, pk=caixa.pk)
        assert client.get(url).status_code == status.HTTP_404_NOT_FOUND

        response = wholesale_client.get(url)
        assert response.status_code == status.HTTP_200_OK
        assert response.data['id'] == caixa.pk
        assert response.data['name'] == "Caixa de canetas"

    def test_product_detail_uses_viewer_price(self, client, wholesale_client, tenant, catalog):
        url = store_url('public-product-detail', tenant, pk=catalog['caderno'].pk)
        assert client.get(url).data['price'] == '20.00'
        assert wholesale_client.get(url).data['price'] == '15.00'

    def test_delivery_catalog_hides_stock(self, client, tenant, catalog):
        store = StoreSettings.get_settings(tenant)
        store.delivery_catalog_mode = True
        store.save()

        response = client.get(store_url('public-products', tenant))
        assert response.data['results'][0]['available_stock'] is None

    def test_slides_and_banners(self, client, tenant):
        CatalogSlideFactory(tenant=tenant, title="Volta às aulas", order=1)
        CatalogSlideFactory(tenant=tenant, title="Antigo", active=False)
        CatalogBannerFactory(tenant=tenant, title="Topo", position='TOPO')
        CatalogBannerFactory(tenant=tenant, title="Rodapé", position='RODAPE')

        slides = client.get(store_url('public-slides', tenant)).data
        assert [s['title'] for s in slides] == ["Volta às aulas"]

        banners = client.get(store_url('public-banners', tenant), {'position': 'rodape'}).data
        assert [b['title'] for b in banners] == ["Rodapé"]

        assert client.get(store_url('public-banners', tenant), {'position': 'ceu'}).data == []


@pytest.mark.django_db
class TestCart:
    def test_add_merge_update_remove(self, client, tenant, catalog):
        caderno = catalog['caderno']
        items_url = store_url('public-cart-items', tenant)

        response = client.post(items_url, {'product_id': caderno.pk, 'quantity': 2}, format='json')
        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['item_count'] == 2

        response = client.post(items_url, {'product_id': caderno.pk}, format='json')
        assert response.data['item_count'] == 3
        assert response.data['subtotal'] == '60.00'
        assert response.data['items'][0]['unit_price'] == '20.00'

        item_url = store_url('public-cart-item', tenant, product_id=caderno.pk)
        response = client.patch(item_url, {'quantity': 1}, format='json')
        assert response.data['item_count'] == 1

        response = client.delete(item_url)
        assert response.data['items'] == []

    def test_quantity_above_stock(self, client, tenant, catalog):
        response = client.post(
            store_url('public-cart-items', tenant), {'product_id': catalog['caderno'].pk, 'quantity': 6}, format='json'
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_delivery_catalog_ignores_stock(self, client, tenant, catalog):
        store = StoreSettings.get_settings(tenant)
        store.delivery_catalog_mode = True
        store.save()
        response = client.post(
            store_url('public-cart-items', tenant), {'product_id': catalog['caderno'].pk, 'quantity': 60}, format='json'
        )
        assert response.status_code == status.HTTP_201_CREATED

    def test_patch_zero_removes(self, client, tenant, catalog):
        caderno = catalog['caderno']
        client.post(store_url('public-cart-items', tenant), {'product_id': caderno.pk}, format='json')
        response = client.patch(store_url('public-cart-item', tenant, product_id=caderno.pk), {'quantity': 0}, format='json')
        assert response.data['item_count'] == 0

    def test_cart_is_per_store(self, client, tenant, catalog):
        other_product = ProductFactory(stock=5)
        client.post(store_url('public-cart-items', tenant), {'product_id': catalog['caderno'].pk}, format='json')
        client.post(store_url('public-cart-items', other_product.tenant), {'product_id': other_product.pk}, format='json')

        assert client.get(store_url('public-cart', tenant)).data['item_count'] == 1
        assert client.get(store_url('public-cart', other_product.tenant)).data['item_count'] == 1

        client.delete(store_url('public-cart', tenant))
        assert client.get(store_url('public-cart', tenant)).data['item_count'] == 0
        assert client.get(store_url('public-cart', other_product.tenant)).data['item_count'] == 1

    def test_foreign_product(self, client, tenant):
        foreign = ProductFactory(stock=5)
        response = client.post(store_url('public-cart-items', tenant), {'product_id': foreign.pk}, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_hidden_product_is_refused_to_retail(self, client, wholesale_client, tenant, catalog):
        items_url = store_url('public-cart-items', tenant)
        response = client.post(items_url, {'product_id': catalog['caixa'].pk}, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert client.get(store_url('public-cart', tenant)).data['item_count'] == 0

        response = wholesale_client.post(items_url, {'product_id': catalog['caixa'].pk}, format='json')
        assert response.status_code == status.HTTP_201_CREATED

    def test_deactivated_product_leaves_the_cart(self, client, tenant, catalog):
        caderno = catalog['caderno']
        client.post(store_url('public-cart-items', tenant), {'product_id': caderno.pk}, format='json')
        caderno.status = 'INATIVO'
        caderno.save()

        response = client.get(store_url('public-cart', tenant))
        assert response.data['items'] == []
        assert client.session[f"zeno_cart:{tenant.slug}"] == {}


@pytest.mark.django_db
class TestCheckout:
    def test_shipping_options(self, client, tenant):
        response = client.get(store_url('public-shipping-options', tenant))
        assert [o['id'] for o in response.data] == ['economico', 'normal', 'expresso', 'combinar']
        assert response.data[1]['price'] == '45.90'

    def test_anonymous_checkout(self, client, tenant):
        response = client.post(store_url('public-checkout', tenant), {'shipping_method': 'normal'}, format='json')
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.data['code'] == 'not_authenticated'

    def test_checkout_creates_quote(self, customer_client, tenant, customer, catalog):
        caderno = catalog['caderno']
        customer_client.post(store_url('public-cart-items', tenant), {'product_id': caderno.pk, 'quantity': 2}, format='json')

        response = customer_client.post(store_url('public-checkout', tenant), {
            'shipping_method': 'normal', 'notes': 'Entregar à tarde',
        }, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        order = Order.objects.get(pk=response.data['id'])
        assert order.status == 'ORCAMENTO'
        assert order.channel == 'SITE'
        assert order.customer == customer.user
        assert order.total == Decimal('85.90')
        assert order.shipping_method == 'normal'
        # Quotes don't reserve
        caderno.refresh_from_db()
        assert caderno.reserved_stock == 0

        assert customer_client.get(store_url('public-cart', tenant)).data['item_count'] == 0

    def test_checkout_with_coupon(self, customer_client, tenant, catalog):
        CouponFactory(tenant=tenant, code='DEZ')
        customer_client.post(store_url('public-cart-items', tenant), {'product_id': catalog['caderno'].pk}, format='json')

        response = customer_client.post(store_url('public-checkout', tenant), {
            'shipping_method': 'combinar', 'coupon_code': 'dez',
        }, format='json')
        assert response.data['discount_total'] == '2.00'
        assert response.data['total'] == '18.00'

    def test_pending_customer(self, tenant, catalog):
        pending = CustomerMembershipFactory(tenant=tenant, approved=False)
        pending_client = login(APIClient(), pending.user)
        pending_client.post(store_url('public-cart-items', tenant), {'product_id': catalog['caderno'].pk}, format='json')

        response = pending_client.post(store_url('public-checkout', tenant), {'shipping_method': 'normal'}, format='json')
        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data['code'] == 'pending_approval'

    def test_staff_cannot_checkout(self, auth_client, tenant, catalog):
        auth_client.post(store_url('public-cart-items', tenant), {'product_id': catalog['caderno'].pk}, format='json')
        response = auth_client.post(store_url('public-checkout', tenant), {'shipping_method': 'normal'}, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_empty_cart_and_bad_shipping(self, customer_client, tenant, catalog):
        response = customer_client.post(store_url('public-checkout', tenant), {'shipping_method': 'normal'}, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST

        customer_client.post(store_url('public-cart-items', tenant), {'product_id': catalog['caderno'].pk}, format='json')
        response = customer_client.post(store_url('public-checkout', tenant), {'shipping_method': 'foguete'}, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert not Order.objects.exists()

    def test_stale_items_are_dropped_at_checkout(self, customer_client, tenant, catalog):
        caderno = catalog['caderno']
        lapis = ProductFactory(tenant=tenant, category=catalog['cadernos'], name="Lápis", stock=10,
                               price=Decimal('3.00'))
        items_url = store_url('public-cart-items', tenant)
        customer_client.post(items_url, {'product_id': caderno.pk}, format='json')
        customer_client.post(items_url, {'product_id': lapis.pk, 'quantity': 2}, format='json')
        lapis.status = 'INATIVO'
        lapis.save()

        response = customer_client.post(store_url('public-checkout', tenant), {'shipping_method': 'combinar'}, format='json')
        assert response.status_code == status.HTTP_201_CREATED
        order = Order.objects.get(pk=response.data['id'])
        assert list(order.items.values_list('product_id', flat=True)) == [caderno.pk]
        assert order.total == Decimal('20.00')

    def test_cart_emptied_by_hidden_category(self, customer_client, tenant, catalog):
        customer_client.post(store_url('public-cart-items', tenant), {'product_id': catalog['caderno'].pk}, format='json')
        catalog['papelaria'].hide_from_retail = True
        catalog['papelaria'].save()

        response = customer_client.post(store_url('public-checkout', tenant), {'shipping_method': 'normal'}, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['detail'] == "Carrinho vazio."
        assert not Order.objects.exists()
