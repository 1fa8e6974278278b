from decimal import Decimal

import factory
from django.contrib.auth import get_user_model

from apps.accounts.models import CustomerProfile, MembershipRole, TenantMembership
from apps.core.models import CatalogBanner, CatalogSlide
from apps.credits.models import CustomerCredit
from apps.orders.models import Coupon, PaymentType
from apps.products.models import Brand, Category, Product
from apps.purchases.models import PaymentTerm, Supplier
from apps.tenants.models import Plan, Tenant

User = get_user_model()

class PlanFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Plan
        django_get_or_create = ('name',)

    name = 'PROFISSIONAL'
    display_name = "Profissional"
    max_products = 500
    max_users = 10

class TenantFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Tenant

    name = factory.Sequence(lambda n: f'Loja {n}')
    is_active = True
    plan = factory.SubFactory(PlanFactory)
    subscription_status = 'ACTIVE'
    approval_status = 'APROVADO'

class UserFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = User

    username = factory.Sequence(lambda n: f'user_{n}')
    email = factory.LazyAttribute(lambda o: f'{o.username}@example.com')
    first_name = factory.Faker('first_name')
    password = factory.django.Password('password123')

class TenantMembershipFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = TenantMembership

    user = factory.SubFactory(UserFactory)
    tenant = factory.SubFactory(TenantFactory)
    role = MembershipRole.OWNER
    approved = True

class CustomerMembershipFactory(TenantMembershipFactory):
    role = MembershipRole.CUSTOMER

class CustomerProfileFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = CustomerProfile

    membership = factory.SubFactory(CustomerMembershipFactory)
    person_type = 'PF'
    cpf = '529.982.247-25'
    customer_type = 'VAREJO'

class CategoryFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Category

    tenant = factory.SubFactory(TenantFactory)
    name = factory.Sequence(lambda n: f'Category {n}')

class BrandFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Brand

    tenant = factory.SubFactory(TenantFactory)
    name = factory.Sequence(lambda n: f'Brand {n}')

class ProductFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Product

    tenant = factory.SubFactory(TenantFactory)
    name = factory.Sequence(lambda n: f'Produto {n}')
    sku = None  # Will be generated on save
    price = Decimal('10.00')
    category = factory.SubFactory(CategoryFactory, tenant=factory.SelfAttribute('..tenant'))

class PaymentTypeFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = PaymentType

    tenant = factory.SubFactory(TenantFactory)
    name = 'PIX'
    kind = 'PIX'

class FiadoPaymentTypeFactory(PaymentTypeFactory):
    name = 'Fiado 3x'
    kind = 'FIADO'
    is_store_credit = True
    installments = 3

class CouponFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Coupon

    tenant = factory.SubFactory(TenantFactory)
    code = factory.Sequence(lambda n: f'PROMO{n}')
    discount_type = 'PERCENTUAL'
    discount_value = Decimal('10')

class CustomerCreditFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = CustomerCredit

    tenant = factory.SubFactory(TenantFactory)
    customer = factory.SubFactory(UserFactory)
    amount = Decimal('100.00')
    due_date = factory.Faker('future_date')

class CatalogSlideFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = CatalogSlide

    tenant = factory.SubFactory(TenantFactory)
    title = factory.Sequence(lambda n: f'Slide {n}')
    image_url = 'https://cdn.example.com/slide.jpg'

class CatalogBannerFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = CatalogBanner

    tenant = factory.SubFactory(TenantFactory)
    title = factory.Sequence(lambda n: f'Banner {n}')
    image_url = 'https://cdn.example.com/banner.jpg'

class SupplierFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Supplier

    tenant = factory.SubFactory(TenantFactory)
    name = factory.Sequence(lambda n: f'Fornecedor {n} Ltda')

class PaymentTermFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = PaymentTerm

    tenant = factory.SubFactory(TenantFactory)
    name = '30/60/90'
    installment_count = 3
    first_payment_days = 30
    interval_days = 30
