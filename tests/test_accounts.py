import pytest
from django.urls import reverse
from rest_framework import status

from apps.accounts.models import CustomerProfile, MembershipRole, TenantInvite, TenantMembership
from apps.accounts.services import MembershipService
from apps.accounts.validators import format_cnpj, format_cpf, is_valid_cnpj, is_valid_cpf
from apps.core.exceptions import BusinessError
from tests.conftest import login
from tests.factories import (
    CustomerMembershipFactory,
    PlanFactory,
    TenantFactory,
    TenantMembershipFactory,
    UserFactory,
)


class TestDocumentValidators:
    def test_cpf(self):
        assert is_valid_cpf('529.982.247-25')
        assert is_valid_cpf('52998224725')
        assert not is_valid_cpf('529.982.247-24')
        assert not is_valid_cpf('111.111.111-11')
        assert not is_valid_cpf('123')

    def test_cnpj(self):
        assert is_valid_cnpj('11.222.333/0001-81')
        assert not is_valid_cnpj('11.222.333/0001-80')
        assert not is_valid_cnpj('00000000000000')

    def test_format(self):
        assert format_cpf('52998224725') == '529.982.247-25'
        assert format_cnpj('11222333000181') == '11.222.333/0001-81'
        # Wrong length is returned untouched
        assert format_cpf('123') == '123'


@pytest.mark.django_db
class TestAuthentication:
    def test_login_with_email_or_username(self, client, user):
        url = reverse('token_obtain_pair')
        by_email = client.post(url, {'username': user.email, 'password': 'password123'}, format='json')
        by_username = client.post(url, {'username': user.username, 'password': 'password123'}, format='json')
        assert by_email.status_code == status.HTTP_200_OK
        assert by_username.status_code == status.HTTP_200_OK

    def test_wrong_password(self, client, user):
        response = client.post(
            reverse('token_obtain_pair'), {'username': user.email, 'password': 'errada'}, format='json'
        )
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_me_lists_companies(self, auth_client, member, tenant):
        other = TenantMembershipFactory(user=member.user, role='SALES')

        response = auth_client.get(reverse('api-me'))
        assert response.status_code == status.HTTP_200_OK
        assert response.data['company']['id'] == tenant.pk
        assert response.data['role'] == 'OWNER'
        assert 'settings' in response.data['modules']
        assert [m['tenant_id'] for m in response.data['memberships']] == [tenant.pk, other.tenant_id]

    def test_switch_company(self, auth_client, member):
        other = TenantMembershipFactory(user=member.user, role='SALES')

        response = auth_client.post(reverse('api-switch-company'), {'tenant_id': other.tenant_id}, format='json')
        assert response.status_code == status.HTTP_200_OK

        response = auth_client.get(reverse('api-me'))
        assert response.data['company']['id'] == other.tenant_id
        assert response.data['role'] == 'SALES'

    def test_switch_to_foreign_company(self, auth_client):
        foreign = TenantFactory()
        response = auth_client.post(reverse('api-switch-company'), {'tenant_id': foreign.pk}, format='json')
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_company_header_overrides_default(self, auth_client, member):
        other = TenantMembershipFactory(user=member.user, role='ADMIN')
        response = auth_client.get(reverse('api-me'), HTTP_X_COMPANY_ID=str(other.tenant_id))
        assert response.data['role'] == 'ADMIN'


@pytest.mark.django_db
class TestMemberManagement:
    def test_admin_creates_staff(self, auth_client, tenant):
        response = auth_client.post('/api/v1/users/', {
            'email': 'vendedor@example.com', 'password': 'segredo123', 'first_name': 'Rui', 'role': 'SALES',
        }, format='json')
        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['role'] == 'SALES'
        assert TenantMembership.objects.filter(tenant=tenant, user__email='vendedor@example.com').exists()

    def test_sales_cannot_create_staff_but_can_create_customer(self, client, tenant):
        seller = TenantMembershipFactory(tenant=tenant, role='SALES')
        login(client, seller.user)

        response = client.post('/api/v1/users/', {
            'email': 'outro@example.com', 'password': 'segredo123', 'role': 'EMPLOYEE',
        }, format='json')
        assert response.status_code == status.HTTP_403_FORBIDDEN

        response = client.post('/api/v1/users/', {
            'email': 'cliente@example.com', 'password': 'segredo123', 'role': 'CUSTOMER',
            'profile': {'person_type': 'PF', 'cpf': '52998224725', 'customer_type': 'ATACADO'},
        }, format='json')
        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['approved'] is True
        assert response.data['profile']['cpf'] == '529.982.247-25'
        assert response.data['profile']['customer_type'] == 'ATACADO'

    def test_user_plan_limit(self, client, user):
        tenant = TenantFactory(plan=PlanFactory(name='GRATUITO', max_users=1, max_products=50))
        TenantMembershipFactory(user=user, tenant=tenant)
        login(client, user)

        response = client.post('/api/v1/users/', {
            'email': 'extra@example.com', 'password': 'segredo123', 'role': 'EMPLOYEE',
        }, format='json')
        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data['code'] == 'plan_limit'

    def test_customers_cannot_list_members(self, customer_client):
        assert customer_client.get('/api/v1/users/').status_code == status.HTTP_403_FORBIDDEN

    def test_filter_pending_customers(self, auth_client, tenant, customer):
        pending = CustomerMembershipFactory(tenant=tenant, approved=False)

        response = auth_client.get('/api/v1/users/', {'role': 'CUSTOMER', 'approved': 'false'})
        assert [m['id'] for m in response.data['results']] == [pending.pk]

    def test_approve_customer(self, auth_client, tenant):
        pending = CustomerMembershipFactory(tenant=tenant, approved=False)
        response = auth_client.post(f'/api/v1/users/{pending.pk}/approve/')
        assert response.status_code == status.HTTP_200_OK
        pending.refresh_from_db()
        assert pending.approved is True

    def test_only_customers_need_approval(self, auth_client, tenant):
        employee = TenantMembershipFactory(tenant=tenant, role='EMPLOYEE')
        response = auth_client.post(f'/api/v1/users/{employee.pk}/reject/')
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_owner_cannot_be_deactivated(self, auth_client, member):
        response = auth_client.delete(f'/api/v1/users/{member.pk}/')
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_deactivate_member(self, auth_client, tenant):
        employee = TenantMembershipFactory(tenant=tenant, role='EMPLOYEE')
        response = auth_client.delete(f'/api/v1/users/{employee.pk}/')
        assert response.status_code == status.HTTP_204_NO_CONTENT
        employee.refresh_from_db()
        assert employee.is_active is False

    def test_role_change_refuses_owner(self, auth_client, tenant):
        employee = TenantMembershipFactory(tenant=tenant, role='EMPLOYEE')
        response = auth_client.patch(f'/api/v1/users/{employee.pk}/', {'role': 'OWNER'}, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST

        response = auth_client.patch(f'/api/v1/users/{employee.pk}/', {'role': 'ADMIN'}, format='json')
        assert response.data['role'] == 'ADMIN'

    def test_sales_cannot_deactivate_staff(self, client, tenant):
        seller = TenantMembershipFactory(tenant=tenant, role='SALES')
        admin = TenantMembershipFactory(tenant=tenant, role='ADMIN')
        login(client, seller.user)

        response = client.patch(f'/api/v1/users/{admin.pk}/', {'is_active': False}, format='json')
        assert response.status_code == status.HTTP_403_FORBIDDEN
        admin.refresh_from_db()
        assert admin.is_active is True

    def test_sales_may_deactivate_customer(self, client, tenant, customer):
        seller = TenantMembershipFactory(tenant=tenant, role='SALES')
        login(client, seller.user)

        response = client.patch(f'/api/v1/users/{customer.pk}/', {'is_active': False}, format='json')
        assert response.status_code == status.HTTP_200_OK
        customer.refresh_from_db()
        assert customer.is_active is False

    def test_update_member_checks_acting_role(self, tenant):
        seller = TenantMembershipFactory(tenant=tenant, role='SALES')
        employee = TenantMembershipFactory(tenant=tenant, role='EMPLOYEE')
        with pytest.raises(BusinessError):
            MembershipService.update_member(employee, {'is_active': False}, seller)
        employee.refresh_from_db()
        assert employee.is_active is True


@pytest.mark.django_db
class TestModulePermissions:
    def test_role_defaults(self, tenant):
        employee = TenantMembershipFactory(tenant=tenant, role='EMPLOYEE')
        assert employee.has_module('products')
        assert not employee.has_module('credits')

    def test_explicit_modules_replace_defaults(self, auth_client, tenant):
        employee = TenantMembershipFactory(tenant=tenant, role='EMPLOYEE')
        url = f'/api/v1/users/{employee.pk}/permissions/'

        response = auth_client.put(url, {'modules': ['credits', 'orders']}, format='json')
        assert response.status_code == status.HTTP_200_OK
        assert response.data['modules'] == ['credits', 'orders']

        employee = TenantMembership.objects.get(pk=employee.pk)
        assert employee.has_module('credits')
        assert not employee.has_module('products')

        # Empty list goes back to the role defaults
        response = auth_client.put(url, {'modules': []}, format='json')
        assert response.data['modules'] == ['dashboard', 'products', 'orders', 'users']

    def test_unknown_module(self, auth_client, tenant):
        employee = TenantMembershipFactory(tenant=tenant, role='EMPLOYEE')
        response = auth_client.put(f'/api/v1/users/{employee.pk}/permissions/', {'modules': ['foo']}, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_module_gates_endpoint(self, client, tenant):
        seller = TenantMembershipFactory(tenant=tenant, role='SALES')
        login(client, seller.user)
        # SALES has no 'products' module by default, reads go through sales_catalog
        assert client.get('/api/v1/products/').status_code == status.HTTP_200_OK
        response = client.post('/api/v1/products/', {'name': 'X', 'price': '1.00'}, format='json')
        assert response.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.django_db
class TestInvites:
    def test_invite_and_accept(self, auth_client, client, tenant):
        response = auth_client.post('/api/v1/invites/', {'email': 'Novo@Example.com', 'role': 'EMPLOYEE'}, format='json')
        assert response.status_code == status.HTTP_201_CREATED
        token = response.data['token']

        invited = UserFactory(email='novo@example.com')
        login(client, invited)
        response = client.post(reverse('api-invite-accept', args=[token]))
        assert response.status_code == status.HTTP_201_CREATED
        assert TenantMembership.objects.get(user=invited, tenant=tenant).role == 'EMPLOYEE'
        assert TenantInvite.objects.get(token=token).accepted_at is not None

        # Single use
        response = client.post(reverse('api-invite-accept', args=[token]))
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_accept_requires_matching_email(self, auth_client, client, tenant):
        response = auth_client.post('/api/v1/invites/', {'email': 'alguem@example.com'}, format='json')
        intruder = UserFactory()
        login(client, intruder)
        response = client.post(reverse('api-invite-accept', args=[response.data['token']]))
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert not TenantMembership.objects.filter(user=intruder, tenant=tenant).exists()

    def test_duplicate_pending_invite(self, auth_client):
        auth_client.post('/api/v1/invites/', {'email': 'dup@example.com'}, format='json')
        response = auth_client.post('/api/v1/invites/', {'email': 'dup@example.com'}, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_owner_role_cannot_be_invited(self, auth_client):
        response = auth_client.post('/api/v1/invites/', {'email': 'x@example.com', 'role': 'OWNER'}, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.django_db
class TestCustomerRegistration:
    def test_register_waits_for_approval(self, client, tenant):
        response = client.post(reverse('public-register', kwargs={'slug': tenant.slug}), {
            'email': 'cliente@example.com',
            'password': 'segredo123',
            'first_name': 'Bia',
            'person_type': 'PF',
            'cpf': '52998224725',
            'city': 'Campinas',
        }, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['approved'] is False
        membership = TenantMembership.objects.get(pk=response.data['id'])
        assert membership.role == MembershipRole.CUSTOMER
        profile = CustomerProfile.objects.get(membership=membership)
        assert profile.cpf == '529.982.247-25'
        assert profile.city == 'Campinas'

    def test_invalid_document(self, client, tenant):
        response = client.post(reverse('public-register', kwargs={'slug': tenant.slug}), {
            'email': 'pj@example.com', 'password': 'segredo123', 'first_name': 'Empresa',
            'person_type': 'PJ', 'cnpj': '11.222.333/0001-80',
        }, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['detail'] == "CNPJ inválido."

    def test_existing_account_joins_another_store(self, tenant, user):
        membership = MembershipService.register_customer(tenant, user.email, 'password123', profile={'cpf': '52998224725'})
        assert membership.user == user
        assert membership.approved is False

        with pytest.raises(BusinessError):
            MembershipService.register_customer(tenant, user.email, 'password123', profile={'cpf': '52998224725'})

    def test_existing_account_wrong_password(self, tenant, user):
        with pytest.raises(BusinessError):
            MembershipService.register_customer(TenantFactory(), user.email, 'outra-senha')

    def test_unknown_store(self, client):
        response = client.post(reverse('public-register', kwargs={'slug': 'nao-existe'}), {
            'email': 'a@example.com', 'password': 'segredo123', 'first_name': 'A',
        }, format='json')
        assert response.status_code == status.HTTP_404_NOT_FOUND
