import pytest
from django.urls import reverse
from rest_framework.test import APIClient

from tests.factories import (
    CustomerMembershipFactory,
    CustomerProfileFactory,
    TenantFactory,
    TenantMembershipFactory,
    UserFactory,
)


def login(client, user, password='password123'):
    """JWT login as the given user; returns the client"""
    res = client.post(
        reverse('token_obtain_pair'), {'username': user.email, 'password': password}, format='json'
    )
    assert res.status_code == 200, res.data
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {res.data['access']}")
    return client


@pytest.fixture
def client():
    return APIClient()

@pytest.fixture
def user():
    return UserFactory()

@pytest.fixture
def tenant():
    return TenantFactory()

@pytest.fixture
def member(user, tenant):
    return TenantMembershipFactory(user=user, tenant=tenant, role='OWNER')

@pytest.fixture
def auth_client(client, member):
    """Client logged in as the OWNER of `tenant`"""
    return login(client, member.user)

@pytest.fixture
def customer(tenant):
    """Approved retail customer of `tenant`"""
    membership = CustomerMembershipFactory(tenant=tenant)
    CustomerProfileFactory(membership=membership)
    return membership

@pytest.fixture
def customer_client(customer):
    return login(APIClient(), customer.user)
