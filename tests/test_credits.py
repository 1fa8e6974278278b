from datetime import date, timedelta
from decimal import Decimal

import pytest
from django.urls import reverse
from django.utils import timezone
from rest_framework import status

from apps.core.exceptions import CreditError
from apps.core.models import StoreSettings
from apps.credits import finance
from apps.credits.models import CreditPayment, CreditStatus
from apps.credits.services import CreditService
from apps.credits.tasks import refresh_overdue_credits
from tests.conftest import login
from tests.factories import CustomerCreditFactory, CustomerMembershipFactory, TenantMembershipFactory


class TestFinance:
    def test_not_overdue_has_no_charges(self):
        result = finance.financial_total(Decimal('100'), date(2024, 1, 31), 2, 2, date(2024, 1, 31))
        assert result == {
            'principal': Decimal('100.00'),
            'interest': Decimal('0.00'),
            'fine': Decimal('0.00'),
            'total': Decimal('100.00'),
            'days_overdue': 0,
        }

    def test_interest_per_started_month(self):
        one_month = finance.financial_total(Decimal('100'), date(2024, 1, 1), 2, 2, date(2024, 1, 31))
        assert one_month['days_overdue'] == 30
        assert one_month['interest'] == Decimal('2.00')
        assert one_month['total'] == Decimal('104.00')

        # Day 31 starts the second month, compounded
        two_months = finance.financial_total(Decimal('100'), date(2024, 1, 1), 2, 2, date(2024, 2, 1))
        assert two_months['interest'] == Decimal('4.04')
        assert two_months['total'] == Decimal('106.04')

    def test_zero_rates(self):
        result = finance.financial_total(Decimal('80'), date(2024, 1, 1), 0, 0, date(2024, 6, 1))
        assert result['total'] == Decimal('80.00')
        assert result['days_overdue'] == 152

    def test_split_installments(self):
        assert finance.split_installments(Decimal('100'), 3) == [Decimal('33.33'), Decimal('33.33'), Decimal('33.34')]
        assert finance.split_installments(Decimal('10'), 4) == [Decimal('2.50')] * 4
        assert finance.split_installments(Decimal('10'), 0) == [Decimal('10.00')]

    def test_split_small_totals_never_go_negative(self):
        parts = finance.split_installments(Decimal('0.07'), 7)
        assert parts == [Decimal('0.01')] * 7

        parts = finance.split_installments(Decimal('1.50'), 100)
        assert parts[:99] == [Decimal('0.01')] * 99
        assert parts[-1] == Decimal('0.51')
        assert sum(parts) == Decimal('1.50')
        assert min(parts) > 0

    def test_split_below_one_cent_is_refused(self):
        with pytest.raises(ValueError):
            finance.split_installments(Decimal('0.07'), 10)

    def test_installment_due_dates(self):
        dates = finance.installment_due_dates(date(2024, 1, 1), 3, first_due_days=30, interval_days=15)
        assert dates == [date(2024, 1, 31), date(2024, 2, 15), date(2024, 3, 1)]

    def test_determine_status(self):
        assert finance.determine_status(Decimal('10'), Decimal('0')) == 'PENDENTE'
        assert finance.determine_status(Decimal('10'), Decimal('4')) == 'PARCIAL'
        assert finance.determine_status(Decimal('10'), Decimal('10')) == 'PAGO'
        assert finance.determine_status(Decimal('10'), Decimal('0'), cancelled=True) == 'CANCELADO'


@pytest.mark.django_db
class TestCreditService:
    def test_partial_then_full_payment(self, tenant, user):
        credit = CustomerCreditFactory(tenant=tenant)

        CreditService.record_payment(credit, '40.00', user=user, payment_method='PIX')
        credit.refresh_from_db()
        assert credit.status == CreditStatus.PARCIAL
        assert credit.pending_amount == Decimal('60.00')

        CreditService.record_payment(credit, '60.00', user=user)
        credit.refresh_from_db()
        assert credit.status == CreditStatus.PAGO
        assert credit.paid_at is not None

        with pytest.raises(CreditError):
            CreditService.record_payment(credit, '1.00', user=user)

    def test_payment_limits(self, tenant, user):
        credit = CustomerCreditFactory(tenant=tenant)
        with pytest.raises(CreditError):
            CreditService.record_payment(credit, '100.01', user=user)
        with pytest.raises(CreditError):
            CreditService.record_payment(credit, '0', user=user)
        with pytest.raises(CreditError):
            CreditService.record_payment(credit, 'dez', user=user)
        for raw in ('NaN', 'Infinity', 'sNaN'):
            with pytest.raises(CreditError):
                CreditService.record_payment(credit, raw, user=user)
        assert not CreditPayment.objects.filter(credit=credit).exists()

    def test_reverse_payment(self, tenant, user):
        credit = CustomerCreditFactory(tenant=tenant)
        payment = CreditService.record_payment(credit, '100.00', user=user)

        credit = CreditService.reverse_payment(payment, user=user)
        assert credit.status == CreditStatus.PENDENTE
        assert credit.paid_amount == Decimal('0.00')
        assert credit.paid_at is None

        with pytest.raises(CreditError):
            CreditService.reverse_payment(payment, user=user)

    def test_cancel_requires_no_active_payment(self, tenant, user):
        credit = CustomerCreditFactory(tenant=tenant)
        payment = CreditService.record_payment(credit, '10.00', user=user)

        with pytest.raises(CreditError):
            CreditService.cancel_credit(credit)

        CreditService.reverse_payment(payment, user=user)
        credit = CreditService.cancel_credit(credit)
        assert credit.status == CreditStatus.CANCELADO
        assert credit.pending_amount == Decimal('0')

        with pytest.raises(CreditError):
            CreditService.record_payment(credit, '5.00', user=user)

    def test_manual_credit(self, tenant, customer, user):
        credit = CreditService.create_manual(tenant, customer.user, '45.5', date(2030, 1, 10), "Saldo anterior", user=user)
        assert credit.amount == Decimal('45.50')
        assert credit.kind == 'MANUAL'
        with pytest.raises(CreditError):
            CreditService.create_manual(tenant, customer.user, '-1', date(2030, 1, 10))

    def test_customer_balance_ignores_cancelled(self, tenant, customer, user):
        CustomerCreditFactory(tenant=tenant, customer=customer.user, amount=Decimal('100.00'))
        paid = CustomerCreditFactory(tenant=tenant, customer=customer.user, amount=Decimal('50.00'))
        CreditService.record_payment(paid, '20.00', user=user)
        CreditService.cancel_credit(CustomerCreditFactory(tenant=tenant, customer=customer.user))

        balance = CreditService.customer_balance(tenant, customer.user)
        assert balance == {'total': Decimal('150.00'), 'paid': Decimal('20.00'), 'pending': Decimal('130.00')}

    def test_financial_view_uses_store_rates(self, tenant):
        store = StoreSettings.get_settings(tenant)
        store.interest_rate_monthly = Decimal('2')
        store.late_fee_percent = Decimal('2')
        store.save()
        today = date(2024, 2, 10)
        credit = CustomerCreditFactory(tenant=tenant, due_date=today - timedelta(days=40))

        view = CreditService.financial_view(credit, today=today)
        assert view['total'] == Decimal('106.04')

        # Explicit rates win
        view = CreditService.financial_view(credit, today=today, rate=Decimal('0'), fine=Decimal('0'))
        assert view['total'] == Decimal('100.00')

    def test_overdue_is_derived_from_due_date(self, tenant):
        today = timezone.localdate()
        late = CustomerCreditFactory(tenant=tenant, due_date=today - timedelta(days=3))
        CustomerCreditFactory(tenant=tenant, due_date=today + timedelta(days=3))

        assert late.is_overdue is True
        assert late.days_overdue == 3
        assert list(CreditService.overdue(tenant)) == [late]

    def test_dashboard(self, tenant, user):
        today = timezone.localdate()
        ana = CustomerMembershipFactory(tenant=tenant, user__first_name='Ana', user__last_name='Lima')
        bob = CustomerMembershipFactory(tenant=tenant, user__first_name='Bob', user__last_name='Reis')

        overdue = CustomerCreditFactory(tenant=tenant, customer=ana.user, amount=Decimal('100.00'),
                                        due_date=today - timedelta(days=5))
        CustomerCreditFactory(tenant=tenant, customer=ana.user, amount=Decimal('50.00'),
                              due_date=today + timedelta(days=3))
        bob_credit = CustomerCreditFactory(tenant=tenant, customer=bob.user, amount=Decimal('30.00'),
                                           due_date=today + timedelta(days=20))
        CreditService.record_payment(bob_credit, '10.00', user=user)

        data = CreditService.dashboard(tenant, today=today)
        overview = data['overview']
        assert overview['total_in_circulation'] == Decimal('180.00')
        assert overview['total_paid'] == Decimal('10.00')
        assert overview['total_pending'] == Decimal('170.00')
        assert overview['total_overdue'] == Decimal('100.00')
        assert overview['customers_with_debt'] == 2
        assert overview['average_debt_per_customer'] == Decimal('85.00')

        first = data['customer_summaries'][0]
        assert first['customer_name'] == 'Ana Lima'
        assert first['pending'] == Decimal('150.00')
        assert first['overdue'] == Decimal('100.00')
        assert first['open_credits'] == 2

        assert [c.pk for c in data['overdue_payments']] == [overdue.pk]
        assert len(data['upcoming_payments']) == 1
        assert len(data['recent_payments']) == 1


@pytest.mark.django_db
class TestCreditAPI:
    def test_manual_credit_endpoint(self, auth_client, tenant, customer):
        response = auth_client.post('/api/v1/credits/', {
            'customer': customer.user.pk, 'amount': '75.00', 'due_date': '2030-05-10', 'description': 'Saldo',
        }, format='json')
        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['status'] == 'PENDENTE'
        assert response.data['pending_amount'] == Decimal('75.00')

    def test_manual_credit_for_stranger(self, auth_client):
        stranger = CustomerMembershipFactory()
        response = auth_client.post('/api/v1/credits/', {
            'customer': stranger.user.pk, 'amount': '75.00', 'due_date': '2030-05-10',
        }, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_payment_and_reversal(self, auth_client, tenant):
        credit = CustomerCreditFactory(tenant=tenant)

        response = auth_client.post(reverse('api-credit-payments', args=[credit.pk]), {'amount': '30.00'}, format='json')
        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['credit']['status'] == 'PARCIAL'
        payment_id = response.data['payment']['id']

        response = auth_client.post(f'/api/v1/credit-payments/{payment_id}/reverse/')
        assert response.status_code == status.HTTP_200_OK
        assert response.data['payment']['is_reversed'] is True
        assert response.data['credit']['status'] == 'PENDENTE'

    def test_overpayment_envelope(self, auth_client, tenant):
        credit = CustomerCreditFactory(tenant=tenant)
        response = auth_client.post(reverse('api-credit-payments', args=[credit.pk]), {'amount': '500.00'}, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['code'] == 'credit_error'

    def test_financial_endpoint(self, auth_client, tenant):
        credit = CustomerCreditFactory(tenant=tenant, due_date=timezone.localdate() - timedelta(days=10))

        response = auth_client.get(reverse('api-credit-financial', args=[credit.pk]), {'rate': '1', 'fine': '2'})
        assert response.status_code == status.HTTP_200_OK
        assert response.data['interest'] == Decimal('1.00')
        assert response.data['fine'] == Decimal('2.00')
        assert response.data['total'] == Decimal('103.00')

        response = auth_client.get(reverse('api-credit-financial', args=[credit.pk]), {'rate': '150'})
        assert response.status_code == status.HTTP_400_BAD_REQUEST

        response = auth_client.get(reverse('api-credit-financial', args=[credit.pk]), {'fine': 'NaN'})
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['detail'] == 'fine: Percentual inválido.'

    def test_filters(self, auth_client, tenant):
        late = CustomerCreditFactory(tenant=tenant, due_date=timezone.localdate() - timedelta(days=1))
        CustomerCreditFactory(tenant=tenant)
        CustomerCreditFactory()

        response = auth_client.get('/api/v1/credits/')
        assert response.data['count'] == 2

        response = auth_client.get('/api/v1/credits/', {'overdue': 'true'})
        assert [c['id'] for c in response.data['results']] == [late.pk]

    def test_dashboard_endpoint(self, auth_client, tenant):
        CustomerCreditFactory(tenant=tenant)
        response = auth_client.get(reverse('api-credit-dashboard'))
        assert response.status_code == status.HTTP_200_OK
        assert response.data['overview']['customers_with_debt'] == 1

    def test_customer_sees_own_balance_only(self, customer_client, tenant, customer):
        CustomerCreditFactory(tenant=tenant, customer=customer.user, amount=Decimal('40.00'))
        CustomerCreditFactory(tenant=tenant)

        response = customer_client.get(reverse('api-credit-my-balance'))
        assert response.status_code == status.HTTP_200_OK
        assert response.data['pending'] == Decimal('40.00')
        assert len(response.data['credits']) == 1

        assert customer_client.get('/api/v1/credits/').status_code == status.HTTP_403_FORBIDDEN

    def test_module_is_required(self, client, tenant):
        employee = TenantMembershipFactory(tenant=tenant, role='EMPLOYEE')
        login(client, employee.user)
        assert client.get('/api/v1/credits/').status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.django_db
class TestOverdueTask:
    def test_counts_overdue_per_company(self, tenant):
        today = timezone.localdate()
        CustomerCreditFactory(tenant=tenant, due_date=today - timedelta(days=1))
        CustomerCreditFactory(tenant=tenant, due_date=today - timedelta(days=9))
        CustomerCreditFactory(tenant=tenant, due_date=today + timedelta(days=1))
        paid = CustomerCreditFactory(tenant=tenant, due_date=today - timedelta(days=2), status='PAGO')

        assert refresh_overdue_credits() == {tenant.pk: 2}
        paid.refresh_from_db()
        assert paid.status == 'PAGO'
