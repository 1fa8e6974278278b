"""
Financial helpers for the fiado ledger: interest, fines and installments.

All money is Decimal, rounded half-up to cents; installment splits round down.
"""
import math
from datetime import timedelta
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal

CENTS = Decimal('0.01')


def to_money(value):
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def monthly_interest(amount, rate_pct, months):
    """Compound monthly interest: amount * ((1 + r)^months - 1)"""
    if months <= 0 or not rate_pct:
        return Decimal('0.00')
    rate = Decimal(str(rate_pct)) / Decimal('100')
    return to_money(Decimal(str(amount)) * ((1 + rate) ** int(months) - 1))


def late_fine(amount, fine_pct):
    if not fine_pct:
        return Decimal('0.00')
    return to_money(Decimal(str(amount)) * Decimal(str(fine_pct)) / Decimal('100'))


def days_overdue(due_date, today):
    return max((today - due_date).days, 0)


def financial_total(amount, due_date, rate_pct, fine_pct, today):
    """Principal plus interest (per started 30-day month) and fine once overdue"""
    amount = to_money(amount)
    days = days_overdue(due_date, today)
    if days == 0:
        interest = fine = Decimal('0.00')
    else:
        months = math.ceil(days / 30)
        interest = monthly_interest(amount, rate_pct, months)
        fine = late_fine(amount, fine_pct)
    return {
        'principal': amount,
        'interest': interest,
        'fine': fine,
        'total': amount + interest + fine,
        'days_overdue': days,
    }


def split_installments(total, count):
    """Equal installments rounded down to cents; the remainder lands on the last one"""
    count = max(int(count), 1)
    total = to_money(total)
    base = (total / count).quantize(CENTS, rounding=ROUND_DOWN)
    if base < CENTS:
        raise ValueError(f"Valor {total} não comporta {count} parcelas.")
    parts = [base] * (count - 1)
    parts.append(total - base * (count - 1))
    return parts


def installment_due_dates(start, count, first_due_days=30, interval_days=30):
    return [start + timedelta(days=first_due_days + i * interval_days) for i in range(max(int(count), 1))]


def determine_status(amount, paid, cancelled=False):
    if cancelled:
        return 'CANCELADO'
    if paid >= amount:
        return 'PAGO'
    if paid > 0:
        return 'PARCIAL'
    return 'PENDENTE'
