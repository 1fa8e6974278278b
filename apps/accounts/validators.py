"""
Brazilian document validation (CPF / CNPJ check digits).
"""
import re


def only_digits(value):
    return re.sub(r'\D', '', value or '')


def is_valid_cpf(value):
    digits = only_digits(value)
    if len(digits) != 11 or digits == digits[0] * 11:
        return False

    for size in (9, 10):
        total = sum(int(d) * w for d, w in zip(digits[:size], range(size + 1, 1, -1)))
        check = (total * 10) % 11 % 10
        if check != int(digits[size]):
            return False
    return True


def is_valid_cnpj(value):
    digits = only_digits(value)
    if len(digits) != 14 or digits == digits[0] * 14:
        return False

    weights_first = [5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2]
    weights_second = [6] + weights_first
    for size, weights in ((12, weights_first), (13, weights_second)):
        total = sum(int(d) * w for d, w in zip(digits[:size], weights))
        remainder = total % 11
        check = 0 if remainder < 2 else 11 - remainder
        if check != int(digits[size]):
            return False
    return True


def format_cpf(value):
    d = only_digits(value)
    return f"{d[:3]}.{d[3:6]}.{d[6:9]}-{d[9:]}" if len(d) == 11 else value


def format_cnpj(value):
    d = only_digits(value)
    return f"{d[:2]}.{d[2:5]}.{d[5:8]}/{d[8:12]}-{d[12:]}" if len(d) == 14 else value
