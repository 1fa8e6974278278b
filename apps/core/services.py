import logging
from decimal import Decimal, InvalidOperation

from django.db import transaction

from apps.core.exceptions import BusinessError
from apps.core.models import COLOR_PALETTE, CategoryPosition, DesignTemplate, StoreSettings

logger = logging.getLogger(__name__)


def _to_bool(value):
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('1', 'true', 'yes', 'sim', 'on')


def _choice(options, label):
    def clean(value):
        value = str(value).strip()
        if value not in options:
            raise BusinessError(f"{label} inválido: '{value}'. Opções: {', '.join(options)}")
        return value
    return clean


def _products_per_row(value):
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise BusinessError("Produtos por linha deve ser um número inteiro.")
    if not 2 <= number <= 6:
        raise BusinessError("Produtos por linha deve estar entre 2 e 6.")
    return number


def _percent(value):
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise BusinessError("Percentual inválido.")
    if not number.is_finite():
        raise BusinessError("Percentual inválido.")
    if number < 0 or number > 100:
        raise BusinessError("Percentual deve estar entre 0 e 100.")
    return number


def _text(max_length):
    def clean(value):
        value = '' if value is None else str(value).strip()
        if len(value) > max_length:
            raise BusinessError(f"Valor excede {max_length} caracteres.")
        return value
    return clean


# key -> (model field, cleaner)
SETTING_KEYS = {
    'store_name': ('store_name', _text(100)),
    'store_cnpj': ('store_cnpj', _text(18)),
    'store_phone': ('store_phone', _text(20)),
    'store_email': ('store_email', _text(254)),
    'store_address': ('store_address', _text(255)),
    'store_logo': ('store_logo', _text(200)),
    'primary_color': ('primary_color', _choice(list(COLOR_PALETTE), "Cor")),
    'design_template': ('design_template', _choice(DesignTemplate.values, "Modelo de design")),
    'products_per_row': ('products_per_row', _products_per_row),
    'category_position': ('category_position', _choice(CategoryPosition.values, "Posição das categorias")),
    'wholesale_mode': ('wholesale_mode', _to_bool),
    'delivery_catalog_mode': ('delivery_catalog_mode', _to_bool),
    'interest_rate_monthly': ('interest_rate_monthly', _percent),
    'late_fee_percent': ('late_fee_percent', _percent),
}


class AppearanceService:
    """Key/value access to StoreSettings, as used by the admin appearance screen"""

    @staticmethod
    def all_settings(tenant):
        settings_obj = StoreSettings.get_settings(tenant)
        return {key: getattr(settings_obj, field) for key, (field, _) in SETTING_KEYS.items()}

    @staticmethod
    def get_setting(tenant, key):
        if key not in SETTING_KEYS:
            raise KeyError(key)
        field, _ = SETTING_KEYS[key]
        return getattr(StoreSettings.get_settings(tenant), field)

    @staticmethod
    @transaction.atomic
    def set_setting(tenant, key, value, user=None):
        if key not in SETTING_KEYS:
            raise KeyError(key)
        field, clean = SETTING_KEYS[key]
        settings_obj = StoreSettings.get_settings(tenant)
        cleaned = clean(value)
        setattr(settings_obj, field, cleaned)
        settings_obj.save(update_fields=[field, 'updated_at'])
        logger.info(f"Configuração '{key}' alterada na empresa {tenant.pk} por {getattr(user, 'pk', None)}")
        return cleaned

    @staticmethod
    def public_theme(tenant):
        """Appearance payload exposed by the public catalog"""
        s = StoreSettings.get_settings(tenant)
        return {
            'store_name': s.store_name,
            'store_cnpj': s.store_cnpj,
            'store_phone': s.store_phone,
            'store_email': s.store_email,
            'store_address': s.store_address,
            'store_logo': s.store_logo,
            'primary_color': s.primary_color,
            'primary_color_hsl': s.primary_color_hsl,
            'design_template': s.design_template,
            'products_per_row': s.products_per_row,
            'category_position': s.category_position,
            'wholesale_mode': s.wholesale_mode,
            'delivery_catalog_mode': s.delivery_catalog_mode,
        }
