"""
Global DRF exception handler with a consistent error envelope.
"""
import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from apps.core.exceptions import BusinessError

logger = logging.getLogger(__name__)


def custom_exception_handler(exc, context):
    if isinstance(exc, BusinessError):
        view = context.get('view')
        logger.info(f"Regra de negócio violada em {view.__class__.__name__ if view else '?'}: {exc}")
        return Response(
            {'detail': str(exc), 'code': exc.code, 'errors': [str(exc)]},
            status=exc.status_code,
        )

    if isinstance(exc, DjangoValidationError):
        messages = list(exc.messages)
        return Response(
            {'detail': messages[0] if messages else 'Dados inválidos.', 'code': 'validation_error', 'errors': messages},
            status=status.HTTP_400_BAD_REQUEST,
        )

    response = exception_handler(exc, context)
    if response is None:
        return response

    data = response.data
    code = 'error'
    detail = 'Ocorreu um erro.'
    errors = []

    if isinstance(data, list):
        errors = [str(item) for item in data]
        if errors:
            detail = errors[0]
        code = 'validation_error'
    elif isinstance(data, dict):
        if 'detail' in data:
            if isinstance(data['detail'], list):
                errors = [str(item) for item in data['detail']]
                detail = errors[0] if errors else detail
            else:
                detail = str(data['detail'])
                errors = [detail]
            code = str(getattr(exc, 'default_code', code))
        else:
            for field, value in data.items():
                if isinstance(value, list):
                    errors.extend([f"{field}: {item}" for item in value])
                else:
                    errors.append(f"{field}: {value}")
            if errors:
                detail = errors[0]
            code = 'validation_error'
    else:
        detail = str(data)
        errors = [detail]

    response.data = {
        'detail': detail,
        'code': code,
        'errors': errors or [detail],
    }
    return response
