"""
DRF exception handler: every error leaves the API as {"error", "code"}.
"""
import logging

from django.core.exceptions import PermissionDenied
from django.http import Http404
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework.views import exception_handler

from apps.core.exceptions import DomainError

logger = logging.getLogger(__name__)


def _flatten(detail):
    if isinstance(detail, dict):
        return '; '.join(f"{key}: {_flatten(value)}" for key, value in detail.items())
    if isinstance(detail, list):
        return ' '.join(_flatten(item) for item in detail)
    return str(detail)


def api_exception_handler(exc, context):
    if isinstance(exc, DomainError):
        return Response({'error': exc.message, 'code': exc.error_code}, status=exc.status_code)

    response = exception_handler(exc, context)
    if response is not None:
        if isinstance(exc, Http404):
            code = 'NOT_FOUND'
        elif isinstance(exc, PermissionDenied):
            code = 'FORBIDDEN'
        elif isinstance(exc, APIException):
            code = exc.default_code.upper() if isinstance(exc.default_code, str) else 'ERROR'
        else:
            code = 'ERROR'
        data = response.data
        detail = data.get('detail', data) if isinstance(data, dict) else data
        body = {'error': _flatten(detail), 'code': code}
        if isinstance(data, dict) and 'detail' not in data:
            body['fields'] = data
        response.data = body
        return response

    view = context.get('view')
    logger.exception("Error no controlado en %s", type(view).__name__ if view else 'API')
    return Response(
        {'error': 'Error interno del servidor.', 'code': 'INTERNAL_ERROR'},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR
    )
