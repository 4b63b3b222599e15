"""
Domain error taxonomy.

Errors are DRF APIExceptions so the HTTP status travels with the error; the
API exception handler renders them as ``{"error": ..., "code": ...}``.
Notification failures are deliberately absent: they never reach callers.
"""
from rest_framework import status
from rest_framework.exceptions import APIException


class DomainError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Operación inválida.'
    default_code = 'DOMAIN_ERROR'

    def __init__(self, message=None, code=None):
        super().__init__(detail=message or self.default_detail, code=code or self.default_code)
        self.message = str(self.detail)
        self.error_code = code or self.default_code

    def __str__(self):
        return self.message


class ValidationError(DomainError):
    """Missing or malformed preconditions (driver/vehicle, reason, approval)"""
    default_detail = 'Los datos de la operación no son válidos.'
    default_code = 'VALIDATION_ERROR'


class StateConflictError(DomainError):
    """The persisted state does not allow the requested transition"""
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_detail = 'El estado del documento cambió. Vuelva a consultarlo.'
    default_code = 'STATE_CONFLICT'


class InvalidTransitionError(StateConflictError):
    """The (from, to) pair is not declared in the state registry"""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Transición de estado no permitida.'
    default_code = 'INVALID_TRANSITION'


class AuthorizationError(DomainError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'No tiene permisos para realizar esta acción.'
    default_code = 'FORBIDDEN'


class NotFoundError(DomainError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Documento no encontrado.'
    default_code = 'NOT_FOUND'
