"""
Domain errors and the unified API exception handler.

Every error response uses the same envelope::

    {"status": "error", "code": "<Kind>", "message": "...", "errors": {...}}

``errors`` is only present for validation failures.  Storage errors are
mapped to a kind here and never echo the driver message to the caller.
"""
from __future__ import annotations

import logging

from django.db import IntegrityError, InterfaceError, OperationalError
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler, set_rollback

logger = logging.getLogger(__name__)


class DomainError(exceptions.APIException):
    """Base class for errors raised by the services layer."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Request could not be processed'
    kind = 'Error'


class DuplicateEmail(DomainError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Email already in use'
    kind = 'DuplicateEmail'


class DuplicateInFlightRequest(DomainError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'You already have a pending permission request for this role'
    kind = 'DuplicateInFlightRequest'


class InvalidCredentials(DomainError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = 'Invalid credentials'
    kind = 'InvalidCredentials'


class AccountLocked(DomainError):
    status_code = status.HTTP_423_LOCKED
    default_detail = 'Account is temporarily locked due to too many failed login attempts'
    kind = 'AccountLocked'


class AccountInactive(DomainError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = 'Account is deactivated'
    kind = 'AccountInactive'


class NotFound(DomainError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Not found'
    kind = 'NotFound'


class InvalidState(DomainError):
    default_detail = 'Operation not allowed in the current state'
    kind = 'InvalidState'


class InvalidRole(DomainError):
    default_detail = 'Invalid role. Must be doctor, midwife, or service_provider'
    kind = 'InvalidRole'


class InvalidStatus(DomainError):
    default_detail = 'Invalid status. Must be pending, approved, rejected, or under_review'
    kind = 'InvalidStatus'


class ServiceUnavailable(DomainError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = 'Database temporarily unavailable. Please try again in a moment.'
    kind = 'ServiceUnavailable'


# DRF's own exceptions mapped onto the taxonomy
_DRF_KINDS = {
    exceptions.ValidationError: 'ValidationError',
    exceptions.ParseError: 'ValidationError',
    exceptions.NotAuthenticated: 'Unauthorized',
    exceptions.AuthenticationFailed: 'Unauthorized',
    exceptions.PermissionDenied: 'Forbidden',
    exceptions.NotFound: 'NotFound',
    exceptions.MethodNotAllowed: 'MethodNotAllowed',
    exceptions.UnsupportedMediaType: 'ValidationError',
}


def _kind_for(exc: Exception) -> str:
    if isinstance(exc, DomainError):
        return exc.kind
    for cls, kind in _DRF_KINDS.items():
        if isinstance(exc, cls):
            return kind
    return 'Error'


def error_response(kind: str, message: str, http_status: int, errors=None) -> Response:
    body: dict[str, object] = {'status': 'error', 'code': kind, 'message': message}
    if errors is not None:
        body['errors'] = errors
    return Response(body, status=http_status)


def api_exception_handler(exc, context):
    resp = drf_exception_handler(exc, context)
    if resp is None:
        return _storage_or_internal(exc, context)

    kind = _kind_for(exc)
    if isinstance(exc, exceptions.ValidationError):
        return error_response(kind, 'Validation failed', resp.status_code, errors=resp.data)

    detail = None
    if isinstance(resp.data, dict):
        detail = resp.data.get('detail') or resp.data
    else:
        detail = resp.data
    message = detail if isinstance(detail, str) else str(detail)
    out = error_response(kind, message, resp.status_code)
    for header in ('WWW-Authenticate', 'Retry-After'):
        if resp.has_header(header):
            out[header] = resp[header]
    return out


def _storage_or_internal(exc, context):
    view = context.get('view')
    where = view.__class__.__name__ if view is not None else 'unknown'
    set_rollback()
    if isinstance(exc, IntegrityError):
        logger.warning('Integrity error in %s: %s', where, exc)
        return error_response('Conflict', 'Record conflicts with an existing record', status.HTTP_409_CONFLICT)
    if isinstance(exc, (OperationalError, InterfaceError)):
        logger.error('Storage unavailable in %s: %s', where, exc)
        return error_response(ServiceUnavailable.kind, str(ServiceUnavailable.default_detail),
                              status.HTTP_503_SERVICE_UNAVAILABLE)
    logger.exception('Unhandled error in %s', where, exc_info=exc)
    return error_response('InternalError', 'Internal server error', status.HTTP_500_INTERNAL_SERVER_ERROR)
