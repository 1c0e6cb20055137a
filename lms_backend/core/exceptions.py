"""
API error taxonomy and the DRF exception handler that renders it.

Domain services raise these directly; the handler turns every failure into
the standard envelope:

    {"success": false, "message": "...", "errors": {...}}

Usage:
    from core.exceptions import NotFoundError
    raise NotFoundError('Course not found or not available')
"""
import logging

from django.core.exceptions import PermissionDenied as DjangoPermissionDenied
from django.http import Http404
from rest_framework import exceptions, status
from rest_framework.response import Response

logger = logging.getLogger(__name__)


class AuthenticationError(exceptions.APIException):
    """Bad credentials, missing or invalid token."""
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = 'Authentication credentials were not provided.'
    default_code = 'authentication_error'


class AuthorizationError(exceptions.APIException):
    """Authenticated, but the caller lacks a permitted role."""
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'You do not have permission to perform this action.'
    default_code = 'authorization_error'


class TenantSuspendedError(AuthorizationError):
    """The caller's own tenant is not active."""
    default_detail = 'Your organization is currently suspended. Please contact support.'
    default_code = 'tenant_suspended'


class NotFoundError(exceptions.APIException):
    """Resource is absent or belongs to another tenant."""
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Resource not found.'
    default_code = 'not_found'


class ConflictError(exceptions.APIException):
    """Request clashes with the current state of a resource."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'The request conflicts with the current state of the resource.'
    default_code = 'conflict'


class AlreadyEnrolledError(ConflictError):
    default_detail = 'You are already enrolled in this course.'
    default_code = 'already_enrolled'


class InvalidTransitionError(ConflictError):
    default_code = 'invalid_transition'


class QuotaExceededError(ConflictError):
    default_code = 'quota_exceeded'

    def __init__(self, quota_name, usage=None, limit=None):
        self.quota_name = quota_name
        self.usage = usage
        self.limit = limit
        label = str(quota_name).replace('max_', '').replace('_', ' ')
        if limit is not None:
            detail = (
                f'Your plan limit for {label} has been reached ({usage}/{limit}). '
                f'Upgrade your subscription to continue.'
            )
        else:
            detail = f'Your plan limit for {label} has been reached.'
        super().__init__(detail)


class TenantNotIdentified(exceptions.APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Tenant could not be identified'
    default_code = 'tenant_not_identified'


GENERIC_ERROR_MESSAGE = 'An unexpected error occurred. Please try again later.'


def error_payload(message, errors=None):
    payload = {'success': False, 'message': message}
    if errors:
        payload['errors'] = errors
    return payload


def _flatten_errors(detail):
    """Turn DRF ValidationError detail into a field -> [messages] map."""
    if isinstance(detail, dict):
        errors = {}
        for field, value in detail.items():
            if isinstance(value, dict):
                for sub_field, sub_messages in _flatten_errors(value).items():
                    errors[f'{field}.{sub_field}'] = sub_messages
            elif isinstance(value, list):
                errors[field] = [str(item) for item in value]
            else:
                errors[field] = [str(value)]
        return errors
    if isinstance(detail, list):
        return {'non_field_errors': [str(item) for item in detail]}
    return {'non_field_errors': [str(detail)]}


def api_exception_handler(exc, context):
    """
    REST_FRAMEWORK['EXCEPTION_HANDLER'].

    ValidationError -> 422 with an `errors` map; other APIExceptions keep
    their status code; anything unexpected is logged and reported as a
    generic 500 without internal details.
    """
    if isinstance(exc, Http404):
        exc = NotFoundError()
    elif isinstance(exc, DjangoPermissionDenied):
        exc = AuthorizationError()

    if isinstance(exc, exceptions.ValidationError):
        return Response(
            error_payload('The given data was invalid.', _flatten_errors(exc.detail)),
            status=status.HTTP_422_UNPROCESSABLE_ENTITY,
        )

    if isinstance(exc, exceptions.APIException):
        headers = {}
        auth_header = getattr(exc, 'auth_header', None)
        if auth_header:
            headers['WWW-Authenticate'] = auth_header
        wait = getattr(exc, 'wait', None)
        if wait:
            headers['Retry-After'] = str(int(wait))

        detail = exc.detail
        if isinstance(detail, (list, dict)):
            message = exc.default_detail
            errors = _flatten_errors(detail)
        else:
            message = str(detail)
            errors = None
        return Response(error_payload(str(message), errors), status=exc.status_code, headers=headers)

    view = context.get('view')
    logger.exception(
        'Unhandled API error in %s: %s',
        type(view).__name__ if view is not None else 'unknown view', exc,
    )
    return Response(
        error_payload(GENERIC_ERROR_MESSAGE),
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
