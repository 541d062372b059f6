import logging

from django.core.exceptions import PermissionDenied
from django.http import Http404
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class InvalidRequest(exceptions.APIException):
    """Malformed, missing or out-of-range input"""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid request.'
    default_code = 'validation_error'


class InvalidAmount(InvalidRequest):
    default_detail = 'Invalid amount.'
    default_code = 'invalid_amount'


class Forbidden(exceptions.PermissionDenied):
    default_detail = 'Access denied.'
    default_code = 'forbidden'


class ResourceNotFound(exceptions.NotFound):
    default_detail = 'Resource not found.'
    default_code = 'not_found'


class Conflict(exceptions.APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'The resource is not in a state that allows this operation.'
    default_code = 'conflict'


class UpstreamError(exceptions.APIException):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = 'An external service failed.'
    default_code = 'upstream_error'


def _first_message(detail):
    """Pick a human readable message out of a DRF error detail structure"""
    if isinstance(detail, dict):
        for field, value in detail.items():
            message = _first_message(value)
            if field in ('non_field_errors', 'detail'):
                return message
            return f"{field}: {message}"
        return ''
    if isinstance(detail, (list, tuple)):
        return _first_message(detail[0]) if detail else ''
    return str(detail)


def envelope_exception_handler(exc, context):
    """
    Render every API error as ``{"success": false, "message": ..., "errors"?: ...}``.
    """
    if isinstance(exc, Http404):
        exc = ResourceNotFound(str(exc) or None)
    elif isinstance(exc, PermissionDenied):
        exc = Forbidden()

    response = exception_handler(exc, context)
    if response is None:
        return None

    body = {
        'success': False,
        'message': _first_message(response.data) or 'Request failed.',
    }
    if isinstance(exc, exceptions.ValidationError):
        body['message'] = _first_message(exc.detail) or 'Validation failed.'
        body['errors'] = response.data
    if response.status_code >= 500:
        logger.error(f"{exc.__class__.__name__} in {context.get('view').__class__.__name__}: {body['message']}")

    return Response(body, status=response.status_code, headers=_auth_headers(response))


def _auth_headers(response):
    headers = {}
    if 'WWW-Authenticate' in response:
        headers['WWW-Authenticate'] = response['WWW-Authenticate']
    if 'Retry-After' in response:
        headers['Retry-After'] = response['Retry-After']
    return headers
