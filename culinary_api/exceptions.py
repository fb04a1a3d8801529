"""
Erreurs applicatives et enveloppe d'erreur commune à toute l'API.

Toutes les réponses d'erreur ont la forme
``{"success": false, "error": {"message": ..., "code": ...}, "timestamp": ...}``.
"""
import logging
import traceback

from django.conf import settings
from django.core.exceptions import (
    ObjectDoesNotExist,
    PermissionDenied as DjangoPermissionDenied,
    ValidationError as DjangoValidationError,
)
from django.db import IntegrityError
from django.http import Http404
from django.utils import timezone
from rest_framework import exceptions, status
from rest_framework.response import Response

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = 'Something went wrong on our end. Please try again later.'


class AppError(exceptions.APIException):
    """Erreur métier attendue : son message est renvoyé tel quel au client."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = GENERIC_ERROR_MESSAGE
    default_code = 'error'
    is_operational = True


class ValidationFailed(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid input data.'
    default_code = 'validation_error'


class NotAuthenticatedError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = 'You are not logged in! Please log in to get access.'
    default_code = 'unauthenticated'


class PermissionDeniedError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'You do not have permission to perform this action.'
    default_code = 'forbidden'


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Resource not found.'
    default_code = 'not_found'


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Duplicate value. Please use another value.'
    default_code = 'conflict'


class AccountLocked(AppError):
    status_code = status.HTTP_423_LOCKED
    default_detail = 'Account is temporarily locked due to too many failed login attempts.'
    default_code = 'account_locked'


class EmailDeliveryError(AppError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = 'There was an error sending the email. Try again later!'
    default_code = 'email_failed'


class MediaStorageError(AppError):
    """Panne du stockage : détail journalisé, message générique côté client"""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = 'Could not store the uploaded file.'
    default_code = 'storage_error'
    is_operational = False


def _flatten_errors(detail, prefix=''):
    """Aplatit les erreurs DRF imbriquées en une liste 'champ: message'."""
    if isinstance(detail, dict):
        messages = []
        for field, value in detail.items():
            label = field if field != 'non_field_errors' else ''
            name = f'{prefix}.{label}' if prefix and label else (label or prefix)
            messages.extend(_flatten_errors(value, name))
        return messages
    if isinstance(detail, list):
        messages = []
        for index, value in enumerate(detail):
            name = f'{prefix}[{index}]' if isinstance(value, (dict, list)) else prefix
            messages.extend(_flatten_errors(value, name))
        return messages
    return [f'{prefix}: {detail}' if prefix else str(detail)]


def _translate(exc):
    """Convertit les erreurs Django/base de données en erreurs API."""
    if isinstance(exc, IntegrityError):
        return ConflictError()
    if isinstance(exc, (Http404, ObjectDoesNotExist)):
        return NotFoundError()
    if isinstance(exc, DjangoPermissionDenied):
        return PermissionDeniedError()
    if isinstance(exc, DjangoValidationError):
        return exceptions.ValidationError(
            exc.message_dict if hasattr(exc, 'error_dict') else exc.messages
        )
    if isinstance(exc, exceptions.NotAuthenticated):
        translated = NotAuthenticatedError()
        translated.auth_header = getattr(exc, 'auth_header', None)
        return translated
    # Référence ou valeur mal formée arrivée jusqu'à l'ORM
    if isinstance(exc, (ValueError, TypeError)):
        return ValidationFailed(f'Invalid input data. {exc}')
    return exc


def _describe(exc):
    if isinstance(exc, exceptions.ValidationError):
        messages = _flatten_errors(exc.detail)
        return f"Invalid input data. {'. '.join(messages)}", 'validation_error', exc.detail
    if isinstance(exc, exceptions.Throttled):
        return 'Too many requests from this IP, please try again later.', 'rate_limited', None
    codes = exc.get_codes()
    code = codes if isinstance(codes, str) else exc.default_code
    detail = exc.detail
    if isinstance(detail, (list, dict)):
        return '. '.join(_flatten_errors(detail)), code, None
    return str(detail), code, None


def _request_context(request):
    if request is None:
        return {}
    user = getattr(request, 'user', None)
    return {
        'user_id': getattr(user, 'id', None),
        'path': request.path,
        'method': request.method,
        'ip': request.META.get('REMOTE_ADDR'),
    }


def build_envelope(message, code, details=None):
    error = {'message': message, 'code': code}
    if details is not None:
        error['details'] = details
    return {
        'success': False,
        'error': error,
        'timestamp': timezone.now().isoformat(),
    }


def envelope_exception_handler(exc, context):
    # Import local : rest_framework.views charge les classes d'authentification,
    # qui dépendent de ce module
    from rest_framework.views import set_rollback

    request = context.get('request')
    exc = _translate(exc)
    log_context = _request_context(request)

    # Seules les erreurs attendues exposent leur message au client
    if isinstance(exc, exceptions.APIException) and getattr(exc, 'is_operational', True):
        message, code, details = _describe(exc)
        logger.warning("[Error] %s %s (%s) %s", exc.status_code, message, code, log_context)

        headers = {}
        if getattr(exc, 'auth_header', None):
            headers['WWW-Authenticate'] = exc.auth_header
        if getattr(exc, 'wait', None):
            headers['Retry-After'] = '%d' % exc.wait

        set_rollback()
        return Response(build_envelope(message, code, details), status=exc.status_code, headers=headers)

    logger.error("[Error] Unhandled %s: %s %s", type(exc).__name__, exc, log_context, exc_info=exc)
    set_rollback()
    if settings.DEBUG:
        body = build_envelope(str(exc), 'internal_error')
        body['error']['stack'] = traceback.format_exception(exc)
    else:
        body = build_envelope(GENERIC_ERROR_MESSAGE, 'internal_error')
    return Response(body, status=getattr(exc, 'status_code', status.HTTP_500_INTERNAL_SERVER_ERROR))
