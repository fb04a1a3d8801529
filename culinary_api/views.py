import time

from django.conf import settings
from django.http import JsonResponse
from django.utils import timezone

from .exceptions import GENERIC_ERROR_MESSAGE, build_envelope

STARTED_AT = time.monotonic()


def health_view(request):
    """État du service (utilisé par les sondes de disponibilité)"""
    return JsonResponse({
        'status': 'OK',
        'timestamp': timezone.now().isoformat(),
        'uptime': round(time.monotonic() - STARTED_AT, 3),
        'environment': settings.ENVIRONMENT,
        'version': settings.API_VERSION,
    })


def not_found_view(request, exception=None):
    return JsonResponse(
        build_envelope(f"Can't find {request.path} on this server!", 'not_found'),
        status=404,
    )


def server_error_view(request):
    return JsonResponse(build_envelope(GENERIC_ERROR_MESSAGE, 'internal_error'), status=500)
