import logging
from time import perf_counter

from django.conf import settings
from django.db import connection, reset_queries

logger = logging.getLogger(__name__)


class RequestContextMiddleware:
    """
    Middleware simple pour logguer chaque requête (méthode, chemin, statut, durée, appelant, IP).
    En DEBUG, expose aussi le temps passé en base via l'en-tête Server-Timing.
    """
    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        if settings.DEBUG:
            reset_queries()
        t0 = perf_counter()
        response = self.get_response(request)
        total_ms = (perf_counter() - t0) * 1000

        # request.user n'est résolu par DRF qu'à l'intérieur de la vue
        user = getattr(request, 'user', None)
        user_id = user.id if user is not None and user.is_authenticated else None
        logger.info(
            "[Request] %s %s status=%s total_ms=%.1f user=%s ip=%s",
            request.method, request.path, response.status_code, total_ms,
            user_id, request.META.get('REMOTE_ADDR'),
        )

        if settings.DEBUG:
            num_queries = len(connection.queries)
            db_time_ms = sum(float(q.get('time', 0)) for q in connection.queries) * 1000
            # Expose timings to the client (Chrome DevTools 'Server-Timing' tab)
            response.headers['Server-Timing'] = (
                f"app;dur={total_ms:.1f}, db;dur={db_time_ms:.1f}, "
                f"queries;desc=\"{num_queries} SQL\""
            )
        return response
