import re

from rest_framework.throttling import SimpleRateThrottle

RATE_PATTERN = re.compile(r'^(?P<num>\d+)/(?P<count>\d*)(?P<unit>[smhd])')
UNIT_SECONDS = {'s': 1, 'm': 60, 'h': 3600, 'd': 86400}


class WindowRateThrottle(SimpleRateThrottle):
    """
    Throttle par adresse IP acceptant des fenêtres multiples ("5/15m", "100/15m").
    Le format standard de DRF ("100/min") reste accepté.
    """

    def parse_rate(self, rate):
        if rate is None:
            return (None, None)
        match = RATE_PATTERN.match(rate)
        if not match:
            raise ValueError(f'Invalid throttle rate: {rate!r}')
        window = int(match.group('count') or 1) * UNIT_SECONDS[match.group('unit')]
        return int(match.group('num')), window

    def get_cache_key(self, request, view):
        return self.cache_format % {
            'scope': self.scope,
            'ident': self.get_ident(request),
        }


class ApiRateThrottle(WindowRateThrottle):
    """Budget partagé par toutes les routes de l'API."""
    scope = 'api'


class AuthRateThrottle(WindowRateThrottle):
    """Budget réduit pour les routes d'authentification."""
    scope = 'auth'
