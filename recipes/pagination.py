import math

from rest_framework.pagination import BasePagination
from rest_framework.response import Response

from .services.query_builder import parse_positive_int


class EnvelopePagination(BasePagination):
    """
    Pagination page/limit renvoyant l'enveloppe
    {success, results, pagination: {page, limit, total, pages}, data: {<clé>: [...]}}.
    Une page au-delà de la dernière renvoie une liste vide plutôt qu'une 404.
    """
    page_size = 12  # Taille par défaut
    max_page_size = 50  # Limite maximale pour éviter les abus
    data_key = 'results'

    def __init__(self, page_size=None, max_page_size=None, data_key=None):
        if page_size is not None:
            self.page_size = page_size
        if max_page_size is not None:
            self.max_page_size = max_page_size
        if data_key is not None:
            self.data_key = data_key

    def paginate_queryset(self, queryset, request, view=None):
        self.page = parse_positive_int(request.query_params.get('page'), 1)
        self.limit = min(parse_positive_int(request.query_params.get('limit'), self.page_size), self.max_page_size)
        self.total = queryset.count()
        offset = (self.page - 1) * self.limit
        # Pas de requête au-delà de la dernière page (et pas de dépassement d'OFFSET)
        if offset >= self.total:
            return []
        return list(queryset[offset:offset + self.limit])

    def get_pagination_metadata(self):
        return {
            'page': self.page,
            'limit': self.limit,
            'total': self.total,
            'pages': math.ceil(self.total / self.limit),
        }

    def get_paginated_response(self, data):
        return Response({
            'success': True,
            'results': len(data),
            'pagination': self.get_pagination_metadata(),
            'data': {self.data_key: data},
        })
