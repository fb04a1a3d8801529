"""
Traduction des paramètres de listing (filtres, tri, champs) en requêtes ORM.

Seuls les paramètres déclarés ici sont pris en compte : aucune clé fournie par
le client n'est transmise telle quelle à la requête.
"""
import math
import re

from django.db import connection
from django.db.models import Q

from culinary_api.exceptions import ValidationFailed
from ..models import Recipe

RANGE_FIELDS = {
    'prepTime': 'prep_time',
    'cookTime': 'cook_time',
    'totalTime': 'total_time',
    'servings': 'servings',
    'averageRating': 'average_rating',
    'totalRatings': 'total_ratings',
    'views': 'views',
}
RANGE_PARAM = re.compile(r'^(?P<field>[A-Za-z]+)\[(?P<operator>gte|gt|lte|lt)\]$')

RECIPE_SORT_FIELDS = {
    'createdAt': 'created_at',
    'updatedAt': 'updated_at',
    'title': 'title',
    'prepTime': 'prep_time',
    'cookTime': 'cook_time',
    'totalTime': 'total_time',
    'servings': 'servings',
    'averageRating': 'average_rating',
    'totalRatings': 'total_ratings',
    'views': 'views',
}
RECIPE_SORT_ALIASES = {
    'newest': ['-created_at'],
    'oldest': ['created_at'],
    'rating': ['-average_rating', '-total_ratings'],
    'popular': ['-views', '-average_rating'],
}
DEFAULT_RECIPE_ORDERING = ['-created_at', '-id']
POPULAR_ORDERING = ['-average_rating', '-total_ratings', '-views']

CATEGORY_SORT_FIELDS = {
    'displayOrder': 'display_order',
    'name': 'name',
    'createdAt': 'created_at',
    'level': 'level',
    'recipeCount': 'recipe_count',
}
DEFAULT_CATEGORY_ORDERING = ['display_order', 'name']
MAX_DB_ID = 2 ** 63 - 1


def parse_positive_int(value, default):
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


def parse_bool(value):
    if value is None:
        return None
    lowered = str(value).strip().lower()
    if lowered in ('true', '1', 'yes'):
        return True
    if lowered in ('false', '0', 'no'):
        return False
    return None


def parse_csv(value):
    if not value:
        return []
    return [item.strip() for item in str(value).split(',') if item.strip()]


def parse_id(value, message):
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise ValidationFailed(message)
    # Au-delà, la base lève une OverflowError
    if not 0 < parsed <= MAX_DB_ID:
        raise ValidationFailed(message)
    return parsed


def parse_sort(value, allowed, aliases=None, default=None):
    """
    "a,-b" -> ['a', '-b'] en traduisant les clés publiques en champs ORM.
    Les clés inconnues sont ignorées ; sans clé valide on garde le tri par défaut.
    """
    aliases = aliases or {}
    ordering = []
    # Accepte aussi le séparateur espace ("displayOrder name")
    for key in parse_csv(str(value or '').replace(' ', ',')):
        if key in aliases:
            ordering.extend(aliases[key])
            continue
        descending = key.startswith('-')
        field = allowed.get(key.lstrip('-'))
        if field:
            ordering.append(f'-{field}' if descending else field)
    if not ordering:
        return list(default or [])
    # Départage stable pour une pagination déterministe
    if 'id' not in ordering and '-id' not in ordering:
        ordering.append('-id')
    return ordering


def parse_fields(value):
    """?fields=title,averageRating -> {'title', 'averageRating'} (None = tous les champs)"""
    fields = parse_csv(value)
    return set(fields) if fields else None


def visible_recipes_filter():
    return Q(status=Recipe.STATUS_PUBLISHED, visibility=Recipe.VISIBILITY_PUBLIC)


def apply_visibility(queryset, user):
    """Hors administrateurs, seules les recettes publiées et publiques sont listées"""
    if user is not None and user.is_authenticated and user.role == 'admin':
        return queryset
    return queryset.filter(visible_recipes_filter())


def apply_text_search(queryset, text):
    if connection.vendor == 'postgresql':
        from django.contrib.postgres.search import SearchQuery, SearchVector

        return queryset.annotate(
            search_document=SearchVector('title', 'description'),
        ).filter(
            Q(search_document=SearchQuery(text)) | Q(tags__icontains=text)
        )
    return queryset.filter(
        Q(title__icontains=text) | Q(description__icontains=text) | Q(tags__icontains=text)
    )


def apply_range_filters(queryset, params):
    lookups = {}
    for key in params.keys():
        match = RANGE_PARAM.match(key)
        if not match or match.group('field') not in RANGE_FIELDS:
            continue
        try:
            value = float(params.get(key))
        except (TypeError, ValueError):
            raise ValidationFailed(f'{key} must be a number.')
        if not math.isfinite(value) or abs(value) > MAX_DB_ID:
            raise ValidationFailed(f'{key} must be a number.')
        lookups[f"{RANGE_FIELDS[match.group('field')]}__{match.group('operator')}"] = value
    return queryset.filter(**lookups) if lookups else queryset


def apply_recipe_filters(queryset, params):
    """Applique l'ensemble fermé des filtres de listing des recettes"""
    search = (params.get('search') or '').strip()
    if search:
        queryset = apply_text_search(queryset, search)

    category = params.get('category')
    if category:
        queryset = queryset.filter(category_id=parse_id(category, 'Invalid category ID'))

    cuisine = params.get('cuisine')
    if cuisine:
        queryset = queryset.filter(cuisine=cuisine.lower())

    difficulty = params.get('difficulty')
    if difficulty:
        queryset = queryset.filter(difficulty=difficulty.lower())

    max_prep_time = parse_positive_int(params.get('maxPrepTime'), None)
    if max_prep_time is not None:
        queryset = queryset.filter(prep_time__lte=min(max_prep_time, MAX_DB_ID))

    dietary = parse_csv(params.get('dietary'))
    if dietary:
        matching = Recipe.objects.filter(dietary_restrictions__restriction__in=dietary).values('pk')
        queryset = queryset.filter(pk__in=matching)

    author = params.get('author')
    if author:
        queryset = queryset.filter(author_id=parse_id(author, 'Invalid author ID'))

    featured = parse_bool(params.get('featured'))
    if featured is not None:
        queryset = queryset.filter(featured=featured)

    return apply_range_filters(queryset, params)
