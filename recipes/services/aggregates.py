"""
Champs dérivés des recettes.

Ils sont recalculés explicitement par chaque point de mutation (création, mise à jour,
notation) plutôt que par un hook de sauvegarde.
"""
from decimal import Decimal, ROUND_HALF_UP

from django.db.models import Count, Sum


def round_rating(total, count) -> float:
    """Moyenne arrondie au dixième (arrondi commercial, 4.25 -> 4.3)"""
    if not count:
        return 0.0
    mean = Decimal(total) / Decimal(count)
    return float(mean.quantize(Decimal('0.1'), rounding=ROUND_HALF_UP))


def compute_rating_aggregates(recipe):
    if recipe.pk is None:
        return 0.0, 0
    stats = recipe.ratings.aggregate(total=Sum('rating'), count=Count('id'))
    count = stats['count'] or 0
    return round_rating(stats['total'] or 0, count), count


def refresh_derived_fields(recipe):
    """Recalcule total_time, average_rating et total_ratings (sans sauvegarder)"""
    recipe.total_time = (recipe.prep_time or 0) + (recipe.cook_time or 0)
    recipe.average_rating, recipe.total_ratings = compute_rating_aggregates(recipe)
    return recipe
