import logging

from django.db import transaction

from culinary_api.exceptions import ValidationFailed
from ..models import Rating, Recipe
from .aggregates import refresh_derived_fields

logger = logging.getLogger(__name__)


def submit_rating(recipe: Recipe, user, value: int, review: str = '') -> dict:
    """
    Enregistre la note d'un utilisateur (remplace sa note précédente)
    et met à jour la moyenne et le nombre de notes dans la même transaction.
    """
    if recipe.author_id == user.id:
        raise ValidationFailed('You cannot rate your own recipe', code='self_rating')

    with transaction.atomic():
        # Verrouille la recette pour sérialiser les recalculs concurrents
        locked = Recipe.objects.select_for_update().get(pk=recipe.pk)
        _, created = Rating.objects.update_or_create(
            recipe=locked,
            user=user,
            defaults={'rating': value, 'review': review or ''},
        )
        refresh_derived_fields(locked)
        locked.save(update_fields=['total_time', 'average_rating', 'total_ratings', 'updated_at'])

    logger.info(
        "[Ratings] User %s %s rating %s on recipe %s (avg=%s, total=%s)",
        user.id, 'added' if created else 'replaced', value, recipe.pk,
        locked.average_rating, locked.total_ratings,
    )
    recipe.average_rating = locked.average_rating
    recipe.total_ratings = locked.total_ratings
    return {
        'averageRating': locked.average_rating,
        'totalRatings': locked.total_ratings,
    }
