"""
Maintenance de l'arbre des catégories : slug, niveau, chemin matérialisé,
compteurs de recettes et requête hiérarchique.
"""
import logging
import re
from collections import defaultdict

from unidecode import unidecode

from django.db import transaction
from django.db.models import Count, F, Q

from culinary_api.exceptions import ConflictError, ValidationFailed
from ..models import MAX_CATEGORY_LEVEL, Category, Recipe

logger = logging.getLogger(__name__)

HIERARCHY_MAX_DEPTH = 4


def derive_slug(name: str) -> str:
    slug = unidecode(name or '').lower()
    slug = re.sub(r'[^a-z0-9\s-]', '', slug)
    slug = re.sub(r'\s+', '-', slug)
    slug = re.sub(r'-+', '-', slug)
    return slug.strip('-')


def apply_hierarchy(category: Category, previous_path: str = ''):
    """Calcule level et path à partir du parent (sans sauvegarder)"""
    parent = category.parent
    if parent is None:
        category.level = 0
        category.path = category.slug
        return category

    if category.pk is not None and (
        parent.pk == category.pk
        or (previous_path and parent.path.startswith(f'{previous_path}/'))
    ):
        raise ValidationFailed('A category cannot be moved under itself or one of its descendants.')

    level = parent.level + 1
    if level > MAX_CATEGORY_LEVEL:
        raise ValidationFailed(f'Category hierarchy cannot be deeper than {MAX_CATEGORY_LEVEL} levels.')
    category.level = level
    category.path = f'{parent.path}/{category.slug}' if parent.path else category.slug
    return category


def save_category(category: Category, previous_path: str = '') -> Category:
    """
    Sauvegarde une catégorie après recalcul de sa position dans l'arbre.
    Si son chemin change, les descendants sont déplacés avec elle.
    """
    with transaction.atomic():
        apply_hierarchy(category, previous_path)
        category.save()

        if previous_path and previous_path != category.path:
            descendants = list(Category.objects.filter(path__startswith=f'{previous_path}/'))
            for descendant in descendants:
                descendant.path = category.path + descendant.path[len(previous_path):]
                descendant.level = descendant.path.count('/')
                if descendant.level > MAX_CATEGORY_LEVEL:
                    raise ValidationFailed(
                        f'Category hierarchy cannot be deeper than {MAX_CATEGORY_LEVEL} levels.'
                    )
            Category.objects.bulk_update(descendants, ['path', 'level'])
            logger.info(
                "[Hierarchy] Moved %s -> %s (%d descendants updated)",
                previous_path, category.path, len(descendants),
            )
    return category


def ensure_deletable(category: Category):
    recipe_total = max(category.recipes.count(), category.recipe_count)
    if recipe_total:
        raise ConflictError(
            f'Cannot delete category with {recipe_total} associated recipes. '
            'Please move or delete the recipes first.',
            code='category_has_recipes',
        )
    children_total = category.children.count()
    if children_total:
        raise ConflictError(
            f'Cannot delete category with {children_total} subcategories. '
            'Please move or delete the subcategories first.',
            code='category_has_children',
        )


def get_ancestors(category: Category):
    slugs = category.path.split('/')[:-1] if category.path else []
    return list(Category.objects.filter(slug__in=slugs).order_by('level'))


def get_descendants(category: Category):
    return Category.objects.filter(path__startswith=f'{category.path}/').order_by('level', 'display_order', 'name')


def build_hierarchy(max_depth: int = HIERARCHY_MAX_DEPTH):
    """
    Catégories racines actives avec leurs sous-arbres (jusqu'à max_depth niveaux),
    triées par display_order puis name. Retourne des nœuds {'category', 'children'}.
    """
    categories = Category.objects.filter(status=Category.STATUS_ACTIVE).order_by('display_order', 'name')
    by_parent = defaultdict(list)
    for category in categories:
        by_parent[category.parent_id].append(category)

    def build(node, depth):
        children = by_parent[node.id] if depth < max_depth else []
        return {'category': node, 'children': [build(child, depth + 1) for child in children]}

    return [build(root, 0) for root in by_parent[None]]


# Compteurs de recettes

def increment_recipe_count(category_id):
    Category.objects.filter(pk=category_id).update(recipe_count=F('recipe_count') + 1)


def decrement_recipe_count(category_id):
    Category.objects.filter(pk=category_id, recipe_count__gt=0).update(recipe_count=F('recipe_count') - 1)


def move_recipe_count(old_category_id, new_category_id):
    if old_category_id == new_category_id:
        return
    with transaction.atomic():
        decrement_recipe_count(old_category_id)
        increment_recipe_count(new_category_id)


def recompute_recipe_count(category: Category) -> int:
    """Recompte les recettes publiées de la catégorie et écrase le compteur stocké"""
    count = Recipe.objects.filter(category=category, status=Recipe.STATUS_PUBLISHED).count()
    Category.objects.filter(pk=category.pk).update(recipe_count=count)
    category.recipe_count = count
    return count


def recompute_all_recipe_counts() -> int:
    """Réconciliation de toutes les catégories actives ; retourne le nombre de catégories traitées"""
    categories = list(
        Category.objects.filter(status=Category.STATUS_ACTIVE).annotate(
            published_count=Count('recipes', filter=Q(recipes__status=Recipe.STATUS_PUBLISHED))
        )
    )
    for category in categories:
        category.recipe_count = category.published_count
    with transaction.atomic():
        Category.objects.bulk_update(categories, ['recipe_count'])
    logger.info("[Hierarchy] Recomputed recipe counts for %d categories", len(categories))
    return len(categories)
