from django.core.management.base import BaseCommand

from recipes.models import Category
from recipes.services.hierarchy import derive_slug, save_category


class Command(BaseCommand):
    help = 'Initialise la taxonomie de catégories par défaut'

    # (nom, code, sous-catégories)
    categories_data = [
        ('Breakfast', 'BRK', ['Pancakes', 'Eggs', 'Smoothies']),
        ('Main Courses', 'MAIN', ['Pasta', 'Poultry', 'Seafood', 'Vegetarian Mains']),
        ('Soups & Salads', 'SOUP', ['Soups', 'Salads']),
        ('Desserts', 'DES', ['Cakes', 'Cookies', 'Frozen Desserts']),
        ('Baking', 'BAKE', ['Bread', 'Pastry']),
        ('Drinks', 'DRK', []),
    ]

    def handle(self, *args, **options):
        created_count = 0
        for order, (name, code, children) in enumerate(self.categories_data, start=1):
            parent, created = self._get_or_create(name, code, order)
            created_count += created
            for child_order, child_name in enumerate(children, start=1):
                child_code = f'{code}{child_order:02d}'
                _, created = self._get_or_create(child_name, child_code, child_order, parent)
                created_count += created

        self.stdout.write(self.style.SUCCESS(f'✓ {created_count} catégorie(s) créée(s)'))

    def _get_or_create(self, name, code, display_order, parent=None):
        existing = Category.objects.filter(code=code).first()
        if existing is not None:
            self.stdout.write(f'  Catégorie existante: {existing.path}')
            return existing, False
        category = save_category(Category(
            name=name,
            slug=derive_slug(name),
            code=code,
            parent=parent,
            display_order=display_order,
        ))
        self.stdout.write(self.style.SUCCESS(f'✓ Catégorie créée: {category.path}'))
        return category, True
