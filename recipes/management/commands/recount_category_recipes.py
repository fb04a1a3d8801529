from django.core.management.base import BaseCommand

from recipes.services.hierarchy import recompute_all_recipe_counts


class Command(BaseCommand):
    help = 'Recalcule le nombre de recettes publiées de chaque catégorie active'

    def handle(self, *args, **options):
        updated = recompute_all_recipe_counts()
        self.stdout.write(self.style.SUCCESS(f'✓ Updated recipe counts for {updated} categories'))
