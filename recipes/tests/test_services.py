from io import StringIO

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.test import SimpleTestCase, TestCase

from culinary_api.exceptions import ValidationFailed
from recipes.models import Category, Recipe
from recipes.services.aggregates import round_rating
from recipes.services.hierarchy import (
    build_hierarchy,
    decrement_recipe_count,
    derive_slug,
    get_ancestors,
    get_descendants,
    save_category,
)
from recipes.services.query_builder import parse_sort, RECIPE_SORT_ALIASES, RECIPE_SORT_FIELDS
from recipes.services.ratings import submit_rating
from recipes.tasks import recount_category_recipes


class RoundingTestCase(SimpleTestCase):
    def test_half_up_rounding(self):
        self.assertEqual(round_rating(17, 4), 4.3)
        self.assertEqual(round_rating(13, 3), 4.3)
        self.assertEqual(round_rating(0, 0), 0.0)

    def test_derive_slug(self):
        self.assertEqual(derive_slug('  Soups & Stews!  '), 'soups-stews')
        self.assertEqual(derive_slug('Quick -- Meals'), 'quick-meals')
        self.assertEqual(derive_slug('Crème Brûlée'), 'creme-brulee')

    def test_parse_sort(self):
        self.assertEqual(parse_sort('-averageRating,title', RECIPE_SORT_FIELDS), ['-average_rating', 'title', '-id'])
        self.assertEqual(parse_sort('rating', RECIPE_SORT_FIELDS, RECIPE_SORT_ALIASES), ['-average_rating', '-total_ratings', '-id'])
        self.assertEqual(parse_sort('author__password', RECIPE_SORT_FIELDS, default=['-created_at']), ['-created_at'])


class HierarchyServiceTestCase(TestCase):
    def setUp(self):
        self.root = save_category(Category(name='Baking', slug='baking', code='BAKE'))
        self.child = save_category(Category(name='Bread', slug='bread', code='BRD', parent=self.root))
        self.leaf = save_category(Category(name='Rye', slug='rye', code='RYE', parent=self.child))

    def test_ancestors_and_descendants(self):
        self.assertEqual([c.code for c in get_ancestors(self.leaf)], ['BAKE', 'BRD'])
        self.assertEqual([c.code for c in get_descendants(self.root)], ['BRD', 'RYE'])

    def test_self_parent_is_rejected(self):
        self.root.parent = self.root
        with self.assertRaises(ValidationFailed):
            save_category(self.root, previous_path='baking')

    def test_build_hierarchy_depth(self):
        tree = build_hierarchy(max_depth=1)
        self.assertEqual(tree[0]['category'].code, 'BAKE')
        self.assertEqual(tree[0]['children'][0]['children'], [])

    def test_counter_never_goes_negative(self):
        decrement_recipe_count(self.root.id)
        self.root.refresh_from_db()
        self.assertEqual(self.root.recipe_count, 0)


class RatingServiceTestCase(TestCase):
    def setUp(self):
        User = get_user_model()
        self.author = User.objects.create_user(username='author', email='author@example.com', password='x')
        self.critic = User.objects.create_user(username='critic', email='critic@example.com', password='x')
        category = save_category(Category(name='Mains', slug='mains', code='MAIN'))
        self.recipe = Recipe.objects.create(
            title='Cassoulet', description='Haricots et confit de canard', prep_time=30, cook_time=180,
            category=category, author=self.author,
        )

    def test_rating_refreshes_total_time_and_aggregates(self):
        result = submit_rating(self.recipe, self.critic, 4, 'Très bon')

        self.assertEqual(result, {'averageRating': 4.0, 'totalRatings': 1})
        self.recipe.refresh_from_db()
        self.assertEqual(self.recipe.total_time, 210)
        self.assertEqual(self.recipe.ratings.get().review, 'Très bon')


class RecountJobsTestCase(TestCase):
    def setUp(self):
        self.category = save_category(Category(name='Soups', slug='soups', code='SOU', recipe_count=9))

    def test_recount_task(self):
        result = recount_category_recipes.apply()

        self.assertEqual(result.get(), 1)
        self.category.refresh_from_db()
        self.assertEqual(self.category.recipe_count, 0)

    def test_recount_command(self):
        out = StringIO()
        call_command('recount_category_recipes', stdout=out)

        self.assertIn('Updated recipe counts for 1 categories', out.getvalue())


class InitCategoriesCommandTestCase(TestCase):
    def test_init_categories_is_idempotent(self):
        call_command('init_categories', stdout=StringIO())
        total = Category.objects.count()
        call_command('init_categories', stdout=StringIO())

        self.assertEqual(Category.objects.count(), total)
        self.assertEqual(Category.objects.get(code='MAIN01').path, 'main-courses/pasta')
