from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.core.files.uploadedfile import SimpleUploadedFile
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from recipes.models import Category, Recipe
from recipes.services.hierarchy import save_category


def create_user(username, role='user'):
    return get_user_model().objects.create_user(
        username=username,
        email=f'{username}@example.com',
        password='Str0ng!Pass',
        role=role,
        account_status='active',
        is_email_verified=True,
    )


def create_category(name, code, parent=None, **extra):
    return save_category(Category(
        name=name, slug=name.lower().replace(' ', '-'), code=code, parent=parent, **extra,
    ))


class CategoryAdminAPITestCase(APITestCase):
    def setUp(self):
        cache.clear()
        self.admin = create_user('admin_user', role='admin')
        self.member = create_user('member')
        self.client.force_authenticate(self.admin)

    def test_create_root_and_child(self):
        response = self.client.post(reverse('category-list'), {
            'name': 'Main Courses',
            'code': 'main',
            'color': '#FF5733',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        root = response.data['data']['category']
        self.assertEqual(root['slug'], 'main-courses')
        self.assertEqual(root['code'], 'MAIN')
        self.assertEqual(root['level'], 0)
        self.assertEqual(root['path'], 'main-courses')
        self.assertEqual(root['createdBy'], self.admin.id)

        response = self.client.post(reverse('category-list'), {
            'name': 'Pasta',
            'code': 'PAS',
            'parent': root['id'],
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        child = response.data['data']['category']
        self.assertEqual(child['level'], 1)
        self.assertEqual(child['path'], 'main-courses/pasta')

        response = self.client.get(reverse('category-detail', args=[root['id']]))
        self.assertEqual(response.data['data']['category']['children'], [child['id']])

    def test_duplicate_code_is_a_conflict(self):
        create_category('Desserts', 'DES')

        response = self.client.post(reverse('category-list'), {'name': 'Sweets', 'code': 'des'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_unknown_parent_is_rejected(self):
        response = self.client.post(reverse('category-list'), {
            'name': 'Orphan', 'code': 'ORP', 'parent': 999999,
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('Parent category not found', response.data['error']['message'])

    def test_regular_users_cannot_manage_categories(self):
        self.client.force_authenticate(self.member)
        response = self.client.post(reverse('category-list'), {'name': 'Soups', 'code': 'SOU'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(None)
        response = self.client.post(reverse('category-list'), {'name': 'Soups', 'code': 'SOU'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_depth_is_capped(self):
        parent = None
        for level in range(6):
            parent = create_category(f'Level {level}', f'LVL{level}', parent=parent)
        self.assertEqual(parent.level, 5)

        response = self.client.post(reverse('category-list'), {
            'name': 'Too deep', 'code': 'DEEP', 'parent': parent.id,
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Category.objects.filter(code='DEEP').exists())

    def test_cannot_move_under_own_descendant(self):
        root = create_category('Baking', 'BAKE')
        child = create_category('Bread', 'BRD', parent=root)

        response = self.client.patch(reverse('category-detail', args=[root.id]), {'parent': child.id}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        root.refresh_from_db()
        self.assertIsNone(root.parent_id)

    def test_renaming_slug_moves_descendants(self):
        root = create_category('Baking', 'BAKE')
        child = create_category('Bread', 'BRD', parent=root)
        grandchild = create_category('Sourdough', 'SRD', parent=child)

        response = self.client.patch(reverse('category-detail', args=[root.id]), {'slug': 'oven'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        child.refresh_from_db()
        grandchild.refresh_from_db()
        self.assertEqual(child.path, 'oven/bread')
        self.assertEqual(grandchild.path, 'oven/bread/sourdough')
        self.assertEqual(grandchild.level, 2)

    def test_moving_a_subtree_updates_levels(self):
        first = create_category('First', 'FST')
        second = create_category('Second', 'SND')
        branch = create_category('Branch', 'BRA', parent=first)
        leaf = create_category('Leaf', 'LEF', parent=branch)
        nested_parent = create_category('Nested', 'NST', parent=second)

        response = self.client.patch(reverse('category-detail', args=[branch.id]), {'parent': nested_parent.id}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        leaf.refresh_from_db()
        self.assertEqual(leaf.path, 'second/nested/branch/leaf')
        self.assertEqual(leaf.level, 3)

    def test_delete_is_blocked_by_recipes_and_children(self):
        root = create_category('Baking', 'BAKE')
        child = create_category('Bread', 'BRD', parent=root)
        Recipe.objects.create(
            title='Baguette', description='Pain croustillant maison', prep_time=30,
            category=child, author=self.member, status=Recipe.STATUS_PUBLISHED,
        )

        response = self.client.delete(reverse('category-detail', args=[child.id]))
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error']['code'], 'category_has_recipes')

        response = self.client.delete(reverse('category-detail', args=[root.id]))
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error']['code'], 'category_has_children')

        empty = create_category('Empty', 'EMP')
        response = self.client.delete(reverse('category-detail', args=[empty.id]))
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

    def test_recount_reconciles_counters(self):
        category = create_category('Soups', 'SOU', recipe_count=42)
        for status_value in (Recipe.STATUS_PUBLISHED, Recipe.STATUS_PUBLISHED, Recipe.STATUS_DRAFT):
            Recipe.objects.create(
                title='Velouté', description='Velouté de saison', prep_time=10,
                category=category, author=self.member, status=status_value,
            )

        response = self.client.patch(reverse('category-update-recipe-counts'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['message'], 'Updated recipe counts for 1 categories')
        category.refresh_from_db()
        self.assertEqual(category.recipe_count, 2)

    def test_statistics(self):
        create_category('Soups', 'SOU', featured=True, recipe_count=3)
        create_category('Salads', 'SAL', status='inactive')

        response = self.client.get(reverse('category-statistics'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        overview = response.data['data']['overview']
        self.assertEqual(overview['totalCategories'], 2)
        self.assertEqual(overview['activeCategories'], 1)
        self.assertEqual(overview['featuredCategories'], 1)
        self.assertEqual(overview['totalRecipes'], 3)

    def test_reorder(self):
        soups = create_category('Soups', 'SOU')
        salads = create_category('Salads', 'SAL')

        response = self.client.patch(reverse('category-reorder'), {
            'categoryOrders': [{'id': soups.id, 'displayOrder': 2}, {'id': salads.id, 'displayOrder': 1}],
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        soups.refresh_from_db()
        self.assertEqual(soups.display_order, 2)

    def test_image_upload_size_limit(self):
        category = create_category('Soups', 'SOU')
        big = SimpleUploadedFile('big.png', b'0' * (1024 * 1024 + 1), content_type='image/png')

        response = self.client.post(reverse('category-upload-image', args=[category.id]), {'image': big}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        small = SimpleUploadedFile('small.png', b'\x89PNG', content_type='image/png')
        response = self.client.post(reverse('category-upload-image', args=[category.id]), {'image': small}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIn('/uploads/categories/image-', response.data['data']['category']['image']['url'])


class CategoryPublicAPITestCase(APITestCase):
    def setUp(self):
        cache.clear()
        self.author = create_user('chef_anne')
        self.mains = create_category('Mains', 'MAIN', display_order=2)
        self.desserts = create_category('Desserts', 'DES', display_order=1, featured=True)
        self.pasta = create_category('Pasta', 'PAS', parent=self.mains)
        self.archived = create_category('Old', 'OLD', status='archived')

    def listed_codes(self, response):
        return [category['code'] for category in response.data['data']['categories']]

    def test_list_defaults_to_active_sorted_by_display_order(self):
        response = self.client.get(reverse('category-list'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(self.listed_codes(response), ['PAS', 'DES', 'MAIN'])
        self.assertEqual(response.data['pagination']['limit'], 20)

    def test_list_filters(self):
        url = reverse('category-list')

        self.assertEqual(self.listed_codes(self.client.get(url, {'parent': 'null'})), ['DES', 'MAIN'])
        self.assertEqual(self.listed_codes(self.client.get(url, {'parent': self.mains.id})), ['PAS'])
        self.assertEqual(self.listed_codes(self.client.get(url, {'featured': 'true'})), ['DES'])

    def test_malformed_parent_filter_is_rejected(self):
        for value in ('²', 'abc', '99999999999999999999'):
            response = self.client.get(reverse('category-list'), {'parent': value})

            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, value)
            self.assertEqual(response.data['error']['message'], 'Invalid parent category ID')

    def test_invalid_token_does_not_block_public_reads(self):
        self.client.credentials(HTTP_AUTHORIZATION='Bearer not-a-jwt')

        self.assertEqual(self.client.get(reverse('category-list')).status_code, status.HTTP_200_OK)
        self.assertEqual(self.client.get(reverse('category-hierarchy')).status_code, status.HTTP_200_OK)

        response = self.client.post(reverse('category-list'), {'name': 'Soups', 'code': 'SOU'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_include_stats_counts_published_recipes(self):
        Recipe.objects.create(
            title='Lasagnes', description='Lasagnes à la bolognaise', prep_time=30,
            category=self.pasta, author=self.author, status=Recipe.STATUS_PUBLISHED,
        )

        response = self.client.get(reverse('category-list'), {'includeStats': 'true', 'parent': self.mains.id})

        self.assertEqual(response.data['data']['categories'][0]['stats']['recipeCount'], 1)

    def test_hierarchy(self):
        response = self.client.get(reverse('category-hierarchy'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        roots = response.data['data']['categories']
        self.assertEqual([root['code'] for root in roots], ['DES', 'MAIN'])
        self.assertEqual([child['code'] for child in roots[1]['subcategories']], ['PAS'])

        response = self.client.get(reverse('category-list'), {'hierarchy': 'true'})
        self.assertEqual(len(response.data['data']['categories']), 2)

    def test_retrieve_includes_recent_recipes(self):
        for index in range(6):
            Recipe.objects.create(
                title=f'Pâtes {index}', description='Des pâtes toutes simples', prep_time=10,
                category=self.pasta, author=self.author, status=Recipe.STATUS_PUBLISHED,
            )

        response = self.client.get(reverse('category-detail', args=[self.pasta.id]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['category']['path'], 'mains/pasta')
        self.assertEqual(len(response.data['data']['recentRecipes']), 5)

    def test_retrieve_by_slug(self):
        response = self.client.get(reverse('category-by-slug', kwargs={'slug': 'desserts'}))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['category']['code'], 'DES')

        response = self.client.get(reverse('category-by-slug', kwargs={'slug': 'nothing-here'}))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
