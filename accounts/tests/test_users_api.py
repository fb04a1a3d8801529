from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.core.files.uploadedfile import SimpleUploadedFile
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from recipes.models import Category, Recipe


def create_user(username, role='user', **extra):
    extra.setdefault('account_status', 'active')
    extra.setdefault('is_email_verified', True)
    return get_user_model().objects.create_user(
        username=username,
        email=f'{username}@example.com',
        password='Str0ng!Pass',
        role=role,
        **extra,
    )


def create_recipe(author, category, title='Tarte aux pommes', **extra):
    extra.setdefault('status', Recipe.STATUS_PUBLISHED)
    return Recipe.objects.create(
        title=title,
        description='Une tarte classique et dorée',
        prep_time=20,
        cook_time=40,
        servings=6,
        category=category,
        author=author,
        **extra,
    )


class ProfileAPITestCase(APITestCase):
    def setUp(self):
        cache.clear()
        self.user = create_user('pastry_chef')
        self.other = create_user('neighbour')
        self.category = Category.objects.create(name='Desserts', slug='desserts', code='DES', path='desserts')
        self.client.force_authenticate(self.user)

    def test_update_profile_merges_preferences(self):
        response = self.client.patch(reverse('user_profile'), {
            'bio': 'Je fais des tartes',
            'preferences': {'privacy': {'profileVisibility': 'private'}},
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertEqual(self.user.bio, 'Je fais des tartes')
        self.assertEqual(self.user.profile_visibility, 'private')
        self.assertEqual(self.user.preferences['language'], 'en')

    def test_profile_route_refuses_password_changes(self):
        response = self.client.patch(reverse('user_profile'), {'password': 'N3w!Password'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error']['code'], 'password_update_not_allowed')

    def test_delete_profile_deactivates_account_and_archives_recipes(self):
        recipe = create_recipe(self.user, self.category)

        response = self.client.delete(reverse('user_profile'))

        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.user.refresh_from_db()
        self.assertEqual(self.user.account_status, 'inactive')
        self.assertTrue(self.user.email.startswith('deleted_'))
        recipe.refresh_from_db()
        self.assertEqual(recipe.status, Recipe.STATUS_ARCHIVED)
        self.assertEqual(recipe.visibility, Recipe.VISIBILITY_PRIVATE)

    def test_profile_image_upload(self):
        image = SimpleUploadedFile('me.png', b'\x89PNG fake', content_type='image/png')

        response = self.client.post(reverse('user_profile_image'), {'profileImage': image}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('profiles/profileImage-', response.data['data']['user']['profileImage'])

    def test_profile_image_rejects_other_types(self):
        document = SimpleUploadedFile('me.pdf', b'%PDF', content_type='application/pdf')

        response = self.client.post(reverse('user_profile_image'), {'profileImage': document}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_bookmarks_only_lists_published_recipes(self):
        visible = create_recipe(self.other, self.category, title='Clafoutis')
        draft = create_recipe(self.other, self.category, title='Brouillon', status=Recipe.STATUS_DRAFT)
        visible.bookmarks.add(self.user)
        draft.bookmarks.add(self.user)

        response = self.client.get(reverse('user_bookmarks'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        ids = [recipe['id'] for recipe in response.data['data']['recipes']]
        self.assertEqual(ids, [visible.id])

    def test_activity_summarizes_own_recipes(self):
        published = create_recipe(self.user, self.category, views=12)
        create_recipe(self.user, self.category, title='Brouillon', status=Recipe.STATUS_DRAFT, views=3)
        published.likes.add(self.other)

        response = self.client.get(reverse('user_activity'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        stats = response.data['data']['activity']['stats']
        self.assertEqual(stats['totalRecipes'], 2)
        self.assertEqual(stats['publishedRecipes'], 1)
        self.assertEqual(stats['totalViews'], 15)
        self.assertEqual(stats['totalLikes'], 1)
        self.assertEqual(len(response.data['data']['activity']['recentRecipes']), 2)


class PublicProfileAPITestCase(APITestCase):
    def setUp(self):
        cache.clear()
        self.viewer = create_user('viewer')
        self.author = create_user('author')
        self.category = Category.objects.create(name='Desserts', slug='desserts', code='DES', path='desserts')
        self.client.force_authenticate(self.viewer)

    def test_private_profile_is_forbidden(self):
        self.author.preferences = {'privacy': {'profileVisibility': 'private'}}
        self.author.save()

        response = self.client.get(reverse('user_public_profile', kwargs={'user_id': self.author.id}))

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_public_profile_counts_public_recipes(self):
        create_recipe(self.author, self.category)
        create_recipe(self.author, self.category, title='Secret', visibility=Recipe.VISIBILITY_PRIVATE)

        response = self.client.get(reverse('user_public_profile', kwargs={'user_id': self.author.id}))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['user']['stats']['publicRecipes'], 1)
        self.assertNotIn('email', response.data['data']['user'])

    def test_other_users_recipes_hide_drafts(self):
        published = create_recipe(self.author, self.category)
        create_recipe(self.author, self.category, title='Brouillon', status=Recipe.STATUS_DRAFT)

        response = self.client.get(reverse('user_recipes', kwargs={'user_id': self.author.id}))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([recipe['id'] for recipe in response.data['data']['recipes']], [published.id])

    def test_unknown_user_is_not_found(self):
        response = self.client.get(reverse('user_public_profile', kwargs={'user_id': 999999}))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class UserAdministrationAPITestCase(APITestCase):
    def setUp(self):
        cache.clear()
        self.admin = create_user('admin_user', role='admin')
        self.moderator = create_user('moderator_user', role='moderator')
        self.member = create_user('member')

    def test_regular_user_cannot_list_users(self):
        self.client.force_authenticate(self.member)

        response = self.client.get(reverse('user_list'))

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_moderator_lists_users_with_filters(self):
        self.client.force_authenticate(self.moderator)

        response = self.client.get(reverse('user_list'), {'role': 'admin'})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['pagination']['total'], 1)
        self.assertEqual(response.data['data']['users'][0]['username'], 'admin_user')

    def test_statistics(self):
        self.client.force_authenticate(self.admin)

        response = self.client.get(reverse('user_statistics'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['overview']['totalUsers'], 3)
        self.assertEqual(response.data['data']['roleDistribution']['user'], 1)

    def test_admin_cannot_change_own_role(self):
        self.client.force_authenticate(self.admin)

        response = self.client.patch(
            reverse('user_role', kwargs={'user_id': self.admin.id}), {'role': 'user'}, format='json',
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error']['message'], 'You cannot change your own role')

    def test_admin_changes_role_and_status(self):
        self.client.force_authenticate(self.admin)

        response = self.client.patch(
            reverse('user_role', kwargs={'user_id': self.member.id}), {'role': 'chef'}, format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.patch(
            reverse('user_status', kwargs={'user_id': self.member.id}), {'accountStatus': 'suspended'}, format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        self.member.refresh_from_db()
        self.assertEqual(self.member.role, 'chef')
        self.assertEqual(self.member.account_status, 'suspended')

    def test_moderator_cannot_change_roles(self):
        self.client.force_authenticate(self.moderator)

        response = self.client.patch(
            reverse('user_role', kwargs={'user_id': self.member.id}), {'role': 'admin'}, format='json',
        )

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_admin_deletes_user(self):
        self.client.force_authenticate(self.admin)

        response = self.client.delete(reverse('user_delete', kwargs={'user_id': self.member.id}))

        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.member.refresh_from_db()
        self.assertEqual(self.member.account_status, 'inactive')
