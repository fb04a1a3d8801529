import logging

from django.db import transaction
from django.db.models import Count, F, Prefetch, Q, Sum
from django.shortcuts import get_object_or_404
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from accounts.authentication import OptionalCookieJWTAuthentication
from accounts.permissions import IsAdminOrModerator, IsOwnerOrAdmin
from culinary_api.exceptions import NotFoundError, PermissionDeniedError
from culinary_api.uploads import CATEGORY_IMAGE, RECIPE_IMAGES, RECIPE_VIDEO, store_files
from .models import Category, Rating, Recipe
from .pagination import EnvelopePagination
from .serializers import (
    CategoryLightSerializer,
    CategoryReorderSerializer,
    CategorySerializer,
    RatingInputSerializer,
    RecipeListSerializer,
    RecipeSerializer,
    RecipeWriteSerializer,
)
from .services.hierarchy import (
    build_hierarchy,
    decrement_recipe_count,
    ensure_deletable,
    increment_recipe_count,
    move_recipe_count,
    recompute_all_recipe_counts,
)
from .services.query_builder import (
    CATEGORY_SORT_FIELDS,
    DEFAULT_CATEGORY_ORDERING,
    DEFAULT_RECIPE_ORDERING,
    POPULAR_ORDERING,
    RECIPE_SORT_ALIASES,
    RECIPE_SORT_FIELDS,
    apply_recipe_filters,
    apply_visibility,
    parse_bool,
    parse_fields,
    parse_id,
    parse_sort,
    visible_recipes_filter,
)
from .services.ratings import submit_rating

logger = logging.getLogger(__name__)


class IsRecipeOwnerOrAdmin(IsOwnerOrAdmin):
    message = 'You can only modify your own recipes'


class PublicActionsMixin:
    """
    Actions en lecture publique : accès anonyme, et un jeton périmé ou invalide
    est ignoré au lieu de bloquer la requête.
    """
    public_actions = ()

    def get_authenticators(self):
        # self.action n'est pas encore renseigné à ce stade
        action = getattr(self, 'action_map', {}).get(self.request.method.lower())
        if action in self.public_actions:
            return [OptionalCookieJWTAuthentication()]
        return super().get_authenticators()


def can_view_recipe(user, recipe):
    if recipe.is_publicly_visible:
        return True
    return bool(user and user.is_authenticated and (user.role == 'admin' or recipe.author_id == user.id))


class RecipeViewSet(PublicActionsMixin, viewsets.ModelViewSet):
    """ViewSet pour les recettes"""
    public_actions = ('list', 'retrieve', 'popular', 'by_category')
    queryset = Recipe.objects.all()
    lookup_value_regex = r'\d+'
    # Taille de page par défaut selon l'action
    page_sizes = {'list': 12, 'popular': 10, 'my_recipes': 10, 'by_category': 10}
    list_actions = ('list', 'popular', 'my_recipes', 'by_category')

    def get_permissions(self):
        if self.action in self.public_actions:
            return [AllowAny()]
        if self.action in ('update', 'partial_update', 'destroy', 'upload_images', 'upload_video'):
            return [IsAuthenticated(), IsRecipeOwnerOrAdmin()]
        return [IsAuthenticated()]

    @property
    def paginator(self):
        if not hasattr(self, '_paginator'):
            self._paginator = EnvelopePagination(
                page_size=self.page_sizes.get(self.action, 12),
                max_page_size=50,
                data_key='recipes',
            )
        return self._paginator

    def get_serializer_class(self):
        if self.action in ('create', 'update', 'partial_update'):
            return RecipeWriteSerializer
        # Pas d'ingrédients/étapes/notes dans les listes
        if self.action in self.list_actions:
            return RecipeListSerializer
        return RecipeSerializer

    def get_serializer(self, *args, **kwargs):
        if self.action in self.list_actions:
            kwargs.setdefault('fields', parse_fields(self.request.query_params.get('fields')))
        return super().get_serializer(*args, **kwargs)

    def get_queryset(self):
        queryset = Recipe.objects.select_related('author', 'category').prefetch_related(
            'dietary_restrictions', 'likes', 'bookmarks',
        )
        if self.action == 'retrieve':
            queryset = queryset.prefetch_related(
                'ingredients',
                'instructions',
                Prefetch('ratings', queryset=Rating.objects.select_related('user')),
            )
        elif self.action == 'list':
            params = self.request.query_params
            queryset = apply_visibility(queryset, self.request.user)
            queryset = apply_recipe_filters(queryset, params)
            queryset = queryset.order_by(*parse_sort(
                params.get('sort'), RECIPE_SORT_FIELDS, RECIPE_SORT_ALIASES, DEFAULT_RECIPE_ORDERING,
            ))
        return queryset

    def _detail_response(self, recipe, status_code=status.HTTP_200_OK):
        recipe = self.get_queryset().prefetch_related(
            'ingredients',
            'instructions',
            Prefetch('ratings', queryset=Rating.objects.select_related('user')),
        ).get(pk=recipe.pk)
        data = RecipeSerializer(recipe, context=self.get_serializer_context()).data
        return Response({'success': True, 'data': {'recipe': data}}, status=status_code)

    def retrieve(self, request, *args, **kwargs):
        recipe = self.get_object()
        if not can_view_recipe(request.user, recipe):
            raise PermissionDeniedError('You do not have permission to view this recipe')

        # Une vue par requête, sauf pour l'auteur
        if not (request.user.is_authenticated and recipe.author_id == request.user.id):
            Recipe.objects.filter(pk=recipe.pk).update(views=F('views') + 1)
            recipe.views += 1

        serializer = self.get_serializer(recipe)
        return Response({'success': True, 'data': {'recipe': serializer.data}})

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        with transaction.atomic():
            recipe = serializer.save(author=request.user)
            increment_recipe_count(recipe.category_id)
        logger.info("[Recipes] User %s created recipe %s in category %s", request.user.id, recipe.id, recipe.category_id)
        return self._detail_response(recipe, status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        recipe = self.get_object()
        serializer = self.get_serializer(recipe, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        previous_category_id = recipe.category_id
        with transaction.atomic():
            recipe = serializer.save()
            if recipe.category_id != previous_category_id:
                move_recipe_count(previous_category_id, recipe.category_id)
        return self._detail_response(recipe)

    def destroy(self, request, *args, **kwargs):
        recipe = self.get_object()
        category_id = recipe.category_id
        with transaction.atomic():
            recipe.delete()
            decrement_recipe_count(category_id)
        logger.info("[Recipes] User %s deleted recipe %s", request.user.id, kwargs.get('pk'))
        return Response(status=status.HTTP_204_NO_CONTENT)

    def _paginated(self, queryset):
        page = self.paginate_queryset(queryset)
        serializer = self.get_serializer(page, many=True)
        return self.get_paginated_response(serializer.data)

    @action(detail=False, methods=['get'])
    def popular(self, request):
        """Recettes publiées et publiques les mieux notées"""
        queryset = self.get_queryset().filter(
            status=Recipe.STATUS_PUBLISHED, visibility=Recipe.VISIBILITY_PUBLIC,
        ).order_by(*POPULAR_ORDERING, '-id')
        return self._paginated(queryset)

    @action(detail=False, methods=['get'], url_path=r'category/(?P<category_id>\d+)')
    def by_category(self, request, category_id=None):
        category = Category.objects.filter(pk=category_id).first()
        if category is None:
            raise NotFoundError('Category not found')
        # Même pour un administrateur : uniquement les recettes publiées et publiques
        queryset = self.get_queryset().filter(visible_recipes_filter(), category=category)
        queryset = queryset.order_by(*parse_sort(
            request.query_params.get('sort'), RECIPE_SORT_FIELDS, RECIPE_SORT_ALIASES, DEFAULT_RECIPE_ORDERING,
        ))
        response = self._paginated(queryset)
        response.data['data']['category'] = CategoryLightSerializer(category).data
        return response

    @action(detail=False, methods=['get'], url_path='user/my-recipes')
    def my_recipes(self, request):
        """Toutes les recettes de l'utilisateur connecté, quel que soit leur statut"""
        queryset = self.get_queryset().filter(author=request.user)
        status_filter = request.query_params.get('status')
        if status_filter:
            queryset = queryset.filter(status=status_filter)
        return self._paginated(queryset.order_by(*DEFAULT_RECIPE_ORDERING))

    def _get_visible_recipe(self):
        recipe = self.get_object()
        if not can_view_recipe(self.request.user, recipe):
            raise PermissionDeniedError('You do not have permission to view this recipe')
        return recipe

    @action(detail=True, methods=['post'])
    def rate(self, request, pk=None):
        recipe = self._get_visible_recipe()
        serializer = RatingInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = submit_rating(
            recipe,
            request.user,
            serializer.validated_data['rating'],
            serializer.validated_data.get('review', ''),
        )
        return Response({'success': True, 'message': 'Rating added successfully', 'data': result})

    @action(detail=True, methods=['post'])
    def bookmark(self, request, pk=None):
        recipe = self._get_visible_recipe()
        bookmarked = recipe.bookmarks.filter(pk=request.user.pk).exists()
        if bookmarked:
            recipe.bookmarks.remove(request.user)
        else:
            recipe.bookmarks.add(request.user)
        return Response({
            'success': True,
            'message': 'Recipe removed from bookmarks' if bookmarked else 'Recipe bookmarked',
            'data': {'bookmarked': not bookmarked, 'bookmarkCount': recipe.bookmarks.count()},
        })

    @action(detail=True, methods=['post'])
    def like(self, request, pk=None):
        recipe = self._get_visible_recipe()
        liked = recipe.likes.filter(pk=request.user.pk).exists()
        if liked:
            recipe.likes.remove(request.user)
        else:
            recipe.likes.add(request.user)
        return Response({
            'success': True,
            'message': 'Like removed' if liked else 'Recipe liked',
            'data': {'liked': not liked, 'likeCount': recipe.likes.count()},
        })

    @action(detail=True, methods=['post'], url_path='images', parser_classes=[MultiPartParser, FormParser])
    def upload_images(self, request, pk=None):
        recipe = self.get_object()
        urls = store_files(request.FILES.getlist('images'), RECIPE_IMAGES, 'images')
        images = list(recipe.images or [])
        has_primary = any(image.get('isPrimary') for image in images)
        for url in urls:
            images.append({'url': url, 'caption': '', 'isPrimary': not has_primary})
            has_primary = True
        recipe.images = images
        recipe.save(update_fields=['images', 'updated_at'])
        return Response({'success': True, 'data': {'images': images}}, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'], url_path='video', parser_classes=[MultiPartParser, FormParser])
    def upload_video(self, request, pk=None):
        recipe = self.get_object()
        urls = store_files(request.FILES.getlist('video'), RECIPE_VIDEO, 'video')
        recipe.video_url = urls[0]
        recipe.save(update_fields=['video_url', 'updated_at'])
        return Response({'success': True, 'data': {'videoUrl': recipe.video_url}}, status=status.HTTP_201_CREATED)


class CategoryViewSet(PublicActionsMixin, viewsets.ModelViewSet):
    """ViewSet pour les catégories (lecture publique, écriture admin/modérateur)"""
    public_actions = ('list', 'retrieve', 'hierarchy', 'by_slug')
    serializer_class = CategorySerializer
    lookup_value_regex = r'\d+'

    def get_permissions(self):
        if self.action in self.public_actions:
            return [AllowAny()]
        return [IsAdminOrModerator()]

    @property
    def paginator(self):
        if not hasattr(self, '_paginator'):
            self._paginator = EnvelopePagination(page_size=20, max_page_size=100, data_key='categories')
        return self._paginator

    def get_queryset(self):
        queryset = Category.objects.select_related('parent').prefetch_related('children')
        if self.action != 'list':
            return queryset

        params = self.request.query_params
        user = self.request.user
        status_filter = params.get('status')
        if status_filter and user.is_authenticated and user.role in ('admin', 'moderator'):
            queryset = queryset.filter(status=status_filter)
        else:
            queryset = queryset.filter(status=Category.STATUS_ACTIVE)

        featured = parse_bool(params.get('featured'))
        if featured is not None:
            queryset = queryset.filter(featured=featured)

        parent = params.get('parent')
        if parent == 'null':
            queryset = queryset.filter(parent__isnull=True)
        elif parent:
            queryset = queryset.filter(parent_id=parse_id(parent, 'Invalid parent category ID'))

        if parse_bool(params.get('includeStats')):
            queryset = queryset.annotate(
                live_recipe_count=Count('recipes', filter=Q(recipes__status=Recipe.STATUS_PUBLISHED)),
            )
        return queryset.order_by(*parse_sort(params.get('sort'), CATEGORY_SORT_FIELDS, default=DEFAULT_CATEGORY_ORDERING))

    def list(self, request, *args, **kwargs):
        if parse_bool(request.query_params.get('hierarchy')):
            return self.hierarchy(request)
        return super().list(request, *args, **kwargs)

    def retrieve(self, request, *args, **kwargs):
        category = self.get_object()
        recent_recipes = Recipe.objects.filter(
            category=category, status=Recipe.STATUS_PUBLISHED, visibility=Recipe.VISIBILITY_PUBLIC,
        ).select_related('author', 'category').prefetch_related(
            'dietary_restrictions', 'likes', 'bookmarks',
        ).order_by('-created_at')[:5]
        return Response({
            'success': True,
            'data': {
                'category': self.get_serializer(category).data,
                'recentRecipes': RecipeListSerializer(recent_recipes, many=True).data,
            },
        })

    @action(detail=False, methods=['get'], url_path=r'slug/(?P<slug>[a-z0-9-]+)')
    def by_slug(self, request, slug=None):
        category = get_object_or_404(self.get_queryset(), slug=slug)
        return Response({'success': True, 'data': {'category': self.get_serializer(category).data}})

    @action(detail=False, methods=['get'])
    def hierarchy(self, request):
        def serialize(node):
            data = CategorySerializer(node['category']).data
            data['subcategories'] = [serialize(child) for child in node['children']]
            return data

        roots = [serialize(node) for node in build_hierarchy()]
        return Response({'success': True, 'results': len(roots), 'data': {'categories': roots}})

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        category = serializer.save(created_by=request.user, last_modified_by=request.user)
        logger.info("[Categories] User %s created category %s (%s)", request.user.id, category.id, category.path)
        return Response(
            {'success': True, 'data': {'category': self.get_serializer(category).data}},
            status=status.HTTP_201_CREATED,
        )

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        category = self.get_object()
        serializer = self.get_serializer(category, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        category = serializer.save(last_modified_by=request.user)
        return Response({'success': True, 'data': {'category': self.get_serializer(category).data}})

    def destroy(self, request, *args, **kwargs):
        category = self.get_object()
        ensure_deletable(category)
        category.delete()
        logger.info("[Categories] User %s deleted category %s", request.user.id, kwargs.get('pk'))
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=False, methods=['patch'], url_path='admin/update-recipe-counts')
    def update_recipe_counts(self, request):
        updated = recompute_all_recipe_counts()
        return Response({'success': True, 'message': f'Updated recipe counts for {updated} categories'})

    @action(detail=False, methods=['get'], url_path='admin/statistics')
    def statistics(self, request):
        totals = Category.objects.aggregate(
            totalCategories=Count('id'),
            activeCategories=Count('id', filter=Q(status=Category.STATUS_ACTIVE)),
            featuredCategories=Count('id', filter=Q(featured=True)),
            rootCategories=Count('id', filter=Q(parent__isnull=True)),
            totalRecipes=Sum('recipe_count'),
        )
        totals['totalRecipes'] = totals['totalRecipes'] or 0
        top_categories = Category.objects.order_by('-recipe_count', 'name')[:10]
        return Response({
            'success': True,
            'data': {
                'overview': totals,
                'topCategories': [
                    {'id': category.id, 'name': category.name, 'slug': category.slug, 'recipeCount': category.recipe_count}
                    for category in top_categories
                ],
            },
        })

    @action(detail=False, methods=['patch'], url_path='admin/reorder')
    def reorder(self, request):
        serializer = CategoryReorderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        orders = {item['id']: item['displayOrder'] for item in serializer.validated_data['categoryOrders']}
        categories = list(Category.objects.filter(pk__in=orders))
        for category in categories:
            category.display_order = orders[category.id]
            category.last_modified_by = request.user
        with transaction.atomic():
            Category.objects.bulk_update(categories, ['display_order', 'last_modified_by'])
        return Response({'success': True, 'message': f'Reordered {len(categories)} categories'})

    @action(detail=True, methods=['post'], url_path='image', parser_classes=[MultiPartParser, FormParser])
    def upload_image(self, request, pk=None):
        category = self.get_object()
        urls = store_files(request.FILES.getlist('image'), CATEGORY_IMAGE, 'image')
        category.image = {**(category.image or {}), 'url': urls[0]}
        category.last_modified_by = request.user
        category.save(update_fields=['image', 'last_modified_by', 'updated_at'])
        return Response({'success': True, 'data': {'category': self.get_serializer(category).data}}, status=status.HTTP_201_CREATED)
