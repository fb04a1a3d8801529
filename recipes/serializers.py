from rest_framework import serializers

from accounts.serializers import UserLightSerializer
from culinary_api.exceptions import ConflictError
from .models import (
    Category,
    InstructionStep,
    Rating,
    Recipe,
    RecipeDietaryRestriction,
    RecipeIngredient,
)
from .services.aggregates import refresh_derived_fields
from .services.hierarchy import derive_slug, save_category


class DynamicFieldsMixin:
    """Permet de restreindre les champs renvoyés (paramètre ?fields=a,b)"""

    def __init__(self, *args, **kwargs):
        fields = kwargs.pop('fields', None)
        super().__init__(*args, **kwargs)
        if fields:
            allowed = set(fields) | {'id'}
            for field_name in set(self.fields) - allowed:
                self.fields.pop(field_name)


# Catégories

class CategoryLightSerializer(serializers.ModelSerializer):
    class Meta:
        model = Category
        fields = ('id', 'name', 'slug', 'code', 'icon', 'color')


class SeoSerializer(serializers.Serializer):
    metaTitle = serializers.CharField(max_length=60, required=False, allow_blank=True)
    metaDescription = serializers.CharField(max_length=160, required=False, allow_blank=True)
    keywords = serializers.ListField(child=serializers.CharField(max_length=50), required=False)


class CategoryImageSerializer(serializers.Serializer):
    url = serializers.CharField(max_length=500, required=False)
    alt = serializers.CharField(max_length=200, required=False, allow_blank=True)
    caption = serializers.CharField(max_length=200, required=False, allow_blank=True)


class CategoryPermissionsSerializer(serializers.Serializer):
    canCreateRecipes = serializers.BooleanField(source='can_create_recipes', required=False)
    requiredRole = serializers.ChoiceField(
        source='required_role',
        choices=['user', 'chef', 'moderator', 'admin'],
        required=False,
    )


class CategorySerializer(serializers.ModelSerializer):
    slug = serializers.RegexField(r'^[a-z0-9-]+$', max_length=60, required=False)
    code = serializers.CharField(min_length=2, max_length=10)
    parent = serializers.PrimaryKeyRelatedField(
        queryset=Category.objects.all(),
        required=False,
        allow_null=True,
        error_messages={'does_not_exist': 'Parent category not found', 'incorrect_type': 'Invalid parent category ID'},
    )
    children = serializers.PrimaryKeyRelatedField(many=True, read_only=True)
    image = CategoryImageSerializer(required=False)
    seo = SeoSerializer(required=False)
    stats = serializers.SerializerMethodField()
    displayOrder = serializers.IntegerField(source='display_order', required=False)
    permissions = CategoryPermissionsSerializer(source='*', required=False)
    createdBy = serializers.PrimaryKeyRelatedField(source='created_by', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = Category
        fields = (
            'id', 'name', 'slug', 'code', 'description', 'icon', 'color', 'image',
            'parent', 'children', 'level', 'path', 'stats', 'seo', 'status', 'featured',
            'displayOrder', 'visibility', 'permissions', 'createdBy', 'createdAt', 'updatedAt',
        )
        read_only_fields = ('level', 'path')

    def get_stats(self, obj):
        live_count = getattr(obj, 'live_recipe_count', None)
        return {
            'recipeCount': obj.recipe_count if live_count is None else live_count,
            'totalViews': obj.total_views,
            'averageRating': obj.average_rating,
            'popularityScore': obj.popularity_score,
        }

    def validate_code(self, value):
        return value.strip().upper()

    def validate(self, attrs):
        # Slug dérivé du nom uniquement s'il n'est pas fourni à la création
        if self.instance is None and not attrs.get('slug'):
            attrs['slug'] = derive_slug(attrs.get('name', ''))
        if 'slug' in attrs and not attrs['slug']:
            raise serializers.ValidationError({'slug': 'Could not derive a slug from the category name.'})

        duplicates = Category.objects.all()
        if self.instance is not None:
            duplicates = duplicates.exclude(pk=self.instance.pk)
        if 'code' in attrs and duplicates.filter(code=attrs['code']).exists():
            raise ConflictError('Category with this code already exists', code='duplicate_code')
        if 'slug' in attrs and duplicates.filter(slug=attrs['slug']).exists():
            raise ConflictError('Category with this slug already exists', code='duplicate_slug')
        return attrs

    def create(self, validated_data):
        category = Category(**validated_data)
        return save_category(category)

    def update(self, instance, validated_data):
        previous_path = instance.path
        for attr, value in validated_data.items():
            setattr(instance, attr, value)
        return save_category(instance, previous_path=previous_path)


class CategoryOrderSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    displayOrder = serializers.IntegerField()


class CategoryReorderSerializer(serializers.Serializer):
    categoryOrders = CategoryOrderSerializer(many=True, allow_empty=False)


# Recettes

class RecipeIngredientSerializer(serializers.ModelSerializer):
    quantity = serializers.FloatField(min_value=0.001)

    class Meta:
        model = RecipeIngredient
        fields = ('name', 'quantity', 'unit', 'notes')


class TemperatureSerializer(serializers.Serializer):
    value = serializers.IntegerField(source='temperature_value', required=False, allow_null=True)
    unit = serializers.ChoiceField(
        source='temperature_unit',
        choices=InstructionStep.TEMPERATURE_UNIT_CHOICES,
        required=False,
        allow_blank=True,
    )


class InstructionStepSerializer(serializers.ModelSerializer):
    stepNumber = serializers.IntegerField(source='step_number', min_value=1)
    description = serializers.CharField(max_length=1000)
    temperature = TemperatureSerializer(source='*', required=False)
    tips = serializers.ListField(child=serializers.CharField(max_length=300), required=False)

    class Meta:
        model = InstructionStep
        fields = ('stepNumber', 'title', 'description', 'duration', 'temperature', 'tips')


class NutritionSerializer(serializers.Serializer):
    calories = serializers.FloatField(min_value=0, required=False)
    protein = serializers.FloatField(min_value=0, required=False)
    carbohydrates = serializers.FloatField(min_value=0, required=False)
    fat = serializers.FloatField(min_value=0, required=False)
    fiber = serializers.FloatField(min_value=0, required=False)
    sugar = serializers.FloatField(min_value=0, required=False)
    sodium = serializers.FloatField(min_value=0, required=False)
    cholesterol = serializers.FloatField(min_value=0, required=False)


class RecipeImageSerializer(serializers.Serializer):
    url = serializers.CharField(max_length=500)
    caption = serializers.CharField(max_length=200, required=False, allow_blank=True)
    isPrimary = serializers.BooleanField(required=False, default=False)


class SourceSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=['original', 'adapted', 'traditional'], required=False)
    attribution = serializers.CharField(max_length=200, required=False, allow_blank=True)
    url = serializers.URLField(required=False, allow_blank=True)


class DietaryRestrictionsField(serializers.ListField):
    """Liste de restrictions alimentaires stockées dans RecipeDietaryRestriction"""
    child = serializers.ChoiceField(choices=RecipeDietaryRestriction.RESTRICTION_CHOICES)

    def to_representation(self, data):
        return [entry.restriction for entry in data.all()]


class RatingSerializer(serializers.ModelSerializer):
    user = UserLightSerializer(read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)

    class Meta:
        model = Rating
        fields = ('id', 'user', 'rating', 'review', 'helpful', 'createdAt')


class RatingInputSerializer(serializers.Serializer):
    rating = serializers.IntegerField(min_value=1, max_value=5)
    review = serializers.CharField(max_length=1000, required=False, allow_blank=True)


class RecipeListSerializer(DynamicFieldsMixin, serializers.ModelSerializer):
    """Serializer léger pour les listes (sans ingrédients, étapes ni notes)"""
    prepTime = serializers.IntegerField(source='prep_time')
    cookTime = serializers.IntegerField(source='cook_time')
    totalTime = serializers.IntegerField(source='total_time')
    mealType = serializers.ListField(source='meal_type')
    dietaryRestrictions = DietaryRestrictionsField(source='dietary_restrictions')
    videoUrl = serializers.CharField(source='video_url')
    averageRating = serializers.FloatField(source='average_rating')
    totalRatings = serializers.IntegerField(source='total_ratings')
    likeCount = serializers.SerializerMethodField()
    bookmarkCount = serializers.SerializerMethodField()
    category = CategoryLightSerializer()
    author = UserLightSerializer()
    createdAt = serializers.DateTimeField(source='created_at')
    updatedAt = serializers.DateTimeField(source='updated_at')

    class Meta:
        model = Recipe
        fields = (
            'id', 'title', 'description', 'summary', 'images', 'videoUrl', 'prepTime',
            'cookTime', 'totalTime', 'servings', 'difficulty', 'category', 'cuisine',
            'mealType', 'dietaryRestrictions', 'tags', 'averageRating', 'totalRatings',
            'likeCount', 'bookmarkCount', 'views', 'shares', 'featured', 'status',
            'visibility', 'author', 'createdAt', 'updatedAt',
        )
        read_only_fields = fields

    def get_likeCount(self, obj):
        return len(obj.likes.all())

    def get_bookmarkCount(self, obj):
        return len(obj.bookmarks.all())


class RecipeSerializer(RecipeListSerializer):
    """Détail complet d'une recette"""
    ingredients = RecipeIngredientSerializer(many=True, read_only=True)
    instructions = InstructionStepSerializer(many=True, read_only=True)
    nutrition = NutritionSerializer(read_only=True)
    source = SourceSerializer(read_only=True)
    ratings = RatingSerializer(many=True, read_only=True)

    class Meta(RecipeListSerializer.Meta):
        fields = RecipeListSerializer.Meta.fields + (
            'ingredients', 'instructions', 'nutrition', 'source', 'ratings',
        )
        read_only_fields = fields


class RecipeWriteSerializer(serializers.ModelSerializer):
    """Création / modification d'une recette avec ses sous-éléments"""
    title = serializers.CharField(min_length=3, max_length=100)
    description = serializers.CharField(min_length=10, max_length=2000)
    summary = serializers.CharField(max_length=300, required=False, allow_blank=True)
    ingredients = RecipeIngredientSerializer(many=True, allow_empty=False)
    instructions = InstructionStepSerializer(many=True, allow_empty=False)
    nutrition = NutritionSerializer(required=False)
    images = RecipeImageSerializer(many=True, required=False)
    videoUrl = serializers.CharField(source='video_url', max_length=500, required=False, allow_blank=True)
    prepTime = serializers.IntegerField(source='prep_time', min_value=1)
    cookTime = serializers.IntegerField(source='cook_time', min_value=0, required=False)
    servings = serializers.IntegerField(min_value=1)
    category = serializers.PrimaryKeyRelatedField(
        queryset=Category.objects.all(),
        error_messages={'does_not_exist': 'Invalid category ID', 'incorrect_type': 'Invalid category ID'},
    )
    mealType = serializers.ListField(
        source='meal_type',
        child=serializers.ChoiceField(choices=Recipe.MEAL_TYPE_CHOICES),
        required=False,
    )
    dietaryRestrictions = DietaryRestrictionsField(source='dietary_restrictions', required=False)
    tags = serializers.ListField(child=serializers.CharField(max_length=30), required=False)
    source = SourceSerializer(required=False)

    class Meta:
        model = Recipe
        fields = (
            'id', 'title', 'description', 'summary', 'ingredients', 'instructions',
            'nutrition', 'images', 'videoUrl', 'prepTime', 'cookTime', 'servings',
            'difficulty', 'category', 'cuisine', 'mealType', 'dietaryRestrictions',
            'tags', 'source', 'status', 'visibility', 'featured',
        )

    def validate_tags(self, value):
        tags = []
        for tag in value:
            normalized = tag.strip().lower()
            if normalized and normalized not in tags:
                tags.append(normalized)
        return tags

    def validate_instructions(self, value):
        numbers = [step['step_number'] for step in value]
        if len(numbers) != len(set(numbers)):
            raise serializers.ValidationError('Step numbers must be unique.')
        return sorted(value, key=lambda step: step['step_number'])

    def validate(self, attrs):
        request = self.context.get('request')
        # Seuls les administrateurs peuvent mettre une recette en avant
        if 'featured' in attrs and not (request and request.user.is_authenticated and request.user.role == 'admin'):
            attrs.pop('featured')
        return attrs

    def create(self, validated_data):
        children = self._pop_children(validated_data)
        recipe = Recipe(**validated_data)
        refresh_derived_fields(recipe)
        recipe.save()
        self._write_children(recipe, *children)
        return recipe

    def update(self, instance, validated_data):
        children = self._pop_children(validated_data)
        for attr, value in validated_data.items():
            setattr(instance, attr, value)
        refresh_derived_fields(instance)
        instance.save()
        self._write_children(instance, *children)
        return instance

    def _pop_children(self, validated_data):
        return (
            validated_data.pop('ingredients', None),
            validated_data.pop('instructions', None),
            validated_data.pop('dietary_restrictions', None),
        )

    def _write_children(self, recipe, ingredients, instructions, dietary_restrictions):
        """Les listes fournies remplacent intégralement les précédentes"""
        if ingredients is not None:
            recipe.ingredients.all().delete()
            RecipeIngredient.objects.bulk_create([
                RecipeIngredient(recipe=recipe, order=index, **data)
                for index, data in enumerate(ingredients)
            ])
        if instructions is not None:
            recipe.instructions.all().delete()
            InstructionStep.objects.bulk_create([
                InstructionStep(recipe=recipe, **data) for data in instructions
            ])
        if dietary_restrictions is not None:
            recipe.dietary_restrictions.all().delete()
            RecipeDietaryRestriction.objects.bulk_create([
                RecipeDietaryRestriction(recipe=recipe, restriction=restriction)
                for restriction in dict.fromkeys(dietary_restrictions)
            ])
