from django.conf import settings
from django.core.validators import MaxValueValidator, MinLengthValidator, MinValueValidator, RegexValidator
from django.db import models

MAX_CATEGORY_LEVEL = 5


class Category(models.Model):
    """Nœud de la taxonomie des recettes (arbre à chemin matérialisé)"""
    STATUS_ACTIVE = 'active'
    STATUS_CHOICES = [
        (STATUS_ACTIVE, 'Active'),
        ('inactive', 'Inactive'),
        ('archived', 'Archived'),
        ('draft', 'Draft'),
    ]
    VISIBILITY_CHOICES = [
        ('public', 'Public'),
        ('private', 'Private'),
        ('restricted', 'Restricted'),
    ]

    name = models.CharField(max_length=50, validators=[MinLengthValidator(2)])
    slug = models.CharField(
        max_length=60,
        unique=True,
        validators=[RegexValidator(r'^[a-z0-9-]+$', 'Slug can only contain lowercase letters, numbers, and hyphens.')],
    )
    code = models.CharField(max_length=10, unique=True, validators=[MinLengthValidator(2)])
    description = models.TextField(max_length=500, blank=True)
    icon = models.CharField(max_length=100, blank=True)
    color = models.CharField(
        max_length=7,
        blank=True,
        validators=[RegexValidator(r'^#[0-9A-Fa-f]{6}$', 'Color must be a valid hex color.')],
    )
    image = models.JSONField(default=dict, blank=True, help_text="{url, alt, caption}")

    parent = models.ForeignKey(
        'self',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='children',
    )
    level = models.PositiveSmallIntegerField(default=0, validators=[MaxValueValidator(MAX_CATEGORY_LEVEL)])
    path = models.CharField(max_length=500, blank=True, db_index=True, help_text="slug-racine/.../slug")

    # Statistiques dénormalisées
    recipe_count = models.PositiveIntegerField(default=0)
    total_views = models.PositiveIntegerField(default=0)
    average_rating = models.FloatField(default=0)
    popularity_score = models.FloatField(default=0)

    seo = models.JSONField(default=dict, blank=True, help_text="{metaTitle, metaDescription, keywords}")
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_ACTIVE)
    featured = models.BooleanField(default=False)
    display_order = models.IntegerField(default=0, help_text="Ordre d'affichage dans les listes")
    visibility = models.CharField(max_length=20, choices=VISIBILITY_CHOICES, default='public')
    can_create_recipes = models.BooleanField(default=True)
    required_role = models.CharField(max_length=20, default='user')

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='created_categories',
    )
    last_modified_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='modified_categories',
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['display_order', 'name']
        verbose_name_plural = 'Categories'
        indexes = [
            models.Index(fields=['parent', 'display_order'], name='recipes_cat_parent_order_idx'),
            models.Index(fields=['status', 'featured'], name='recipes_cat_status_feat_idx'),
        ]

    def __str__(self):
        return self.name


class Recipe(models.Model):
    """Recette de cuisine"""
    DIFFICULTY_CHOICES = [
        ('beginner', 'Beginner'),
        ('intermediate', 'Intermediate'),
        ('advanced', 'Advanced'),
        ('expert', 'Expert'),
    ]
    CUISINE_CHOICES = [(value, value.title()) for value in (
        'italian', 'french', 'chinese', 'japanese', 'indian', 'mexican', 'thai',
        'mediterranean', 'american', 'british', 'german', 'spanish', 'korean',
        'vietnamese', 'greek', 'turkish', 'moroccan', 'lebanese', 'fusion',
        'international', 'other',
    )]
    MEAL_TYPE_CHOICES = [(value, value.title()) for value in (
        'breakfast', 'lunch', 'dinner', 'snack', 'dessert', 'appetizer', 'beverage',
    )]

    STATUS_DRAFT = 'draft'
    STATUS_PUBLISHED = 'published'
    STATUS_ARCHIVED = 'archived'
    STATUS_CHOICES = [
        (STATUS_DRAFT, 'Draft'),
        (STATUS_PUBLISHED, 'Published'),
        (STATUS_ARCHIVED, 'Archived'),
        ('pending_review', 'Pending review'),
    ]
    VISIBILITY_PUBLIC = 'public'
    VISIBILITY_PRIVATE = 'private'
    VISIBILITY_FRIENDS_ONLY = 'friends_only'
    VISIBILITY_CHOICES = [
        (VISIBILITY_PUBLIC, 'Public'),
        (VISIBILITY_PRIVATE, 'Private'),
        (VISIBILITY_FRIENDS_ONLY, 'Friends only'),
    ]

    title = models.CharField(max_length=100, validators=[MinLengthValidator(3)])
    description = models.TextField(max_length=2000, validators=[MinLengthValidator(10)])
    summary = models.CharField(max_length=300, blank=True)

    prep_time = models.PositiveIntegerField(validators=[MinValueValidator(1)], help_text="Temps de préparation en minutes")
    cook_time = models.PositiveIntegerField(default=0, help_text="Temps de cuisson en minutes")
    total_time = models.PositiveIntegerField(default=0, editable=False, help_text="prep_time + cook_time")
    servings = models.PositiveIntegerField(default=4, validators=[MinValueValidator(1)])
    difficulty = models.CharField(max_length=20, choices=DIFFICULTY_CHOICES, default='beginner')

    category = models.ForeignKey(Category, on_delete=models.PROTECT, related_name='recipes')
    cuisine = models.CharField(max_length=20, choices=CUISINE_CHOICES, default='other')
    meal_type = models.JSONField(default=list, blank=True)
    tags = models.JSONField(default=list, blank=True)
    nutrition = models.JSONField(default=dict, blank=True)
    images = models.JSONField(default=list, blank=True, help_text="[{url, caption, isPrimary}]")
    video_url = models.CharField(max_length=500, blank=True)
    source = models.JSONField(default=dict, blank=True, help_text="{type, attribution, url}")

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_DRAFT)
    visibility = models.CharField(max_length=20, choices=VISIBILITY_CHOICES, default=VISIBILITY_PUBLIC)
    featured = models.BooleanField(default=False)

    views = models.PositiveIntegerField(default=0)
    shares = models.PositiveIntegerField(default=0)
    average_rating = models.FloatField(default=0)
    total_ratings = models.PositiveIntegerField(default=0)
    likes = models.ManyToManyField(settings.AUTH_USER_MODEL, related_name='liked_recipes', blank=True)
    bookmarks = models.ManyToManyField(settings.AUTH_USER_MODEL, related_name='bookmarked_recipes', blank=True)

    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='recipes'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'visibility'], name='recipes_rec_status_vis_idx'),
            models.Index(fields=['category', 'status'], name='recipes_rec_cat_status_idx'),
            models.Index(fields=['author', '-created_at'], name='recipes_rec_author_idx'),
            models.Index(fields=['-average_rating', '-total_ratings'], name='recipes_rec_rating_idx'),
        ]

    def __str__(self):
        return self.title

    @property
    def is_publicly_visible(self):
        return self.status == self.STATUS_PUBLISHED and self.visibility == self.VISIBILITY_PUBLIC


class RecipeIngredient(models.Model):
    """Ingrédient d'une recette (liste ordonnée)"""
    UNIT_CHOICES = [(value, value) for value in (
        'cup', 'tbsp', 'tsp', 'oz', 'lb', 'g', 'kg', 'ml', 'l', 'piece', 'clove', 'pinch', 'dash',
    )]

    recipe = models.ForeignKey(Recipe, on_delete=models.CASCADE, related_name='ingredients')
    name = models.CharField(max_length=100)
    quantity = models.FloatField(validators=[MinValueValidator(0)])
    unit = models.CharField(max_length=10, choices=UNIT_CHOICES)
    notes = models.CharField(max_length=200, blank=True)
    order = models.PositiveSmallIntegerField(default=0)

    class Meta:
        ordering = ['order', 'id']

    def __str__(self):
        return f"{self.quantity} {self.unit} {self.name}"


class InstructionStep(models.Model):
    """Étape de préparation d'une recette"""
    TEMPERATURE_UNIT_CHOICES = [
        ('celsius', 'Celsius'),
        ('fahrenheit', 'Fahrenheit'),
    ]

    recipe = models.ForeignKey(Recipe, on_delete=models.CASCADE, related_name='instructions')
    step_number = models.PositiveSmallIntegerField(validators=[MinValueValidator(1)])
    title = models.CharField(max_length=100, blank=True)
    description = models.TextField(max_length=1000)
    duration = models.PositiveIntegerField(null=True, blank=True, help_text="Durée en minutes")
    temperature_value = models.IntegerField(null=True, blank=True)
    temperature_unit = models.CharField(max_length=10, choices=TEMPERATURE_UNIT_CHOICES, blank=True)
    tips = models.JSONField(default=list, blank=True)

    class Meta:
        ordering = ['step_number', 'id']

    def __str__(self):
        return f"{self.recipe_id} - step {self.step_number}"


class RecipeDietaryRestriction(models.Model):
    RESTRICTION_CHOICES = [(value, value) for value in (
        'vegetarian', 'vegan', 'gluten-free', 'dairy-free', 'nut-free', 'egg-free', 'soy-free',
        'keto', 'paleo', 'low-carb', 'low-fat', 'low-sodium', 'diabetic-friendly', 'heart-healthy',
    )]

    recipe = models.ForeignKey(Recipe, on_delete=models.CASCADE, related_name='dietary_restrictions')
    restriction = models.CharField(max_length=30, choices=RESTRICTION_CHOICES)

    class Meta:
        ordering = ['restriction']
        constraints = [
            models.UniqueConstraint(fields=['recipe', 'restriction'], name='recipes_unique_dietary_restriction'),
        ]

    def __str__(self):
        return self.restriction


class Rating(models.Model):
    """Note d'un utilisateur sur une recette (une seule par utilisateur)"""
    recipe = models.ForeignKey(Recipe, on_delete=models.CASCADE, related_name='ratings')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='recipe_ratings')
    rating = models.PositiveSmallIntegerField(validators=[MinValueValidator(1), MaxValueValidator(5)])
    review = models.TextField(max_length=1000, blank=True)
    helpful = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(fields=['recipe', 'user'], name='recipes_unique_rating_per_user'),
        ]

    def __str__(self):
        return f"{self.user_id} → {self.recipe_id}: {self.rating}"
