# Generated manually for the recipe and category schema

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


CUISINES = [
    'italian', 'french', 'chinese', 'japanese', 'indian', 'mexican', 'thai',
    'mediterranean', 'american', 'british', 'german', 'spanish', 'korean',
    'vietnamese', 'greek', 'turkish', 'moroccan', 'lebanese', 'fusion',
    'international', 'other',
]
UNITS = ['cup', 'tbsp', 'tsp', 'oz', 'lb', 'g', 'kg', 'ml', 'l', 'piece', 'clove', 'pinch', 'dash']
RESTRICTIONS = [
    'vegetarian', 'vegan', 'gluten-free', 'dairy-free', 'nut-free', 'egg-free', 'soy-free',
    'keto', 'paleo', 'low-carb', 'low-fat', 'low-sodium', 'diabetic-friendly', 'heart-healthy',
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Category',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=50, validators=[django.core.validators.MinLengthValidator(2)])),
                ('slug', models.CharField(max_length=60, unique=True, validators=[django.core.validators.RegexValidator('^[a-z0-9-]+$', 'Slug can only contain lowercase letters, numbers, and hyphens.')])),
                ('code', models.CharField(max_length=10, unique=True, validators=[django.core.validators.MinLengthValidator(2)])),
                ('description', models.TextField(blank=True, max_length=500)),
                ('icon', models.CharField(blank=True, max_length=100)),
                ('color', models.CharField(blank=True, max_length=7, validators=[django.core.validators.RegexValidator('^#[0-9A-Fa-f]{6}$', 'Color must be a valid hex color.')])),
                ('image', models.JSONField(blank=True, default=dict, help_text='{url, alt, caption}')),
                ('level', models.PositiveSmallIntegerField(default=0, validators=[django.core.validators.MaxValueValidator(5)])),
                ('path', models.CharField(blank=True, db_index=True, help_text='slug-racine/.../slug', max_length=500)),
                ('recipe_count', models.PositiveIntegerField(default=0)),
                ('total_views', models.PositiveIntegerField(default=0)),
                ('average_rating', models.FloatField(default=0)),
                ('popularity_score', models.FloatField(default=0)),
                ('seo', models.JSONField(blank=True, default=dict, help_text='{metaTitle, metaDescription, keywords}')),
                ('status', models.CharField(choices=[('active', 'Active'), ('inactive', 'Inactive'), ('archived', 'Archived'), ('draft', 'Draft')], default='active', max_length=20)),
                ('featured', models.BooleanField(default=False)),
                ('display_order', models.IntegerField(default=0, help_text="Ordre d'affichage dans les listes")),
                ('visibility', models.CharField(choices=[('public', 'Public'), ('private', 'Private'), ('restricted', 'Restricted')], default='public', max_length=20)),
                ('can_create_recipes', models.BooleanField(default=True)),
                ('required_role', models.CharField(default='user', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_categories', to=settings.AUTH_USER_MODEL)),
                ('last_modified_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='modified_categories', to=settings.AUTH_USER_MODEL)),
                ('parent', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='children', to='recipes.category')),
            ],
            options={
                'verbose_name_plural': 'Categories',
                'ordering': ['display_order', 'name'],
                'indexes': [
                    models.Index(fields=['parent', 'display_order'], name='recipes_cat_parent_order_idx'),
                    models.Index(fields=['status', 'featured'], name='recipes_cat_status_feat_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Recipe',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=100, validators=[django.core.validators.MinLengthValidator(3)])),
                ('description', models.TextField(max_length=2000, validators=[django.core.validators.MinLengthValidator(10)])),
                ('summary', models.CharField(blank=True, max_length=300)),
                ('prep_time', models.PositiveIntegerField(help_text='Temps de préparation en minutes', validators=[django.core.validators.MinValueValidator(1)])),
                ('cook_time', models.PositiveIntegerField(default=0, help_text='Temps de cuisson en minutes')),
                ('total_time', models.PositiveIntegerField(default=0, editable=False, help_text='prep_time + cook_time')),
                ('servings', models.PositiveIntegerField(default=4, validators=[django.core.validators.MinValueValidator(1)])),
                ('difficulty', models.CharField(choices=[('beginner', 'Beginner'), ('intermediate', 'Intermediate'), ('advanced', 'Advanced'), ('expert', 'Expert')], default='beginner', max_length=20)),
                ('cuisine', models.CharField(choices=[(value, value.title()) for value in CUISINES], default='other', max_length=20)),
                ('meal_type', models.JSONField(blank=True, default=list)),
                ('tags', models.JSONField(blank=True, default=list)),
                ('nutrition', models.JSONField(blank=True, default=dict)),
                ('images', models.JSONField(blank=True, default=list, help_text='[{url, caption, isPrimary}]')),
                ('video_url', models.CharField(blank=True, max_length=500)),
                ('source', models.JSONField(blank=True, default=dict, help_text='{type, attribution, url}')),
                ('status', models.CharField(choices=[('draft', 'Draft'), ('published', 'Published'), ('archived', 'Archived'), ('pending_review', 'Pending review')], default='draft', max_length=20)),
                ('visibility', models.CharField(choices=[('public', 'Public'), ('private', 'Private'), ('friends_only', 'Friends only')], default='public', max_length=20)),
                ('featured', models.BooleanField(default=False)),
                ('views', models.PositiveIntegerField(default=0)),
                ('shares', models.PositiveIntegerField(default=0)),
                ('average_rating', models.FloatField(default=0)),
                ('total_ratings', models.PositiveIntegerField(default=0)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('author', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='recipes', to=settings.AUTH_USER_MODEL)),
                ('bookmarks', models.ManyToManyField(blank=True, related_name='bookmarked_recipes', to=settings.AUTH_USER_MODEL)),
                ('category', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='recipes', to='recipes.category')),
                ('likes', models.ManyToManyField(blank=True, related_name='liked_recipes', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['status', 'visibility'], name='recipes_rec_status_vis_idx'),
                    models.Index(fields=['category', 'status'], name='recipes_rec_cat_status_idx'),
                    models.Index(fields=['author', '-created_at'], name='recipes_rec_author_idx'),
                    models.Index(fields=['-average_rating', '-total_ratings'], name='recipes_rec_rating_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='RecipeIngredient',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=100)),
                ('quantity', models.FloatField(validators=[django.core.validators.MinValueValidator(0)])),
                ('unit', models.CharField(choices=[(value, value) for value in UNITS], max_length=10)),
                ('notes', models.CharField(blank=True, max_length=200)),
                ('order', models.PositiveSmallIntegerField(default=0)),
                ('recipe', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='ingredients', to='recipes.recipe')),
            ],
            options={
                'ordering': ['order', 'id'],
            },
        ),
        migrations.CreateModel(
            name='InstructionStep',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('step_number', models.PositiveSmallIntegerField(validators=[django.core.validators.MinValueValidator(1)])),
                ('title', models.CharField(blank=True, max_length=100)),
                ('description', models.TextField(max_length=1000)),
                ('duration', models.PositiveIntegerField(blank=True, help_text='Durée en minutes', null=True)),
                ('temperature_value', models.IntegerField(blank=True, null=True)),
                ('temperature_unit', models.CharField(blank=True, choices=[('celsius', 'Celsius'), ('fahrenheit', 'Fahrenheit')], max_length=10)),
                ('tips', models.JSONField(blank=True, default=list)),
                ('recipe', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='instructions', to='recipes.recipe')),
            ],
            options={
                'ordering': ['step_number', 'id'],
            },
        ),
        migrations.CreateModel(
            name='RecipeDietaryRestriction',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('restriction', models.CharField(choices=[(value, value) for value in RESTRICTIONS], max_length=30)),
                ('recipe', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='dietary_restrictions', to='recipes.recipe')),
            ],
            options={
                'ordering': ['restriction'],
                'constraints': [
                    models.UniqueConstraint(fields=('recipe', 'restriction'), name='recipes_unique_dietary_restriction'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Rating',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('rating', models.PositiveSmallIntegerField(validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(5)])),
                ('review', models.TextField(blank=True, max_length=1000)),
                ('helpful', models.PositiveIntegerField(default=0)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('recipe', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='ratings', to='recipes.recipe')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='recipe_ratings', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-created_at'],
                'constraints': [
                    models.UniqueConstraint(fields=('recipe', 'user'), name='recipes_unique_rating_per_user'),
                ],
            },
        ),
    ]
