import hashlib
import secrets
from datetime import timedelta

from django.conf import settings
from django.contrib.auth.models import AbstractUser, UserManager as DjangoUserManager
from django.core.validators import MinLengthValidator
from django.db import models
from django.db.models.functions import Lower
from django.utils import timezone

from .validators import username_validator


def hash_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode()).hexdigest()


def default_preferences():
    return {
        'language': 'en',
        'notifications': {'email': True, 'newRecipes': True},
        'privacy': {'profileVisibility': 'public'},
    }


class UserManager(DjangoUserManager):
    """Normalise email et rôle à la création"""

    def create_user(self, username, email=None, password=None, **extra_fields):
        email = (email or '').strip().lower()
        return super().create_user(username, email, password, **extra_fields)

    def create_superuser(self, username, email=None, password=None, **extra_fields):
        extra_fields.setdefault('role', User.ROLE_ADMIN)
        extra_fields.setdefault('account_status', User.STATUS_ACTIVE)
        extra_fields.setdefault('is_email_verified', True)
        email = (email or '').strip().lower()
        return super().create_superuser(username, email, password, **extra_fields)


class User(AbstractUser):
    """Custom User model"""
    ROLE_USER = 'user'
    ROLE_CHEF = 'chef'
    ROLE_MODERATOR = 'moderator'
    ROLE_ADMIN = 'admin'
    ROLE_CHOICES = [
        (ROLE_USER, 'User'),
        (ROLE_CHEF, 'Chef'),
        (ROLE_MODERATOR, 'Moderator'),
        (ROLE_ADMIN, 'Admin'),
    ]

    STATUS_PENDING = 'pending'
    STATUS_ACTIVE = 'active'
    STATUS_INACTIVE = 'inactive'
    STATUS_SUSPENDED = 'suspended'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_ACTIVE, 'Active'),
        (STATUS_INACTIVE, 'Inactive'),
        (STATUS_SUSPENDED, 'Suspended'),
    ]

    email = models.EmailField(unique=True)
    username = models.CharField(
        max_length=80,
        unique=True,
        validators=[MinLengthValidator(3), username_validator],
    )
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=ROLE_USER)
    account_status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)

    is_email_verified = models.BooleanField(default=False)
    email_verification_token = models.CharField(max_length=64, blank=True, db_index=True)
    email_verification_expires = models.DateTimeField(null=True, blank=True)
    password_reset_token = models.CharField(max_length=64, blank=True, db_index=True)
    password_reset_expires = models.DateTimeField(null=True, blank=True)
    password_changed_at = models.DateTimeField(null=True, blank=True)

    login_attempts = models.PositiveIntegerField(default=0)
    lock_until = models.DateTimeField(null=True, blank=True)

    # Profil
    bio = models.TextField(max_length=500, blank=True)
    phone_number = models.CharField(max_length=20, blank=True)
    profile_image = models.CharField(max_length=500, blank=True)
    location = models.JSONField(default=dict, blank=True)
    preferences = models.JSONField(default=default_preferences, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['username']

    objects = UserManager()

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(Lower('email'), name='accounts_user_email_ci_unique'),
            models.UniqueConstraint(Lower('username'), name='accounts_user_username_ci_unique'),
        ]

    def __str__(self):
        return self.email

    @property
    def full_name(self):
        return f'{self.first_name} {self.last_name}'.strip()

    @property
    def is_admin(self):
        return self.role == self.ROLE_ADMIN

    @property
    def is_locked(self):
        return bool(self.lock_until and self.lock_until > timezone.now())

    @property
    def profile_visibility(self):
        return (self.preferences or {}).get('privacy', {}).get('profileVisibility', 'public')

    def set_new_password(self, raw_password):
        """Change le mot de passe et invalide les jetons émis auparavant"""
        self.set_password(raw_password)
        # Une seconde dans le passé : le jeton émis juste après reste valide
        self.password_changed_at = timezone.now() - timedelta(seconds=1)

    def changed_password_after(self, issued_at) -> bool:
        if not self.password_changed_at:
            return False
        return int(self.password_changed_at.timestamp()) > int(issued_at or 0)

    def register_failed_login(self):
        now = timezone.now()
        if self.lock_until and self.lock_until <= now:
            # Le verrou a expiré : on repart de zéro
            self.login_attempts = 1
            self.lock_until = None
        else:
            self.login_attempts += 1
            if self.login_attempts >= settings.MAX_LOGIN_ATTEMPTS and not self.is_locked:
                self.lock_until = now + settings.LOCK_DURATION
        self.save(update_fields=['login_attempts', 'lock_until'])

    def reset_login_attempts(self):
        self.login_attempts = 0
        self.lock_until = None
        self.last_login = timezone.now()
        self.save(update_fields=['login_attempts', 'lock_until', 'last_login'])

    def create_email_verification_token(self) -> str:
        """Comme pour la réinitialisation : jeton en clair dans l'email, hash en base"""
        raw_token = secrets.token_hex(32)
        self.email_verification_token = hash_token(raw_token)
        self.email_verification_expires = timezone.now() + settings.EMAIL_VERIFICATION_TTL
        return raw_token

    def create_password_reset_token(self) -> str:
        """Retourne le jeton en clair (envoyé par email) ; seul son hash est stocké"""
        raw_token = secrets.token_hex(32)
        self.password_reset_token = hash_token(raw_token)
        self.password_reset_expires = timezone.now() + settings.PASSWORD_RESET_TTL
        return raw_token

    def clear_password_reset_token(self):
        self.password_reset_token = ''
        self.password_reset_expires = None

    def anonymize(self):
        """Suppression logique : renomme email/username pour libérer les identifiants"""
        stamp = int(timezone.now().timestamp() * 1000)
        self.email = f'deleted_{stamp}_{self.email}'
        self.username = f'deleted_{stamp}_{self.username}'
        self.account_status = self.STATUS_INACTIVE
        self.save(update_fields=['email', 'username', 'account_status', 'updated_at'])
