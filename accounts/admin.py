from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from .models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ['email', 'username', 'role', 'account_status', 'is_email_verified', 'created_at']
    list_filter = ['role', 'account_status', 'is_email_verified']
    search_fields = ['email', 'username', 'first_name', 'last_name']
    ordering = ['-created_at']
    fieldsets = BaseUserAdmin.fieldsets + (
        ('Compte', {'fields': ('role', 'account_status', 'is_email_verified', 'login_attempts', 'lock_until')}),
        ('Profil', {'fields': ('bio', 'phone_number', 'profile_image', 'location', 'preferences')}),
    )
    add_fieldsets = (
        (None, {'classes': ('wide',), 'fields': ('email', 'username', 'password1', 'password2')}),
    )
