from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import User, UserRole


class UserRoleInline(admin.TabularInline):
    model = UserRole
    extra = 0


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Admin for the email-based, tenant-scoped user model."""

    model = User
    list_display = ('email', 'tenant', 'first_name', 'last_name', 'is_staff', 'is_active', 'created_at')
    list_filter = ('tenant', 'is_staff', 'is_active', 'user_roles__role')

    fieldsets = (
        (None, {'fields': ('tenant', 'email', 'password')}),
        ('Personal info', {'fields': (
            'first_name', 'last_name', 'phone', 'date_of_birth', 'gender', 'bio', 'avatar_url',
        )}),
        ('Preferences', {'fields': ('timezone', 'language', 'email_notifications')}),
        ('Permissions', {'fields': ('is_active', 'is_staff', 'is_superuser', 'groups', 'user_permissions')}),
        ('Important dates', {'fields': ('last_login', 'date_joined')}),
    )

    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': ('tenant', 'email', 'password1', 'password2', 'is_staff', 'is_active'),
        }),
    )

    search_fields = ('email', 'first_name', 'last_name', 'phone')
    ordering = ('-created_at',)
    inlines = [UserRoleInline]
