from django.contrib.auth.models import AbstractUser, BaseUserManager
from django.db import models
from django.db.models import Q
from django.utils.translation import gettext_lazy as _

from tenants.mixins import TenantQuerySet
from .roles import Role, primary_role


class UserManager(BaseUserManager.from_queryset(TenantQuerySet)):
    """Manager for User where email (unique per tenant) is the login."""

    def get_by_natural_key(self, username):
        # Natural key is reserved for platform-level accounts (admin site, createsuperuser)
        return self.get(email__iexact=username, tenant__isnull=True)

    def create_user(self, email, password=None, tenant=None, roles=(Role.STUDENT,), **extra_fields):
        if not email:
            raise ValueError(_('Email is required'))
        roles = [Role(role) for role in roles]
        if tenant is None and Role.SUPER_ADMIN not in roles:
            raise ValueError(_('Only super admins can exist without a tenant'))
        email = self.normalize_email(email).strip().lower()
        user = self.model(email=email, tenant=tenant, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        for role in roles:
            user.assign_role(role)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('is_active', True)

        if extra_fields.get('is_staff') is not True:
            raise ValueError(_('Superuser must have is_staff=True'))
        if extra_fields.get('is_superuser') is not True:
            raise ValueError(_('Superuser must have is_superuser=True'))

        return self.create_user(email, password, tenant=None, roles=(Role.SUPER_ADMIN,), **extra_fields)


class User(AbstractUser):
    """
    Platform user. Login is by email, which is unique inside a tenant.
    Only super admins live outside any tenant.
    """

    class Gender(models.TextChoices):
        MALE = 'male', _('Male')
        FEMALE = 'female', _('Female')
        OTHER = 'other', _('Other')

    username = None
    email = models.EmailField(_('email address'))
    tenant = models.ForeignKey(
        'tenants.Tenant',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='users',
    )

    phone = models.CharField(_('phone'), max_length=20, blank=True)
    date_of_birth = models.DateField(_('date of birth'), null=True, blank=True)
    gender = models.CharField(_('gender'), max_length=10, choices=Gender.choices, blank=True)
    bio = models.TextField(_('bio'), blank=True)
    avatar_url = models.URLField(_('avatar URL'), blank=True)
    timezone = models.CharField(_('timezone'), max_length=50, default='UTC')
    language = models.CharField(_('language'), max_length=10, default='en')
    email_notifications = models.BooleanField(_('email notifications'), default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        ordering = ['email']
        constraints = [
            models.UniqueConstraint(fields=['tenant', 'email'], name='unique_user_email_per_tenant'),
            models.UniqueConstraint(
                fields=['email'],
                condition=Q(tenant__isnull=True),
                name='unique_platform_user_email',
            ),
        ]

    def __str__(self):
        return self.email

    def save(self, *args, **kwargs):
        if self.email:
            self.email = self.email.strip().lower()
        super().save(*args, **kwargs)

    # ─────────────────────────────────────────────────────────
    # Roles
    # ─────────────────────────────────────────────────────────

    @property
    def roles(self):
        if not hasattr(self, '_role_cache'):
            if self.pk is None:
                self._role_cache = set()
            else:
                self._role_cache = {Role(r) for r in self.user_roles.values_list('role', flat=True)}
        return self._role_cache

    def has_role(self, *roles):
        return any(Role(role) in self.roles for role in roles)

    def assign_role(self, role):
        UserRole.objects.get_or_create(user=self, role=Role(role))
        self.__dict__.pop('_role_cache', None)

    def remove_role(self, role):
        self.user_roles.filter(role=Role(role)).delete()
        self.__dict__.pop('_role_cache', None)

    @property
    def primary_role(self):
        return primary_role(self.roles)

    @property
    def is_super_admin(self):
        return self.is_superuser or Role.SUPER_ADMIN in self.roles

    @property
    def full_name(self):
        return self.get_full_name() or self.email


class UserRole(models.Model):
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='user_roles')
    role = models.CharField(max_length=20, choices=Role.choices)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['user', 'role'], name='unique_user_role'),
        ]

    def __str__(self):
        return f'{self.user.email}: {self.role}'
