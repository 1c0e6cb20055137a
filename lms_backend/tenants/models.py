"""
Tenant models - root of the multi-tenant data model.

Approach: shared database, shared schema, a tenant FK on every scoped row.
Tenant-configurable surfaces are typed models (settings, branding);
only integration payloads stay free-form.
"""

import uuid

from django.core.validators import RegexValidator
from django.db import models

from .mixins import TenantModelMixin

hex_color_validator = RegexValidator(
    regex=r'^#[0-9A-Fa-f]{6}$',
    message='Enter a colour in #RRGGBB format.',
)


class TenantQuerySet(models.QuerySet):
    def active(self):
        return self.filter(status=Tenant.Status.ACTIVE)


class Tenant(models.Model):
    """
    A customer organization. Everything except the package catalogue
    belongs to exactly one tenant.
    """

    class Status(models.TextChoices):
        ACTIVE = 'active', 'Active'
        SUSPENDED = 'suspended', 'Suspended'
        INACTIVE = 'inactive', 'Inactive'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    slug = models.SlugField(max_length=50, unique=True, help_text='Identifier used in URLs and subdomains')
    name = models.CharField(max_length=200)
    domain = models.CharField(
        max_length=255, unique=True, null=True, blank=True,
        help_text='Custom domain, e.g. academy.example.com',
    )
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.ACTIVE)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = TenantQuerySet.as_manager()

    class Meta:
        ordering = ['name']

    def __str__(self):
        return f'{self.name} ({self.slug})'

    def save(self, *args, **kwargs):
        if self.domain:
            self.domain = self.domain.strip().lower()
        else:
            self.domain = None
        super().save(*args, **kwargs)

    @property
    def is_active(self):
        return self.status == self.Status.ACTIVE

    def get_settings(self):
        """Typed settings row (unsaved defaults when none exists yet)."""
        try:
            return self.settings
        except TenantSettings.DoesNotExist:
            return TenantSettings(tenant=self, organization_name=self.name)

    def get_branding(self):
        try:
            return self.branding
        except TenantBranding.DoesNotExist:
            return TenantBranding(tenant=self)

    def feature_enabled(self, flag):
        return self.get_settings().is_enabled(flag)

    def has_integration(self, provider):
        """Is the given external collaborator configured and enabled?"""
        return provider in self.configured_integrations()

    def configured_integrations(self):
        return {
            integration.provider
            for integration in TenantIntegration.objects.filter(tenant=self, is_enabled=True)
            if integration.is_configured
        }

    def to_frontend_config(self):
        """Public config for the frontend. Never contains secrets."""
        tenant_settings = self.get_settings()
        branding = self.get_branding()
        integrations = self.configured_integrations()
        return {
            'id': str(self.id),
            'slug': self.slug,
            'name': self.name,
            'organization_name': tenant_settings.organization_name or self.name,
            'timezone': tenant_settings.timezone,
            'language': tenant_settings.language,
            'currency': tenant_settings.currency,
            'branding': {
                'logo_url': branding.logo_url,
                'favicon_url': branding.favicon_url,
                'primary_color': branding.primary_color,
                'secondary_color': branding.secondary_color,
                'accent_color': branding.accent_color,
                'background_color': branding.background_color,
                'text_color': branding.text_color,
            },
            'features': tenant_settings.feature_flags(),
            'integrations': {
                provider: provider in integrations
                for provider in TenantIntegration.Provider.values
            },
        }


class FeatureFlag(models.TextChoices):
    SELF_ENROLLMENT = 'self_enrollment', 'Self enrollment'
    CERTIFICATES = 'certificates', 'Certificates'
    AI_ASSISTANT = 'ai_assistant', 'AI assistant'


class TenantSettings(models.Model):
    """Organization profile, locale and feature flags."""

    tenant = models.OneToOneField(Tenant, on_delete=models.CASCADE, related_name='settings')
    organization_name = models.CharField(max_length=200, blank=True)
    contact_email = models.EmailField(blank=True)
    contact_phone = models.CharField(max_length=30, blank=True)
    timezone = models.CharField(max_length=50, default='UTC')
    language = models.CharField(max_length=10, default='en')
    currency = models.CharField(max_length=3, default='USD')

    self_enrollment_enabled = models.BooleanField(default=True)
    certificates_enabled = models.BooleanField(default=True)
    ai_assistant_enabled = models.BooleanField(default=False)

    updated_at = models.DateTimeField(auto_now=True)

    FLAG_FIELDS = {
        FeatureFlag.SELF_ENROLLMENT: 'self_enrollment_enabled',
        FeatureFlag.CERTIFICATES: 'certificates_enabled',
        FeatureFlag.AI_ASSISTANT: 'ai_assistant_enabled',
    }

    class Meta:
        verbose_name_plural = 'tenant settings'

    def __str__(self):
        return f'Settings for {self.tenant.slug}'

    def is_enabled(self, flag):
        return getattr(self, self.FLAG_FIELDS[FeatureFlag(flag)])

    def feature_flags(self):
        return {flag.value: getattr(self, field) for flag, field in self.FLAG_FIELDS.items()}


class TenantBranding(models.Model):
    tenant = models.OneToOneField(Tenant, on_delete=models.CASCADE, related_name='branding')
    logo_url = models.URLField(blank=True)
    favicon_url = models.URLField(blank=True)
    primary_color = models.CharField(max_length=7, default='#3B82F6', validators=[hex_color_validator])
    secondary_color = models.CharField(max_length=7, default='#64748B', validators=[hex_color_validator])
    accent_color = models.CharField(max_length=7, default='#10B981', validators=[hex_color_validator])
    background_color = models.CharField(max_length=7, default='#FFFFFF', validators=[hex_color_validator])
    text_color = models.CharField(max_length=7, default='#1F2937', validators=[hex_color_validator])
    custom_css = models.TextField(blank=True)

    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f'Branding for {self.tenant.slug}'


class TenantIntegration(TenantModelMixin):
    """
    Connection to an external collaborator. `configuration` is the one
    free-form payload in the tenant model (credentials, endpoints).
    """

    class Provider(models.TextChoices):
        CMS = 'cms', 'Content management system'
        VIDEO = 'video', 'Video host'
        FILE_STORAGE = 'file_storage', 'File storage'
        AI_TEXT = 'ai_text', 'AI text service'
        PAYMENTS = 'payments', 'Payment processor'

    class SyncStatus(models.TextChoices):
        NEVER = 'never', 'Never synced'
        OK = 'ok', 'OK'
        FAILED = 'failed', 'Failed'

    provider = models.CharField(max_length=20, choices=Provider.choices)
    configuration = models.JSONField(default=dict, blank=True)
    is_enabled = models.BooleanField(default=True)
    last_sync_at = models.DateTimeField(null=True, blank=True)
    sync_status = models.CharField(max_length=10, choices=SyncStatus.choices, default=SyncStatus.NEVER)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['tenant', 'provider'], name='unique_tenant_integration'),
        ]

    def __str__(self):
        return f'{self.tenant.slug}: {self.provider}'

    @property
    def is_configured(self):
        return self.is_enabled and bool(self.configuration)
