from rest_framework import serializers

from .models import TenantBranding, TenantSettings


class TenantScopedPrimaryKeyRelatedField(serializers.PrimaryKeyRelatedField):
    """
    PK field whose choices are limited to the tenant in the serializer
    context, so ids of other tenants fail validation like unknown ids.
    """

    def get_queryset(self):
        queryset = super().get_queryset()
        tenant_context = self.context.get('tenant_context')
        if tenant_context is None:
            return queryset.none()
        return tenant_context.scope(queryset)


class TenantSettingsSerializer(serializers.ModelSerializer):
    class Meta:
        model = TenantSettings
        fields = [
            'organization_name', 'contact_email', 'contact_phone',
            'timezone', 'language', 'currency',
            'self_enrollment_enabled', 'certificates_enabled', 'ai_assistant_enabled',
            'updated_at',
        ]
        read_only_fields = ['updated_at']


class TenantBrandingSerializer(serializers.ModelSerializer):
    class Meta:
        model = TenantBranding
        fields = [
            'logo_url', 'favicon_url',
            'primary_color', 'secondary_color', 'accent_color',
            'background_color', 'text_color', 'custom_css',
            'updated_at',
        ]
        read_only_fields = ['updated_at']
