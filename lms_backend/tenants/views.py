"""
Tenant API views.

TenantConfigView is public: the frontend calls /api/tenant/config/ on load
and gets the tenant's branding, feature flags and which integrations are
configured. The tenant is resolved by TenantMiddleware (host, header or
token); secrets never leave the server.

Settings and branding are managed by tenant admins.
"""
import logging

from rest_framework.generics import GenericAPIView
from rest_framework.permissions import AllowAny

from accounts.permissions import RoleRequired
from accounts.roles import Operation
from core.responses import success_response
from .mixins import TenantAPIViewMixin
from .models import TenantBranding, TenantSettings
from .serializers import TenantBrandingSerializer, TenantSettingsSerializer

logger = logging.getLogger(__name__)


class TenantConfigView(TenantAPIViewMixin, GenericAPIView):
    """GET /api/tenant/config/"""
    permission_classes = [AllowAny]
    # Called on every page load
    throttle_classes = []

    def get(self, request):
        tenant = self.tenant_context.require()
        return success_response(tenant.to_frontend_config(), 'Tenant configuration retrieved successfully')


class _TenantAdminView(TenantAPIViewMixin, GenericAPIView):
    """GET/PUT of a one-to-one tenant configuration row."""
    permission_classes = [RoleRequired]
    operation = Operation.TENANT_MANAGE
    model = None
    label = ''

    def get_object(self):
        tenant = self.tenant_context.require()
        obj, _ = self.model.objects.get_or_create(tenant=tenant, defaults=self.get_defaults(tenant))
        return obj

    def get_defaults(self, tenant):
        return {}

    def get(self, request):
        return success_response(
            self.get_serializer(self.get_object()).data,
            f'{self.label} retrieved successfully',
        )

    def put(self, request):
        serializer = self.get_serializer(self.get_object(), data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        logger.info('Tenant %s %s updated by user %s: %s',
                    self.tenant_context.tenant.slug, self.label.lower(), request.user.pk,
                    ', '.join(sorted(serializer.validated_data)))
        return success_response(serializer.data, f'{self.label} updated successfully')


class TenantSettingsView(_TenantAdminView):
    """GET/PUT /api/tenant/settings/"""
    model = TenantSettings
    serializer_class = TenantSettingsSerializer
    label = 'Settings'

    def get_defaults(self, tenant):
        return {'organization_name': tenant.name}


class TenantBrandingView(_TenantAdminView):
    """GET/PUT /api/tenant/branding/"""
    model = TenantBranding
    serializer_class = TenantBrandingSerializer
    label = 'Branding'
