"""
Tenant context - the acting tenant of one request (or one task run).

TenantMiddleware builds it and attaches it as `request.tenant_context`;
views rebind it to the authenticated user's own tenant and pass it
explicitly into every service call. There is no process-wide
"current tenant".
"""
from dataclasses import dataclass, replace
import logging

from core.exceptions import TenantNotIdentified, TenantSuspendedError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TenantContext:
    tenant: object = None
    source: str = ''

    DOMAIN = 'domain'
    HEADER = 'header'
    TOKEN = 'token'
    USER = 'user'
    SYSTEM = 'system'

    @classmethod
    def empty(cls):
        return cls()

    @classmethod
    def for_tenant(cls, tenant, source=SYSTEM):
        return cls(tenant=tenant, source=source)

    @property
    def is_resolved(self):
        return self.tenant is not None

    @property
    def tenant_id(self):
        return self.tenant.pk if self.tenant is not None else None

    def require(self):
        """The tenant, or TenantNotIdentified."""
        if self.tenant is None:
            raise TenantNotIdentified()
        return self.tenant

    def bind_user(self, user):
        """
        Context derived from an authenticated user.

        Regular users always act inside their own tenant, whatever the
        domain, header or token said, and only while that tenant is active
        (TenantSuspendedError otherwise). Platform super admins (no tenant
        of their own) keep the resolved context.
        """
        if user is None or not user.is_authenticated:
            return self
        if getattr(user, 'is_super_admin', False):
            return self
        if user.tenant_id is None:
            return self
        if self.tenant is not None and self.tenant.pk != user.tenant_id:
            logger.warning(
                'Tenant mismatch: user %s belongs to %s, request resolved %s via %s',
                user.pk, user.tenant_id, self.tenant.pk, self.source,
            )
        matches = self.tenant is not None and self.tenant.pk == user.tenant_id
        tenant = self.tenant if matches else user.tenant
        if not tenant.is_active:
            logger.warning('Rejected user %s: tenant %s is %s', user.pk, tenant.slug, tenant.status)
            raise TenantSuspendedError()
        if matches:
            return replace(self, source=self.USER)
        return TenantContext(tenant=tenant, source=self.USER)

    def scope(self, queryset):
        """Filter a tenant-scoped queryset; no tenant means no rows."""
        if self.tenant is None:
            return queryset.none()
        return queryset.filter(tenant=self.tenant)

    def stamp(self, instance):
        """Overwrite instance.tenant with the active tenant."""
        instance.tenant = self.require()
        return instance
