"""
Tenant Middleware - resolves the acting tenant and puts it on
request.tenant_context.

Resolution order:
  1. Request host: exact Tenant.domain match, or <slug>.<platform domain>
  2. X-Tenant-ID header (tenant UUID or slug)
  3. tenant_id claim of a valid bearer access token

Only active tenants resolve. If nothing resolves, the request ends with a
400 "Tenant could not be identified" envelope, except on the
tenant-optional paths below.

Lookups are cached in the Django cache (Redis in production) for
TENANT_CACHE_TTL seconds; signals.py invalidates the cache whenever a
Tenant is saved or deleted.
"""
import logging
import uuid

from django.conf import settings as django_settings
from django.core.cache import cache
from django.http import JsonResponse
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import AccessToken

from core.exceptions import TenantNotIdentified, error_payload
from .context import TenantContext

logger = logging.getLogger(__name__)

_CACHE_VERSION_KEY = 'tenants:cache-version'
_MISS = '__none__'


class TenantMiddleware:
    """
    Place AFTER AuthenticationMiddleware.

    Sets:
      - request.tenant_context = TenantContext (tenant may be None on
        tenant-optional paths)
    """

    # Paths served without a tenant (platform admin, probes, auth entry points)
    TENANT_OPTIONAL_PATHS = (
        '/admin/',
        '/api/health/',
        '/api/auth/login/',
        '/api/auth/refresh/',
        '/api/auth/logout/',
        '/api/auth/me/',
        '/api/auth/impersonate/',
        '/api/profile/',
        '/api/packages/',
    )

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        context = self.resolve(request)
        request.tenant_context = context

        if not context.is_resolved and not self._is_tenant_optional(request.path):
            logger.info('Tenant not identified for %s %s (host=%s)',
                        request.method, request.path, request.get_host())
            return JsonResponse(
                error_payload(str(TenantNotIdentified.default_detail)),
                status=TenantNotIdentified.status_code,
            )

        return self.get_response(request)

    def _is_tenant_optional(self, path):
        return any(path.startswith(p) for p in self.TENANT_OPTIONAL_PATHS)

    # ─────────────────────────────────────────────────────────
    # Resolution
    # ─────────────────────────────────────────────────────────

    def resolve(self, request):
        host = request.get_host().split(':')[0].lower()
        tenant = self._get_tenant_by_host(host)
        if tenant is not None:
            return TenantContext(tenant, TenantContext.DOMAIN)

        header_value = request.META.get('HTTP_X_TENANT_ID', '').strip()
        if header_value:
            tenant = self._get_tenant_by_identifier(header_value)
            if tenant is not None:
                return TenantContext(tenant, TenantContext.HEADER)
            logger.warning('X-Tenant-ID header "%s" did not match an active tenant', header_value)

        claim = self._get_token_tenant_claim(request)
        if claim:
            tenant = self._get_tenant_by_identifier(claim)
            if tenant is not None:
                return TenantContext(tenant, TenantContext.TOKEN)

        return TenantContext.empty()

    def _get_tenant_by_host(self, host):
        def lookup():
            from .models import Tenant

            tenant = Tenant.objects.active().filter(domain=host).first()
            if tenant is not None:
                return tenant

            # Subdomain: acme.lms.local -> slug='acme'
            for domain in getattr(django_settings, 'PLATFORM_DOMAINS', []):
                suffix = f'.{domain}'
                if host.endswith(suffix):
                    slug = host[:-len(suffix)]
                    return Tenant.objects.active().filter(slug=slug).first()
            return None

        return self._cached(f'host:{host}', lookup)

    def _get_tenant_by_identifier(self, value):
        """Tenant UUID or slug."""
        def lookup():
            from .models import Tenant

            try:
                tenant_uuid = uuid.UUID(str(value))
            except ValueError:
                return Tenant.objects.active().filter(slug=value).first()
            return Tenant.objects.active().filter(pk=tenant_uuid).first()

        return self._cached(f'id:{value}', lookup)

    @staticmethod
    def _get_token_tenant_claim(request):
        header = request.META.get('HTTP_AUTHORIZATION', '')
        parts = header.split()
        if len(parts) != 2 or parts[0] != 'Bearer':
            return None
        try:
            token = AccessToken(parts[1])
        except TokenError:
            return None
        return token.get('tenant_id')

    # ─────────────────────────────────────────────────────────
    # Cache
    # ─────────────────────────────────────────────────────────

    @classmethod
    def _cache_key(cls, key):
        version = cache.get(_CACHE_VERSION_KEY)
        if version is None:
            version = uuid.uuid4().hex
            cache.set(_CACHE_VERSION_KEY, version, None)
        return f'tenants:{version}:{key}'

    @classmethod
    def _cached(cls, key, lookup):
        cache_key = cls._cache_key(key)
        cached = cache.get(cache_key)
        if cached is not None:
            return None if cached == _MISS else cached

        tenant = lookup()
        ttl = getattr(django_settings, 'TENANT_CACHE_TTL', 300)
        cache.set(cache_key, tenant if tenant is not None else _MISS, ttl)
        return tenant

    @classmethod
    def clear_cache(cls):
        """Invalidate every cached lookup (after a Tenant changes)."""
        cache.set(_CACHE_VERSION_KEY, uuid.uuid4().hex, None)
