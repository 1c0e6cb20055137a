"""
Headless CMS client.

Course metadata can live in the tenant's CMS; a course is linked to it
through `Course.cms_id`. The integration row (provider=cms) carries:

    {
        "base_url": "https://cms.example.com",
        "api_token": "...",
        "courses_path": "/api/courses"      # optional
    }

Responses are cached in the Django cache for CMS_CACHE_TTL seconds.

Usage:
    client = CMSClient.for_tenant(tenant)
    data = client.get_course(course.cms_id)
    sync_course_from_cms(course, client)
"""
import logging

import requests
from django.conf import settings
from django.core.cache import cache
from django.utils import timezone

from tenants.models import TenantIntegration
from .models import Course

logger = logging.getLogger(__name__)

DEFAULT_COURSES_PATH = '/api/courses'

# CMS attribute -> Course field
FIELD_MAP = {
    'title': 'title',
    'shortDescription': 'short_description',
    'description': 'description',
    'featuredImage': 'thumbnail_url',
    'level': 'level',
    'language': 'language',
    'durationHours': 'estimated_duration_hours',
}


class CMSError(Exception):
    """CMS unreachable, misconfigured or answered with garbage."""


class CMSClient:

    def __init__(self, base_url, api_token='', courses_path=DEFAULT_COURSES_PATH, tenant_key='', timeout=None):
        self.base_url = base_url.rstrip('/')
        self.api_token = api_token
        self.courses_path = '/' + courses_path.strip('/')
        self.tenant_key = tenant_key
        self.timeout = timeout or getattr(settings, 'CMS_REQUEST_TIMEOUT', 10)

    @classmethod
    def for_tenant(cls, tenant):
        integration = (
            TenantIntegration.objects.for_tenant(tenant)
            .filter(provider=TenantIntegration.Provider.CMS)
            .first()
        )
        if integration is None or not integration.is_configured:
            raise CMSError(f'CMS integration is not configured for tenant {tenant.slug}')
        config = integration.configuration
        if not config.get('base_url'):
            raise CMSError(f'CMS integration of tenant {tenant.slug} has no base_url')
        return cls(
            base_url=config['base_url'],
            api_token=config.get('api_token', ''),
            courses_path=config.get('courses_path', DEFAULT_COURSES_PATH),
            tenant_key=str(tenant.pk),
        )

    def _headers(self):
        headers = {'Accept': 'application/json'}
        if self.api_token:
            headers['Authorization'] = f'Bearer {self.api_token}'
        return headers

    def _cache_key(self, cms_id):
        return f'cms:{self.tenant_key}:course:{cms_id}'

    def get_course(self, cms_id, use_cache=True):
        """Course attributes as a flat dict."""
        key = self._cache_key(cms_id)
        if use_cache:
            cached = cache.get(key)
            if cached is not None:
                return cached

        url = f'{self.base_url}{self.courses_path}/{cms_id}'
        try:
            response = requests.get(url, headers=self._headers(), timeout=self.timeout)
            response.raise_for_status()
            body = response.json()
        except requests.exceptions.RequestException as exc:
            logger.error('CMS request failed: GET %s (%s)', url, exc)
            raise CMSError(f'CMS request failed: {exc}') from exc
        except ValueError as exc:
            raise CMSError(f'CMS returned invalid JSON for course {cms_id}') from exc

        data = self._unwrap(body)
        if data is None:
            raise CMSError(f'CMS returned no data for course {cms_id}')

        cache.set(key, data, getattr(settings, 'CMS_CACHE_TTL', 300))
        return data

    def invalidate(self, cms_id):
        cache.delete(self._cache_key(cms_id))

    @staticmethod
    def _unwrap(body):
        # {"data": {"id": 1, "attributes": {...}}} or a plain object
        if not isinstance(body, dict):
            return None
        payload = body.get('data', body)
        if not isinstance(payload, dict):
            return None
        attributes = payload.get('attributes', payload)
        return attributes if isinstance(attributes, dict) else None


def sync_course_from_cms(course, client=None):
    """
    Copy CMS metadata onto the course. Unknown levels are ignored and
    publication stays a local decision. Returns the list of changed fields.
    """
    if not course.cms_id:
        return []
    client = client or CMSClient.for_tenant(course.tenant)
    data = client.get_course(course.cms_id)

    changed = []
    for source, field in FIELD_MAP.items():
        value = data.get(source)
        if value in (None, ''):
            continue
        if field == 'level' and value not in Course.Level.values:
            continue
        if field == 'estimated_duration_hours':
            try:
                value = max(int(value), 0)
            except (TypeError, ValueError):
                continue
        if getattr(course, field) != value:
            setattr(course, field, value)
            changed.append(field)

    if changed:
        course.save(update_fields=changed + ['updated_at'])
        logger.info('Course %s synced from CMS: %s', course.pk, ', '.join(changed))
    return changed


def sync_tenant_courses(tenant):
    """Sync every CMS-linked course of the tenant; returns the number updated."""
    integration = TenantIntegration.objects.for_tenant(tenant).get(provider=TenantIntegration.Provider.CMS)
    updated = 0
    try:
        client = CMSClient.for_tenant(tenant)
        for course in Course.objects.for_tenant(tenant).exclude(cms_id=''):
            if sync_course_from_cms(course, client):
                updated += 1
    except CMSError:
        logger.exception('CMS sync failed for tenant %s', tenant.slug)
        integration.sync_status = TenantIntegration.SyncStatus.FAILED
        integration.save(update_fields=['sync_status', 'updated_at'])
        raise

    integration.sync_status = TenantIntegration.SyncStatus.OK
    integration.last_sync_at = timezone.now()
    integration.save(update_fields=['sync_status', 'last_sync_at', 'updated_at'])
    return updated
