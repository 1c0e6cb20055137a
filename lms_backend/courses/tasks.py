"""Celery tasks for the course catalogue."""
import logging

from celery import shared_task

from tenants.models import Tenant, TenantIntegration
from .cms import CMSError, sync_tenant_courses

logger = logging.getLogger(__name__)


@shared_task
def sync_cms_courses(tenant_slug=None):
    """
    Pull course metadata from the CMS of every tenant with a configured
    integration (beat: daily). A failing tenant does not stop the others.
    """
    tenant_ids = (
        TenantIntegration.objects.filter(provider=TenantIntegration.Provider.CMS, is_enabled=True)
        .values_list('tenant_id', flat=True)
    )
    tenants = Tenant.objects.active().filter(pk__in=tenant_ids)
    if tenant_slug:
        tenants = tenants.filter(slug=tenant_slug)

    results = {}
    for tenant in tenants:
        try:
            results[tenant.slug] = sync_tenant_courses(tenant)
        except CMSError as exc:
            results[tenant.slug] = f'failed: {exc}'
    logger.info('CMS sync finished: %s', results)
    return results
