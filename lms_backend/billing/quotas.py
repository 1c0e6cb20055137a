"""
Quota enforcement against the tenant's current subscription.

Usage:
    with transaction.atomic():
        consume_quota(tenant, QuotaName.MAX_COURSES)
        Course.objects.create(...)

consume_quota locks the usage row, re-checks the ceiling and increments in
the caller's transaction, so two concurrent requests cannot both pass the
check and a refusal leaves nothing behind.
"""
import logging

from django.db import transaction
from django.db.models import F

from core.exceptions import QuotaExceededError
from .models import PackageQuota, QuotaName, Subscription, SubscriptionUsage, is_unlimited

logger = logging.getLogger(__name__)

NEAR_LIMIT_PERCENT = 80


def current_subscription(tenant):
    if tenant is None:
        return None
    return Subscription.objects.for_tenant(tenant).current().select_related('package').first()


def get_quota_limit(subscription, quota_name):
    return (
        PackageQuota.objects
        .filter(package_id=subscription.package_id, quota_name=quota_name)
        .values_list('limit', flat=True)
        .first()
    )


def is_quota_exceeded(tenant, quota_name):
    """
    True iff the current package defines a finite ceiling for the quota and
    usage has reached it. No subscription, no ceiling, or -1 -> False.
    """
    subscription = current_subscription(tenant)
    if subscription is None:
        return False
    limit = get_quota_limit(subscription, quota_name)
    if is_unlimited(limit):
        return False
    return subscription.get_current_usage(quota_name) >= limit


def consume_quota(tenant, quota_name, amount=1):
    """
    Increment usage or raise QuotaExceededError.

    Returns the new usage value, or None when the tenant has no current
    subscription (nothing is tracked then).
    """
    quota_name = QuotaName(quota_name)
    subscription = current_subscription(tenant)
    if subscription is None:
        return None

    limit = get_quota_limit(subscription, quota_name)

    with transaction.atomic():
        usage, _ = SubscriptionUsage.objects.select_for_update().get_or_create(
            subscription=subscription,
            quota_name=quota_name,
            defaults={'tenant': tenant},
        )
        if not is_unlimited(limit) and usage.usage + amount > limit:
            logger.warning(
                'Quota refused: tenant=%s quota=%s usage=%s limit=%s',
                tenant.slug, quota_name.value, usage.usage, limit,
            )
            raise QuotaExceededError(quota_name.value, usage.usage, limit)

        SubscriptionUsage.objects.filter(pk=usage.pk).update(usage=F('usage') + amount)
        usage.refresh_from_db(fields=['usage'])

    return usage.usage


def set_usage(tenant, quota_name, value):
    """Overwrite a counter (billing rollover, data imports, seeding)."""
    subscription = current_subscription(tenant)
    if subscription is None:
        return None
    usage, _ = SubscriptionUsage.objects.update_or_create(
        subscription=subscription,
        quota_name=QuotaName(quota_name),
        defaults={'tenant': tenant, 'usage': value},
    )
    return usage


def tenant_has_feature(tenant, feature_key):
    subscription = current_subscription(tenant)
    if subscription is None:
        return False
    feature = subscription.package.get_feature(feature_key)
    if feature is None:
        return False
    return bool(feature.typed_value)


def quota_summary(subscription):
    """Per-quota usage report of a subscription."""
    quotas = {q.quota_name: q for q in subscription.package.quotas.all()}
    usage = {u.quota_name: u.usage for u in subscription.usage.all()}

    summary = []
    for quota_name in QuotaName:
        quota = quotas.get(quota_name.value)
        limit = quota.limit if quota is not None else None
        used = usage.get(quota_name.value, 0)
        if is_unlimited(limit):
            remaining = None
            percentage = 0.0
        else:
            remaining = max(limit - used, 0)
            percentage = round(min(used / limit * 100, 100), 2) if limit > 0 else 100.0
        summary.append({
            'quota_name': quota_name.value,
            'label': quota_name.label,
            'unit': quota.unit if quota is not None else 'count',
            'limit': limit,
            'usage': used,
            'remaining': remaining,
            'usage_percentage': percentage,
            'is_unlimited': is_unlimited(limit),
            'is_near_limit': not is_unlimited(limit) and percentage >= NEAR_LIMIT_PERCENT,
        })
    return summary
