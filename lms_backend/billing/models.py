"""
Billing models - the package catalogue and tenant subscriptions.

Package, PackageFeature and PackageQuota form a global catalogue shared by
all tenants. Subscription and SubscriptionUsage belong to one tenant.
"""
from decimal import Decimal

from django.db import models
from django.utils import timezone

from tenants.mixins import TenantModelMixin, TenantQuerySet

UNLIMITED = -1


class QuotaName(models.TextChoices):
    MAX_COURSES = 'max_courses', 'Courses'
    MAX_STUDENTS = 'max_students', 'Students'
    STORAGE_LIMIT = 'storage_limit', 'Storage (GB)'
    BANDWIDTH_LIMIT = 'bandwidth_limit', 'Bandwidth (GB)'


class Package(models.Model):
    class BillingCycle(models.TextChoices):
        MONTHLY = 'monthly', 'Monthly'
        YEARLY = 'yearly', 'Yearly'

    name = models.CharField(max_length=100)
    slug = models.SlugField(max_length=50, unique=True)
    description = models.TextField(blank=True)
    price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    currency = models.CharField(max_length=3, default='USD')
    billing_cycle = models.CharField(max_length=10, choices=BillingCycle.choices, default=BillingCycle.MONTHLY)
    trial_days = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)
    is_featured = models.BooleanField(default=False)
    sort_order = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['sort_order', 'price']

    def __str__(self):
        return self.name

    def get_quota_limit(self, quota_name):
        """Ceiling for the quota; None when the package does not define one."""
        quota = self.quotas.filter(quota_name=quota_name).first()
        return quota.limit if quota is not None else None

    def get_feature(self, feature_key):
        return self.features.filter(feature_key=feature_key, is_enabled=True).first()


class PackageFeature(models.Model):
    class FeatureType(models.TextChoices):
        BOOLEAN = 'boolean', 'Boolean'
        INTEGER = 'integer', 'Integer'
        FLOAT = 'float', 'Float'
        STRING = 'string', 'String'

    package = models.ForeignKey(Package, on_delete=models.CASCADE, related_name='features')
    feature_key = models.SlugField(max_length=50)
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    feature_type = models.CharField(max_length=10, choices=FeatureType.choices, default=FeatureType.BOOLEAN)
    value = models.CharField(max_length=255, blank=True)
    is_enabled = models.BooleanField(default=True)
    sort_order = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ['sort_order', 'name']
        constraints = [
            models.UniqueConstraint(fields=['package', 'feature_key'], name='unique_package_feature'),
        ]

    def __str__(self):
        return f'{self.package.name}: {self.name}'

    @property
    def typed_value(self):
        if self.feature_type == self.FeatureType.BOOLEAN:
            return self.value.strip().lower() in ('1', 'true', 'yes', 'on')
        if self.feature_type == self.FeatureType.INTEGER:
            return int(self.value or 0)
        if self.feature_type == self.FeatureType.FLOAT:
            return float(self.value or 0)
        return self.value


class PackageQuota(models.Model):
    """A named ceiling; -1 (or no value) means unlimited."""

    package = models.ForeignKey(Package, on_delete=models.CASCADE, related_name='quotas')
    quota_name = models.CharField(max_length=30, choices=QuotaName.choices)
    limit = models.BigIntegerField(null=True, blank=True)
    unit = models.CharField(max_length=20, default='count')

    class Meta:
        ordering = ['quota_name']
        constraints = [
            models.UniqueConstraint(fields=['package', 'quota_name'], name='unique_package_quota'),
        ]

    def __str__(self):
        return f'{self.package.name}: {self.quota_name}={self.limit}'

    @property
    def is_unlimited(self):
        return is_unlimited(self.limit)


def is_unlimited(limit):
    return limit is None or limit == UNLIMITED


class SubscriptionQuerySet(TenantQuerySet):
    def current(self):
        """Subscriptions that grant access right now, newest first."""
        now = timezone.now()
        return (
            self.filter(status__in=Subscription.LIVE_STATUSES)
            .filter(models.Q(expires_at__isnull=True) | models.Q(expires_at__gt=now))
            .order_by('-created_at')
        )


class Subscription(TenantModelMixin):
    class Status(models.TextChoices):
        ACTIVE = 'active', 'Active'
        TRIALING = 'trialing', 'Trialing'
        PAST_DUE = 'past_due', 'Past due'
        CANCELLED = 'cancelled', 'Cancelled'
        EXPIRED = 'expired', 'Expired'
        INACTIVE = 'inactive', 'Inactive'

    LIVE_STATUSES = (Status.ACTIVE, Status.TRIALING)

    package = models.ForeignKey(Package, on_delete=models.PROTECT, related_name='subscriptions')
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.ACTIVE)
    amount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    currency = models.CharField(max_length=3, default='USD')

    trial_ends_at = models.DateTimeField(null=True, blank=True)
    current_period_start = models.DateTimeField(null=True, blank=True)
    current_period_end = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    expires_at = models.DateTimeField(null=True, blank=True)

    # Opaque ids of the payment processor
    external_subscription_id = models.CharField(max_length=255, blank=True)
    external_customer_id = models.CharField(max_length=255, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = SubscriptionQuerySet.as_manager()

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f'{self.tenant.slug}: {self.package.name} ({self.status})'

    @property
    def is_active(self):
        if self.status not in self.LIVE_STATUSES:
            return False
        return self.expires_at is None or self.expires_at > timezone.now()

    @property
    def on_trial(self):
        return self.status == self.Status.TRIALING and (
            self.trial_ends_at is None or self.trial_ends_at > timezone.now()
        )

    def get_current_usage(self, quota_name):
        usage = self.usage.filter(quota_name=quota_name).first()
        return usage.usage if usage is not None else 0


class SubscriptionUsage(TenantModelMixin):
    """
    Usage counter of one quota. Monotonic within a billing period; only an
    external billing-cycle rollover resets it.
    """

    subscription = models.ForeignKey(Subscription, on_delete=models.CASCADE, related_name='usage')
    quota_name = models.CharField(max_length=30, choices=QuotaName.choices)
    usage = models.BigIntegerField(default=0)
    period_start = models.DateTimeField(default=timezone.now)
    period_end = models.DateTimeField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['subscription', 'quota_name'], name='unique_subscription_usage'),
        ]

    def __str__(self):
        return f'{self.subscription}: {self.quota_name}={self.usage}'
