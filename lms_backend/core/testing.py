"""
Factories and request helpers shared by the app test modules.

Usage:
    tenant = make_tenant('acme')
    user = make_user(tenant, roles=(Role.INSTRUCTOR,))
    self.client.get('/api/courses/', **auth_headers(user))
    self.client.get('/api/tenant/config/', **tenant_headers(tenant))
"""
from itertools import count

from django.utils import timezone

from accounts.models import User
from accounts.roles import Role
from accounts.tokens import issue_tokens
from billing.models import Package, PackageQuota, QuotaName, Subscription
from courses.models import Chapter, Course, Module
from tenants.models import Tenant, TenantSettings

DEFAULT_PASSWORD = 'Secret-pass-123'

_sequence = count(1)


def make_tenant(slug=None, name=None, domain=None, status=Tenant.Status.ACTIVE, **settings_fields):
    slug = slug or f'tenant-{next(_sequence)}'
    tenant = Tenant.objects.create(slug=slug, name=name or slug.title(), domain=domain, status=status)
    TenantSettings.objects.create(tenant=tenant, organization_name=tenant.name, **settings_fields)
    return tenant


def make_user(tenant, email=None, password=DEFAULT_PASSWORD, roles=(Role.STUDENT,), **extra):
    email = email or f'user{next(_sequence)}@example.com'
    extra.setdefault('first_name', 'Test')
    extra.setdefault('last_name', 'User')
    return User.objects.create_user(email, password, tenant=tenant, roles=roles, **extra)


def make_super_admin(email='root@example.com', password=DEFAULT_PASSWORD):
    return User.objects.create_superuser(email, password)


def make_package(slug=None, quotas=None, price='0.00'):
    """quotas: {QuotaName: limit}; -1 or None means unlimited."""
    slug = slug or f'package-{next(_sequence)}'
    package = Package.objects.create(name=slug.title(), slug=slug, price=price)
    for quota_name, limit in (quotas or {}).items():
        PackageQuota.objects.create(package=package, quota_name=QuotaName(quota_name), limit=limit)
    return package


def make_subscription(tenant, package=None, quotas=None, status=Subscription.Status.ACTIVE):
    package = package or make_package(quotas=quotas)
    now = timezone.now()
    return Subscription.objects.create(
        tenant=tenant,
        package=package,
        status=status,
        amount=package.price,
        current_period_start=now,
    )


def make_course(tenant, title=None, published=True, instructor=None, chapters=0, **extra):
    """Course with one module holding `chapters` published chapters."""
    title = title or f'Course {next(_sequence)}'
    course = Course.objects.create(tenant=tenant, title=title, instructor=instructor, **extra)
    if published:
        course.publish()
    if chapters:
        module = Module.objects.create(tenant=tenant, course=course, title='Module 1')
        for position in range(1, chapters + 1):
            Chapter.objects.create(
                tenant=tenant, module=module, title=f'Chapter {position}', sort_order=position,
            )
    return course


def auth_headers(user, **extra):
    """Bearer header with a real access token (carries the tenant claim)."""
    tokens = issue_tokens(user)
    return {'HTTP_AUTHORIZATION': f"Bearer {tokens['access_token']}", **extra}


def tenant_headers(tenant, **extra):
    return {'HTTP_X_TENANT_ID': str(tenant.pk), **extra}
