"""
Django system checks for tenant isolation.

Run on `manage.py check`, `runserver` and deploys. They warn when an API
view serving tenant-scoped data does not bind the tenant context, or when
a tenant FK is nullable.
"""
import importlib
import inspect

from django.apps import apps
from django.core.checks import Tags, Warning, register
from django.core.exceptions import FieldDoesNotExist

# Modules whose API views must bind the tenant context
TENANT_VIEW_MODULES = [
    'courses.views',
    'enrollments.views',
    'billing.views',
    'tenants.views',
]

# Views that intentionally work without tenant binding
EXEMPT_VIEWS = {
    'PackageListView',
}

# Models whose tenant FK is legitimately optional
NULLABLE_TENANT_MODELS = {
    'User',       # platform super admins have no tenant
    'AuditLog',   # platform-level events
}


@register(Tags.security)
def check_views_bind_tenant(app_configs, **kwargs):
    from rest_framework.views import APIView

    from tenants.mixins import TenantAPIViewMixin

    errors = []
    for module_path in TENANT_VIEW_MODULES:
        module = importlib.import_module(module_path)
        for name, attr in inspect.getmembers(module, inspect.isclass):
            if (
                issubclass(attr, APIView)
                and attr.__module__ == module.__name__
                and name not in EXEMPT_VIEWS
                and not issubclass(attr, TenantAPIViewMixin)
            ):
                errors.append(
                    Warning(
                        f'{name} ({module_path}) does not use a tenant view mixin.',
                        hint=(
                            'Add TenantAPIViewMixin or TenantViewSetMixin, or list the view '
                            'in EXEMPT_VIEWS in tenants/checks.py if it is platform-wide.'
                        ),
                        id='tenants.W001',
                    )
                )
    return errors


@register(Tags.security)
def check_tenant_fk_not_nullable(app_configs, **kwargs):
    errors = []
    for model in apps.get_models():
        if model.__name__ in NULLABLE_TENANT_MODELS:
            continue
        try:
            field = model._meta.get_field('tenant')
        except FieldDoesNotExist:
            continue
        if field.is_relation and not field.one_to_one and field.null:
            errors.append(
                Warning(
                    f'{model.__name__}.tenant is nullable.',
                    hint='Rows without a tenant can leak across organizations.',
                    id='tenants.W002',
                )
            )
    return errors
