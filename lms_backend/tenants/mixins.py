"""
Tenant mixins - reusable pieces for tenant-scoped models and views.
"""
from django.db import models

from core.exceptions import NotFoundError, TenantNotIdentified
from .context import TenantContext


# ═══════════════════════════════════════════════════════════════
# MODEL MIXINS
# ═══════════════════════════════════════════════════════════════

class TenantQuerySet(models.QuerySet):
    """QuerySet with explicit tenant filtering."""

    def for_tenant(self, tenant):
        """Rows of one tenant; no tenant means no rows."""
        if tenant is None:
            return self.none()
        return self.filter(tenant=tenant)

    def get_for_tenant(self, tenant, **lookup):
        """
        Single row of the tenant. Missing and foreign rows are reported
        the same way so ids of other tenants never leak.
        """
        try:
            return self.for_tenant(tenant).get(**lookup)
        except self.model.DoesNotExist:
            raise NotFoundError(f'{self.model._meta.verbose_name.capitalize()} not found')


class TenantManager(models.Manager.from_queryset(TenantQuerySet)):
    pass


class TenantModelMixin(models.Model):
    """
    Abstract mixin - adds a non-null tenant FK.

    Usage:
        class MyModel(TenantModelMixin):
            name = models.CharField(...)

    Rows are stamped by TenantContext.stamp() / the view mixins below;
    saving without a tenant is an error.
    """
    tenant = models.ForeignKey(
        'tenants.Tenant',
        on_delete=models.CASCADE,
        related_name='%(app_label)s_%(class)ss',
        db_index=True,
    )

    objects = TenantManager()

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        if self.tenant_id is None:
            raise ValueError(f'{type(self).__name__} cannot be saved without a tenant')
        super().save(*args, **kwargs)


# ═══════════════════════════════════════════════════════════════
# VIEWSET / VIEW MIXINS
# ═══════════════════════════════════════════════════════════════

class TenantAPIViewMixin:
    """
    Mixin for APIView/GenericAPIView - binds the tenant context after
    authentication and exposes it as self.tenant_context.

    Usage:
        class MyView(TenantAPIViewMixin, GenericAPIView):
            def get(self, request):
                tenant = self.tenant_context.require()
    """

    tenant_required = True

    def initial(self, request, *args, **kwargs):
        super().initial(request, *args, **kwargs)
        context = getattr(request, 'tenant_context', None) or TenantContext.empty()
        context = context.bind_user(request.user)
        # Both the DRF request and the Django request see the bound context
        request.tenant_context = context
        request._request.tenant_context = context
        if self.tenant_required and not context.is_resolved:
            raise TenantNotIdentified()

    @property
    def tenant_context(self):
        return getattr(self.request, 'tenant_context', None) or TenantContext.empty()

    def get_serializer_context(self):
        context = super().get_serializer_context()
        context['tenant_context'] = self.tenant_context
        return context


class TenantViewSetMixin(TenantAPIViewMixin):
    """
    Mixin for DRF ViewSets - filters the queryset by the bound tenant and
    stamps the tenant on created objects, ignoring any client-supplied one.

    Usage:
        class MyViewSet(TenantViewSetMixin, viewsets.ModelViewSet):
            queryset = MyModel.objects.all()
            serializer_class = MySerializer
    """

    def get_queryset(self):
        return self.tenant_context.scope(super().get_queryset())

    def get_object(self):
        queryset = self.filter_queryset(self.get_queryset())
        lookup_url_kwarg = self.lookup_url_kwarg or self.lookup_field
        obj = queryset.get_for_tenant(
            self.tenant_context.tenant,
            **{self.lookup_field: self.kwargs[lookup_url_kwarg]},
        )
        self.check_object_permissions(self.request, obj)
        return obj

    def perform_create(self, serializer):
        serializer.save(tenant=self.tenant_context.require())

    def perform_update(self, serializer):
        # Tenant never changes on update
        serializer.save(tenant=self.tenant_context.require())
