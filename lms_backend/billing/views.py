from rest_framework.generics import GenericAPIView
from rest_framework.permissions import AllowAny

from accounts.permissions import RoleRequired
from accounts.roles import Operation
from core.exceptions import NotFoundError
from core.responses import success_response
from tenants.mixins import TenantAPIViewMixin
from .models import Package
from .quotas import current_subscription
from .serializers import PackageSerializer, SubscriptionSerializer


class PackageListView(GenericAPIView):
    """
    GET /api/packages/

    Public package catalogue (shared by all tenants).
    """
    permission_classes = [AllowAny]
    authentication_classes = []
    serializer_class = PackageSerializer

    def get(self, request):
        packages = Package.objects.filter(is_active=True).prefetch_related('features', 'quotas')
        serializer = self.get_serializer(packages, many=True)
        return success_response(serializer.data, 'Packages retrieved successfully')


class SubscriptionView(TenantAPIViewMixin, GenericAPIView):
    """
    GET /api/tenant/subscription/

    Current subscription of the tenant with per-quota usage (tenant admins).
    """
    permission_classes = [RoleRequired]
    operation = Operation.SUBSCRIPTION_VIEW
    serializer_class = SubscriptionSerializer

    def get(self, request):
        subscription = current_subscription(self.tenant_context.require())
        if subscription is None:
            raise NotFoundError('No active subscription')
        return success_response(self.get_serializer(subscription).data, 'Subscription retrieved successfully')
