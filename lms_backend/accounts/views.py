"""
Auth endpoints: login, register, refresh, logout, me, impersonate.
"""
import logging

from rest_framework.generics import GenericAPIView
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.throttling import ScopedRateThrottle

from core.responses import created_response, success_response
from tenants.mixins import TenantAPIViewMixin
from . import services
from .permissions import RoleRequired
from .roles import Operation
from .serializers import (
    ImpersonateSerializer,
    LoginSerializer,
    RefreshSerializer,
    RegisterSerializer,
    UserSerializer,
)

logger = logging.getLogger(__name__)


class LoginView(TenantAPIViewMixin, GenericAPIView):
    """
    POST /api/auth/login/

    Body: email, password, optional tenant_id (UUID or slug). When the
    request resolved a tenant (domain or header) it is used as the hint.
    """
    permission_classes = [AllowAny]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'login'
    tenant_required = False
    serializer_class = LoginSerializer

    def post(self, request):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        tenant_hint = serializer.validated_data.get('tenant_id') or self.tenant_context.tenant
        result = services.authenticate(
            serializer.validated_data['email'],
            serializer.validated_data['password'],
            tenant_hint=tenant_hint,
            request=request,
        )
        return success_response(
            result.to_dict(UserSerializer(result.user).data),
            'Login successful',
        )


class RegisterView(TenantAPIViewMixin, GenericAPIView):
    """
    POST /api/auth/register/

    Creates a student in the resolved tenant.
    """
    permission_classes = [AllowAny]
    serializer_class = RegisterSerializer

    def post(self, request):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        data.pop('password_confirmation')

        result = services.register(self.tenant_context, request=request, **data)
        return created_response(
            result.to_dict(UserSerializer(result.user).data),
            'Registration successful',
        )


class RefreshView(GenericAPIView):
    """POST /api/auth/refresh/"""
    permission_classes = [AllowAny]
    authentication_classes = []
    serializer_class = RefreshSerializer

    def post(self, request):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        tokens = services.refresh(serializer.validated_data['refresh_token'])
        return success_response(tokens, 'Token refreshed successfully')


class LogoutView(GenericAPIView):
    """POST /api/auth/logout/ - blacklists the given refresh token."""
    permission_classes = [IsAuthenticated]
    serializer_class = RefreshSerializer

    def post(self, request):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        services.logout(request.user, serializer.validated_data['refresh_token'], request=request)
        return success_response(None, 'Logout successful')


class MeView(TenantAPIViewMixin, GenericAPIView):
    """GET /api/auth/me/ - current user with the tenant's frontend config."""
    permission_classes = [IsAuthenticated]
    tenant_required = False
    serializer_class = UserSerializer

    def get(self, request):
        tenant = request.user.tenant or self.tenant_context.tenant
        return success_response({
            'user': self.get_serializer(request.user).data,
            'tenant': tenant.to_frontend_config() if tenant is not None else None,
        })


class ImpersonateView(GenericAPIView):
    """
    POST /api/auth/impersonate/

    Super admins only. Returns tokens for the target user and the id of the
    impersonator.
    """
    permission_classes = [RoleRequired]
    operation = Operation.USER_IMPERSONATE
    serializer_class = ImpersonateSerializer

    def post(self, request):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = services.impersonate(request.user, serializer.validated_data['user_id'], request=request)
        return success_response(
            result.to_dict(UserSerializer(result.user).data),
            'Impersonation started',
        )
