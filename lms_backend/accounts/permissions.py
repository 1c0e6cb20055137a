"""
Role-based access gate.

Views declare what they do instead of which roles they accept:

    from accounts.permissions import RoleRequired
    from accounts.roles import Operation

    class CourseViewSet(...):
        permission_classes = [RoleRequired]
        operations = {'create': Operation.COURSE_CREATE}

    class SubscriptionView(APIView):
        permission_classes = [RoleRequired]
        operation = Operation.SUBSCRIPTION_VIEW

The permitted roles live in accounts.roles.OPERATION_ROLES. Actions without
an operation only require an authenticated user, unless listed in
`public_actions`.

No user -> 401 (AuthenticationError); user without a permitted role -> 403
(AuthorizationError). The two are never conflated.
"""
import logging

from rest_framework.permissions import BasePermission

from core.exceptions import AuthenticationError, AuthorizationError
from .roles import can_perform

logger = logging.getLogger(__name__)


def require_operation(user, operation):
    """Raise unless the user may perform the operation."""
    if user is None or not user.is_authenticated:
        raise AuthenticationError()
    if not can_perform(user, operation):
        logger.warning('Access denied: user=%s operation=%s roles=%s',
                       user.pk, getattr(operation, 'value', operation), sorted(user.roles))
        raise AuthorizationError()


class RoleRequired(BasePermission):

    def has_permission(self, request, view):
        action = getattr(view, 'action', None) or request.method.lower()
        if action in getattr(view, 'public_actions', ()):
            return True

        operation = getattr(view, 'operations', {}).get(action) or getattr(view, 'operation', None)
        if operation is None:
            if not request.user or not request.user.is_authenticated:
                raise AuthenticationError()
            return True

        require_operation(request.user, operation)
        return True
