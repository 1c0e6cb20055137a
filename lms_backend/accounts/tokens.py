"""JWT issuance with tenant and role claims."""
from django.conf import settings
from rest_framework_simplejwt.tokens import RefreshToken


def build_refresh_token(user, impersonated_by=None):
    """
    Refresh token carrying the custom claims. The access token derived
    from it copies them.

    Roles always come from the database, never from a previous token.
    """
    refresh = RefreshToken.for_user(user)
    refresh['tenant_id'] = str(user.tenant_id) if user.tenant_id else None
    role = user.primary_role
    refresh['role'] = role.value if role else None
    refresh['roles'] = sorted(r.value for r in user.roles)
    refresh['email'] = user.email
    if impersonated_by is not None:
        refresh['impersonated_by'] = impersonated_by.pk
    return refresh


def issue_tokens(user, impersonated_by=None):
    refresh = build_refresh_token(user, impersonated_by=impersonated_by)
    return {
        'access_token': str(refresh.access_token),
        'refresh_token': str(refresh),
        'token_type': 'Bearer',
        'expires_in': int(settings.SIMPLE_JWT['ACCESS_TOKEN_LIFETIME'].total_seconds()),
    }
