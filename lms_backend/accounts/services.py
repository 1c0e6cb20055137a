"""
Auth / session issuance.

authenticate() and impersonate() return the tokens together with a tenant
context bound to the user's own tenant; the views only translate HTTP.
"""
from dataclasses import dataclass
import logging
import uuid

from django.contrib.auth import get_user_model
from django.contrib.auth.models import update_last_login
from django.db import IntegrityError, transaction
from rest_framework.exceptions import ValidationError
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import RefreshToken

from billing.models import QuotaName
from billing.quotas import consume_quota
from core.exceptions import AuthenticationError, AuthorizationError, NotFoundError
from core.models import AuditLog
from tenants.context import TenantContext
from tenants.models import Tenant
from .roles import Role
from .tokens import issue_tokens

logger = logging.getLogger(__name__)

User = get_user_model()

INVALID_CREDENTIALS_MESSAGE = 'The provided credentials are incorrect.'
INACTIVE_ACCOUNT_MESSAGE = 'Your account is inactive. Please contact support.'
INACTIVE_TENANT_MESSAGE = 'Your organization is currently suspended. Please contact support.'
INVALID_REFRESH_MESSAGE = 'Invalid or expired refresh token.'


@dataclass(frozen=True)
class AuthResult:
    user: object
    context: TenantContext
    tokens: dict
    impersonated_by: object = None

    def to_dict(self, user_data):
        data = {'user': user_data, **self.tokens}
        if self.impersonated_by is not None:
            data['impersonated_by'] = self.impersonated_by.pk
        return data


def resolve_tenant_hint(hint):
    """Tenant by instance, UUID or slug; None when it does not match."""
    if hint is None or hint == '':
        return None
    if isinstance(hint, Tenant):
        return hint
    try:
        return Tenant.objects.filter(pk=uuid.UUID(str(hint))).first()
    except ValueError:
        return Tenant.objects.filter(slug=str(hint)).first()


def authenticate(email, password, tenant_hint=None, request=None):
    """
    Check credentials and issue tokens.

    Unknown email and wrong password fail with the same message; a
    deactivated account (checked only after the password matched) fails
    with a distinct one.
    """
    email = (email or '').strip().lower()
    password = password or ''

    candidates = User.objects.filter(email__iexact=email).select_related('tenant')
    if tenant_hint is not None:
        tenant = resolve_tenant_hint(tenant_hint)
        candidates = candidates.filter(tenant=tenant) if tenant is not None else candidates.none()

    candidates = list(candidates) if email else []
    if not candidates:
        # Equalise timing with the password check of an existing user
        User().set_password(password)
        logger.warning('Failed login: unknown email (tenant_hint=%s)', tenant_hint)
        raise AuthenticationError(INVALID_CREDENTIALS_MESSAGE)

    user = next((candidate for candidate in candidates if candidate.check_password(password)), None)
    if user is None:
        logger.warning('Failed login: wrong password for %s', email)
        raise AuthenticationError(INVALID_CREDENTIALS_MESSAGE)

    if not user.is_active:
        logger.warning('Failed login: inactive account %s', user.pk)
        raise AuthenticationError(INACTIVE_ACCOUNT_MESSAGE)

    if user.tenant is not None and not user.tenant.is_active:
        logger.warning('Failed login: tenant %s is %s', user.tenant.slug, user.tenant.status)
        raise AuthenticationError(INACTIVE_TENANT_MESSAGE)

    update_last_login(None, user)
    AuditLog.log(AuditLog.Action.LOGIN, user=user, request=request)

    return AuthResult(
        user=user,
        context=TenantContext(user.tenant, TenantContext.USER),
        tokens=issue_tokens(user),
    )


def register(context, email, password, first_name='', last_name='', request=None, **profile):
    """
    Create a student in the context tenant. Consumes the max_students quota
    in the same transaction as the insert.
    """
    tenant = context.require()
    email = email.strip().lower()

    try:
        with transaction.atomic():
            if User.objects.for_tenant(tenant).filter(email__iexact=email).exists():
                raise ValidationError({'email': ['The email has already been taken.']})
            consume_quota(tenant, QuotaName.MAX_STUDENTS)
            user = User.objects.create_user(
                email=email,
                password=password,
                tenant=tenant,
                roles=(Role.STUDENT,),
                first_name=first_name,
                last_name=last_name,
                **profile,
            )
    except IntegrityError:
        raise ValidationError({'email': ['The email has already been taken.']})

    logger.info('Registered user %s in tenant %s', user.pk, tenant.slug)
    AuditLog.log(AuditLog.Action.REGISTER, user=user, tenant=tenant, request=request)

    return AuthResult(
        user=user,
        context=TenantContext(tenant, TenantContext.USER),
        tokens=issue_tokens(user),
    )


def refresh(raw_refresh_token):
    """
    Rotate a refresh token: blacklist it and issue a new pair from the
    current user row, so role, tenant and account changes made since the
    old token was issued take effect.
    """
    try:
        old_token = RefreshToken(raw_refresh_token)
    except TokenError:
        raise AuthenticationError(INVALID_REFRESH_MESSAGE)

    user = User.objects.select_related('tenant').filter(pk=old_token.get('user_id')).first()
    if user is None or not user.is_active:
        raise AuthenticationError(INVALID_REFRESH_MESSAGE)
    if user.tenant is not None and not user.tenant.is_active:
        raise AuthenticationError(INACTIVE_TENANT_MESSAGE)

    impersonator = None
    if old_token.get('impersonated_by') is not None:
        impersonator = User.objects.filter(pk=old_token['impersonated_by']).first()
        if impersonator is None or not impersonator.is_super_admin:
            raise AuthenticationError(INVALID_REFRESH_MESSAGE)

    old_token.blacklist()
    return issue_tokens(user, impersonated_by=impersonator)


def logout(user, raw_refresh_token, request=None):
    """Blacklist the refresh token of the user."""
    try:
        token = RefreshToken(raw_refresh_token)
    except TokenError:
        raise AuthenticationError(INVALID_REFRESH_MESSAGE)

    if str(token.get('user_id')) != str(user.pk):
        raise AuthorizationError('This token does not belong to you.')

    try:
        token.blacklist()
    except TokenError:
        raise AuthenticationError(INVALID_REFRESH_MESSAGE)

    AuditLog.log(AuditLog.Action.LOGOUT, user=user, request=request)


def impersonate(actor, target_user_id, request=None):
    """
    Issue tokens for another user. Super admins only; the impersonator's id
    is returned and audit logged.
    """
    if actor is None or not actor.is_authenticated:
        raise AuthenticationError()
    if not actor.is_super_admin:
        logger.warning('Impersonation refused for user %s', actor.pk)
        raise AuthorizationError('Only super administrators can impersonate users.')

    target = User.objects.select_related('tenant').filter(pk=target_user_id).first()
    if target is None:
        raise NotFoundError('User not found')
    if target.is_super_admin:
        raise AuthorizationError('Super administrators cannot be impersonated.')
    if not target.is_active:
        raise AuthenticationError(INACTIVE_ACCOUNT_MESSAGE)

    logger.warning('User %s is impersonating user %s', actor.pk, target.pk)
    AuditLog.log(
        AuditLog.Action.IMPERSONATE,
        user=actor,
        tenant=target.tenant,
        content_object=target,
        description=f'Impersonated {target.email}',
        metadata={'target_user_id': target.pk},
        request=request,
    )

    return AuthResult(
        user=target,
        context=TenantContext(target.tenant, TenantContext.USER),
        tokens=issue_tokens(target, impersonated_by=actor),
        impersonated_by=actor,
    )


def change_password(user, current_password, new_password, request=None):
    if not user.check_password(current_password):
        raise ValidationError({'current_password': ['The current password is incorrect.']})
    user.set_password(new_password)
    user.save(update_fields=['password', 'updated_at'])
    AuditLog.log(AuditLog.Action.PASSWORD_CHANGE, user=user, request=request)
