"""
Authentication backend for the Django admin and session logins.

Email is unique per tenant, so a bare email may match several accounts;
the first active account whose password matches wins.
"""
from django.contrib.auth import get_user_model
from django.contrib.auth.backends import ModelBackend

User = get_user_model()


class TenantEmailBackend(ModelBackend):

    def authenticate(self, request, username=None, password=None, tenant=None, **kwargs):
        email = kwargs.get(User.USERNAME_FIELD) or username
        if not email or password is None:
            return None

        candidates = User.objects.filter(email__iexact=email.strip())
        if tenant is not None:
            candidates = candidates.filter(tenant=tenant)

        matched = False
        for user in candidates:
            matched = True
            if user.check_password(password) and self.user_can_authenticate(user):
                return user

        if not matched:
            # Run the hasher once to reduce the timing difference between
            # existing and nonexistent users (same as ModelBackend).
            User().set_password(password)
        return None
