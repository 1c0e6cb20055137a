from django.conf import settings
from django.contrib.contenttypes.fields import GenericForeignKey
from django.contrib.contenttypes.models import ContentType
from django.db import models


class AuditLog(models.Model):
    """
    Audit trail of security-relevant and lifecycle actions.

    Tenant is nullable: platform-level events (super admin logins,
    impersonation of users across tenants) are not bound to one tenant.
    """

    class Action(models.TextChoices):
        LOGIN = 'login', 'Login'
        LOGOUT = 'logout', 'Logout'
        REGISTER = 'register', 'Register'
        IMPERSONATE = 'impersonate', 'Impersonate'
        PASSWORD_CHANGE = 'password_change', 'Password change'
        PROFILE_UPDATE = 'profile_update', 'Profile update'
        COURSE_CREATE = 'course_create', 'Course created'
        COURSE_PUBLISH = 'course_publish', 'Course published'
        ENROLL = 'enroll', 'Enrolled'
        PROGRESS = 'progress', 'Progress updated'
        COMPLETE = 'complete', 'Course completed'
        CANCEL = 'cancel', 'Enrollment cancelled'
        SUSPEND = 'suspend', 'Enrollment suspended'
        REINSTATE = 'reinstate', 'Enrollment reinstated'
        EXPIRE = 'expire', 'Enrollment expired'

    tenant = models.ForeignKey(
        'tenants.Tenant',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='audit_logs',
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='audit_logs',
        help_text='User who performed the action',
    )
    action = models.CharField(max_length=32, choices=Action.choices, db_index=True)

    content_type = models.ForeignKey(ContentType, on_delete=models.CASCADE, null=True, blank=True)
    object_id = models.PositiveBigIntegerField(null=True, blank=True)
    content_object = GenericForeignKey('content_type', 'object_id')

    description = models.TextField(blank=True)
    # Open-ended per-action payload (ids, old/new values)
    metadata = models.JSONField(default=dict, blank=True)

    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True)
    timestamp = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ['-timestamp']
        indexes = [
            models.Index(fields=['tenant', 'user', '-timestamp'], name='audit_tenant_user_idx'),
            models.Index(fields=['content_type', 'object_id'], name='audit_content_idx'),
        ]

    def __str__(self):
        user_str = self.user.email if self.user else 'anonymous'
        return f"{user_str} - {self.get_action_display()} at {self.timestamp}"

    @classmethod
    def log(cls, action, user=None, tenant=None, content_object=None, description='',
            metadata=None, request=None):
        """
        Shortcut for writing an entry.

        AuditLog.log(
            AuditLog.Action.ENROLL,
            user=user,
            tenant=enrollment.tenant,
            content_object=enrollment,
            description=f'Enrolled in {course.title}',
        )
        """
        if tenant is None and user is not None:
            tenant = getattr(user, 'tenant', None)

        log_data = {
            'user': user,
            'tenant': tenant,
            'action': action,
            'description': description,
            'metadata': metadata or {},
        }

        if content_object is not None:
            log_data['content_object'] = content_object

        if request is not None:
            x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
            if x_forwarded_for:
                ip = x_forwarded_for.split(',')[0].strip()
            else:
                ip = request.META.get('REMOTE_ADDR')
            log_data['ip_address'] = ip
            log_data['user_agent'] = request.META.get('HTTP_USER_AGENT', '')[:500]

        return cls.objects.create(**log_data)
