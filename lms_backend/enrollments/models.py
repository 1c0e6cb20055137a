"""
Enrollment of a user in a course.

Lifecycle:
    active -> completed   (progress reaches 100)
    active -> expired     (expires_at passes)
    active -> cancelled   (by the user)
    active -> suspended   (by a tenant admin), suspended -> active

completed, cancelled and expired are terminal. Transitions are implemented
in enrollments.services; the model only carries state and invariants.
"""
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone

from tenants.mixins import TenantModelMixin, TenantQuerySet

PROGRESS_COMPLETE = Decimal('100.00')


class EnrollmentQuerySet(TenantQuerySet):
    def active(self):
        return self.filter(status=Enrollment.Status.ACTIVE)

    def completed(self):
        return self.filter(status=Enrollment.Status.COMPLETED)

    def due_for_expiry(self, now=None):
        now = now or timezone.now()
        return self.active().filter(expires_at__isnull=False, expires_at__lte=now)


class Enrollment(TenantModelMixin):

    class Status(models.TextChoices):
        ACTIVE = 'active', 'Active'
        COMPLETED = 'completed', 'Completed'
        DROPPED = 'dropped', 'Dropped'
        EXPIRED = 'expired', 'Expired'
        SUSPENDED = 'suspended', 'Suspended'
        CANCELLED = 'cancelled', 'Cancelled'

    TERMINAL_STATUSES = (Status.COMPLETED, Status.CANCELLED, Status.EXPIRED)

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='enrollments')
    course = models.ForeignKey('courses.Course', on_delete=models.CASCADE, related_name='enrollments')
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.ACTIVE, db_index=True)

    enrolled_at = models.DateTimeField(default=timezone.now)
    started_at = models.DateTimeField(null=True, blank=True)
    last_accessed_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    expires_at = models.DateTimeField(null=True, blank=True)
    expired_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    suspended_at = models.DateTimeField(null=True, blank=True)

    progress_percentage = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('0.00'))
    completed_chapters = models.PositiveIntegerField(default=0)
    total_chapters = models.PositiveIntegerField(default=0)
    time_spent_minutes = models.PositiveIntegerField(default=0)
    final_grade = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)

    certificate_issued = models.BooleanField(default=False)
    certificate_id = models.CharField(max_length=64, blank=True)
    certificate_issued_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = EnrollmentQuerySet.as_manager()

    class Meta:
        ordering = ['-enrolled_at']
        constraints = [
            # At most one active enrollment per (tenant, user, course)
            models.UniqueConstraint(
                fields=['tenant', 'user', 'course'],
                condition=Q(status='active'),
                name='unique_active_enrollment',
            ),
            models.CheckConstraint(
                condition=Q(progress_percentage__gte=0) & Q(progress_percentage__lte=100),
                name='enrollment_progress_range',
            ),
            # Progress is the source of truth for completion
            models.CheckConstraint(
                condition=(
                    (Q(status='completed') & Q(progress_percentage=100))
                    | (~Q(status='completed') & Q(progress_percentage__lt=100))
                ),
                name='enrollment_progress_matches_status',
            ),
        ]
        indexes = [
            models.Index(fields=['tenant', 'user', 'status'], name='enrollment_user_status_idx'),
            models.Index(fields=['status', 'expires_at'], name='enrollment_expiry_idx'),
        ]

    def __str__(self):
        return f'{self.user} -> {self.course} ({self.status})'

    @property
    def is_active(self):
        return self.status == self.Status.ACTIVE

    @property
    def is_completed(self):
        return self.status == self.Status.COMPLETED

    @property
    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES

    @property
    def is_due_for_expiry(self):
        return (
            self.status == self.Status.ACTIVE
            and self.expires_at is not None
            and self.expires_at <= timezone.now()
        )

    @property
    def days_remaining(self):
        if self.expires_at is None:
            return None
        return max((self.expires_at - timezone.now()).days, 0)
