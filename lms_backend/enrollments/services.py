"""
Enrollment lifecycle.

Every transition runs in a transaction on a row locked with
select_for_update(); the partial unique constraint on active enrollments
and the progress/status check constraint back the checks made here.
"""
from datetime import timedelta
from decimal import ROUND_DOWN, Decimal
from functools import partial
import logging
import uuid

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import Q
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from accounts.permissions import require_operation
from accounts.roles import Operation, Role, can_perform
from core.exceptions import (
    AlreadyEnrolledError,
    AuthorizationError,
    InvalidTransitionError,
    NotFoundError,
)
from core.models import AuditLog
from courses.models import Chapter, Course
from tenants.models import FeatureFlag
from .models import PROGRESS_COMPLETE, Enrollment
from .signals import enrollment_completed

logger = logging.getLogger(__name__)

COURSE_NOT_AVAILABLE_MESSAGE = 'Course not found or not available'


def clamp_percentage(value):
    value = Decimal(str(value)).quantize(Decimal('0.01'), rounding=ROUND_DOWN)
    return max(Decimal('0.00'), min(PROGRESS_COMPLETE, value))


def access_period():
    return timedelta(days=getattr(settings, 'ENROLLMENT_ACCESS_DAYS', 180))


# ─────────────────────────────────────────────────────────
# Enroll
# ─────────────────────────────────────────────────────────

def enroll(context, user, course_id, request=None):
    """
    Enroll the user in a published course of the context tenant.

    Fails with NotFoundError when the course is missing, foreign or
    unpublished, and with AlreadyEnrolledError while an active enrollment
    for the same course exists. Enrolling again after cancel, expiry or
    completion is allowed.
    """
    tenant = context.require()
    course = Course.objects.for_tenant(tenant).published().filter(pk=course_id).first()
    if course is None:
        raise NotFoundError(COURSE_NOT_AVAILABLE_MESSAGE)

    if not tenant.feature_enabled(FeatureFlag.SELF_ENROLLMENT) and not can_perform(user, Operation.ENROLLMENT_MANAGE):
        raise AuthorizationError('Self-enrollment is disabled for this organization.')

    now = timezone.now()
    try:
        with transaction.atomic():
            if Enrollment.objects.for_tenant(tenant).active().filter(user=user, course=course).exists():
                raise AlreadyEnrolledError()
            enrollment = Enrollment.objects.create(
                tenant=tenant,
                user=user,
                course=course,
                status=Enrollment.Status.ACTIVE,
                enrolled_at=now,
                expires_at=now + access_period(),
                total_chapters=course.total_chapters,
            )
    except IntegrityError:
        # A concurrent request won the race on the unique active constraint
        raise AlreadyEnrolledError()

    logger.info('User %s enrolled in course %s (tenant=%s)', user.pk, course.pk, tenant.slug)
    AuditLog.log(
        AuditLog.Action.ENROLL, user=user, tenant=tenant, content_object=enrollment,
        description=f'Enrolled in {course.title}', request=request,
    )
    return enrollment


# ─────────────────────────────────────────────────────────
# Progress
# ─────────────────────────────────────────────────────────

def _lock(enrollment):
    return Enrollment.objects.select_for_update().select_related('course', 'user').get(pk=enrollment.pk)


def _expire(enrollment, now):
    enrollment.status = Enrollment.Status.EXPIRED
    enrollment.expired_at = now
    enrollment.save(update_fields=['status', 'expired_at', 'updated_at'])
    AuditLog.log(AuditLog.Action.EXPIRE, user=enrollment.user, tenant=enrollment.tenant, content_object=enrollment)


def _count_completed_chapters(enrollment):
    return enrollment.course.published_chapters().filter(completed_by=enrollment.user).count()


def _issue_certificate(enrollment, now):
    if enrollment.certificate_issued:
        return
    if not enrollment.tenant.feature_enabled(FeatureFlag.CERTIFICATES):
        return
    enrollment.certificate_issued = True
    enrollment.certificate_id = uuid.uuid4().hex
    enrollment.certificate_issued_at = now


def _complete(enrollment, now):
    enrollment.status = Enrollment.Status.COMPLETED
    enrollment.progress_percentage = PROGRESS_COMPLETE
    enrollment.completed_at = now
    _issue_certificate(enrollment, now)


def update_progress(enrollment, percentage=None, chapter_id=None):
    """
    Record progress on an active enrollment.

    - percentage is clamped to [0, 100]
    - chapter_id marks a published chapter of the course as completed by the
      user; without an explicit percentage, progress is derived from the
      completed/total chapter ratio
    - reaching 100 completes the enrollment, stamps completed_at and issues
      the certificate in the same transaction
    - on a completed enrollment, 100 again is a no-op; anything lower is a
      conflict
    - cancelled, expired and suspended enrollments reject updates

    Returns the refreshed enrollment.
    """
    if percentage is None and chapter_id is None:
        raise ValidationError({'percentage': ['Give a percentage or a chapter_id.']})

    now = timezone.now()
    just_completed = False
    expired = False

    with transaction.atomic():
        enrollment = _lock(enrollment)

        if enrollment.is_due_for_expiry:
            _expire(enrollment, now)
            expired = True
        elif enrollment.status == Enrollment.Status.COMPLETED:
            if percentage is not None and clamp_percentage(percentage) < PROGRESS_COMPLETE:
                raise InvalidTransitionError('Progress of a completed enrollment cannot be lowered.')
            if chapter_id is not None:
                _chapter_for(enrollment, chapter_id).mark_completed_by(enrollment.user)
            return enrollment
        elif enrollment.status != Enrollment.Status.ACTIVE:
            raise InvalidTransitionError(f'Cannot update progress of a {enrollment.status} enrollment.')
        else:
            if chapter_id is not None:
                chapter = _chapter_for(enrollment, chapter_id)
                chapter.mark_completed_by(enrollment.user)
                enrollment.completed_chapters = _count_completed_chapters(enrollment)
                enrollment.total_chapters = max(enrollment.total_chapters, enrollment.course.total_chapters)
                AuditLog.log(
                    AuditLog.Action.PROGRESS, user=enrollment.user, tenant=enrollment.tenant,
                    content_object=enrollment, description=f'Completed chapter {chapter.title}',
                    metadata={'chapter_id': chapter.pk},
                )

            if percentage is None:
                total = enrollment.total_chapters
                percentage = (
                    Decimal(enrollment.completed_chapters) * 100 / Decimal(total) if total else Decimal('0')
                )

            value = clamp_percentage(percentage)
            enrollment.started_at = enrollment.started_at or now
            enrollment.last_accessed_at = now
            if value >= PROGRESS_COMPLETE:
                _complete(enrollment, now)
                just_completed = True
            else:
                enrollment.progress_percentage = value
            enrollment.save()

            if just_completed:
                AuditLog.log(
                    AuditLog.Action.COMPLETE, user=enrollment.user, tenant=enrollment.tenant,
                    content_object=enrollment, description=f'Completed {enrollment.course.title}',
                )
                transaction.on_commit(
                    partial(enrollment_completed.send, sender=Enrollment, enrollment=enrollment)
                )

    if expired:
        raise InvalidTransitionError('This enrollment has expired.')

    if just_completed:
        logger.info('Enrollment %s completed (user=%s course=%s)',
                    enrollment.pk, enrollment.user_id, enrollment.course_id)
    return enrollment


def _chapter_for(enrollment, chapter_id):
    chapter = Chapter.objects.filter(
        pk=chapter_id,
        tenant_id=enrollment.tenant_id,
        module__course_id=enrollment.course_id,
        is_published=True,
    ).first()
    if chapter is None:
        raise NotFoundError('Chapter not found')
    return chapter


# ─────────────────────────────────────────────────────────
# Cancel / suspend / expire
# ─────────────────────────────────────────────────────────

def cancel(enrollment, request=None):
    with transaction.atomic():
        enrollment = _lock(enrollment)
        if enrollment.status == Enrollment.Status.COMPLETED:
            raise InvalidTransitionError('Cannot cancel a completed enrollment')
        if enrollment.status != Enrollment.Status.ACTIVE:
            raise InvalidTransitionError(f'Cannot cancel a {enrollment.status} enrollment')
        enrollment.status = Enrollment.Status.CANCELLED
        enrollment.cancelled_at = timezone.now()
        enrollment.save(update_fields=['status', 'cancelled_at', 'updated_at'])

    AuditLog.log(
        AuditLog.Action.CANCEL, user=enrollment.user, tenant=enrollment.tenant,
        content_object=enrollment, request=request,
    )
    return enrollment


def suspend(enrollment, actor, request=None):
    require_operation(actor, Operation.ENROLLMENT_MANAGE)
    with transaction.atomic():
        enrollment = _lock(enrollment)
        if enrollment.status != Enrollment.Status.ACTIVE:
            raise InvalidTransitionError(f'Cannot suspend a {enrollment.status} enrollment')
        enrollment.status = Enrollment.Status.SUSPENDED
        enrollment.suspended_at = timezone.now()
        enrollment.save(update_fields=['status', 'suspended_at', 'updated_at'])

    AuditLog.log(
        AuditLog.Action.SUSPEND, user=actor, tenant=enrollment.tenant,
        content_object=enrollment, metadata={'student_id': enrollment.user_id}, request=request,
    )
    return enrollment


def reinstate(enrollment, actor, request=None):
    require_operation(actor, Operation.ENROLLMENT_MANAGE)
    try:
        with transaction.atomic():
            enrollment = _lock(enrollment)
            if enrollment.status != Enrollment.Status.SUSPENDED:
                raise InvalidTransitionError(f'Cannot reinstate a {enrollment.status} enrollment')
            enrollment.status = Enrollment.Status.ACTIVE
            enrollment.suspended_at = None
            enrollment.save(update_fields=['status', 'suspended_at', 'updated_at'])
    except IntegrityError:
        # The user re-enrolled while suspended
        raise AlreadyEnrolledError('The user already has an active enrollment in this course.')

    AuditLog.log(
        AuditLog.Action.REINSTATE, user=actor, tenant=enrollment.tenant,
        content_object=enrollment, metadata={'student_id': enrollment.user_id}, request=request,
    )
    return enrollment


def expire_due_enrollments(now=None):
    """Expire every active enrollment whose access period has ended."""
    now = now or timezone.now()
    expired = 0
    for pk in Enrollment.objects.due_for_expiry(now).values_list('pk', flat=True):
        with transaction.atomic():
            enrollment = Enrollment.objects.select_for_update().filter(pk=pk).first()
            if enrollment is None or not enrollment.is_due_for_expiry:
                continue
            _expire(enrollment, now)
            expired += 1
    if expired:
        logger.info('Expired %s enrollments', expired)
    return expired


# ─────────────────────────────────────────────────────────
# Visibility
# ─────────────────────────────────────────────────────────

def visible_enrollments(context, user):
    """
    Tenant admins see every enrollment of the tenant, instructors also see
    enrollments in their own courses, everybody else only their own.
    """
    queryset = Enrollment.objects.for_tenant(context.tenant).select_related('course', 'user')
    if can_perform(user, Operation.ENROLLMENT_VIEW_ALL):
        return queryset
    if user.has_role(Role.INSTRUCTOR):
        return queryset.filter(Q(user=user) | Q(course__instructor=user))
    return queryset.filter(user=user)


def get_visible_enrollment(context, user, pk):
    return visible_enrollments(context, user).get_for_tenant(context.tenant, pk=pk)


def ensure_owner(enrollment, user):
    if enrollment.user_id != user.pk:
        raise AuthorizationError('Only the enrolled user can change this enrollment.')
