"""
Course authoring.

Creation is gated by the max_courses quota: the quota is consumed in the
same transaction as the insert, so a refusal creates nothing.
"""
import logging

from django.db import transaction
from rest_framework.exceptions import ValidationError

from accounts.permissions import require_operation
from accounts.roles import Operation, Role, can_perform
from billing.models import QuotaName
from billing.quotas import consume_quota
from core.exceptions import AuthorizationError
from core.models import AuditLog
from .models import Chapter, Course, Module, unique_slug

logger = logging.getLogger(__name__)


def can_manage(user, course):
    """Tenant admins manage every course, instructors only their own."""
    if not can_perform(user, Operation.COURSE_MANAGE_CONTENT):
        return False
    if user.is_super_admin or user.has_role(Role.TENANT_ADMIN):
        return True
    return course.instructor_id == user.pk


def ensure_can_manage(user, course):
    require_operation(user, Operation.COURSE_MANAGE_CONTENT)
    if not can_manage(user, course):
        raise AuthorizationError('You can only manage your own courses.')


def create_course(context, user, data, request=None):
    require_operation(user, Operation.COURSE_CREATE)
    tenant = context.require()

    data = dict(data)
    slug = data.pop('slug', '') or ''
    instructor = data.pop('instructor', None)
    is_admin = user.is_super_admin or user.has_role(Role.TENANT_ADMIN)
    if instructor is None or not is_admin:
        # Instructors always own what they create
        instructor = user if user.tenant_id == tenant.pk else None
    elif instructor.tenant_id != tenant.pk or not can_perform(instructor, Operation.COURSE_CREATE):
        raise ValidationError({'instructor_id': ['The course owner must be an instructor of this organization.']})

    with transaction.atomic():
        consume_quota(tenant, QuotaName.MAX_COURSES)
        course = Course(tenant=tenant, instructor=instructor, **data)
        course.slug = unique_slug(course, slug or course.title)
        course.save()

    logger.info('Course %s created in tenant %s by user %s', course.pk, tenant.slug, user.pk)
    AuditLog.log(
        AuditLog.Action.COURSE_CREATE, user=user, tenant=tenant, content_object=course,
        description=f'Created course {course.title}', request=request,
    )
    return course


def publish_course(user, course, request=None):
    require_operation(user, Operation.COURSE_PUBLISH)
    ensure_can_manage(user, course)
    course.publish()
    AuditLog.log(
        AuditLog.Action.COURSE_PUBLISH, user=user, tenant=course.tenant, content_object=course,
        description=f'Published course {course.title}', request=request,
    )
    return course


def add_module(user, course, data):
    ensure_can_manage(user, course)
    return Module.objects.create(tenant=course.tenant, course=course, **data)


def add_chapter(user, module, data):
    ensure_can_manage(user, module.course)
    return Chapter.objects.create(tenant=module.tenant, module=module, **data)
