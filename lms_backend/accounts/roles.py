"""
Roles, operations and the static permission table.

Every guarded operation is listed in OPERATION_ROLES with the roles allowed
to perform it. Super admins bypass the table.
"""
from enum import Enum

from django.db import models


class Role(models.TextChoices):
    SUPER_ADMIN = 'super_admin', 'Super admin'
    TENANT_ADMIN = 'tenant_admin', 'Tenant admin'
    INSTRUCTOR = 'instructor', 'Instructor'
    STUDENT = 'student', 'Student'


# Highest first; the first held role is the user's primary role
ROLE_PRIORITY = (
    Role.SUPER_ADMIN,
    Role.TENANT_ADMIN,
    Role.INSTRUCTOR,
    Role.STUDENT,
)


class Operation(str, Enum):
    COURSE_CREATE = 'course.create'
    COURSE_PUBLISH = 'course.publish'
    COURSE_MANAGE_CONTENT = 'course.manage_content'
    COURSE_VIEW_DRAFTS = 'course.view_drafts'
    COURSE_ENROLL = 'course.enroll'
    ENROLLMENT_VIEW_ALL = 'enrollment.view_all'
    ENROLLMENT_MANAGE = 'enrollment.manage'
    SUBSCRIPTION_VIEW = 'subscription.view'
    TENANT_MANAGE = 'tenant.manage'
    USER_IMPERSONATE = 'user.impersonate'


_STAFF = frozenset({Role.TENANT_ADMIN, Role.INSTRUCTOR})

OPERATION_ROLES = {
    Operation.COURSE_CREATE: _STAFF,
    Operation.COURSE_PUBLISH: _STAFF,
    Operation.COURSE_MANAGE_CONTENT: _STAFF,
    Operation.COURSE_VIEW_DRAFTS: _STAFF,
    Operation.COURSE_ENROLL: frozenset({Role.STUDENT, Role.INSTRUCTOR, Role.TENANT_ADMIN}),
    Operation.ENROLLMENT_VIEW_ALL: frozenset({Role.TENANT_ADMIN}),
    Operation.ENROLLMENT_MANAGE: frozenset({Role.TENANT_ADMIN}),
    Operation.SUBSCRIPTION_VIEW: frozenset({Role.TENANT_ADMIN}),
    Operation.TENANT_MANAGE: frozenset({Role.TENANT_ADMIN}),
    # Super admin only
    Operation.USER_IMPERSONATE: frozenset(),
}


def primary_role(roles):
    for role in ROLE_PRIORITY:
        if role in roles:
            return role
    return None


def can_perform(user, operation):
    """True when the authenticated user may perform the operation."""
    if user is None or not user.is_authenticated:
        return False
    if user.is_super_admin:
        return True
    return bool(user.roles & OPERATION_ROLES[Operation(operation)])
