"""
Profile endpoints of the authenticated user.

GET  /api/profile/              profile with enrollment stats
PUT  /api/profile/              update profile fields
PUT  /api/profile/password/     change password
GET  /api/profile/dashboard/    stats, recent enrollments, recommended courses
GET  /api/profile/activity/     activity timeline (?days=30)
"""
from collections import OrderedDict
from datetime import timedelta

from django.db.models import Count, Q, Sum
from django.utils import timezone
from rest_framework.generics import GenericAPIView
from rest_framework.permissions import IsAuthenticated

from core.models import AuditLog
from core.responses import success_response
from courses.models import Course
from courses.serializers import CourseListSerializer
from enrollments.models import Enrollment
from enrollments.serializers import EnrollmentSerializer
from tenants.mixins import TenantAPIViewMixin
from . import services
from .serializers import PasswordChangeSerializer, ProfileSerializer

DEFAULT_ACTIVITY_DAYS = 30
MAX_ACTIVITY_DAYS = 365
RECENT_ENROLLMENTS = 5
RECOMMENDED_COURSES = 3


def enrollment_stats(user):
    totals = Enrollment.objects.filter(user=user, tenant_id=user.tenant_id).aggregate(
        total=Count('id'),
        completed=Count('id', filter=Q(status=Enrollment.Status.COMPLETED)),
        active=Count('id', filter=Q(status=Enrollment.Status.ACTIVE)),
        certificates=Count('id', filter=Q(certificate_issued=True)),
        minutes=Sum('time_spent_minutes'),
    )
    return {
        'total_enrollments': totals['total'],
        'completed_courses': totals['completed'],
        'active_enrollments': totals['active'],
        'certificates_earned': totals['certificates'],
        'total_study_time_hours': (totals['minutes'] or 0) // 60,
    }


class ProfileView(TenantAPIViewMixin, GenericAPIView):
    permission_classes = [IsAuthenticated]
    tenant_required = False
    serializer_class = ProfileSerializer

    def get(self, request):
        data = self.get_serializer(request.user).data
        data['stats'] = enrollment_stats(request.user)
        return success_response(data, 'Profile retrieved successfully')

    def put(self, request):
        serializer = self.get_serializer(request.user, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        AuditLog.log(
            AuditLog.Action.PROFILE_UPDATE, user=user, request=request,
            metadata={'fields': sorted(serializer.validated_data)},
        )
        return success_response(self.get_serializer(user).data, 'Profile updated successfully')


class PasswordChangeView(TenantAPIViewMixin, GenericAPIView):
    permission_classes = [IsAuthenticated]
    tenant_required = False
    serializer_class = PasswordChangeSerializer

    def put(self, request):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        services.change_password(
            request.user,
            serializer.validated_data['current_password'],
            serializer.validated_data['password'],
            request=request,
        )
        return success_response(None, 'Password changed successfully')


class DashboardView(TenantAPIViewMixin, GenericAPIView):
    permission_classes = [IsAuthenticated]
    tenant_required = False

    def get(self, request):
        user = request.user
        enrollments = Enrollment.objects.filter(user=user, tenant_id=user.tenant_id)

        recent = (
            enrollments.active()
            .select_related('course')
            .order_by('-last_accessed_at', '-enrolled_at')[:RECENT_ENROLLMENTS]
        )
        recommended = (
            Course.objects.filter(tenant_id=user.tenant_id)
            .published()
            .featured()
            .exclude(pk__in=enrollments.values('course_id'))
            .select_related('category', 'instructor')
            .order_by('sort_order', '-published_at')[:RECOMMENDED_COURSES]
        )

        return success_response({
            'stats': enrollment_stats(user),
            'recent_enrollments': EnrollmentSerializer(recent, many=True).data,
            'recommended_courses': CourseListSerializer(recommended, many=True).data,
        }, 'Dashboard data retrieved successfully')


class ActivityView(TenantAPIViewMixin, GenericAPIView):
    permission_classes = [IsAuthenticated]
    tenant_required = False

    def get(self, request):
        days = request.query_params.get('days', '')
        days = min(int(days), MAX_ACTIVITY_DAYS) if days.isdigit() and int(days) > 0 else DEFAULT_ACTIVITY_DAYS
        since = timezone.now() - timedelta(days=days)

        entries = AuditLog.objects.filter(user=request.user, timestamp__gte=since).order_by('-timestamp')

        timeline = OrderedDict()
        for entry in entries:
            date = timezone.localtime(entry.timestamp).date().isoformat()
            day = timeline.setdefault(date, {'date': date, 'activities': []})
            day['activities'].append({
                'type': entry.action,
                'description': entry.description or entry.get_action_display(),
                'metadata': entry.metadata,
                'timestamp': entry.timestamp.isoformat(),
            })

        return success_response(
            {'days': days, 'activity_timeline': list(timeline.values())},
            'Activity history retrieved successfully',
        )
