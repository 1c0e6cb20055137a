"""
Enrollment endpoints.

GET  /api/enrollments/                   list (own, or all for tenant admins)
GET  /api/enrollments/{id}/              detail
POST /api/enrollments/{id}/progress/     update progress (owner)
POST /api/enrollments/{id}/cancel/       cancel (owner)
POST /api/enrollments/{id}/suspend/      suspend (tenant admin)
POST /api/enrollments/{id}/reinstate/    reinstate (tenant admin)
"""
from rest_framework import viewsets
from rest_framework.decorators import action

from accounts.permissions import RoleRequired
from accounts.roles import Operation
from core.responses import success_response
from tenants.mixins import TenantViewSetMixin
from . import services
from .models import Enrollment
from .serializers import EnrollmentSerializer, ProgressSerializer


class EnrollmentViewSet(TenantViewSetMixin, viewsets.GenericViewSet):
    lookup_value_regex = r'\d+'
    queryset = Enrollment.objects.all()
    serializer_class = EnrollmentSerializer
    permission_classes = [RoleRequired]
    operations = {
        'suspend': Operation.ENROLLMENT_MANAGE,
        'reinstate': Operation.ENROLLMENT_MANAGE,
    }

    def get_queryset(self):
        queryset = services.visible_enrollments(self.tenant_context, self.request.user)

        status = self.request.query_params.get('status')
        if status:
            queryset = queryset.filter(status=status)
        course_id = self.request.query_params.get('course_id')
        if course_id and course_id.isdigit():
            queryset = queryset.filter(course_id=course_id)
        return queryset

    def list(self, request):
        page = self.paginate_queryset(self.get_queryset())
        serializer = self.get_serializer(page, many=True)
        return self.paginator.get_paginated_response(serializer.data, 'Enrollments retrieved successfully')

    def retrieve(self, request, pk=None):
        enrollment = self.get_object()
        return success_response(self.get_serializer(enrollment).data, 'Enrollment retrieved successfully')

    @action(detail=True, methods=['post', 'put'])
    def progress(self, request, pk=None):
        enrollment = self.get_object()
        services.ensure_owner(enrollment, request.user)
        serializer = ProgressSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        enrollment = services.update_progress(
            enrollment,
            percentage=serializer.validated_data.get('percentage'),
            chapter_id=serializer.validated_data.get('chapter_id'),
        )
        return success_response(self.get_serializer(enrollment).data, 'Progress updated successfully')

    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        enrollment = self.get_object()
        services.ensure_owner(enrollment, request.user)
        enrollment = services.cancel(enrollment, request=request)
        return success_response(self.get_serializer(enrollment).data, 'Enrollment cancelled successfully')

    @action(detail=True, methods=['post'])
    def suspend(self, request, pk=None):
        enrollment = services.suspend(self.get_object(), request.user, request=request)
        return success_response(self.get_serializer(enrollment).data, 'Enrollment suspended')

    @action(detail=True, methods=['post'])
    def reinstate(self, request, pk=None):
        enrollment = services.reinstate(self.get_object(), request.user, request=request)
        return success_response(self.get_serializer(enrollment).data, 'Enrollment reinstated')
