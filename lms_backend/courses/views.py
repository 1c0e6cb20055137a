"""
Course catalogue endpoints.

GET  /api/courses/                      published courses (level, category_id, is_free, search)
GET  /api/courses/featured/             featured courses (limit)
GET  /api/courses/my-courses/           caller's enrollments (status)
GET  /api/courses/{id}/                 detail with modules, chapters and caller's enrollment
POST /api/courses/                      create (instructor / tenant admin, quota gated)
POST /api/courses/{id}/publish/         publish
POST /api/courses/{id}/enroll/          enroll the caller
POST /api/courses/{id}/modules/         add a module
POST /api/modules/{id}/chapters/        add a chapter

GET  /api/categories/                   list (parent_id, active_only)
GET  /api/categories/tree/              nested tree of active categories
GET  /api/categories/{id}/              detail
GET  /api/categories/{id}/courses/      courses of the category and its subcategories
"""
from django.db.models import Count, Q
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.generics import GenericAPIView

from accounts.permissions import RoleRequired
from accounts.roles import Operation
from core.exceptions import NotFoundError
from core.pagination import paginate
from core.responses import created_response, success_response
from enrollments import services as enrollment_services
from enrollments.models import Enrollment
from enrollments.serializers import EnrollmentSerializer
from tenants.mixins import TenantAPIViewMixin, TenantViewSetMixin
from . import services
from .models import Category, Course, Module
from .serializers import (
    CategorySerializer,
    CategoryTreeSerializer,
    ChapterWriteSerializer,
    CourseDetailSerializer,
    CourseListSerializer,
    CourseWriteSerializer,
    ModuleSerializer,
)

DEFAULT_FEATURED_LIMIT = 6
CATEGORY_COURSES_PER_PAGE = 12

CATEGORY_SORTS = {
    'newest': ['-published_at'],
    'oldest': ['published_at'],
    'title': ['title'],
    'price': ['price'],
}


def _truthy(value):
    return str(value).lower() in ('1', 'true', 'yes')


class CourseViewSet(TenantViewSetMixin, viewsets.GenericViewSet):
    lookup_value_regex = r'\d+'
    queryset = Course.objects.select_related('category', 'instructor')
    serializer_class = CourseListSerializer
    permission_classes = [RoleRequired]
    public_actions = ('list', 'retrieve', 'featured')
    operations = {
        'create': Operation.COURSE_CREATE,
        'publish': Operation.COURSE_PUBLISH,
        'enroll': Operation.COURSE_ENROLL,
        'modules': Operation.COURSE_MANAGE_CONTENT,
    }

    def list(self, request):
        queryset = self.get_queryset().published()
        params = request.query_params

        if params.get('level'):
            queryset = queryset.filter(level=params['level'])
        if params.get('category_id', '').isdigit():
            queryset = queryset.filter(category_id=params['category_id'])
        if params.get('is_free') not in (None, ''):
            queryset = queryset.filter(is_free=_truthy(params['is_free']))
        search = params.get('search', '').strip()
        if search:
            queryset = queryset.filter(
                Q(title__icontains=search)
                | Q(short_description__icontains=search)
                | Q(description__icontains=search)
            )

        page = self.paginate_queryset(queryset)
        serializer = self.get_serializer(page, many=True)
        return self.paginator.get_paginated_response(serializer.data, 'Courses retrieved successfully')

    @action(detail=False, methods=['get'])
    def featured(self, request):
        limit = request.query_params.get('limit', '')
        limit = min(int(limit), 50) if limit.isdigit() and int(limit) > 0 else DEFAULT_FEATURED_LIMIT
        courses = self.get_queryset().published().featured().order_by('sort_order', '-published_at')[:limit]
        return success_response(self.get_serializer(courses, many=True).data, 'Featured courses retrieved successfully')

    @action(detail=False, methods=['get'], url_path='my-courses')
    def my_courses(self, request):
        queryset = (
            Enrollment.objects.for_tenant(self.tenant_context.tenant)
            .filter(user=request.user)
            .select_related('course')
        )
        status = request.query_params.get('status')
        if status:
            queryset = queryset.filter(status=status)
        return paginate(self, queryset, EnrollmentSerializer, 'Enrolled courses retrieved successfully')

    def retrieve(self, request, pk=None):
        course = self.get_object()
        manager = request.user.is_authenticated and services.can_manage(request.user, course)
        if not course.is_published and not manager:
            raise NotFoundError('Course not found or not available')

        context = self.get_serializer_context()
        context['include_unpublished'] = manager
        enrollment = None
        if request.user.is_authenticated:
            enrollment = (
                Enrollment.objects.for_tenant(self.tenant_context.tenant)
                .filter(user=request.user, course=course)
                .order_by('-enrolled_at')
                .first()
            )
            context['completed_chapter_ids'] = set(
                course.published_chapters().filter(completed_by=request.user).values_list('pk', flat=True)
            )

        data = CourseDetailSerializer(course, context=context).data
        data['enrollment'] = EnrollmentSerializer(enrollment).data if enrollment else None
        return success_response(data, 'Course retrieved successfully')

    def create(self, request):
        serializer = CourseWriteSerializer(data=request.data, context=self.get_serializer_context())
        serializer.is_valid(raise_exception=True)
        course = services.create_course(self.tenant_context, request.user, serializer.validated_data, request=request)
        return created_response(
            CourseDetailSerializer(course, context=self.get_serializer_context()).data,
            'Course created successfully',
        )

    @action(detail=True, methods=['post'])
    def publish(self, request, pk=None):
        course = services.publish_course(request.user, self.get_object(), request=request)
        return success_response(self.get_serializer(course).data, 'Course published successfully')

    @action(detail=True, methods=['post'])
    def enroll(self, request, pk=None):
        enrollment = enrollment_services.enroll(self.tenant_context, request.user, pk, request=request)
        return created_response(EnrollmentSerializer(enrollment).data, 'Successfully enrolled in course')

    @action(detail=True, methods=['post'])
    def modules(self, request, pk=None):
        course = self.get_object()
        serializer = ModuleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        module = services.add_module(request.user, course, serializer.validated_data)
        return created_response(ModuleSerializer(module, context={'include_unpublished': True}).data,
                                'Module created successfully')


class ModuleChaptersView(TenantAPIViewMixin, GenericAPIView):
    """POST /api/modules/{id}/chapters/"""
    permission_classes = [RoleRequired]
    operation = Operation.COURSE_MANAGE_CONTENT
    serializer_class = ChapterWriteSerializer

    def post(self, request, pk):
        module = Module.objects.select_related('course').get_for_tenant(self.tenant_context.tenant, pk=pk)
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        chapter = services.add_chapter(request.user, module, serializer.validated_data)
        return created_response(self.get_serializer(chapter).data, 'Chapter created successfully')


class CategoryViewSet(TenantViewSetMixin, viewsets.GenericViewSet):
    lookup_value_regex = r'\d+'
    queryset = Category.objects.select_related('parent')
    serializer_class = CategorySerializer
    permission_classes = [RoleRequired]
    public_actions = ('list', 'retrieve', 'tree', 'courses')

    def list(self, request):
        queryset = self.get_queryset()
        params = request.query_params

        parent_id = params.get('parent_id')
        if parent_id in ('null', '0'):
            queryset = queryset.filter(parent__isnull=True)
        elif parent_id and parent_id.isdigit():
            queryset = queryset.filter(parent_id=parent_id)

        if _truthy(params.get('active_only', 'true')):
            queryset = queryset.filter(is_active=True)

        return success_response(self.get_serializer(queryset, many=True).data, 'Categories retrieved successfully')

    @action(detail=False, methods=['get'])
    def tree(self, request):
        roots = self.get_queryset().filter(parent__isnull=True, is_active=True).prefetch_related('children')
        serializer = CategoryTreeSerializer(roots, many=True, context=self.get_serializer_context())
        return success_response(serializer.data, 'Category tree retrieved successfully')

    def retrieve(self, request, pk=None):
        category = self.get_object()
        data = self.get_serializer(category).data
        data['children'] = CategorySerializer(
            category.children.filter(is_active=True), many=True, context=self.get_serializer_context(),
        ).data
        return success_response(data, 'Category retrieved successfully')

    @action(detail=True, methods=['get'])
    def courses(self, request, pk=None):
        category = self.get_object()
        params = request.query_params

        queryset = (
            Course.objects.for_tenant(self.tenant_context.tenant)
            .published()
            .filter(category_id__in=category.descendant_ids())
            .select_related('category', 'instructor')
        )
        if params.get('level'):
            queryset = queryset.filter(level=params['level'])
        price_type = params.get('price_type')
        if price_type == 'free':
            queryset = queryset.free()
        elif price_type == 'paid':
            queryset = queryset.paid()

        sort = params.get('sort', 'newest')
        if sort == 'popular':
            queryset = queryset.annotate(enrollments_count=Count('enrollments')).order_by('-enrollments_count', 'title')
        else:
            queryset = queryset.order_by(*CATEGORY_SORTS.get(sort, CATEGORY_SORTS['newest']))

        return paginate(
            self, queryset, CourseListSerializer, 'Category courses retrieved successfully',
            page_size=CATEGORY_COURSES_PER_PAGE,
        )
