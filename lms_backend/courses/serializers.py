from django.contrib.auth import get_user_model
from rest_framework import serializers

from accounts.roles import OPERATION_ROLES, Operation
from tenants.serializers import TenantScopedPrimaryKeyRelatedField
from .models import Category, Chapter, Course, Module

User = get_user_model()


class CategorySerializer(serializers.ModelSerializer):
    parent_id = serializers.IntegerField(read_only=True, allow_null=True)
    full_path = serializers.CharField(read_only=True)
    courses_count = serializers.SerializerMethodField()

    class Meta:
        model = Category
        fields = [
            'id', 'parent_id', 'name', 'slug', 'description', 'icon', 'color',
            'sort_order', 'is_active', 'full_path', 'courses_count',
        ]

    def get_courses_count(self, obj):
        return obj.total_course_count()


class CategoryTreeSerializer(serializers.ModelSerializer):
    children = serializers.SerializerMethodField()

    class Meta:
        model = Category
        fields = ['id', 'name', 'slug', 'icon', 'color', 'sort_order', 'children']

    def get_children(self, obj):
        children = [child for child in obj.children.all() if child.is_active]
        return CategoryTreeSerializer(children, many=True, context=self.context).data


class InstructorSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    first_name = serializers.CharField()
    last_name = serializers.CharField()
    avatar_url = serializers.CharField()


class ChapterSerializer(serializers.ModelSerializer):
    is_completed = serializers.SerializerMethodField()

    class Meta:
        model = Chapter
        fields = [
            'id', 'title', 'slug', 'content_type', 'video_url',
            'estimated_duration_minutes', 'is_published', 'is_free_preview', 'sort_order',
            'is_completed',
        ]

    def get_is_completed(self, obj):
        request = self.context.get('request')
        if request is None or not request.user.is_authenticated:
            return False
        completed_ids = self.context.get('completed_chapter_ids')
        if completed_ids is not None:
            return obj.pk in completed_ids
        return obj.is_completed_by(request.user)


class ChapterWriteSerializer(serializers.ModelSerializer):
    class Meta:
        model = Chapter
        fields = [
            'id', 'title', 'slug', 'content_type', 'content', 'video_url',
            'estimated_duration_minutes', 'is_published', 'is_free_preview', 'sort_order',
        ]
        read_only_fields = ['id']
        extra_kwargs = {'slug': {'required': False}}


class ModuleSerializer(serializers.ModelSerializer):
    chapters = serializers.SerializerMethodField()

    class Meta:
        model = Module
        fields = [
            'id', 'title', 'slug', 'description', 'estimated_duration_minutes',
            'is_published', 'sort_order', 'chapters',
        ]
        read_only_fields = ['id', 'chapters']
        extra_kwargs = {'slug': {'required': False}}

    def get_chapters(self, obj):
        chapters = obj.chapters.all()
        if not self.context.get('include_unpublished'):
            chapters = [chapter for chapter in chapters if chapter.is_published]
        return ChapterSerializer(chapters, many=True, context=self.context).data


class CourseListSerializer(serializers.ModelSerializer):
    category = CategorySerializer(read_only=True)
    instructor = InstructorSerializer(read_only=True)

    class Meta:
        model = Course
        fields = [
            'id', 'title', 'slug', 'short_description', 'thumbnail_url',
            'level', 'status', 'price', 'is_free', 'is_featured',
            'estimated_duration_hours', 'language', 'category', 'instructor', 'published_at',
        ]


class CourseDetailSerializer(CourseListSerializer):
    modules = serializers.SerializerMethodField()
    total_chapters = serializers.IntegerField(read_only=True)

    class Meta(CourseListSerializer.Meta):
        fields = CourseListSerializer.Meta.fields + ['description', 'total_chapters', 'modules']

    def get_modules(self, obj):
        modules = obj.modules.prefetch_related('chapters').all()
        if not self.context.get('include_unpublished'):
            modules = [module for module in modules if module.is_published]
        return ModuleSerializer(modules, many=True, context=self.context).data


class CourseWriteSerializer(serializers.ModelSerializer):
    """Create/update; tenant and instructor come from the request context."""
    category_id = TenantScopedPrimaryKeyRelatedField(
        source='category', queryset=Category.objects.all(), required=False, allow_null=True,
    )
    # Only users who may author courses can own one
    instructor_id = TenantScopedPrimaryKeyRelatedField(
        source='instructor',
        queryset=User.objects.filter(
            user_roles__role__in=OPERATION_ROLES[Operation.COURSE_CREATE],
        ).distinct(),
        required=False, allow_null=True,
    )

    class Meta:
        model = Course
        fields = [
            'id', 'title', 'slug', 'short_description', 'description', 'thumbnail_url',
            'level', 'price', 'is_free', 'is_featured', 'estimated_duration_hours', 'language',
            'sort_order', 'category_id', 'instructor_id', 'cms_id',
        ]
        read_only_fields = ['id']
        extra_kwargs = {'slug': {'required': False}}

    def validate(self, attrs):
        if attrs.get('is_free') and attrs.get('price'):
            raise serializers.ValidationError({'price': ['Free courses cannot have a price.']})
        return attrs
