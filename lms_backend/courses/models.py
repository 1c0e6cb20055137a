"""
Course catalogue: categories, courses, modules and chapters.

All of them are tenant-scoped; slugs are unique inside a tenant.
"""
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.text import slugify

from tenants.mixins import TenantModelMixin, TenantQuerySet


def unique_slug(instance, value, max_length=200):
    """Slug of `value`, suffixed until it is unique in the tenant."""
    base = slugify(value)[:max_length - 8] or 'item'
    model = type(instance)
    siblings = model.objects.filter(tenant_id=instance.tenant_id)
    if instance.pk:
        siblings = siblings.exclude(pk=instance.pk)
    slug = base
    suffix = 2
    while siblings.filter(slug=slug).exists():
        slug = f'{base}-{suffix}'
        suffix += 1
    return slug


class Category(TenantModelMixin):
    parent = models.ForeignKey(
        'self', on_delete=models.CASCADE, null=True, blank=True, related_name='children',
    )
    name = models.CharField(max_length=150)
    slug = models.SlugField(max_length=200)
    description = models.TextField(blank=True)
    icon = models.CharField(max_length=50, blank=True)
    color = models.CharField(max_length=7, blank=True)
    sort_order = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['sort_order', 'name']
        verbose_name_plural = 'categories'
        constraints = [
            models.UniqueConstraint(fields=['tenant', 'slug'], name='unique_category_slug_per_tenant'),
        ]

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = unique_slug(self, self.name)
        super().save(*args, **kwargs)

    @property
    def full_path(self):
        names = [self.name]
        parent = self.parent
        while parent is not None:
            names.append(parent.name)
            parent = parent.parent
        return ' > '.join(reversed(names))

    def descendant_ids(self):
        ids = [self.pk]
        frontier = [self.pk]
        while frontier:
            frontier = list(
                Category.objects.filter(tenant_id=self.tenant_id, parent_id__in=frontier)
                .values_list('pk', flat=True)
            )
            ids.extend(frontier)
        return ids

    def total_course_count(self):
        """Published courses in this category and all of its subcategories."""
        return Course.objects.published().filter(
            tenant_id=self.tenant_id, category_id__in=self.descendant_ids(),
        ).count()


class CourseQuerySet(TenantQuerySet):
    def published(self):
        return self.filter(status=Course.Status.PUBLISHED, published_at__isnull=False)

    def featured(self):
        return self.filter(is_featured=True)

    def free(self):
        return self.filter(is_free=True)

    def paid(self):
        return self.filter(is_free=False)


class Course(TenantModelMixin):
    class Level(models.TextChoices):
        BEGINNER = 'beginner', 'Beginner'
        INTERMEDIATE = 'intermediate', 'Intermediate'
        ADVANCED = 'advanced', 'Advanced'

    class Status(models.TextChoices):
        DRAFT = 'draft', 'Draft'
        REVIEW = 'review', 'In review'
        PUBLISHED = 'published', 'Published'
        ARCHIVED = 'archived', 'Archived'

    cms_id = models.CharField(max_length=100, blank=True, db_index=True)
    category = models.ForeignKey(
        Category, on_delete=models.SET_NULL, null=True, blank=True, related_name='courses',
    )
    instructor = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
        related_name='taught_courses',
    )
    title = models.CharField(max_length=200)
    slug = models.SlugField(max_length=200)
    short_description = models.CharField(max_length=500, blank=True)
    description = models.TextField(blank=True)
    thumbnail_url = models.URLField(blank=True)
    level = models.CharField(max_length=20, choices=Level.choices, default=Level.BEGINNER)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.DRAFT)
    price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    estimated_duration_hours = models.PositiveIntegerField(default=0)
    language = models.CharField(max_length=10, default='en')
    is_featured = models.BooleanField(default=False)
    is_free = models.BooleanField(default=False)
    sort_order = models.PositiveIntegerField(default=0)
    published_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = CourseQuerySet.as_manager()

    class Meta:
        ordering = ['sort_order', '-created_at']
        constraints = [
            models.UniqueConstraint(fields=['tenant', 'slug'], name='unique_course_slug_per_tenant'),
        ]
        indexes = [
            models.Index(fields=['tenant', 'status'], name='course_tenant_status_idx'),
        ]

    def __str__(self):
        return self.title

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = unique_slug(self, self.title)
        super().save(*args, **kwargs)

    @property
    def is_published(self):
        return self.status == self.Status.PUBLISHED and self.published_at is not None

    def published_chapters(self):
        return Chapter.objects.filter(
            module__course=self, module__is_published=True, is_published=True,
        )

    @property
    def total_chapters(self):
        return self.published_chapters().count()

    def publish(self):
        self.status = self.Status.PUBLISHED
        if self.published_at is None:
            self.published_at = timezone.now()
        self.save(update_fields=['status', 'published_at', 'updated_at'])


class Module(TenantModelMixin):
    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name='modules')
    title = models.CharField(max_length=200)
    slug = models.SlugField(max_length=200)
    description = models.TextField(blank=True)
    estimated_duration_minutes = models.PositiveIntegerField(default=0)
    is_published = models.BooleanField(default=True)
    sort_order = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['sort_order', 'id']

    def __str__(self):
        return f'{self.course.title}: {self.title}'

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = slugify(self.title)[:200] or 'module'
        super().save(*args, **kwargs)


class Chapter(TenantModelMixin):
    class ContentType(models.TextChoices):
        VIDEO = 'video', 'Video'
        TEXT = 'text', 'Text'
        QUIZ = 'quiz', 'Quiz'
        RESOURCE = 'resource', 'Resource'

    module = models.ForeignKey(Module, on_delete=models.CASCADE, related_name='chapters')
    title = models.CharField(max_length=200)
    slug = models.SlugField(max_length=200)
    content_type = models.CharField(max_length=20, choices=ContentType.choices, default=ContentType.TEXT)
    content = models.TextField(blank=True)
    video_url = models.URLField(blank=True)
    estimated_duration_minutes = models.PositiveIntegerField(default=0)
    is_published = models.BooleanField(default=True)
    is_free_preview = models.BooleanField(default=False)
    sort_order = models.PositiveIntegerField(default=0)
    completed_by = models.ManyToManyField(
        settings.AUTH_USER_MODEL, blank=True, related_name='completed_chapters',
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['sort_order', 'id']

    def __str__(self):
        return self.title

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = slugify(self.title)[:200] or 'chapter'
        super().save(*args, **kwargs)

    def mark_completed_by(self, user):
        self.completed_by.add(user)

    def is_completed_by(self, user):
        return self.completed_by.filter(pk=user.pk).exists()
