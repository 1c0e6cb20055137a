from django.contrib import admin

from .models import Category, Chapter, Course, Module


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ('name', 'tenant', 'parent', 'sort_order', 'is_active')
    list_filter = ('tenant', 'is_active')
    search_fields = ('name', 'slug')


class ModuleInline(admin.TabularInline):
    model = Module
    extra = 0
    fields = ('title', 'sort_order', 'is_published')


@admin.register(Course)
class CourseAdmin(admin.ModelAdmin):
    list_display = ('title', 'tenant', 'status', 'level', 'instructor', 'is_featured', 'published_at')
    list_filter = ('tenant', 'status', 'level', 'is_featured', 'is_free')
    search_fields = ('title', 'slug', 'cms_id')
    raw_id_fields = ('instructor', 'category')
    inlines = [ModuleInline]


class ChapterInline(admin.TabularInline):
    model = Chapter
    extra = 0
    fields = ('title', 'content_type', 'sort_order', 'is_published')


@admin.register(Module)
class ModuleAdmin(admin.ModelAdmin):
    list_display = ('title', 'course', 'tenant', 'sort_order', 'is_published')
    list_filter = ('tenant',)
    inlines = [ChapterInline]
