from django.contrib import admin

from .models import Enrollment


@admin.register(Enrollment)
class EnrollmentAdmin(admin.ModelAdmin):
    list_display = ('user', 'course', 'tenant', 'status', 'progress_percentage', 'enrolled_at', 'expires_at')
    list_filter = ('status', 'tenant', 'certificate_issued')
    search_fields = ('user__email', 'course__title')
    raw_id_fields = ('user', 'course')
    readonly_fields = ('created_at', 'updated_at', 'certificate_id', 'certificate_issued_at')
