from django.contrib import admin

from .models import AuditLog


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ('timestamp', 'action', 'user', 'tenant', 'description', 'ip_address')
    list_filter = ('action', 'tenant')
    search_fields = ('user__email', 'description')
    readonly_fields = (
        'tenant', 'user', 'action', 'content_type', 'object_id', 'description',
        'metadata', 'ip_address', 'user_agent', 'timestamp',
    )
    date_hierarchy = 'timestamp'

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
