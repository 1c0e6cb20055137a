from django.contrib import admin

from .middleware import TenantMiddleware
from .models import Tenant, TenantBranding, TenantIntegration, TenantSettings


class TenantSettingsInline(admin.StackedInline):
    model = TenantSettings
    extra = 0


class TenantBrandingInline(admin.StackedInline):
    model = TenantBranding
    extra = 0


class TenantIntegrationInline(admin.TabularInline):
    model = TenantIntegration
    extra = 0
    readonly_fields = ('last_sync_at', 'sync_status')


@admin.register(Tenant)
class TenantAdmin(admin.ModelAdmin):
    list_display = ('name', 'slug', 'domain', 'status', 'created_at')
    list_filter = ('status',)
    search_fields = ('name', 'slug', 'domain')
    readonly_fields = ('id', 'created_at', 'updated_at')
    prepopulated_fields = {'slug': ('name',)}
    inlines = [TenantSettingsInline, TenantBrandingInline, TenantIntegrationInline]

    fieldsets = (
        ('General', {
            'fields': ('id', 'name', 'slug', 'domain', 'status')
        }),
        ('Dates', {
            'fields': ('created_at', 'updated_at')
        }),
    )

    def save_model(self, request, obj, form, change):
        super().save_model(request, obj, form, change)
        TenantMiddleware.clear_cache()
