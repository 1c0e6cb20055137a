from django.contrib import admin

from .models import Package, PackageFeature, PackageQuota, Subscription, SubscriptionUsage


class PackageFeatureInline(admin.TabularInline):
    model = PackageFeature
    extra = 0


class PackageQuotaInline(admin.TabularInline):
    model = PackageQuota
    extra = 0


@admin.register(Package)
class PackageAdmin(admin.ModelAdmin):
    list_display = ('name', 'slug', 'price', 'currency', 'billing_cycle', 'is_active')
    list_filter = ('is_active', 'billing_cycle')
    prepopulated_fields = {'slug': ('name',)}
    inlines = [PackageFeatureInline, PackageQuotaInline]


class SubscriptionUsageInline(admin.TabularInline):
    model = SubscriptionUsage
    extra = 0
    readonly_fields = ('updated_at',)


@admin.register(Subscription)
class SubscriptionAdmin(admin.ModelAdmin):
    list_display = ('tenant', 'package', 'status', 'current_period_end', 'expires_at')
    list_filter = ('status', 'package')
    search_fields = ('tenant__name', 'tenant__slug', 'external_subscription_id')
    inlines = [SubscriptionUsageInline]
