"""
URL configuration for lms_backend.

/api/auth/        login, register, refresh, logout, me, impersonate
/api/profile/     profile, password, dashboard, activity
/api/tenant/      config (public), settings, branding, subscription
/api/packages/    public package catalogue
/api/             courses, categories, modules, enrollments
/api/health/      health, readiness and liveness probes
"""
from django.contrib import admin
from django.urls import include, path

from accounts.urls import auth_urlpatterns, profile_urlpatterns
from billing.views import PackageListView
from . import health

urlpatterns = [
    path('admin/', admin.site.urls),

    path('api/health/', health.health_check, name='health'),
    path('api/health/ready/', health.ready_check, name='health-ready'),
    path('api/health/live/', health.live_check, name='health-live'),

    path('api/auth/', include(auth_urlpatterns)),
    path('api/profile/', include(profile_urlpatterns)),
    path('api/tenant/', include('tenants.urls')),
    path('api/packages/', PackageListView.as_view(), name='package-list'),
    path('api/', include('courses.urls')),
    path('api/', include('enrollments.urls')),
]

handler404 = 'core.views.not_found'
handler500 = 'core.views.server_error'
