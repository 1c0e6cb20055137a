from django.urls import path

from billing.views import SubscriptionView
from . import views

urlpatterns = [
    path('config/', views.TenantConfigView.as_view(), name='tenant-config'),
    path('settings/', views.TenantSettingsView.as_view(), name='tenant-settings'),
    path('branding/', views.TenantBrandingView.as_view(), name='tenant-branding'),
    path('subscription/', SubscriptionView.as_view(), name='tenant-subscription'),
]
