from django.urls import path

from . import profile_views, views

auth_urlpatterns = [
    path('login/', views.LoginView.as_view(), name='auth-login'),
    path('register/', views.RegisterView.as_view(), name='auth-register'),
    path('refresh/', views.RefreshView.as_view(), name='auth-refresh'),
    path('logout/', views.LogoutView.as_view(), name='auth-logout'),
    path('me/', views.MeView.as_view(), name='auth-me'),
    path('impersonate/', views.ImpersonateView.as_view(), name='auth-impersonate'),
]

profile_urlpatterns = [
    path('', profile_views.ProfileView.as_view(), name='profile'),
    path('password/', profile_views.PasswordChangeView.as_view(), name='profile-password'),
    path('dashboard/', profile_views.DashboardView.as_view(), name='profile-dashboard'),
    path('activity/', profile_views.ActivityView.as_view(), name='profile-activity'),
]
