from django.urls import path
from rest_framework.routers import SimpleRouter

from .views import CategoryViewSet, CourseViewSet, ModuleChaptersView

router = SimpleRouter()
router.register('courses', CourseViewSet, basename='course')
router.register('categories', CategoryViewSet, basename='category')

urlpatterns = [
    path('modules/<int:pk>/chapters/', ModuleChaptersView.as_view(), name='module-chapters'),
] + router.urls
