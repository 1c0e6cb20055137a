"""
Response envelope, error handling, audit log, health probes and demo seeding.

Run: python manage.py test core -v2
"""
from io import StringIO

from django.core.management import call_command
from django.http import Http404
from django.test import RequestFactory, TestCase
from rest_framework import exceptions
from rest_framework.test import APITestCase

from accounts.models import User
from billing.models import Package, QuotaName
from billing.quotas import current_subscription
from core.exceptions import NotFoundError, QuotaExceededError, api_exception_handler
from core.models import AuditLog
from core.testing import make_tenant, make_user, tenant_headers
from courses.models import Category, Course
from enrollments.models import Enrollment
from tenants.models import Tenant


class ExceptionHandlerTests(TestCase):

    def _handle(self, exc):
        return api_exception_handler(exc, {'view': None})

    def test_validation_error_is_422_with_field_map(self):
        response = self._handle(exceptions.ValidationError({
            'email': ['Enter a valid email address.'],
            'address': {'city': ['This field is required.']},
        }))
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.data, {
            'success': False,
            'message': 'The given data was invalid.',
            'errors': {
                'email': ['Enter a valid email address.'],
                'address.city': ['This field is required.'],
            },
        })

    def test_non_field_validation_error(self):
        response = self._handle(exceptions.ValidationError(['Something is off.']))
        self.assertEqual(response.data['errors'], {'non_field_errors': ['Something is off.']})

    def test_domain_error_keeps_status_and_message(self):
        response = self._handle(NotFoundError('Course not found or not available'))
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data, {'success': False, 'message': 'Course not found or not available'})

    def test_quota_error_is_409(self):
        response = self._handle(QuotaExceededError('max_courses', 50, 50))
        self.assertEqual(response.status_code, 409)
        self.assertIn('(50/50)', response.data['message'])

    def test_django_404_becomes_envelope(self):
        response = self._handle(Http404())
        self.assertEqual(response.status_code, 404)
        self.assertFalse(response.data['success'])

    def test_unexpected_error_is_generic_500(self):
        response = self._handle(RuntimeError('database password is hunter2'))
        self.assertEqual(response.status_code, 500)
        self.assertNotIn('hunter2', response.data['message'])


class JsonHandlerTests(APITestCase):

    def test_unknown_api_path_is_json_404(self):
        tenant = make_tenant('acme')
        response = self.client.get('/api/does-not-exist/', **tenant_headers(tenant))
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {'success': False, 'message': 'Resource not found'})

    def test_health_needs_no_tenant(self):
        response = self.client.get('/api/health/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['status'], 'healthy')
        self.assertEqual(response.json()['checks'], {'database': 'ok', 'cache': 'ok'})

    def test_liveness_and_readiness(self):
        self.assertEqual(self.client.get('/api/health/live/').json()['alive'], True)
        self.assertEqual(self.client.get('/api/health/ready/').json()['ready'], True)


class AuditLogTests(TestCase):

    def test_log_defaults_tenant_from_user_and_records_request(self):
        tenant = make_tenant('acme')
        user = make_user(tenant)
        request = RequestFactory().get(
            '/', HTTP_X_FORWARDED_FOR='203.0.113.7, 10.0.0.1', HTTP_USER_AGENT='pytest-agent',
        )

        entry = AuditLog.log(AuditLog.Action.LOGIN, user=user, request=request, metadata={'via': 'test'})

        self.assertEqual(entry.tenant, tenant)
        self.assertEqual(entry.ip_address, '203.0.113.7')
        self.assertEqual(entry.user_agent, 'pytest-agent')
        self.assertEqual(entry.metadata, {'via': 'test'})

    def test_log_links_content_object(self):
        tenant = make_tenant('acme')
        category = Category.objects.create(tenant=tenant, name='Programming')
        entry = AuditLog.log(AuditLog.Action.COURSE_CREATE, tenant=tenant, content_object=category)
        self.assertEqual(entry.content_object, category)


class SeedDemoTests(APITestCase):

    def _seed(self):
        call_command('seed_demo', stdout=StringIO())

    def test_seed_is_idempotent(self):
        self._seed()
        self._seed()

        tenant = Tenant.objects.get(slug='demo')
        self.assertEqual(Package.objects.count(), 3)
        self.assertEqual(User.objects.for_tenant(tenant).count(), 6)
        self.assertEqual(Category.objects.for_tenant(tenant).count(), 10)
        self.assertEqual(Course.objects.for_tenant(tenant).count(), 4)
        self.assertEqual(Course.objects.for_tenant(tenant).published().count(), 3)
        self.assertEqual(Enrollment.objects.for_tenant(tenant).count(), 5)

        subscription = current_subscription(tenant)
        self.assertEqual(subscription.package.slug, 'professional')
        self.assertEqual(subscription.get_current_usage(QuotaName.MAX_COURSES), 4)
        self.assertEqual(subscription.get_current_usage(QuotaName.MAX_STUDENTS), 3)

    def test_demo_users_can_log_in_on_demo_domain(self):
        self._seed()
        response = self.client.post(
            '/api/auth/login/', {'email': 'admin@demo.lms', 'password': 'password123'}, format='json',
            HTTP_HOST='demo.lms.local',
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['data']['user']['role'], 'tenant_admin')
