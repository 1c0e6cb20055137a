"""
Packages, subscriptions and quota enforcement.

Run: python manage.py test billing -v2
"""
from datetime import timedelta

from django.utils import timezone
from rest_framework.test import APITestCase

from accounts.roles import Role
from billing.models import Package, PackageFeature, QuotaName, Subscription, SubscriptionUsage
from billing.quotas import (
    consume_quota,
    current_subscription,
    is_quota_exceeded,
    quota_summary,
    set_usage,
    tenant_has_feature,
)
from core.exceptions import QuotaExceededError
from core.testing import auth_headers, make_package, make_subscription, make_tenant, make_user
from courses.models import Course


class QuotaTests(APITestCase):

    @classmethod
    def setUpTestData(cls):
        cls.tenant = make_tenant('acme')

    def test_no_subscription_is_unlimited_and_untracked(self):
        self.assertIsNone(consume_quota(self.tenant, QuotaName.MAX_COURSES))
        self.assertFalse(is_quota_exceeded(self.tenant, QuotaName.MAX_COURSES))
        self.assertFalse(SubscriptionUsage.objects.exists())

    def test_consume_increments_usage(self):
        make_subscription(self.tenant, quotas={QuotaName.MAX_COURSES: 3})
        self.assertEqual(consume_quota(self.tenant, QuotaName.MAX_COURSES), 1)
        self.assertEqual(consume_quota(self.tenant, QuotaName.MAX_COURSES, amount=2), 3)
        self.assertTrue(is_quota_exceeded(self.tenant, QuotaName.MAX_COURSES))

    def test_refusal_leaves_usage_unchanged(self):
        make_subscription(self.tenant, quotas={QuotaName.MAX_COURSES: 2})
        set_usage(self.tenant, QuotaName.MAX_COURSES, 2)

        with self.assertRaises(QuotaExceededError) as ctx:
            consume_quota(self.tenant, QuotaName.MAX_COURSES)

        self.assertEqual(ctx.exception.status_code, 409)
        self.assertEqual(ctx.exception.limit, 2)
        subscription = current_subscription(self.tenant)
        self.assertEqual(subscription.get_current_usage(QuotaName.MAX_COURSES), 2)

    def test_minus_one_is_unlimited(self):
        make_subscription(self.tenant, quotas={QuotaName.MAX_COURSES: -1})
        set_usage(self.tenant, QuotaName.MAX_COURSES, 10 ** 9)

        self.assertFalse(is_quota_exceeded(self.tenant, QuotaName.MAX_COURSES))
        self.assertEqual(consume_quota(self.tenant, QuotaName.MAX_COURSES), 10 ** 9 + 1)

    def test_quota_missing_from_package_is_unlimited(self):
        make_subscription(self.tenant, quotas={QuotaName.MAX_STUDENTS: 1})
        consume_quota(self.tenant, QuotaName.MAX_COURSES, amount=500)
        self.assertFalse(is_quota_exceeded(self.tenant, QuotaName.MAX_COURSES))

    def test_zero_limit_refuses_everything(self):
        make_subscription(self.tenant, quotas={QuotaName.MAX_COURSES: 0})
        with self.assertRaises(QuotaExceededError):
            consume_quota(self.tenant, QuotaName.MAX_COURSES)

    def test_expired_subscription_is_not_current(self):
        subscription = make_subscription(self.tenant, quotas={QuotaName.MAX_COURSES: 0})
        subscription.expires_at = timezone.now() - timedelta(days=1)
        subscription.save()
        self.assertIsNone(current_subscription(self.tenant))
        self.assertIsNone(consume_quota(self.tenant, QuotaName.MAX_COURSES))

    def test_cancelled_subscription_is_not_current(self):
        make_subscription(self.tenant, status=Subscription.Status.CANCELLED)
        self.assertIsNone(current_subscription(self.tenant))

    def test_newest_live_subscription_wins(self):
        make_subscription(self.tenant, quotas={QuotaName.MAX_COURSES: 1})
        newer = make_subscription(self.tenant, quotas={QuotaName.MAX_COURSES: 10})
        Subscription.objects.filter(pk=newer.pk).update(created_at=timezone.now() + timedelta(seconds=5))
        self.assertEqual(current_subscription(self.tenant).pk, newer.pk)

    def test_quota_summary(self):
        subscription = make_subscription(
            self.tenant, quotas={QuotaName.MAX_COURSES: 10, QuotaName.MAX_STUDENTS: -1},
        )
        set_usage(self.tenant, QuotaName.MAX_COURSES, 8)
        summary = {row['quota_name']: row for row in quota_summary(subscription)}

        courses = summary['max_courses']
        self.assertEqual(courses['remaining'], 2)
        self.assertEqual(courses['usage_percentage'], 80.0)
        self.assertTrue(courses['is_near_limit'])

        students = summary['max_students']
        self.assertTrue(students['is_unlimited'])
        self.assertIsNone(students['remaining'])
        self.assertFalse(students['is_near_limit'])

        self.assertIsNone(summary['storage_limit']['limit'])


class PackageFeatureTests(APITestCase):

    @classmethod
    def setUpTestData(cls):
        cls.tenant = make_tenant('acme')
        cls.package = make_package('pro')
        PackageFeature.objects.create(
            package=cls.package, feature_key='custom_branding', name='Custom branding', value='true',
        )
        PackageFeature.objects.create(
            package=cls.package, feature_key='api_access', name='API access', value='false',
        )
        PackageFeature.objects.create(
            package=cls.package, feature_key='support_hours', name='Support hours',
            feature_type=PackageFeature.FeatureType.INTEGER, value='24',
        )

    def test_feature_lookup(self):
        make_subscription(self.tenant, package=self.package)
        self.assertTrue(tenant_has_feature(self.tenant, 'custom_branding'))
        self.assertFalse(tenant_has_feature(self.tenant, 'api_access'))
        self.assertFalse(tenant_has_feature(self.tenant, 'unknown'))

    def test_no_subscription_has_no_features(self):
        self.assertFalse(tenant_has_feature(self.tenant, 'custom_branding'))

    def test_typed_values(self):
        self.assertEqual(self.package.features.get(feature_key='support_hours').typed_value, 24)


class CourseQuotaAPITests(APITestCase):

    @classmethod
    def setUpTestData(cls):
        cls.tenant = make_tenant('acme')
        cls.instructor = make_user(cls.tenant, roles=(Role.INSTRUCTOR,))

    def _create(self, title):
        return self.client.post('/api/courses/', {'title': title}, format='json', **auth_headers(self.instructor))

    def test_course_over_limit_is_refused_atomically(self):
        make_subscription(self.tenant, quotas={QuotaName.MAX_COURSES: 50})
        set_usage(self.tenant, QuotaName.MAX_COURSES, 50)

        response = self._create('Course 51')

        self.assertEqual(response.status_code, 409)
        self.assertFalse(response.json()['success'])
        self.assertIn('courses', response.json()['message'])
        self.assertFalse(Course.objects.filter(title='Course 51').exists())
        self.assertEqual(current_subscription(self.tenant).get_current_usage(QuotaName.MAX_COURSES), 50)

    def test_course_under_limit_consumes_quota(self):
        make_subscription(self.tenant, quotas={QuotaName.MAX_COURSES: 50})
        response = self._create('Course 1')
        self.assertEqual(response.status_code, 201)
        self.assertEqual(current_subscription(self.tenant).get_current_usage(QuotaName.MAX_COURSES), 1)

    def test_unlimited_package_never_refuses(self):
        make_subscription(self.tenant, quotas={QuotaName.MAX_COURSES: -1})
        set_usage(self.tenant, QuotaName.MAX_COURSES, 10 ** 9)
        self.assertEqual(self._create('One more').status_code, 201)


class PackageAPITests(APITestCase):

    @classmethod
    def setUpTestData(cls):
        cls.tenant = make_tenant('acme')
        cls.admin = make_user(cls.tenant, roles=(Role.TENANT_ADMIN,))
        cls.student = make_user(cls.tenant)
        cls.starter = make_package('starter', quotas={QuotaName.MAX_COURSES: 10}, price='29.99')
        make_package('retired')
        Package.objects.filter(slug='retired').update(is_active=False)

    def test_public_catalogue_without_tenant(self):
        response = self.client.get('/api/packages/')
        self.assertEqual(response.status_code, 200)
        slugs = [package['slug'] for package in response.json()['data']]
        self.assertEqual(slugs, ['starter'])
        quotas = response.json()['data'][0]['quotas']
        self.assertEqual(quotas, [{'quota_name': 'max_courses', 'limit': 10, 'unit': 'count', 'is_unlimited': False}])

    def test_subscription_view_for_admin(self):
        make_subscription(self.tenant, package=self.starter)
        response = self.client.get('/api/tenant/subscription/', **auth_headers(self.admin))
        self.assertEqual(response.status_code, 200)
        data = response.json()['data']
        self.assertEqual(data['package']['slug'], 'starter')
        self.assertTrue(data['is_active'])
        self.assertIn('max_courses', [row['quota_name'] for row in data['quotas']])

    def test_subscription_view_forbidden_for_students(self):
        make_subscription(self.tenant, package=self.starter)
        response = self.client.get('/api/tenant/subscription/', **auth_headers(self.student))
        self.assertEqual(response.status_code, 403)

    def test_subscription_view_without_subscription(self):
        response = self.client.get('/api/tenant/subscription/', **auth_headers(self.admin))
        self.assertEqual(response.status_code, 404)
