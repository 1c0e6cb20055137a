"""
Cross-tenant isolation.

Every tenant-scoped entity is checked through the ORM helpers and through
the API: a row of another tenant behaves exactly like a missing row.

Run: python manage.py test tenants.tests_isolation -v2
"""
from rest_framework.test import APITestCase

from accounts.roles import Role
from billing.models import QuotaName, Subscription, SubscriptionUsage
from billing.quotas import consume_quota, current_subscription
from core.exceptions import NotFoundError
from core.testing import auth_headers, make_course, make_subscription, make_tenant, make_user
from courses.models import Category, Chapter, Course, Module
from enrollments import services as enrollment_services
from enrollments.models import Enrollment
from tenants.context import TenantContext
from tenants.middleware import TenantMiddleware
from tenants.models import Tenant, TenantIntegration


class IsolationTestCase(APITestCase):

    @classmethod
    def setUpTestData(cls):
        cls.acme = make_tenant('acme')
        cls.globex = make_tenant('globex')

        cls.acme_admin = make_user(cls.acme, roles=(Role.TENANT_ADMIN,))
        cls.acme_instructor = make_user(cls.acme, roles=(Role.INSTRUCTOR,))
        cls.acme_student = make_user(cls.acme)
        cls.globex_admin = make_user(cls.globex, roles=(Role.TENANT_ADMIN,))
        cls.globex_student = make_user(cls.globex)

        cls.acme_category = Category.objects.create(tenant=cls.acme, name='Programming')
        cls.globex_category = Category.objects.create(tenant=cls.globex, name='Programming')

        cls.acme_course = make_course(
            cls.acme, 'Acme Python', instructor=cls.acme_instructor,
            category=cls.acme_category, chapters=2,
        )
        cls.globex_course = make_course(cls.globex, 'Globex Python', category=cls.globex_category, chapters=2)
        cls.globex_module = Module.objects.get(course=cls.globex_course)

        cls.globex_enrollment = enrollment_services.enroll(
            TenantContext.for_tenant(cls.globex), cls.globex_student, cls.globex_course.pk,
        )

    def setUp(self):
        TenantMiddleware.clear_cache()


class ScopedQuerySetTests(IsolationTestCase):

    def test_for_tenant_returns_only_own_rows(self):
        for model in (Category, Course, Module, Chapter, Enrollment):
            with self.subTest(model=model.__name__):
                rows = model.objects.for_tenant(self.acme)
                self.assertTrue(all(row.tenant_id == self.acme.pk for row in rows))

    def test_for_tenant_none_returns_nothing(self):
        self.assertFalse(Course.objects.for_tenant(None).exists())

    def test_get_for_tenant_hides_foreign_row(self):
        with self.assertRaises(NotFoundError):
            Course.objects.get_for_tenant(self.acme, pk=self.globex_course.pk)

    def test_same_slug_in_two_tenants(self):
        self.assertEqual(self.acme_category.slug, self.globex_category.slug)

    def test_subscription_and_usage_are_per_tenant(self):
        make_subscription(self.acme, quotas={QuotaName.MAX_COURSES: 5})
        make_subscription(self.globex, quotas={QuotaName.MAX_COURSES: 5})

        consume_quota(self.acme, QuotaName.MAX_COURSES)

        self.assertEqual(current_subscription(self.acme).get_current_usage(QuotaName.MAX_COURSES), 1)
        self.assertEqual(current_subscription(self.globex).get_current_usage(QuotaName.MAX_COURSES), 0)
        self.assertFalse(
            SubscriptionUsage.objects.for_tenant(self.globex).exclude(tenant=self.globex).exists()
        )
        self.assertEqual(Subscription.objects.for_tenant(self.acme).count(), 1)

    def test_integration_is_per_tenant(self):
        TenantIntegration.objects.create(
            tenant=self.globex, provider=TenantIntegration.Provider.CMS,
            configuration={'base_url': 'https://cms.globex.test'},
        )
        self.assertFalse(self.acme.has_integration(TenantIntegration.Provider.CMS))
        self.assertTrue(self.globex.has_integration(TenantIntegration.Provider.CMS))

    def test_enroll_in_foreign_course_is_not_found(self):
        with self.assertRaises(NotFoundError):
            enrollment_services.enroll(
                TenantContext.for_tenant(self.acme), self.acme_student, self.globex_course.pk,
            )


class CourseIsolationAPITests(IsolationTestCase):

    def test_course_list_shows_own_tenant_only(self):
        response = self.client.get('/api/courses/', **auth_headers(self.acme_student))
        self.assertEqual(response.status_code, 200)
        titles = [course['title'] for course in response.json()['data']['data']]
        self.assertEqual(titles, ['Acme Python'])

    def test_foreign_course_detail_is_404(self):
        response = self.client.get(f'/api/courses/{self.globex_course.pk}/', **auth_headers(self.acme_student))
        self.assertEqual(response.status_code, 404)

    def test_foreign_course_enroll_is_404(self):
        response = self.client.post(
            f'/api/courses/{self.globex_course.pk}/enroll/', **auth_headers(self.acme_student),
        )
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()['message'], 'Course not found or not available')
        self.assertFalse(Enrollment.objects.filter(user=self.acme_student).exists())

    def test_token_tenant_beats_foreign_header(self):
        # A user always acts inside their own tenant
        response = self.client.get(
            '/api/courses/', HTTP_X_TENANT_ID=str(self.globex.pk), **auth_headers(self.acme_student),
        )
        titles = [course['title'] for course in response.json()['data']['data']]
        self.assertEqual(titles, ['Acme Python'])

    def test_suspended_tenant_token_cannot_use_active_tenant_header(self):
        headers = auth_headers(self.acme_student)
        acme = Tenant.objects.get(pk=self.acme.pk)
        acme.status = Tenant.Status.SUSPENDED
        acme.save()

        response = self.client.post(
            f'/api/courses/{self.acme_course.pk}/enroll/', HTTP_X_TENANT_ID='globex', **headers,
        )
        self.assertEqual(response.status_code, 403)
        self.assertFalse(response.json()['success'])
        self.assertFalse(Enrollment.objects.filter(user=self.acme_student).exists())

        response = self.client.get('/api/courses/', HTTP_HOST='globex.lms.local', **headers)
        self.assertEqual(response.status_code, 403)

    def test_foreign_module_chapter_create_is_404(self):
        response = self.client.post(
            f'/api/modules/{self.globex_module.pk}/chapters/', {'title': 'Injected'}, format='json',
            **auth_headers(self.acme_admin),
        )
        self.assertEqual(response.status_code, 404)
        self.assertFalse(Chapter.objects.filter(title='Injected').exists())

    def test_create_ignores_client_tenant_and_foreign_category(self):
        response = self.client.post(
            '/api/courses/',
            {'title': 'Sneaky', 'tenant': str(self.globex.pk), 'category_id': self.globex_category.pk},
            format='json',
            **auth_headers(self.acme_admin),
        )
        self.assertEqual(response.status_code, 422)
        self.assertIn('category_id', response.json()['errors'])

        response = self.client.post(
            '/api/courses/', {'title': 'Sneaky', 'tenant': str(self.globex.pk)}, format='json',
            **auth_headers(self.acme_admin),
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(Course.objects.get(title='Sneaky').tenant, self.acme)


class CategoryIsolationAPITests(IsolationTestCase):

    def test_category_list_shows_own_tenant_only(self):
        response = self.client.get('/api/categories/', **auth_headers(self.acme_student))
        ids = [category['id'] for category in response.json()['data']]
        self.assertEqual(ids, [self.acme_category.pk])

    def test_foreign_category_detail_is_404(self):
        response = self.client.get(
            f'/api/categories/{self.globex_category.pk}/', **auth_headers(self.acme_student),
        )
        self.assertEqual(response.status_code, 404)

    def test_foreign_category_courses_is_404(self):
        response = self.client.get(
            f'/api/categories/{self.globex_category.pk}/courses/', **auth_headers(self.acme_student),
        )
        self.assertEqual(response.status_code, 404)


class EnrollmentIsolationAPITests(IsolationTestCase):

    def test_foreign_enrollment_is_404_even_for_admins(self):
        response = self.client.get(
            f'/api/enrollments/{self.globex_enrollment.pk}/', **auth_headers(self.acme_admin),
        )
        self.assertEqual(response.status_code, 404)

    def test_admin_list_shows_own_tenant_only(self):
        enrollment_services.enroll(TenantContext.for_tenant(self.acme), self.acme_student, self.acme_course.pk)
        response = self.client.get('/api/enrollments/', **auth_headers(self.acme_admin))
        data = response.json()['data']
        self.assertEqual(data['total'], 1)
        self.assertEqual(data['data'][0]['user_id'], self.acme_student.pk)

    def test_foreign_enrollment_progress_is_404(self):
        response = self.client.post(
            f'/api/enrollments/{self.globex_enrollment.pk}/progress/', {'percentage': 50}, format='json',
            **auth_headers(self.acme_student),
        )
        self.assertEqual(response.status_code, 404)
        self.globex_enrollment.refresh_from_db()
        self.assertEqual(self.globex_enrollment.progress_percentage, 0)

    def test_subscription_view_shows_own_tenant(self):
        make_subscription(self.globex)
        response = self.client.get('/api/tenant/subscription/', **auth_headers(self.acme_admin))
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()['message'], 'No active subscription')
