"""
Auth, roles and profile endpoints.

Run: python manage.py test accounts -v2
"""
from datetime import timedelta

from django.utils import timezone
from rest_framework.test import APITestCase
from rest_framework_simplejwt.tokens import AccessToken

from accounts.models import User, UserRole
from accounts.roles import OPERATION_ROLES, Operation, Role, can_perform
from billing.models import QuotaName
from core.models import AuditLog
from core.testing import (
    DEFAULT_PASSWORD,
    auth_headers,
    make_course,
    make_subscription,
    make_super_admin,
    make_tenant,
    make_user,
    tenant_headers,
)
from enrollments import services as enrollment_services
from enrollments.models import Enrollment
from tenants.context import TenantContext
from tenants.middleware import TenantMiddleware


class RoleTableTests(APITestCase):

    @classmethod
    def setUpTestData(cls):
        cls.tenant = make_tenant('acme')
        cls.student = make_user(cls.tenant)
        cls.instructor = make_user(cls.tenant, roles=(Role.INSTRUCTOR,))
        cls.admin = make_user(cls.tenant, roles=(Role.TENANT_ADMIN,))
        cls.root = make_super_admin()

    def test_every_operation_has_an_entry(self):
        self.assertEqual(set(OPERATION_ROLES), set(Operation))

    def test_students_cannot_author(self):
        self.assertFalse(can_perform(self.student, Operation.COURSE_CREATE))
        self.assertTrue(can_perform(self.student, Operation.COURSE_ENROLL))

    def test_instructor_and_admin_author(self):
        for user in (self.instructor, self.admin):
            self.assertTrue(can_perform(user, Operation.COURSE_CREATE))
            self.assertTrue(can_perform(user, Operation.COURSE_PUBLISH))

    def test_only_admin_manages_tenant(self):
        self.assertTrue(can_perform(self.admin, Operation.TENANT_MANAGE))
        self.assertFalse(can_perform(self.instructor, Operation.TENANT_MANAGE))

    def test_super_admin_bypasses_table(self):
        for operation in Operation:
            self.assertTrue(can_perform(self.root, operation))

    def test_impersonation_is_super_admin_only(self):
        self.assertFalse(can_perform(self.admin, Operation.USER_IMPERSONATE))

    def test_primary_role_is_highest(self):
        self.admin.assign_role(Role.INSTRUCTOR)
        self.assertEqual(self.admin.primary_role, Role.TENANT_ADMIN)


class UserManagerTests(APITestCase):

    def test_email_is_normalised(self):
        tenant = make_tenant('acme')
        user = make_user(tenant, email='  Jane.Doe@Example.COM ')
        self.assertEqual(user.email, 'jane.doe@example.com')

    def test_user_without_tenant_must_be_super_admin(self):
        with self.assertRaises(ValueError):
            User.objects.create_user('orphan@example.com', DEFAULT_PASSWORD)

    def test_same_email_in_two_tenants(self):
        make_user(make_tenant('acme'), email='shared@example.com')
        make_user(make_tenant('globex'), email='shared@example.com')
        self.assertEqual(User.objects.filter(email='shared@example.com').count(), 2)


class LoginTests(APITestCase):
    url = '/api/auth/login/'

    @classmethod
    def setUpTestData(cls):
        cls.tenant = make_tenant('acme')
        cls.user = make_user(cls.tenant, email='jane@example.com', roles=(Role.INSTRUCTOR,))

    def _login(self, email, password, **extra):
        return self.client.post(self.url, {'email': email, 'password': password}, format='json', **extra)

    def test_login_returns_tokens_and_user(self):
        response = self._login('jane@example.com', DEFAULT_PASSWORD)
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body['success'])
        self.assertEqual(body['message'], 'Login successful')
        self.assertEqual(body['data']['token_type'], 'Bearer')
        self.assertEqual(body['data']['user']['role'], 'instructor')

        token = AccessToken(body['data']['access_token'])
        self.assertEqual(token['tenant_id'], str(self.tenant.pk))
        self.assertEqual(token['role'], 'instructor')

    def test_unknown_email_and_wrong_password_look_the_same(self):
        wrong_password = self._login('jane@example.com', 'nope-nope-nope')
        unknown_email = self._login('nobody@example.com', DEFAULT_PASSWORD)
        self.assertEqual(wrong_password.status_code, 401)
        self.assertEqual(unknown_email.status_code, 401)
        self.assertEqual(wrong_password.json(), unknown_email.json())
        self.assertEqual(wrong_password.json()['message'], 'The provided credentials are incorrect.')

    def test_inactive_account_has_its_own_message(self):
        User.objects.filter(pk=self.user.pk).update(is_active=False)
        response = self._login('jane@example.com', DEFAULT_PASSWORD)
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()['message'], 'Your account is inactive. Please contact support.')

    def test_inactive_account_with_wrong_password_is_generic(self):
        User.objects.filter(pk=self.user.pk).update(is_active=False)
        response = self._login('jane@example.com', 'nope-nope-nope')
        self.assertEqual(response.json()['message'], 'The provided credentials are incorrect.')

    def test_email_is_case_insensitive(self):
        response = self._login('JANE@example.com', DEFAULT_PASSWORD)
        self.assertEqual(response.status_code, 200)

    def test_tenant_hint_selects_account(self):
        other = make_tenant('globex')
        make_user(other, email='jane@example.com', password='Other-pass-456')

        response = self._login('jane@example.com', 'Other-pass-456', **tenant_headers(other))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['data']['user']['tenant_id'], str(other.pk))

        response = self._login('jane@example.com', DEFAULT_PASSWORD, **tenant_headers(other))
        self.assertEqual(response.status_code, 401)

    def test_login_is_audited(self):
        self._login('jane@example.com', DEFAULT_PASSWORD)
        self.assertTrue(AuditLog.objects.filter(user=self.user, action=AuditLog.Action.LOGIN).exists())

    def test_invalid_payload_is_422(self):
        response = self.client.post(self.url, {'email': 'not-an-email'}, format='json')
        self.assertEqual(response.status_code, 422)
        errors = response.json()['errors']
        self.assertIn('email', errors)
        self.assertIn('password', errors)


class RegisterTests(APITestCase):
    url = '/api/auth/register/'

    @classmethod
    def setUpTestData(cls):
        cls.tenant = make_tenant('acme')

    def setUp(self):
        TenantMiddleware.clear_cache()

    def _payload(self, **overrides):
        payload = {
            'email': 'new.student@example.com',
            'password': 'Str0ng-Passw0rd!',
            'password_confirmation': 'Str0ng-Passw0rd!',
            'first_name': 'New',
            'last_name': 'Student',
        }
        payload.update(overrides)
        return payload

    def test_register_creates_student_in_resolved_tenant(self):
        response = self.client.post(self.url, self._payload(), format='json', **tenant_headers(self.tenant))
        self.assertEqual(response.status_code, 201)
        user = User.objects.get(email='new.student@example.com')
        self.assertEqual(user.tenant, self.tenant)
        self.assertEqual(user.roles, {Role.STUDENT})
        self.assertIn('access_token', response.json()['data'])

    def test_register_without_tenant_is_400(self):
        response = self.client.post(self.url, self._payload(), format='json')
        self.assertEqual(response.status_code, 400)

    def test_duplicate_email_is_422(self):
        make_user(self.tenant, email='new.student@example.com')
        response = self.client.post(self.url, self._payload(), format='json', **tenant_headers(self.tenant))
        self.assertEqual(response.status_code, 422)
        self.assertIn('email', response.json()['errors'])

    def test_password_mismatch_is_422(self):
        response = self.client.post(
            self.url, self._payload(password_confirmation='Different-123'), format='json',
            **tenant_headers(self.tenant),
        )
        self.assertEqual(response.status_code, 422)
        self.assertIn('password_confirmation', response.json()['errors'])

    def test_student_quota_blocks_registration(self):
        make_subscription(self.tenant, quotas={QuotaName.MAX_STUDENTS: 1})

        first = self.client.post(self.url, self._payload(), format='json', **tenant_headers(self.tenant))
        self.assertEqual(first.status_code, 201)

        second = self.client.post(
            self.url, self._payload(email='second@example.com'), format='json',
            **tenant_headers(self.tenant),
        )
        self.assertEqual(second.status_code, 409)
        self.assertFalse(User.objects.filter(email='second@example.com').exists())


class TokenLifecycleTests(APITestCase):

    @classmethod
    def setUpTestData(cls):
        cls.tenant = make_tenant('acme')
        cls.user = make_user(cls.tenant, email='jane@example.com')

    def _login(self):
        response = self.client.post(
            '/api/auth/login/', {'email': 'jane@example.com', 'password': DEFAULT_PASSWORD}, format='json',
        )
        return response.json()['data']

    def test_refresh_rotates_tokens(self):
        tokens = self._login()
        response = self.client.post(
            '/api/auth/refresh/', {'refresh_token': tokens['refresh_token']}, format='json',
        )
        self.assertEqual(response.status_code, 200)
        data = response.json()['data']
        self.assertNotEqual(data['refresh_token'], tokens['refresh_token'])
        self.assertEqual(AccessToken(data['access_token'])['tenant_id'], str(self.tenant.pk))

        response = self.client.post(
            '/api/auth/refresh/', {'refresh_token': tokens['refresh_token']}, format='json',
        )
        self.assertEqual(response.status_code, 401)

    def test_refresh_reads_current_roles(self):
        tokens = self._login()
        self.assertEqual(AccessToken(tokens['access_token'])['role'], 'student')

        UserRole.objects.create(user=self.user, role=Role.INSTRUCTOR)
        response = self.client.post(
            '/api/auth/refresh/', {'refresh_token': tokens['refresh_token']}, format='json',
        )
        self.assertEqual(response.status_code, 200)
        access = AccessToken(response.json()['data']['access_token'])
        self.assertEqual(access['role'], 'instructor')
        self.assertEqual(access['roles'], ['instructor', 'student'])

    def test_refresh_refused_for_deactivated_user(self):
        tokens = self._login()
        User.objects.filter(pk=self.user.pk).update(is_active=False)
        response = self.client.post(
            '/api/auth/refresh/', {'refresh_token': tokens['refresh_token']}, format='json',
        )
        self.assertEqual(response.status_code, 401)

    def test_garbage_refresh_token_is_401(self):
        response = self.client.post('/api/auth/refresh/', {'refresh_token': 'garbage'}, format='json')
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()['message'], 'Invalid or expired refresh token.')

    def test_logout_blacklists_refresh_token(self):
        tokens = self._login()
        response = self.client.post(
            '/api/auth/logout/', {'refresh_token': tokens['refresh_token']}, format='json',
            HTTP_AUTHORIZATION=f"Bearer {tokens['access_token']}",
        )
        self.assertEqual(response.status_code, 200)

        response = self.client.post(
            '/api/auth/refresh/', {'refresh_token': tokens['refresh_token']}, format='json',
        )
        self.assertEqual(response.status_code, 401)

    def test_logout_requires_authentication(self):
        tokens = self._login()
        response = self.client.post('/api/auth/logout/', {'refresh_token': tokens['refresh_token']}, format='json')
        self.assertEqual(response.status_code, 401)

    def test_me_returns_user_and_tenant_config(self):
        response = self.client.get('/api/auth/me/', **auth_headers(self.user))
        self.assertEqual(response.status_code, 200)
        data = response.json()['data']
        self.assertEqual(data['user']['email'], 'jane@example.com')
        self.assertEqual(data['tenant']['slug'], 'acme')

    def test_me_without_token_is_401(self):
        response = self.client.get('/api/auth/me/')
        self.assertEqual(response.status_code, 401)
        self.assertFalse(response.json()['success'])

    def test_expired_access_token_is_401(self):
        token = AccessToken.for_user(self.user)
        token.set_exp(lifetime=-timedelta(minutes=1))
        response = self.client.get('/api/auth/me/', HTTP_AUTHORIZATION=f'Bearer {token}')
        self.assertEqual(response.status_code, 401)


class AuthorizationStatusTests(APITestCase):
    """401 for missing credentials, 403 for a missing role."""

    @classmethod
    def setUpTestData(cls):
        cls.tenant = make_tenant('acme')
        cls.student = make_user(cls.tenant)

    def test_anonymous_create_is_401(self):
        response = self.client.post('/api/courses/', {'title': 'X'}, format='json', **tenant_headers(self.tenant))
        self.assertEqual(response.status_code, 401)

    def test_student_create_is_403(self):
        response = self.client.post('/api/courses/', {'title': 'X'}, format='json', **auth_headers(self.student))
        self.assertEqual(response.status_code, 403)
        self.assertFalse(response.json()['success'])


class ImpersonationTests(APITestCase):
    url = '/api/auth/impersonate/'

    @classmethod
    def setUpTestData(cls):
        cls.tenant = make_tenant('acme')
        cls.admin = make_user(cls.tenant, roles=(Role.TENANT_ADMIN,))
        cls.student = make_user(cls.tenant)
        cls.root = make_super_admin()

    def test_super_admin_impersonates(self):
        response = self.client.post(
            self.url, {'user_id': self.student.pk}, format='json', **auth_headers(self.root),
        )
        self.assertEqual(response.status_code, 200)
        data = response.json()['data']
        self.assertEqual(data['impersonated_by'], self.root.pk)
        self.assertEqual(data['user']['id'], self.student.pk)

        token = AccessToken(data['access_token'])
        self.assertEqual(str(token['user_id']), str(self.student.pk))
        self.assertEqual(token['impersonated_by'], self.root.pk)
        self.assertEqual(token['tenant_id'], str(self.tenant.pk))
        self.assertTrue(
            AuditLog.objects.filter(user=self.root, action=AuditLog.Action.IMPERSONATE).exists()
        )

    def test_tenant_admin_cannot_impersonate(self):
        response = self.client.post(
            self.url, {'user_id': self.student.pk}, format='json', **auth_headers(self.admin),
        )
        self.assertEqual(response.status_code, 403)

    def test_anonymous_cannot_impersonate(self):
        response = self.client.post(self.url, {'user_id': self.student.pk}, format='json')
        self.assertEqual(response.status_code, 401)

    def test_unknown_user_is_404(self):
        response = self.client.post(self.url, {'user_id': 999999}, format='json', **auth_headers(self.root))
        self.assertEqual(response.status_code, 404)


class ProfileTests(APITestCase):

    @classmethod
    def setUpTestData(cls):
        cls.tenant = make_tenant('acme')
        cls.user = make_user(cls.tenant, email='jane@example.com')
        cls.course = make_course(cls.tenant, 'Python Basics', is_featured=True)
        cls.featured = make_course(cls.tenant, 'Data Science', is_featured=True)

    def test_profile_includes_stats(self):
        enrollment_services.enroll(TenantContext.for_tenant(self.tenant), self.user, self.course.pk)
        response = self.client.get('/api/profile/', **auth_headers(self.user))
        self.assertEqual(response.status_code, 200)
        stats = response.json()['data']['stats']
        self.assertEqual(stats['total_enrollments'], 1)
        self.assertEqual(stats['active_enrollments'], 1)
        self.assertEqual(stats['completed_courses'], 0)

    def test_update_profile(self):
        response = self.client.put(
            '/api/profile/', {'bio': 'Hello', 'email': 'hijack@example.com'}, format='json',
            **auth_headers(self.user),
        )
        self.assertEqual(response.status_code, 200)
        self.user.refresh_from_db()
        self.assertEqual(self.user.bio, 'Hello')
        self.assertEqual(self.user.email, 'jane@example.com')

    def test_date_of_birth_must_be_in_the_past(self):
        tomorrow = (timezone.localdate() + timedelta(days=1)).isoformat()
        response = self.client.put(
            '/api/profile/', {'date_of_birth': tomorrow}, format='json', **auth_headers(self.user),
        )
        self.assertEqual(response.status_code, 422)
        self.assertIn('date_of_birth', response.json()['errors'])

    def test_change_password(self):
        response = self.client.put(
            '/api/profile/password/',
            {
                'current_password': DEFAULT_PASSWORD,
                'password': 'Brand-new-pass-789',
                'password_confirmation': 'Brand-new-pass-789',
            },
            format='json',
            **auth_headers(self.user),
        )
        self.assertEqual(response.status_code, 200)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('Brand-new-pass-789'))

    def test_change_password_with_wrong_current_password(self):
        response = self.client.put(
            '/api/profile/password/',
            {
                'current_password': 'wrong-wrong',
                'password': 'Brand-new-pass-789',
                'password_confirmation': 'Brand-new-pass-789',
            },
            format='json',
            **auth_headers(self.user),
        )
        self.assertEqual(response.status_code, 422)
        self.assertIn('current_password', response.json()['errors'])

    def test_dashboard_recommends_unenrolled_featured_courses(self):
        enrollment_services.enroll(TenantContext.for_tenant(self.tenant), self.user, self.course.pk)
        response = self.client.get('/api/profile/dashboard/', **auth_headers(self.user))
        self.assertEqual(response.status_code, 200)
        data = response.json()['data']
        self.assertEqual(len(data['recent_enrollments']), 1)
        self.assertEqual([c['title'] for c in data['recommended_courses']], ['Data Science'])

    def test_activity_timeline_groups_by_day(self):
        enrollment_services.enroll(TenantContext.for_tenant(self.tenant), self.user, self.course.pk)
        response = self.client.get('/api/profile/activity/?days=7', **auth_headers(self.user))
        self.assertEqual(response.status_code, 200)
        data = response.json()['data']
        self.assertEqual(data['days'], 7)
        self.assertEqual(len(data['activity_timeline']), 1)
        types = [a['type'] for a in data['activity_timeline'][0]['activities']]
        self.assertIn('enroll', types)

    def test_activity_days_is_capped(self):
        response = self.client.get('/api/profile/activity/?days=5000', **auth_headers(self.user))
        self.assertEqual(response.json()['data']['days'], 365)

    def test_super_admin_profile_without_tenant(self):
        root = make_super_admin()
        response = self.client.get('/api/profile/', **auth_headers(root))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['data']['stats']['total_enrollments'], 0)
        self.assertFalse(Enrollment.objects.filter(user=root).exists())
