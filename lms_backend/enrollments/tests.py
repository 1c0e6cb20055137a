"""
Enrollment lifecycle: enroll, progress, completion, cancel, suspend, expiry.

Run: python manage.py test enrollments -v2
"""
from datetime import timedelta
from decimal import Decimal

from django.db import IntegrityError, transaction
from django.utils import timezone
from rest_framework.test import APITestCase

from accounts.roles import Role
from core.exceptions import AlreadyEnrolledError, AuthorizationError, InvalidTransitionError, NotFoundError
from core.models import AuditLog
from core.testing import auth_headers, make_course, make_tenant, make_user
from courses.models import Chapter
from enrollments import services
from enrollments.models import Enrollment
from enrollments.signals import enrollment_completed
from enrollments.tasks import expire_due_enrollments
from tenants.context import TenantContext
from tenants.models import Tenant, TenantSettings


class EnrollmentTestCase(APITestCase):

    @classmethod
    def setUpTestData(cls):
        cls.tenant = make_tenant('acme')
        cls.context = TenantContext.for_tenant(cls.tenant)
        cls.admin = make_user(cls.tenant, roles=(Role.TENANT_ADMIN,))
        cls.instructor = make_user(cls.tenant, roles=(Role.INSTRUCTOR,))
        cls.student = make_user(cls.tenant)
        cls.classmate = make_user(cls.tenant)
        cls.course = make_course(cls.tenant, 'Python Basics', instructor=cls.instructor, chapters=4)
        cls.draft = make_course(cls.tenant, 'Unreleased', published=False)

    def _enroll(self, user=None, course=None):
        return services.enroll(self.context, user or self.student, (course or self.course).pk)

    def _chapters(self):
        return list(Chapter.objects.filter(module__course=self.course).order_by('sort_order'))


class EnrollServiceTests(EnrollmentTestCase):

    def test_enroll_creates_active_enrollment(self):
        enrollment = self._enroll()
        self.assertEqual(enrollment.status, Enrollment.Status.ACTIVE)
        self.assertEqual(enrollment.total_chapters, 4)
        self.assertEqual(enrollment.progress_percentage, Decimal('0.00'))
        self.assertIsNotNone(enrollment.expires_at)
        self.assertTrue(AuditLog.objects.filter(action=AuditLog.Action.ENROLL, user=self.student).exists())

    def test_second_active_enrollment_conflicts(self):
        self._enroll()
        with self.assertRaises(AlreadyEnrolledError):
            self._enroll()
        self.assertEqual(Enrollment.objects.filter(user=self.student).count(), 1)

    def test_unpublished_course_is_not_found(self):
        with self.assertRaises(NotFoundError):
            self._enroll(course=self.draft)

    def test_re_enroll_after_cancel(self):
        first = self._enroll()
        services.cancel(first)
        second = self._enroll()
        self.assertNotEqual(first.pk, second.pk)
        self.assertEqual(Enrollment.objects.filter(user=self.student).count(), 2)

    def test_database_rejects_second_active_row(self):
        self._enroll()
        with self.assertRaises(IntegrityError), transaction.atomic():
            Enrollment.objects.create(tenant=self.tenant, user=self.student, course=self.course)

    def test_database_rejects_completed_without_full_progress(self):
        with self.assertRaises(IntegrityError), transaction.atomic():
            Enrollment.objects.create(
                tenant=self.tenant, user=self.student, course=self.course,
                status=Enrollment.Status.COMPLETED, progress_percentage=Decimal('90'),
            )

    def test_self_enrollment_can_be_disabled(self):
        TenantSettings.objects.filter(tenant=self.tenant).update(self_enrollment_enabled=False)
        tenant = Tenant.objects.get(pk=self.tenant.pk)
        with self.assertRaises(AuthorizationError):
            services.enroll(TenantContext.for_tenant(tenant), self.student, self.course.pk)


class ProgressTests(EnrollmentTestCase):

    def setUp(self):
        self.completions = []
        enrollment_completed.connect(self._on_completed)
        self.addCleanup(enrollment_completed.disconnect, self._on_completed)

    def _on_completed(self, sender, enrollment, **kwargs):
        self.completions.append(enrollment.pk)

    def test_percentage_is_rounded_down_and_clamped(self):
        enrollment = services.update_progress(self._enroll(), percentage='33.339')
        self.assertEqual(enrollment.progress_percentage, Decimal('33.33'))
        enrollment = services.update_progress(enrollment, percentage=-5)
        self.assertEqual(enrollment.progress_percentage, Decimal('0.00'))
        self.assertIsNotNone(enrollment.started_at)

    def test_reaching_100_completes_once(self):
        enrollment = services.update_progress(self._enroll(), percentage=80)
        self.assertEqual(enrollment.status, Enrollment.Status.ACTIVE)

        with self.captureOnCommitCallbacks(execute=True):
            enrollment = services.update_progress(enrollment, percentage=100)
        self.assertEqual(enrollment.status, Enrollment.Status.COMPLETED)
        self.assertEqual(enrollment.progress_percentage, Decimal('100.00'))
        self.assertIsNotNone(enrollment.completed_at)
        self.assertTrue(enrollment.certificate_issued)
        self.assertTrue(enrollment.certificate_id)

        completed_at = enrollment.completed_at
        with self.captureOnCommitCallbacks(execute=True):
            enrollment = services.update_progress(enrollment, percentage=100)
        self.assertEqual(enrollment.completed_at, completed_at)
        self.assertEqual(self.completions, [enrollment.pk])

    def test_completion_signal_waits_for_commit(self):
        enrollment = self._enroll()

        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            with self.assertRaises(RuntimeError):
                with transaction.atomic():
                    services.update_progress(enrollment, percentage=100)
                    self.assertEqual(self.completions, [])
                    raise RuntimeError('rolled back')

        self.assertEqual(callbacks, [])
        self.assertEqual(self.completions, [])
        enrollment.refresh_from_db()
        self.assertEqual(enrollment.status, Enrollment.Status.ACTIVE)

    def test_over_100_completes(self):
        enrollment = services.update_progress(self._enroll(), percentage=150)
        self.assertEqual(enrollment.status, Enrollment.Status.COMPLETED)

    def test_completed_progress_cannot_be_lowered(self):
        enrollment = services.update_progress(self._enroll(), percentage=100)
        with self.assertRaises(InvalidTransitionError):
            services.update_progress(enrollment, percentage=50)

    def test_chapter_completion_derives_progress(self):
        enrollment = self._enroll()
        chapters = self._chapters()

        enrollment = services.update_progress(enrollment, chapter_id=chapters[0].pk)
        self.assertEqual(enrollment.completed_chapters, 1)
        self.assertEqual(enrollment.progress_percentage, Decimal('25.00'))

        # Completing the same chapter twice counts once
        enrollment = services.update_progress(enrollment, chapter_id=chapters[0].pk)
        self.assertEqual(enrollment.completed_chapters, 1)

        with self.captureOnCommitCallbacks(execute=True):
            for chapter in chapters[1:]:
                enrollment = services.update_progress(enrollment, chapter_id=chapter.pk)
        self.assertEqual(enrollment.status, Enrollment.Status.COMPLETED)
        self.assertEqual(self.completions, [enrollment.pk])

    def test_chapter_of_another_course_is_not_found(self):
        other = make_course(self.tenant, 'Other', chapters=1)
        chapter = Chapter.objects.get(module__course=other)
        with self.assertRaises(NotFoundError):
            services.update_progress(self._enroll(), chapter_id=chapter.pk)

    def test_cancelled_enrollment_rejects_progress(self):
        enrollment = services.cancel(self._enroll())
        with self.assertRaises(InvalidTransitionError):
            services.update_progress(enrollment, percentage=10)

    def test_expired_enrollment_rejects_progress_and_is_expired(self):
        enrollment = self._enroll()
        Enrollment.objects.filter(pk=enrollment.pk).update(expires_at=timezone.now() - timedelta(minutes=1))
        with self.assertRaises(InvalidTransitionError):
            services.update_progress(enrollment, percentage=10)
        enrollment.refresh_from_db()
        self.assertEqual(enrollment.status, Enrollment.Status.EXPIRED)

    def test_no_certificate_when_disabled(self):
        TenantSettings.objects.filter(tenant=self.tenant).update(certificates_enabled=False)
        enrollment = services.update_progress(self._enroll(), percentage=100)
        self.assertEqual(enrollment.status, Enrollment.Status.COMPLETED)
        self.assertFalse(enrollment.certificate_issued)


class LifecycleTests(EnrollmentTestCase):

    def test_completed_enrollment_cannot_be_cancelled(self):
        enrollment = services.update_progress(self._enroll(), percentage=100)
        with self.assertRaises(InvalidTransitionError):
            services.cancel(enrollment)

    def test_suspend_and_reinstate(self):
        enrollment = services.suspend(self._enroll(), self.admin)
        self.assertEqual(enrollment.status, Enrollment.Status.SUSPENDED)
        self.assertIsNotNone(enrollment.suspended_at)

        enrollment = services.reinstate(enrollment, self.admin)
        self.assertEqual(enrollment.status, Enrollment.Status.ACTIVE)
        self.assertIsNone(enrollment.suspended_at)

    def test_reinstate_conflicts_with_new_active_enrollment(self):
        suspended = services.suspend(self._enroll(), self.admin)
        self._enroll()
        with self.assertRaises(AlreadyEnrolledError):
            services.reinstate(suspended, self.admin)

    def test_reinstate_requires_suspended(self):
        with self.assertRaises(InvalidTransitionError):
            services.reinstate(self._enroll(), self.admin)

    def test_expiry_task(self):
        due = self._enroll()
        fresh = self._enroll(user=self.classmate)
        Enrollment.objects.filter(pk=due.pk).update(expires_at=timezone.now() - timedelta(hours=1))

        result = expire_due_enrollments()

        self.assertEqual(result['expired'], 1)
        due.refresh_from_db()
        fresh.refresh_from_db()
        self.assertEqual(due.status, Enrollment.Status.EXPIRED)
        self.assertIsNotNone(due.expired_at)
        self.assertEqual(fresh.status, Enrollment.Status.ACTIVE)

    def test_expiry_task_is_idempotent(self):
        due = self._enroll()
        Enrollment.objects.filter(pk=due.pk).update(expires_at=timezone.now() - timedelta(hours=1))
        expire_due_enrollments()
        self.assertEqual(expire_due_enrollments()['expired'], 0)


class EnrollmentAPITests(EnrollmentTestCase):

    def test_enroll_endpoint(self):
        response = self.client.post(f'/api/courses/{self.course.pk}/enroll/', **auth_headers(self.student))
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()['message'], 'Successfully enrolled in course')
        self.assertEqual(response.json()['data']['status'], 'active')

    def test_enroll_twice_is_409(self):
        self.client.post(f'/api/courses/{self.course.pk}/enroll/', **auth_headers(self.student))
        response = self.client.post(f'/api/courses/{self.course.pk}/enroll/', **auth_headers(self.student))
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()['message'], 'You are already enrolled in this course.')

    def test_enroll_in_draft_is_404(self):
        response = self.client.post(f'/api/courses/{self.draft.pk}/enroll/', **auth_headers(self.student))
        self.assertEqual(response.status_code, 404)

    def test_anonymous_enroll_is_401(self):
        response = self.client.post(
            f'/api/courses/{self.course.pk}/enroll/', HTTP_X_TENANT_ID=str(self.tenant.pk),
        )
        self.assertEqual(response.status_code, 401)

    def test_progress_endpoint(self):
        enrollment = self._enroll()
        response = self.client.post(
            f'/api/enrollments/{enrollment.pk}/progress/', {'percentage': '100'}, format='json',
            **auth_headers(self.student),
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['data']['status'], 'completed')

    def test_progress_requires_a_value(self):
        enrollment = self._enroll()
        response = self.client.post(
            f'/api/enrollments/{enrollment.pk}/progress/', {}, format='json', **auth_headers(self.student),
        )
        self.assertEqual(response.status_code, 422)

    def test_only_owner_updates_progress(self):
        enrollment = self._enroll()
        response = self.client.post(
            f'/api/enrollments/{enrollment.pk}/progress/', {'percentage': 10}, format='json',
            **auth_headers(self.admin),
        )
        self.assertEqual(response.status_code, 403)

    def test_students_see_only_their_enrollments(self):
        self._enroll()
        classmate_enrollment = self._enroll(user=self.classmate)

        response = self.client.get('/api/enrollments/', **auth_headers(self.student))
        self.assertEqual(response.json()['data']['total'], 1)

        response = self.client.get(f'/api/enrollments/{classmate_enrollment.pk}/', **auth_headers(self.student))
        self.assertEqual(response.status_code, 404)

    def test_instructor_sees_enrollments_in_own_courses(self):
        self._enroll()
        self._enroll(user=self.classmate)
        response = self.client.get('/api/enrollments/', **auth_headers(self.instructor))
        self.assertEqual(response.json()['data']['total'], 2)

    def test_admin_filters_by_status(self):
        services.cancel(self._enroll())
        self._enroll(user=self.classmate)
        response = self.client.get('/api/enrollments/?status=cancelled', **auth_headers(self.admin))
        data = response.json()['data']
        self.assertEqual(data['total'], 1)
        self.assertEqual(data['data'][0]['status'], 'cancelled')

    def test_cancel_endpoint(self):
        enrollment = self._enroll()
        response = self.client.post(f'/api/enrollments/{enrollment.pk}/cancel/', **auth_headers(self.student))
        self.assertEqual(response.status_code, 200)
        response = self.client.post(f'/api/enrollments/{enrollment.pk}/cancel/', **auth_headers(self.student))
        self.assertEqual(response.status_code, 409)

    def test_suspend_is_admin_only(self):
        enrollment = self._enroll()
        response = self.client.post(f'/api/enrollments/{enrollment.pk}/suspend/', **auth_headers(self.instructor))
        self.assertEqual(response.status_code, 403)

        response = self.client.post(f'/api/enrollments/{enrollment.pk}/suspend/', **auth_headers(self.admin))
        self.assertEqual(response.status_code, 200)
        response = self.client.post(f'/api/enrollments/{enrollment.pk}/reinstate/', **auth_headers(self.admin))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['data']['status'], 'active')
