"""
Course catalogue, authoring and CMS sync.

Run: python manage.py test courses -v2
"""
from decimal import Decimal
from io import StringIO
from unittest import mock

import requests
from django.core.cache import cache
from django.core.management import call_command
from rest_framework.exceptions import ValidationError
from rest_framework.test import APITestCase

from accounts.roles import Role
from core.testing import auth_headers, make_course, make_tenant, make_user, tenant_headers
from courses.cms import CMSClient, CMSError, sync_course_from_cms
from courses.models import Category, Chapter, Course, Module
from courses.services import create_course
from courses.tasks import sync_cms_courses
from enrollments import services as enrollment_services
from tenants.context import TenantContext
from tenants.models import TenantIntegration


class CatalogueTestCase(APITestCase):

    @classmethod
    def setUpTestData(cls):
        cls.tenant = make_tenant('acme')
        cls.admin = make_user(cls.tenant, roles=(Role.TENANT_ADMIN,))
        cls.instructor = make_user(cls.tenant, roles=(Role.INSTRUCTOR,))
        cls.other_instructor = make_user(cls.tenant, roles=(Role.INSTRUCTOR,))
        cls.student = make_user(cls.tenant)

        cls.programming = Category.objects.create(tenant=cls.tenant, name='Programming')
        cls.python = Category.objects.create(tenant=cls.tenant, name='Python', parent=cls.programming)
        cls.design = Category.objects.create(tenant=cls.tenant, name='Design')
        Category.objects.create(tenant=cls.tenant, name='Archive', is_active=False)

        cls.intro = make_course(
            cls.tenant, 'Intro to Programming', instructor=cls.instructor, category=cls.programming,
            is_free=True, is_featured=True, chapters=3,
        )
        cls.django = make_course(
            cls.tenant, 'Django in Depth', instructor=cls.instructor, category=cls.python,
            level=Course.Level.ADVANCED, price=Decimal('49.00'), description='Web apps with Django',
        )
        cls.ui = make_course(cls.tenant, 'UI Basics', instructor=cls.other_instructor, category=cls.design)
        cls.draft = make_course(cls.tenant, 'Secret Draft', published=False, instructor=cls.instructor)

    def setUp(self):
        cache.clear()

    def _titles(self, response):
        return sorted(course['title'] for course in response.json()['data']['data'])


class CourseListTests(CatalogueTestCase):

    def test_anonymous_list_shows_published_courses(self):
        response = self.client.get('/api/courses/', **tenant_headers(self.tenant))
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body['message'], 'Courses retrieved successfully')
        self.assertEqual(body['data']['total'], 3)
        self.assertEqual(body['data']['current_page'], 1)
        self.assertNotIn('Secret Draft', self._titles(response))

    def test_filters(self):
        headers = tenant_headers(self.tenant)
        self.assertEqual(
            self._titles(self.client.get('/api/courses/?level=advanced', **headers)), ['Django in Depth'],
        )
        self.assertEqual(
            self._titles(self.client.get('/api/courses/?is_free=true', **headers)), ['Intro to Programming'],
        )
        self.assertEqual(
            self._titles(self.client.get('/api/courses/?search=django', **headers)), ['Django in Depth'],
        )
        self.assertEqual(
            self._titles(self.client.get(f'/api/courses/?category_id={self.design.pk}', **headers)),
            ['UI Basics'],
        )

    def test_per_page(self):
        response = self.client.get('/api/courses/?per_page=2', **tenant_headers(self.tenant))
        data = response.json()['data']
        self.assertEqual(data['per_page'], 2)
        self.assertEqual(data['last_page'], 2)
        self.assertEqual(len(data['data']), 2)

    def test_featured(self):
        response = self.client.get('/api/courses/featured/', **tenant_headers(self.tenant))
        self.assertEqual([c['title'] for c in response.json()['data']], ['Intro to Programming'])

    def test_my_courses(self):
        enrollment_services.enroll(TenantContext.for_tenant(self.tenant), self.student, self.intro.pk)
        response = self.client.get('/api/courses/my-courses/', **auth_headers(self.student))
        self.assertEqual(response.status_code, 200)
        data = response.json()['data']
        self.assertEqual(data['total'], 1)
        self.assertEqual(data['data'][0]['course']['title'], 'Intro to Programming')

    def test_my_courses_requires_authentication(self):
        response = self.client.get('/api/courses/my-courses/', **tenant_headers(self.tenant))
        self.assertEqual(response.status_code, 401)


class CourseDetailTests(CatalogueTestCase):

    def test_published_detail_with_content(self):
        response = self.client.get(f'/api/courses/{self.intro.pk}/', **tenant_headers(self.tenant))
        self.assertEqual(response.status_code, 200)
        data = response.json()['data']
        self.assertEqual(data['total_chapters'], 3)
        self.assertEqual(len(data['modules'][0]['chapters']), 3)
        self.assertIsNone(data['enrollment'])

    def test_draft_is_hidden_from_students(self):
        response = self.client.get(f'/api/courses/{self.draft.pk}/', **auth_headers(self.student))
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()['message'], 'Course not found or not available')

    def test_draft_is_visible_to_its_instructor(self):
        response = self.client.get(f'/api/courses/{self.draft.pk}/', **auth_headers(self.instructor))
        self.assertEqual(response.status_code, 200)

    def test_draft_is_hidden_from_other_instructors(self):
        response = self.client.get(f'/api/courses/{self.draft.pk}/', **auth_headers(self.other_instructor))
        self.assertEqual(response.status_code, 404)

    def test_detail_shows_enrollment_and_completed_chapters(self):
        enrollment = enrollment_services.enroll(TenantContext.for_tenant(self.tenant), self.student, self.intro.pk)
        chapter = Chapter.objects.filter(module__course=self.intro).order_by('sort_order').first()
        enrollment_services.update_progress(enrollment, chapter_id=chapter.pk)

        response = self.client.get(f'/api/courses/{self.intro.pk}/', **auth_headers(self.student))
        data = response.json()['data']
        self.assertEqual(data['enrollment']['status'], 'active')
        completed = [c['id'] for c in data['modules'][0]['chapters'] if c['is_completed']]
        self.assertEqual(completed, [chapter.pk])

    def test_unknown_course_is_404(self):
        response = self.client.get('/api/courses/999999/', **tenant_headers(self.tenant))
        self.assertEqual(response.status_code, 404)


class CourseAuthoringTests(CatalogueTestCase):

    def test_instructor_creates_course(self):
        response = self.client.post(
            '/api/courses/',
            {'title': 'Async Python', 'category_id': self.python.pk, 'level': 'intermediate'},
            format='json',
            **auth_headers(self.instructor),
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()['message'], 'Course created successfully')
        course = Course.objects.get(title='Async Python')
        self.assertEqual(course.instructor, self.instructor)
        self.assertEqual(course.status, Course.Status.DRAFT)
        self.assertEqual(course.slug, 'async-python')

    def test_instructor_cannot_assign_another_instructor(self):
        self.client.post(
            '/api/courses/', {'title': 'Owned', 'instructor_id': self.other_instructor.pk}, format='json',
            **auth_headers(self.instructor),
        )
        self.assertEqual(Course.objects.get(title='Owned').instructor, self.instructor)

    def test_admin_assigns_instructor(self):
        self.client.post(
            '/api/courses/', {'title': 'Assigned', 'instructor_id': self.other_instructor.pk}, format='json',
            **auth_headers(self.admin),
        )
        self.assertEqual(Course.objects.get(title='Assigned').instructor, self.other_instructor)

    def test_student_cannot_own_a_course(self):
        response = self.client.post(
            '/api/courses/', {'title': 'Student owned', 'instructor_id': self.student.pk}, format='json',
            **auth_headers(self.admin),
        )
        self.assertEqual(response.status_code, 422)
        self.assertIn('instructor_id', response.json()['errors'])
        self.assertFalse(Course.objects.filter(title='Student owned').exists())

    def test_create_course_service_rejects_student_owner(self):
        with self.assertRaises(ValidationError):
            create_course(
                TenantContext.for_tenant(self.tenant), self.admin,
                {'title': 'Direct', 'instructor': self.student},
            )
        self.assertFalse(Course.objects.filter(title='Direct').exists())

    def test_duplicate_title_gets_unique_slug(self):
        for _ in range(2):
            self.client.post('/api/courses/', {'title': 'UI Basics'}, format='json', **auth_headers(self.admin))
        slugs = sorted(Course.objects.filter(title='UI Basics').values_list('slug', flat=True))
        self.assertEqual(slugs, ['ui-basics', 'ui-basics-2', 'ui-basics-3'])

    def test_free_course_with_price_is_422(self):
        response = self.client.post(
            '/api/courses/', {'title': 'Odd', 'is_free': True, 'price': '10.00'}, format='json',
            **auth_headers(self.instructor),
        )
        self.assertEqual(response.status_code, 422)
        self.assertIn('price', response.json()['errors'])

    def test_missing_title_is_422(self):
        response = self.client.post('/api/courses/', {}, format='json', **auth_headers(self.instructor))
        self.assertEqual(response.status_code, 422)
        self.assertIn('title', response.json()['errors'])

    def test_student_cannot_create(self):
        response = self.client.post('/api/courses/', {'title': 'Nope'}, format='json', **auth_headers(self.student))
        self.assertEqual(response.status_code, 403)

    def test_owner_publishes(self):
        response = self.client.post(f'/api/courses/{self.draft.pk}/publish/', **auth_headers(self.instructor))
        self.assertEqual(response.status_code, 200)
        self.draft.refresh_from_db()
        self.assertTrue(self.draft.is_published)
        self.assertIsNotNone(self.draft.published_at)

    def test_other_instructor_cannot_publish(self):
        response = self.client.post(
            f'/api/courses/{self.draft.pk}/publish/', **auth_headers(self.other_instructor),
        )
        self.assertEqual(response.status_code, 403)
        self.draft.refresh_from_db()
        self.assertFalse(self.draft.is_published)

    def test_add_module_and_chapter(self):
        response = self.client.post(
            f'/api/courses/{self.django.pk}/modules/', {'title': 'Models'}, format='json',
            **auth_headers(self.instructor),
        )
        self.assertEqual(response.status_code, 201)
        module_id = response.json()['data']['id']
        self.assertEqual(Module.objects.get(pk=module_id).tenant, self.tenant)

        response = self.client.post(
            f'/api/modules/{module_id}/chapters/',
            {'title': 'Fields', 'content_type': 'video', 'video_url': 'https://video.example.com/1'},
            format='json',
            **auth_headers(self.instructor),
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(Course.objects.get(pk=self.django.pk).total_chapters, 1)

    def test_other_instructor_cannot_add_module(self):
        response = self.client.post(
            f'/api/courses/{self.django.pk}/modules/', {'title': 'Hijack'}, format='json',
            **auth_headers(self.other_instructor),
        )
        self.assertEqual(response.status_code, 403)


class CategoryTests(CatalogueTestCase):

    def test_list_roots_only(self):
        response = self.client.get('/api/categories/?parent_id=null', **tenant_headers(self.tenant))
        names = [c['name'] for c in response.json()['data']]
        self.assertEqual(names, ['Design', 'Programming'])

    def test_list_includes_inactive_on_request(self):
        response = self.client.get('/api/categories/?active_only=false', **tenant_headers(self.tenant))
        self.assertIn('Archive', [c['name'] for c in response.json()['data']])

    def test_tree(self):
        response = self.client.get('/api/categories/tree/', **tenant_headers(self.tenant))
        tree = {node['name']: node for node in response.json()['data']}
        self.assertEqual([child['name'] for child in tree['Programming']['children']], ['Python'])
        self.assertNotIn('Archive', tree)

    def test_detail_has_children_and_course_count(self):
        response = self.client.get(f'/api/categories/{self.programming.pk}/', **tenant_headers(self.tenant))
        data = response.json()['data']
        self.assertEqual(data['courses_count'], 2)
        self.assertEqual([child['name'] for child in data['children']], ['Python'])
        self.assertEqual(data['full_path'], 'Programming')

    def test_courses_include_subcategories(self):
        response = self.client.get(
            f'/api/categories/{self.programming.pk}/courses/', **tenant_headers(self.tenant),
        )
        self.assertEqual(self._titles(response), ['Django in Depth', 'Intro to Programming'])
        self.assertEqual(response.json()['data']['per_page'], 12)

    def test_courses_price_type(self):
        response = self.client.get(
            f'/api/categories/{self.programming.pk}/courses/?price_type=paid', **tenant_headers(self.tenant),
        )
        self.assertEqual(self._titles(response), ['Django in Depth'])

    def test_courses_sorted_by_popularity(self):
        enrollment_services.enroll(TenantContext.for_tenant(self.tenant), self.student, self.django.pk)
        response = self.client.get(
            f'/api/categories/{self.programming.pk}/courses/?sort=popular', **tenant_headers(self.tenant),
        )
        titles = [c['title'] for c in response.json()['data']['data']]
        self.assertEqual(titles, ['Django in Depth', 'Intro to Programming'])

    def test_full_path(self):
        self.assertEqual(self.python.full_path, 'Programming > Python')


def _cms_response(payload, status_code=200):
    response = mock.Mock()
    response.status_code = status_code
    response.json.return_value = payload
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(f'{status_code} Error')
    else:
        response.raise_for_status.return_value = None
    return response


class CMSClientTests(APITestCase):

    @classmethod
    def setUpTestData(cls):
        cls.tenant = make_tenant('acme')
        cls.integration = TenantIntegration.objects.create(
            tenant=cls.tenant,
            provider=TenantIntegration.Provider.CMS,
            configuration={'base_url': 'https://cms.acme.test/', 'api_token': 'secret-token'},
        )
        cls.course = make_course(cls.tenant, 'Local Title', cms_id='42')

    def setUp(self):
        cache.clear()

    @mock.patch('courses.cms.requests.get')
    def test_get_course_is_cached(self, mock_get):
        mock_get.return_value = _cms_response({'data': {'id': 42, 'attributes': {'title': 'From CMS'}}})
        client = CMSClient.for_tenant(self.tenant)

        self.assertEqual(client.get_course('42'), {'title': 'From CMS'})
        self.assertEqual(client.get_course('42'), {'title': 'From CMS'})

        mock_get.assert_called_once()
        args, kwargs = mock_get.call_args
        self.assertEqual(args[0], 'https://cms.acme.test/api/courses/42')
        self.assertEqual(kwargs['headers']['Authorization'], 'Bearer secret-token')

    @mock.patch('courses.cms.requests.get')
    def test_invalidate_forces_refetch(self, mock_get):
        mock_get.return_value = _cms_response({'title': 'Plain'})
        client = CMSClient.for_tenant(self.tenant)
        client.get_course('42')
        client.invalidate('42')
        client.get_course('42')
        self.assertEqual(mock_get.call_count, 2)

    @mock.patch('courses.cms.requests.get')
    def test_network_error_is_cms_error(self, mock_get):
        mock_get.side_effect = requests.exceptions.ConnectionError('refused')
        with self.assertRaises(CMSError):
            CMSClient.for_tenant(self.tenant).get_course('42')

    @mock.patch('courses.cms.requests.get')
    def test_http_error_is_cms_error(self, mock_get):
        mock_get.return_value = _cms_response({}, status_code=503)
        with self.assertRaises(CMSError):
            CMSClient.for_tenant(self.tenant).get_course('42')

    @mock.patch('courses.cms.requests.get')
    def test_invalid_json_is_cms_error(self, mock_get):
        response = _cms_response(None)
        response.json.side_effect = ValueError('no json')
        mock_get.return_value = response
        with self.assertRaises(CMSError):
            CMSClient.for_tenant(self.tenant).get_course('42')

    def test_unconfigured_tenant(self):
        with self.assertRaises(CMSError):
            CMSClient.for_tenant(make_tenant('globex'))

    @mock.patch('courses.cms.requests.get')
    def test_sync_course_maps_fields(self, mock_get):
        mock_get.return_value = _cms_response({'data': {'attributes': {
            'title': 'CMS Title',
            'shortDescription': 'Short',
            'level': 'expert',
            'durationHours': '12',
            'description': '',
        }}})

        changed = sync_course_from_cms(self.course)

        self.assertEqual(sorted(changed), ['estimated_duration_hours', 'short_description', 'title'])
        self.course.refresh_from_db()
        self.assertEqual(self.course.title, 'CMS Title')
        self.assertEqual(self.course.estimated_duration_hours, 12)
        self.assertEqual(self.course.level, Course.Level.BEGINNER)
        self.assertTrue(self.course.is_published)

    @mock.patch('courses.cms.requests.get')
    def test_sync_task_records_outcome(self, mock_get):
        mock_get.return_value = _cms_response({'title': 'Synced'})
        self.assertEqual(sync_cms_courses(), {'acme': 1})
        self.integration.refresh_from_db()
        self.assertEqual(self.integration.sync_status, TenantIntegration.SyncStatus.OK)
        self.assertIsNotNone(self.integration.last_sync_at)

    @mock.patch('courses.cms.requests.get')
    def test_sync_task_failure_is_recorded(self, mock_get):
        mock_get.side_effect = requests.exceptions.Timeout('slow')
        results = sync_cms_courses()
        self.assertTrue(results['acme'].startswith('failed'))
        self.integration.refresh_from_db()
        self.assertEqual(self.integration.sync_status, TenantIntegration.SyncStatus.FAILED)

    @mock.patch('courses.cms.requests.get')
    def test_management_command(self, mock_get):
        mock_get.return_value = _cms_response({'title': 'Synced'})
        out = StringIO()
        call_command('sync_cms_courses', '--tenant', 'acme', stdout=out)
        self.assertIn('acme: 1 course(s) updated', out.getvalue())
