"""
Tenant resolution, context binding and the tenant configuration API.

Run: python manage.py test tenants -v2
"""
import json

from django.http import HttpResponse
from django.test import RequestFactory, TestCase
from rest_framework.test import APITestCase

from accounts.roles import Role
from core.exceptions import TenantNotIdentified, TenantSuspendedError
from core.testing import auth_headers, make_super_admin, make_tenant, make_user, tenant_headers
from tenants.context import TenantContext
from tenants.middleware import TenantMiddleware
from tenants.models import FeatureFlag, Tenant, TenantBranding, TenantIntegration


class TenantMiddlewareResolveTests(TestCase):
    """Resolution order: host, then X-Tenant-ID, then the token claim."""

    @classmethod
    def setUpTestData(cls):
        cls.acme = make_tenant('acme', domain='learn.acme.test')
        cls.globex = make_tenant('globex')
        cls.globex_user = make_user(cls.globex)

    def setUp(self):
        TenantMiddleware.clear_cache()
        self.factory = RequestFactory()
        self.middleware = TenantMiddleware(get_response=lambda request: HttpResponse('ok'))

    def _resolve(self, host='testserver', path='/api/courses/', **headers):
        request = self.factory.get(path, HTTP_HOST=host, **headers)
        return self.middleware.resolve(request)

    def test_custom_domain_resolves(self):
        context = self._resolve('learn.acme.test')
        self.assertEqual(context.tenant, self.acme)
        self.assertEqual(context.source, TenantContext.DOMAIN)

    def test_domain_match_ignores_port_and_case(self):
        context = self._resolve('LEARN.ACME.TEST:8000')
        self.assertEqual(context.tenant, self.acme)

    def test_platform_subdomain_resolves_slug(self):
        context = self._resolve('globex.lms.local')
        self.assertEqual(context.tenant, self.globex)
        self.assertEqual(context.source, TenantContext.DOMAIN)

    def test_header_accepts_uuid(self):
        context = self._resolve(HTTP_X_TENANT_ID=str(self.globex.pk))
        self.assertEqual(context.tenant, self.globex)
        self.assertEqual(context.source, TenantContext.HEADER)

    def test_header_accepts_slug(self):
        context = self._resolve(HTTP_X_TENANT_ID='acme')
        self.assertEqual(context.tenant, self.acme)

    def test_token_claim_resolves(self):
        context = self._resolve(**auth_headers(self.globex_user))
        self.assertEqual(context.tenant, self.globex)
        self.assertEqual(context.source, TenantContext.TOKEN)

    def test_host_wins_over_header(self):
        context = self._resolve('learn.acme.test', HTTP_X_TENANT_ID='globex')
        self.assertEqual(context.tenant, self.acme)

    def test_header_wins_over_token(self):
        context = self._resolve(HTTP_X_TENANT_ID='acme', **auth_headers(self.globex_user))
        self.assertEqual(context.tenant, self.acme)
        self.assertEqual(context.source, TenantContext.HEADER)

    def test_unknown_header_falls_through_to_token(self):
        context = self._resolve(HTTP_X_TENANT_ID='nope', **auth_headers(self.globex_user))
        self.assertEqual(context.tenant, self.globex)

    def test_invalid_token_is_ignored(self):
        context = self._resolve(HTTP_AUTHORIZATION='Bearer not-a-jwt')
        self.assertFalse(context.is_resolved)

    def test_unknown_subdomain_does_not_resolve(self):
        self.assertFalse(self._resolve('nobody.lms.local').is_resolved)

    def test_suspended_tenant_does_not_resolve(self):
        suspended = make_tenant('frozen', status=Tenant.Status.SUSPENDED)
        self.assertFalse(self._resolve(HTTP_X_TENANT_ID=str(suspended.pk)).is_resolved)
        self.assertFalse(self._resolve('frozen.lms.local').is_resolved)

    def test_unresolved_request_gets_400_envelope(self):
        request = self.factory.get('/api/courses/', HTTP_HOST='testserver')
        response = self.middleware(request)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(json.loads(response.content), {
            'success': False,
            'message': 'Tenant could not be identified',
        })

    def test_tenant_optional_path_passes_through(self):
        request = self.factory.get('/api/health/', HTTP_HOST='testserver')
        response = self.middleware(request)
        self.assertEqual(response.status_code, 200)
        self.assertFalse(request.tenant_context.is_resolved)

    def test_cache_is_invalidated_when_tenant_changes(self):
        self.assertEqual(self._resolve('learn.acme.test').tenant, self.acme)

        self.acme.domain = 'academy.acme.test'
        self.acme.save()

        self.assertFalse(self._resolve('learn.acme.test').is_resolved)
        self.assertEqual(self._resolve('academy.acme.test').tenant, self.acme)

    def test_cached_miss_is_invalidated_when_tenant_is_created(self):
        self.assertFalse(self._resolve('initech.lms.local').is_resolved)
        initech = make_tenant('initech')
        self.assertEqual(self._resolve('initech.lms.local').tenant, initech)


class TenantContextTests(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.acme = make_tenant('acme')
        cls.globex = make_tenant('globex')
        cls.acme_user = make_user(cls.acme)
        cls.root = make_super_admin()

    def test_require_raises_without_tenant(self):
        with self.assertRaises(TenantNotIdentified):
            TenantContext.empty().require()

    def test_scope_without_tenant_returns_no_rows(self):
        self.assertFalse(TenantContext.empty().scope(TenantIntegration.objects.all()).exists())

    def test_bind_user_rebinds_to_own_tenant(self):
        context = TenantContext(self.globex, TenantContext.HEADER).bind_user(self.acme_user)
        self.assertEqual(context.tenant, self.acme)
        self.assertEqual(context.source, TenantContext.USER)

    def test_bind_user_without_resolved_tenant(self):
        context = TenantContext.empty().bind_user(self.acme_user)
        self.assertEqual(context.tenant, self.acme)

    def test_bind_user_refuses_suspended_own_tenant(self):
        frozen = make_tenant('frozen', status=Tenant.Status.SUSPENDED)
        user = make_user(frozen)
        for context in (TenantContext(self.globex, TenantContext.HEADER), TenantContext.empty()):
            with self.subTest(source=context.source), self.assertRaises(TenantSuspendedError):
                context.bind_user(user)

    def test_super_admin_keeps_resolved_context(self):
        context = TenantContext(self.globex, TenantContext.HEADER).bind_user(self.root)
        self.assertEqual(context.tenant, self.globex)
        self.assertEqual(context.source, TenantContext.HEADER)

    def test_stamp_overwrites_tenant(self):
        integration = TenantIntegration(tenant=self.globex, provider=TenantIntegration.Provider.CMS)
        TenantContext.for_tenant(self.acme).stamp(integration)
        self.assertEqual(integration.tenant, self.acme)


class TenantModelTests(TestCase):

    def test_saving_scoped_row_without_tenant_fails(self):
        with self.assertRaises(ValueError):
            TenantIntegration(provider=TenantIntegration.Provider.CMS).save()

    def test_domain_is_normalised(self):
        tenant = make_tenant('acme', domain='  Learn.ACME.test ')
        tenant.refresh_from_db()
        self.assertEqual(tenant.domain, 'learn.acme.test')

    def test_feature_flags_default(self):
        tenant = make_tenant('acme')
        self.assertTrue(tenant.feature_enabled(FeatureFlag.SELF_ENROLLMENT))
        self.assertTrue(tenant.feature_enabled(FeatureFlag.CERTIFICATES))
        self.assertFalse(tenant.feature_enabled(FeatureFlag.AI_ASSISTANT))

    def test_configured_integrations(self):
        tenant = make_tenant('acme')
        TenantIntegration.objects.create(
            tenant=tenant, provider=TenantIntegration.Provider.CMS,
            configuration={'base_url': 'https://cms.acme.test', 'api_token': 'secret'},
        )
        TenantIntegration.objects.create(tenant=tenant, provider=TenantIntegration.Provider.VIDEO)
        TenantIntegration.objects.create(
            tenant=tenant, provider=TenantIntegration.Provider.PAYMENTS,
            configuration={'key': 'x'}, is_enabled=False,
        )
        self.assertEqual(tenant.configured_integrations(), {TenantIntegration.Provider.CMS})
        self.assertTrue(tenant.has_integration(TenantIntegration.Provider.CMS))
        self.assertFalse(tenant.has_integration(TenantIntegration.Provider.PAYMENTS))


class TenantConfigAPITests(APITestCase):

    @classmethod
    def setUpTestData(cls):
        cls.tenant = make_tenant('acme', domain='learn.acme.test', ai_assistant_enabled=True)
        TenantBranding.objects.create(tenant=cls.tenant, primary_color='#112233')
        TenantIntegration.objects.create(
            tenant=cls.tenant, provider=TenantIntegration.Provider.CMS,
            configuration={'base_url': 'https://cms.acme.test', 'api_token': 'top-secret'},
        )
        cls.admin = make_user(cls.tenant, roles=(Role.TENANT_ADMIN,))
        cls.student = make_user(cls.tenant)

    def setUp(self):
        TenantMiddleware.clear_cache()

    def test_public_config_by_domain(self):
        response = self.client.get('/api/tenant/config/', HTTP_HOST='learn.acme.test')
        self.assertEqual(response.status_code, 200)
        data = response.json()['data']
        self.assertEqual(data['slug'], 'acme')
        self.assertEqual(data['branding']['primary_color'], '#112233')
        self.assertTrue(data['features']['ai_assistant'])
        self.assertTrue(data['integrations']['cms'])
        self.assertFalse(data['integrations']['video'])

    def test_config_never_contains_secrets(self):
        response = self.client.get('/api/tenant/config/', **tenant_headers(self.tenant))
        self.assertNotIn('top-secret', response.content.decode())

    def test_config_without_tenant_is_400(self):
        response = self.client.get('/api/tenant/config/')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['message'], 'Tenant could not be identified')

    def test_admin_updates_settings(self):
        response = self.client.put(
            '/api/tenant/settings/',
            {'organization_name': 'ACME Academy', 'self_enrollment_enabled': False},
            format='json',
            **auth_headers(self.admin),
        )
        self.assertEqual(response.status_code, 200)
        self.tenant.settings.refresh_from_db()
        self.assertEqual(self.tenant.settings.organization_name, 'ACME Academy')
        self.assertFalse(self.tenant.settings.self_enrollment_enabled)

    def test_student_cannot_update_settings(self):
        response = self.client.put(
            '/api/tenant/settings/', {'organization_name': 'Hacked'}, format='json',
            **auth_headers(self.student),
        )
        self.assertEqual(response.status_code, 403)

    def test_anonymous_settings_is_401(self):
        response = self.client.get('/api/tenant/settings/', **tenant_headers(self.tenant))
        self.assertEqual(response.status_code, 401)

    def test_branding_rejects_invalid_colour(self):
        response = self.client.put(
            '/api/tenant/branding/', {'primary_color': 'blue'}, format='json',
            **auth_headers(self.admin),
        )
        self.assertEqual(response.status_code, 422)
        self.assertIn('primary_color', response.json()['errors'])
