"""
Seed demo data for development.

Creates the package catalogue, the `demo` tenant (demo.lms.local) on the
Professional package, users for every role, a category tree, courses with
modules and chapters, and a few enrollments. Safe to run repeatedly.

Usage:
    python manage.py seed_demo
    python manage.py seed_demo --password changeme
"""
from datetime import timedelta
from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from accounts.models import User
from accounts.roles import Role
from billing.models import Package, PackageFeature, PackageQuota, QuotaName, Subscription
from billing.quotas import set_usage
from courses.models import Category, Chapter, Course, Module
from enrollments.models import Enrollment
from tenants.models import Tenant, TenantBranding, TenantSettings

DEMO_PASSWORD = 'password123'

PACKAGES = [
    {
        'name': 'Starter',
        'slug': 'starter',
        'description': 'Perfect for small organizations getting started with online learning',
        'price': Decimal('29.99'),
        'sort_order': 1,
        'quotas': {
            QuotaName.MAX_COURSES: (10, 'count'),
            QuotaName.MAX_STUDENTS: (100, 'count'),
            QuotaName.STORAGE_LIMIT: (5, 'gb'),
            QuotaName.BANDWIDTH_LIMIT: (50, 'gb'),
        },
        'features': {'custom_branding': 'false', 'advanced_analytics': 'false', 'api_access': 'false'},
    },
    {
        'name': 'Professional',
        'slug': 'professional',
        'description': 'Advanced features for growing educational institutions',
        'price': Decimal('79.99'),
        'sort_order': 2,
        'is_featured': True,
        'quotas': {
            QuotaName.MAX_COURSES: (50, 'count'),
            QuotaName.MAX_STUDENTS: (1000, 'count'),
            QuotaName.STORAGE_LIMIT: (25, 'gb'),
            QuotaName.BANDWIDTH_LIMIT: (250, 'gb'),
        },
        'features': {'custom_branding': 'true', 'advanced_analytics': 'true', 'api_access': 'true'},
    },
    {
        'name': 'Enterprise',
        'slug': 'enterprise',
        'description': 'Complete solution for large organizations with unlimited features',
        'price': Decimal('199.99'),
        'sort_order': 3,
        'quotas': {
            QuotaName.MAX_COURSES: (-1, 'count'),
            QuotaName.MAX_STUDENTS: (-1, 'count'),
            QuotaName.STORAGE_LIMIT: (-1, 'gb'),
            QuotaName.BANDWIDTH_LIMIT: (-1, 'gb'),
        },
        'features': {'custom_branding': 'true', 'advanced_analytics': 'true', 'api_access': 'true'},
    },
]

FEATURE_NAMES = {
    'custom_branding': 'Custom branding',
    'advanced_analytics': 'Advanced analytics',
    'api_access': 'API access',
}

USERS = [
    ('admin@demo.lms', 'Admin', 'User', Role.TENANT_ADMIN),
    ('instructor@demo.lms', 'Sarah', 'Johnson', Role.INSTRUCTOR),
    ('michael.chen@demo.lms', 'Michael', 'Chen', Role.INSTRUCTOR),
    ('student@demo.lms', 'John', 'Doe', Role.STUDENT),
    ('jane.smith@demo.lms', 'Jane', 'Smith', Role.STUDENT),
    ('alex.thompson@demo.lms', 'Alex', 'Thompson', Role.STUDENT),
]

CATEGORIES = {
    'Programming': ['Web Development', 'Mobile Development'],
    'Data Science': ['Machine Learning', 'Data Visualization'],
    'Design': ['UI/UX Design'],
    'Business': ['Project Management'],
}

COURSES = [
    {
        'title': 'Introduction to Python',
        'category': 'Programming',
        'level': Course.Level.BEGINNER,
        'is_free': True,
        'is_featured': True,
        'modules': {'Getting Started': ['Installing Python', 'Your First Program'],
                    'Basics': ['Variables', 'Control Flow', 'Functions']},
    },
    {
        'title': 'Modern Web Development',
        'category': 'Web Development',
        'level': Course.Level.INTERMEDIATE,
        'price': Decimal('49.00'),
        'is_featured': True,
        'modules': {'HTML and CSS': ['Semantic HTML', 'Layouts'],
                    'JavaScript': ['The DOM', 'Fetching Data']},
    },
    {
        'title': 'Machine Learning Foundations',
        'category': 'Machine Learning',
        'level': Course.Level.ADVANCED,
        'price': Decimal('99.00'),
        'modules': {'Theory': ['Linear Models', 'Overfitting'],
                    'Practice': ['Training a Model', 'Evaluation']},
    },
    {
        'title': 'Designing Interfaces',
        'category': 'UI/UX Design',
        'level': Course.Level.BEGINNER,
        'price': Decimal('29.00'),
        'publish': False,
        'modules': {'Principles': ['Hierarchy', 'Color']},
    },
]


class Command(BaseCommand):
    help = 'Seed packages, the demo tenant, users, courses and enrollments'

    def add_arguments(self, parser):
        parser.add_argument('--password', default=DEMO_PASSWORD, help='Password for the demo users')

    @transaction.atomic
    def handle(self, *args, **options):
        packages = self.seed_packages()
        tenant = self.seed_tenant(packages['professional'])
        users = self.seed_users(tenant, options['password'])
        courses = self.seed_courses(tenant, users)
        self.seed_enrollments(tenant, users, courses)

        set_usage(tenant, QuotaName.MAX_COURSES, Course.objects.for_tenant(tenant).count())
        set_usage(
            tenant, QuotaName.MAX_STUDENTS,
            User.objects.for_tenant(tenant).filter(user_roles__role=Role.STUDENT).count(),
        )

        self.stdout.write(self.style.SUCCESS(
            f'Demo data ready: tenant "{tenant.slug}" ({tenant.domain}), '
            f'{len(users)} users, {len(courses)} courses.'
        ))

    def seed_packages(self):
        packages = {}
        for definition in PACKAGES:
            definition = dict(definition)
            quotas = definition.pop('quotas')
            features = definition.pop('features')
            package, created = Package.objects.update_or_create(slug=definition.pop('slug'), defaults=definition)
            for quota_name, (limit, unit) in quotas.items():
                PackageQuota.objects.update_or_create(
                    package=package, quota_name=quota_name, defaults={'limit': limit, 'unit': unit},
                )
            for position, (key, value) in enumerate(features.items()):
                PackageFeature.objects.update_or_create(
                    package=package, feature_key=key,
                    defaults={
                        'name': FEATURE_NAMES[key],
                        'feature_type': PackageFeature.FeatureType.BOOLEAN,
                        'value': value,
                        'sort_order': position,
                    },
                )
            packages[package.slug] = package
            self.stdout.write(f"Package '{package.name}' {'created' if created else 'up to date'}")
        return packages

    def seed_tenant(self, package):
        tenant, created = Tenant.objects.update_or_create(
            slug='demo',
            defaults={'name': 'Demo University', 'domain': 'demo.lms.local', 'status': Tenant.Status.ACTIVE},
        )
        TenantSettings.objects.update_or_create(
            tenant=tenant,
            defaults={
                'organization_name': 'Demo University',
                'contact_email': 'admin@demo.lms',
                'timezone': 'UTC',
                'language': 'en',
                'currency': 'USD',
            },
        )
        TenantBranding.objects.get_or_create(
            tenant=tenant,
            defaults={'primary_color': '#3B82F6', 'secondary_color': '#64748B', 'accent_color': '#10B981'},
        )

        if not Subscription.objects.for_tenant(tenant).current().exists():
            now = timezone.now()
            Subscription.objects.create(
                tenant=tenant,
                package=package,
                status=Subscription.Status.ACTIVE,
                amount=package.price,
                currency=package.currency,
                current_period_start=now,
                current_period_end=now + timedelta(days=30),
                expires_at=now + timedelta(days=365),
            )
        self.stdout.write(f"Tenant '{tenant.slug}' {'created' if created else 'up to date'}")
        return tenant

    def seed_users(self, tenant, password):
        users = {}
        for email, first_name, last_name, role in USERS:
            user = User.objects.for_tenant(tenant).filter(email=email).first()
            if user is None:
                user = User.objects.create_user(
                    email, password, tenant=tenant, roles=(role,),
                    first_name=first_name, last_name=last_name,
                )
            else:
                user.assign_role(role)
            users[email] = user
        return users

    def seed_categories(self, tenant):
        categories = {}
        for position, (name, children) in enumerate(CATEGORIES.items()):
            parent = self._category(tenant, name, None, position)
            categories[name] = parent
            for child_position, child_name in enumerate(children):
                categories[child_name] = self._category(tenant, child_name, parent, child_position)
        return categories

    def _category(self, tenant, name, parent, position):
        category = Category.objects.for_tenant(tenant).filter(name=name).first()
        if category is None:
            category = Category.objects.create(tenant=tenant, name=name, parent=parent, sort_order=position)
        return category

    def seed_courses(self, tenant, users):
        categories = self.seed_categories(tenant)
        instructors = [users['instructor@demo.lms'], users['michael.chen@demo.lms']]

        courses = []
        for position, definition in enumerate(COURSES):
            definition = dict(definition)
            modules = definition.pop('modules')
            publish = definition.pop('publish', True)
            category = categories[definition.pop('category')]

            course = Course.objects.for_tenant(tenant).filter(title=definition['title']).first()
            if course is None:
                course = Course.objects.create(
                    tenant=tenant,
                    category=category,
                    instructor=instructors[position % len(instructors)],
                    short_description=f"Learn {definition['title'].lower()} step by step.",
                    estimated_duration_hours=4 + 2 * position,
                    sort_order=position,
                    **definition,
                )
                for module_position, (module_title, chapters) in enumerate(modules.items()):
                    module = Module.objects.create(
                        tenant=tenant, course=course, title=module_title, sort_order=module_position,
                    )
                    for chapter_position, chapter_title in enumerate(chapters):
                        Chapter.objects.create(
                            tenant=tenant, module=module, title=chapter_title, sort_order=chapter_position,
                            content=f'{chapter_title} lesson content.',
                            estimated_duration_minutes=15,
                        )
            if publish and not course.is_published:
                course.publish()
            courses.append(course)
        return courses

    def seed_enrollments(self, tenant, users, courses):
        published = [course for course in courses if course.is_published]
        students = [users['student@demo.lms'], users['jane.smith@demo.lms'], users['alex.thompson@demo.lms']]
        now = timezone.now()
        for offset, student in enumerate(students):
            for course in published[offset:offset + 2]:
                if Enrollment.objects.for_tenant(tenant).filter(user=student, course=course).exists():
                    continue
                Enrollment.objects.create(
                    tenant=tenant,
                    user=student,
                    course=course,
                    enrolled_at=now,
                    expires_at=now + timedelta(days=180),
                    total_chapters=course.total_chapters,
                )
