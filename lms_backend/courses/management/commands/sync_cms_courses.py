"""
Sync course metadata from tenant CMS integrations.

Usage:
    python manage.py sync_cms_courses
    python manage.py sync_cms_courses --tenant demo
"""
from django.core.management.base import BaseCommand

from courses.tasks import sync_cms_courses


class Command(BaseCommand):
    help = 'Sync course metadata from the CMS of every tenant with a CMS integration'

    def add_arguments(self, parser):
        parser.add_argument('--tenant', help='Only sync this tenant (slug)')

    def handle(self, *args, **options):
        results = sync_cms_courses(tenant_slug=options.get('tenant'))
        if not results:
            self.stdout.write('No tenant has a CMS integration configured.')
            return
        for slug, outcome in results.items():
            if isinstance(outcome, int):
                self.stdout.write(self.style.SUCCESS(f'{slug}: {outcome} course(s) updated'))
            else:
                self.stdout.write(self.style.ERROR(f'{slug}: {outcome}'))
