import uuid

import django.core.validators
import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='Tenant',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('slug', models.SlugField(help_text='Identifier used in URLs and subdomains', unique=True)),
                ('name', models.CharField(max_length=200)),
                ('domain', models.CharField(blank=True, help_text='Custom domain, e.g. academy.example.com', max_length=255, null=True, unique=True)),
                ('status', models.CharField(choices=[('active', 'Active'), ('suspended', 'Suspended'), ('inactive', 'Inactive')], default='active', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='TenantBranding',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('logo_url', models.URLField(blank=True)),
                ('favicon_url', models.URLField(blank=True)),
                ('primary_color', models.CharField(default='#3B82F6', max_length=7, validators=[django.core.validators.RegexValidator(message='Enter a colour in #RRGGBB format.', regex='^#[0-9A-Fa-f]{6}$')])),
                ('secondary_color', models.CharField(default='#64748B', max_length=7, validators=[django.core.validators.RegexValidator(message='Enter a colour in #RRGGBB format.', regex='^#[0-9A-Fa-f]{6}$')])),
                ('accent_color', models.CharField(default='#10B981', max_length=7, validators=[django.core.validators.RegexValidator(message='Enter a colour in #RRGGBB format.', regex='^#[0-9A-Fa-f]{6}$')])),
                ('background_color', models.CharField(default='#FFFFFF', max_length=7, validators=[django.core.validators.RegexValidator(message='Enter a colour in #RRGGBB format.', regex='^#[0-9A-Fa-f]{6}$')])),
                ('text_color', models.CharField(default='#1F2937', max_length=7, validators=[django.core.validators.RegexValidator(message='Enter a colour in #RRGGBB format.', regex='^#[0-9A-Fa-f]{6}$')])),
                ('custom_css', models.TextField(blank=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('tenant', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='branding', to='tenants.tenant')),
            ],
        ),
        migrations.CreateModel(
            name='TenantIntegration',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('provider', models.CharField(choices=[('cms', 'Content management system'), ('video', 'Video host'), ('file_storage', 'File storage'), ('ai_text', 'AI text service'), ('payments', 'Payment processor')], max_length=20)),
                ('configuration', models.JSONField(blank=True, default=dict)),
                ('is_enabled', models.BooleanField(default=True)),
                ('last_sync_at', models.DateTimeField(blank=True, null=True)),
                ('sync_status', models.CharField(choices=[('never', 'Never synced'), ('ok', 'OK'), ('failed', 'Failed')], default='never', max_length=10)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('tenant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='tenants_tenantintegrations', to='tenants.tenant')),
            ],
            options={
                'constraints': [models.UniqueConstraint(fields=('tenant', 'provider'), name='unique_tenant_integration')],
            },
        ),
        migrations.CreateModel(
            name='TenantSettings',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('organization_name', models.CharField(blank=True, max_length=200)),
                ('contact_email', models.EmailField(blank=True, max_length=254)),
                ('contact_phone', models.CharField(blank=True, max_length=30)),
                ('timezone', models.CharField(default='UTC', max_length=50)),
                ('language', models.CharField(default='en', max_length=10)),
                ('currency', models.CharField(default='USD', max_length=3)),
                ('self_enrollment_enabled', models.BooleanField(default=True)),
                ('certificates_enabled', models.BooleanField(default=True)),
                ('ai_assistant_enabled', models.BooleanField(default=False)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('tenant', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='settings', to='tenants.tenant')),
            ],
            options={
                'verbose_name_plural': 'tenant settings',
            },
        ),
    ]
