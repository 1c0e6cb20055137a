"""
Sentry integration.

Enabled only when SENTRY_DSN is present in the environment; called once at
the end of settings.py.
"""
import logging
import os

import sentry_sdk
from sentry_sdk.integrations.celery import CeleryIntegration
from sentry_sdk.integrations.django import DjangoIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.redis import RedisIntegration

logger = logging.getLogger(__name__)

FILTERED_KEYS = ('password', 'current_password', 'new_password', 'refresh', 'access', 'token')


def init_sentry():
    """Initialise the Sentry SDK. Returns True when reporting is active."""
    sentry_dsn = os.environ.get('SENTRY_DSN', '')

    if not sentry_dsn:
        logger.info("Sentry: DSN not configured, skipping initialization")
        return False

    environment = os.environ.get('DJANGO_ENV', 'production')
    if os.environ.get('DEBUG', 'False').lower() in ('true', '1', 'yes'):
        environment = 'development'

    sentry_sdk.init(
        dsn=sentry_dsn,
        integrations=[
            DjangoIntegration(transaction_style='url'),
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
            CeleryIntegration(),
            RedisIntegration(),
        ],
        environment=environment,
        release=os.environ.get('APP_VERSION', 'unknown'),
        traces_sample_rate=float(os.environ.get('SENTRY_TRACES_SAMPLE_RATE', '0.1')),
        send_default_pii=False,
        before_send=before_send_callback,
    )

    logger.info("Sentry: initialized for %s environment", environment)
    return True


def before_send_callback(event, hint):
    """Drop expected client errors and mask credentials before sending."""
    if 'exc_info' in hint:
        exc_type = hint['exc_info'][0]
        if exc_type.__name__ in ('Http404', 'NotFoundError', 'TenantNotIdentified'):
            return None

    request_data = event.get('request')
    if request_data:
        data = request_data.get('data')
        if isinstance(data, dict):
            for key in FILTERED_KEYS:
                if key in data:
                    data[key] = '[FILTERED]'

        headers = request_data.get('headers')
        if isinstance(headers, dict) and 'Authorization' in headers:
            headers['Authorization'] = '[FILTERED]'

    return event
