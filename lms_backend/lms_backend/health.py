"""
Health check endpoints for monitoring and orchestration probes.
"""
import logging
import time

from django.conf import settings
from django.core.cache import cache
from django.db import DatabaseError, connection
from django.http import JsonResponse

logger = logging.getLogger(__name__)


def _check_database():
    with connection.cursor() as cursor:
        cursor.execute('SELECT 1')
        cursor.fetchone()


def _check_cache():
    cache.set('health:ping', 'pong', 10)
    if cache.get('health:ping') != 'pong':
        raise RuntimeError('cache round-trip failed')


def health_check(request):
    """
    Full health check.

    Returns 200 when the database and the cache answer, 500 otherwise.
    Error details are truncated so internals do not leak to the caller.
    """
    status = {
        'status': 'healthy',
        'timestamp': time.time(),
        'version': getattr(settings, 'VERSION', '1.0.0'),
        'checks': {},
    }

    try:
        _check_database()
        status['checks']['database'] = 'ok'
    except DatabaseError as e:
        logger.error('Health check: database unavailable: %s', e)
        status['status'] = 'unhealthy'
        status['checks']['database'] = 'error'

    try:
        _check_cache()
        status['checks']['cache'] = 'ok'
    except Exception as e:
        logger.error('Health check: cache unavailable: %s', e)
        status['status'] = 'unhealthy'
        status['checks']['cache'] = 'error'

    http_status = 200 if status['status'] == 'healthy' else 500
    return JsonResponse(status, status=http_status)


def ready_check(request):
    """Readiness probe - the application can serve requests."""
    try:
        _check_database()
        return JsonResponse({'ready': True})
    except DatabaseError:
        return JsonResponse({'ready': False}, status=503)


def live_check(request):
    """Liveness probe - the process is up."""
    return JsonResponse({'alive': True, 'timestamp': time.time()})
