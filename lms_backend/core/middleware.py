"""
Request metrics middleware.
"""
import logging
import time

from django.utils.deprecation import MiddlewareMixin

logger = logging.getLogger('request_metrics')

SLOW_REQUEST_SECONDS = 2.0


class RequestMetricsMiddleware(MiddlewareMixin):
    """
    Logs one key=value line per request:
    method, path, status, duration, user, tenant, ip.

    Sets the X-Request-Duration response header.
    """

    def process_request(self, request):
        request._start_time = time.monotonic()
        return None

    def process_response(self, request, response):
        if not hasattr(request, '_start_time'):
            return response

        duration = time.monotonic() - request._start_time

        user_id = 'anonymous'
        user = getattr(request, 'user', None)
        if user is not None and user.is_authenticated:
            user_id = user.id

        tenant_context = getattr(request, 'tenant_context', None)
        tenant_slug = '-'
        if tenant_context is not None and tenant_context.tenant is not None:
            tenant_slug = tenant_context.tenant.slug

        logger.info(
            "method=%s path=%s status=%s duration=%.3fs user=%s tenant=%s ip=%s",
            request.method, request.path, response.status_code, duration,
            user_id, tenant_slug, self.get_client_ip(request),
        )

        response['X-Request-Duration'] = f"{duration:.3f}"

        if duration > SLOW_REQUEST_SECONDS:
            logger.warning(
                "SLOW_REQUEST: %s %s took %.3fs (user=%s tenant=%s)",
                request.method, request.path, duration, user_id, tenant_slug,
            )

        return response

    @staticmethod
    def get_client_ip(request):
        """Client IP, honouring X-Forwarded-For from the proxy."""
        x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
        if x_forwarded_for:
            return x_forwarded_for.split(',')[0].strip()
        return request.META.get('REMOTE_ADDR', 'unknown')
