"""JSON envelope handlers for errors raised outside DRF views."""
from django.http import JsonResponse

from .exceptions import GENERIC_ERROR_MESSAGE, error_payload


def not_found(request, exception=None):
    return JsonResponse(error_payload('Resource not found'), status=404)


def server_error(request):
    return JsonResponse(error_payload(GENERIC_ERROR_MESSAGE), status=500)
