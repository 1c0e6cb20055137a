"""Success envelope helpers shared by every API view."""
from rest_framework import status as http_status
from rest_framework.response import Response


def success_response(data=None, message='', status=http_status.HTTP_200_OK):
    """
    {"success": true, "message": "...", "data": ...}
    """
    return Response(
        {'success': True, 'message': message, 'data': data},
        status=status,
    )


def created_response(data=None, message='Created successfully'):
    return success_response(data, message, status=http_status.HTTP_201_CREATED)
