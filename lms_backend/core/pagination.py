"""Page-number pagination rendered inside the success envelope."""
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response


class EnvelopePagination(PageNumberPagination):
    """
    data = {current_page, per_page, total, last_page, data: [...]}

    Page size comes from ?per_page= (capped by max_page_size).
    """
    page_size = 15
    page_size_query_param = 'per_page'
    max_page_size = 100

    def __init__(self, page_size=None):
        if page_size is not None:
            self.page_size = page_size

    def get_paginated_response(self, data, message=''):
        paginator = self.page.paginator
        return Response({
            'success': True,
            'message': message,
            'data': {
                'current_page': self.page.number,
                'per_page': paginator.per_page,
                'total': paginator.count,
                'last_page': paginator.num_pages,
                'data': data,
            },
        })


def paginate(view, queryset, serializer_class, message='', page_size=None, **serializer_kwargs):
    """Paginate a queryset outside of GenericAPIView.list()."""
    paginator = EnvelopePagination(page_size=page_size)
    page = paginator.paginate_queryset(queryset, view.request, view=view)
    context = serializer_kwargs.pop('context', None) or view.get_serializer_context()
    serializer = serializer_class(page, many=True, context=context, **serializer_kwargs)
    return paginator.get_paginated_response(serializer.data, message=message)
